"""
Order Module - Service Layer
===============================
Checkout (cart → order with stock decrement), order history and invoices.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy import desc

from common.exceptions import (
    AuthorizationError, CheckoutRejected, CheckoutRejection,
    InfrastructureFailure, NotFoundError,
)
from common.helpers import to_money
from modules.cart.service import CartLine, cart_service
from modules.catalog.service import catalog_service
from modules.order.models import Order, OrderItem, OrderStatus
from modules.pricing.calculator import CartSummary, reconstruct_summary, summarize

logger = logging.getLogger("freshcart.order")


class CheckoutState(str, enum.Enum):
    VALIDATING = "Validating"
    COMMITTING = "Committing"
    DONE = "Done"
    REJECTED = "Rejected"


@dataclass
class Invoice:
    order: Order
    items: List[OrderItem]
    summary: CartSummary


def validate_lines(lines: List[CartLine]) -> None:
    """
    Checkout gate, evaluated on a single snapshot of cart + catalog.
    Raises CheckoutRejected (empty cart, then removed products, then stock).
    """
    if not lines:
        raise CheckoutRejected(CheckoutRejection.EMPTY_CART)

    removed = [line.display_name for line in lines if line.is_removed]
    if removed:
        raise CheckoutRejected(CheckoutRejection.REMOVED_ITEMS, removed)

    short = [
        line.display_name for line in lines
        if line.available == 0 or line.quantity > line.available
    ]
    if short:
        raise CheckoutRejected(CheckoutRejection.STOCK_ISSUES, short)


class OrderService:

    # ==========================================
    # Checkout
    # ==========================================

    def checkout(self, db: Session, user_id: int) -> Order:
        """
        Turn the user's cart into a Pending order:
        1. Validate the cart against one read of the catalog
        2. Price it (subtotal + shipping)
        3. Insert the order, then per line in cart order: snapshot the
           product, insert the order item, decrement stock (guarded)
        4. Clear the cart

        Everything happens in the caller's transaction. On any failure while
        committing, the session is rolled back, so a failed checkout leaves
        no order, no order items and no stock decrements behind.

        Raises CheckoutRejected, InfrastructureFailure.
        """
        state = CheckoutState.VALIDATING
        lines = cart_service.load_lines(db, user_id)
        try:
            validate_lines(lines)
        except CheckoutRejected as e:
            self._log_transition(user_id, state, CheckoutState.REJECTED, f"{e.code} {e.names}")
            raise

        state = self._log_transition(user_id, state, CheckoutState.COMMITTING)
        summary = summarize(lines)

        item_index = None
        try:
            order = Order(
                user_id=user_id,
                total_amount=summary.total,
                shipping_fee=summary.shipping_fee,
                status=OrderStatus.PENDING.value,
            )
            db.add(order)
            db.flush()  # get order.id

            for item_index, line in enumerate(lines):
                self._commit_line(db, order, line)

            item_index = None
            cart_service.clear_cart(db, user_id)
        except CheckoutRejected as e:
            db.rollback()
            self._log_transition(user_id, state, CheckoutState.REJECTED, f"{e.code} {e.names} at item {item_index}")
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Checkout failed: user={user_id} item_index={item_index}")
            raise InfrastructureFailure(item_index=item_index) from e

        self._log_transition(user_id, state, CheckoutState.DONE, f"order #{order.id} total={summary.total}")
        return order

    def _commit_line(self, db: Session, order: Order, line: CartLine) -> OrderItem:
        product = catalog_service.get_by_id(db, line.product_id)
        if product is None:
            raise CheckoutRejected(CheckoutRejection.REMOVED_ITEMS, [line.display_name])

        oi = OrderItem(
            order_id=order.id,
            product_id=product.id,
            product_name=product.name,
            quantity=line.quantity,
            price=product.price,
            subtotal=to_money(product.price * line.quantity),
        )
        db.add(oi)
        db.flush()

        if catalog_service.decrement_stock(db, product.id, line.quantity) == 0:
            # Someone else took the stock after validation
            raise CheckoutRejected(CheckoutRejection.STOCK_ISSUES, [product.name])
        return oi

    def _log_transition(self, user_id: int, old: CheckoutState, new: CheckoutState, note: str = "") -> CheckoutState:
        level = logging.WARNING if new == CheckoutState.REJECTED else logging.INFO
        logger.log(level, f"Checkout user={user_id}: {old.value} -> {new.value} {note}".rstrip())
        return new

    # ==========================================
    # Query
    # ==========================================

    def get_by_id(self, db: Session, order_id: int) -> Optional[Order]:
        return (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.id == order_id)
            .first()
        )

    def get_by_user_id(self, db: Session, user_id: int) -> List[Order]:
        return (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.user_id == user_id)
            .order_by(desc(Order.created_at), desc(Order.id))
            .all()
        )

    def get_all_with_users(
        self,
        db: Session,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Order]:
        """All orders, newest first, with owner and items loaded. Date bounds are inclusive."""
        q = (
            db.query(Order)
            .options(joinedload(Order.user), selectinload(Order.items))
        )
        if start_date:
            q = q.filter(Order.created_at >= datetime.combine(start_date, time.min))
        if end_date:
            q = q.filter(Order.created_at < datetime.combine(end_date + timedelta(days=1), time.min))
        return q.order_by(desc(Order.created_at), desc(Order.id)).all()

    def get_invoice(self, db: Session, order_id: int, user_id: int, is_admin: bool = False) -> Invoice:
        """
        Order + items + display summary.
        Only the owner or an admin may see it.
        Raises NotFoundError, AuthorizationError.
        """
        order = self.get_by_id(db, order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})

        if not is_admin and order.user_id != user_id:
            logger.warning(f"Invoice access denied: order={order_id} user={user_id}")
            raise AuthorizationError("You cannot view this order", details={"order_id": order_id})

        return Invoice(order=order, items=list(order.items), summary=self.summary_for(order))

    def summary_for(self, order: Order) -> CartSummary:
        return reconstruct_summary(order.total_amount, order.shipping_fee, order.items)


# Singleton
order_service = OrderService()
