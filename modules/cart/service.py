"""
Cart Module - Service Layer
==============================
Cart ledger: add/update/remove entries with stock validation, and the
enriched cart view that reconciles entries against the live catalog.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import func

from config.settings import PRICE_TOLERANCE
from common.exceptions import NotFoundError, InsufficientStock, ProductRemoved
from common.helpers import safe_int, to_decimal
from modules.cart.models import CartItem
from modules.catalog.models import Product
from modules.catalog.service import catalog_service
from modules.pricing.calculator import CartSummary, billable_quantity, summarize

logger = logging.getLogger("freshcart.cart")

UNAVAILABLE_NAME = "Unavailable product"


@dataclass(frozen=True)
class CartLine:
    """One cart entry joined with the current state of its product."""
    cart_id: int
    product_id: int
    quantity: int
    captured_name: Optional[str]
    captured_price: Optional[Decimal]
    current_price: Optional[Decimal]
    available: int
    display_name: str
    display_image: Optional[str]
    is_removed: bool
    is_out_of_stock: bool
    exceeds_stock: bool
    price_changed: bool
    effective_price: Decimal

    @property
    def product_name(self) -> str:
        """Name for messages: live name, else the captured one."""
        return self.display_name

    @property
    def line_total(self) -> Decimal:
        """Charged amount, on the same billable quantity the summary uses."""
        return self.effective_price * billable_quantity(self)


@dataclass(frozen=True)
class CartNotice:
    """Informational: the stored quantity was lowered to what is in stock."""
    cart_id: int
    product_name: str
    previous_quantity: int
    new_quantity: int

    def __str__(self) -> str:
        return f"{self.product_name}: quantity reduced from {self.previous_quantity} to {self.new_quantity}"


@dataclass
class CartView:
    items: List[CartLine]
    summary: CartSummary
    notices: List[CartNotice] = field(default_factory=list)

    @property
    def has_out_of_stock(self) -> bool:
        return any(line.is_out_of_stock for line in self.items)

    @property
    def removed_items(self) -> List[CartLine]:
        return [line for line in self.items if line.is_removed]

    @property
    def price_changed_items(self) -> List[CartLine]:
        return [line for line in self.items if line.price_changed and not line.is_removed]

    @property
    def has_stock_issues(self) -> bool:
        return any(line.is_out_of_stock or line.exceeds_stock or line.is_removed for line in self.items)

    @property
    def block_checkout(self) -> bool:
        return self.has_out_of_stock or bool(self.removed_items)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)


def build_line(item: CartItem, product: Optional[Product]) -> CartLine:
    """Derive the enriched view of one entry. `product` is None once deleted."""
    missing = product is None
    available = 0 if missing else max(0, product.quantity or 0)
    current_price = None if missing else to_decimal(product.price)
    captured_price = to_decimal(item.captured_price)

    price_changed = (
        not missing
        and current_price is not None
        and captured_price is not None
        and abs(current_price - captured_price) > PRICE_TOLERANCE
    )

    if missing:
        effective_price = Decimal("0")
    elif current_price is not None:
        effective_price = current_price
    else:
        effective_price = captured_price or Decimal("0")

    return CartLine(
        cart_id=item.id,
        product_id=item.product_id,
        quantity=item.quantity,
        captured_name=item.captured_name,
        captured_price=captured_price,
        current_price=current_price,
        available=available,
        display_name=(product.name if not missing and product.name else None) or item.captured_name or UNAVAILABLE_NAME,
        display_image=None if missing else product.image,
        is_removed=missing,
        is_out_of_stock=missing or available == 0,
        exceeds_stock=not missing and item.quantity > available,
        price_changed=price_changed,
        effective_price=effective_price,
    )


class CartService:

    # ==========================================
    # Mutations
    # ==========================================

    def add_item(self, db: Session, user_id: int, product_id: int, qty=1) -> CartItem:
        """
        Add `qty` units (at least 1) of a product, merging with an existing entry.
        The combined quantity must fit in live stock.
        Raises NotFoundError, InsufficientStock.
        """
        qty = max(1, safe_int(qty) or 1)

        product = catalog_service.get_by_id(db, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

        available = max(0, product.quantity or 0)
        item = db.query(CartItem).filter(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id,
        ).first()

        new_total = (item.quantity if item else 0) + qty
        if new_total > available:
            raise InsufficientStock(available, product.name)

        if item:
            item.quantity = new_total
            # First write wins
            if item.captured_name is None:
                item.captured_name = product.name
            if item.captured_price is None:
                item.captured_price = product.price
        else:
            item = CartItem(
                user_id=user_id,
                product_id=product_id,
                quantity=new_total,
                captured_name=product.name,
                captured_price=product.price,
            )
            db.add(item)

        db.flush()
        logger.info(f"Cart add: user={user_id} product={product_id} qty={new_total}")
        return item

    def update_quantity(self, db: Session, cart_id: int, qty, user_id: Optional[int] = None) -> CartItem:
        """
        Set an entry's quantity (at least 1).
        When user_id is given, entries of other users are treated as missing.
        Raises NotFoundError, ProductRemoved, InsufficientStock.
        """
        desired = max(1, safe_int(qty) or 1)

        q = (
            db.query(CartItem, Product)
            .outerjoin(Product, Product.id == CartItem.product_id)
            .filter(CartItem.id == cart_id)
        )
        if user_id is not None:
            q = q.filter(CartItem.user_id == user_id)
        row = q.first()
        if not row:
            raise NotFoundError(f"Cart item {cart_id} not found", details={"cart_id": cart_id})

        item, product = row
        if product is None:
            raise ProductRemoved(item.captured_name)

        available = max(0, product.quantity or 0)
        if desired > available:
            raise InsufficientStock(available, product.name)

        item.quantity = desired
        db.flush()
        return item

    def delete_item(self, db: Session, cart_id: int, user_id: Optional[int] = None) -> bool:
        q = db.query(CartItem).filter(CartItem.id == cart_id)
        if user_id is not None:
            q = q.filter(CartItem.user_id == user_id)
        deleted = q.delete(synchronize_session=False)
        db.flush()
        return deleted > 0

    def clear_cart(self, db: Session, user_id: int) -> int:
        """Remove all items from a user's cart. Returns number of rows removed."""
        deleted = db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
        db.flush()
        return deleted

    # ==========================================
    # Reads
    # ==========================================

    def load_lines(self, db: Session, user_id: int) -> List[CartLine]:
        """Enriched lines from one join, with no side effects."""
        return [build_line(item, product) for item, product in self._load_rows(db, user_id)]

    def get_user_cart(self, db: Session, user_id: int) -> CartView:
        """
        The cart page view.

        Entries asking for more than the (non-zero) stock are lowered to the
        stock level and reported as notices. Entries whose product is gone or
        has no stock are left alone; they stay flagged and block checkout
        until the customer fixes them.
        """
        rows = self._load_rows(db, user_id)

        notices = []
        for item, product in rows:
            if product is None:
                continue
            available = max(0, product.quantity or 0)
            if 0 < available < item.quantity:
                notice = CartNotice(
                    cart_id=item.id,
                    product_name=product.name or item.captured_name or UNAVAILABLE_NAME,
                    previous_quantity=item.quantity,
                    new_quantity=available,
                )
                item.quantity = available
                notices.append(notice)
                logger.info(f"Cart auto-adjust: user={user_id} {notice}")
        if notices:
            db.flush()

        lines = [build_line(item, product) for item, product in rows]
        return CartView(items=lines, summary=summarize(lines), notices=notices)

    def get_cart_count(self, db: Session, user_id: int) -> int:
        return db.query(
            func.coalesce(func.sum(CartItem.quantity), 0)
        ).filter(CartItem.user_id == user_id).scalar() or 0

    # ==========================================
    # Private helpers
    # ==========================================

    def _load_rows(self, db: Session, user_id: int) -> List[Tuple[CartItem, Optional[Product]]]:
        return (
            db.query(CartItem, Product)
            .outerjoin(Product, Product.id == CartItem.product_id)
            .filter(CartItem.user_id == user_id)
            .order_by(CartItem.id)
            .all()
        )


# Singleton
cart_service = CartService()
