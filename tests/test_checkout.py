"""
Tests for checkout: validation gate, order creation, guarded stock
decrement and rollback on failure.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from common.exceptions import CheckoutRejected, CheckoutRejection, InfrastructureFailure
from modules.cart.models import CartItem
from modules.catalog.models import Product
from modules.catalog.service import catalog_service
from modules.order.models import Order, OrderItem, OrderStatus
from modules.order.service import order_service


def stock_of(db, product_id):
    db.expire_all()
    return db.get(Product, product_id).quantity


def cart_rows(db, user_id):
    db.expire_all()
    return (
        db.query(CartItem.product_id, CartItem.quantity)
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id)
        .all()
    )


def assert_nothing_written(db):
    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0


class TestCheckoutSuccess:
    def test_creates_order_and_decrements_stock(self, db, make_user, make_product, put_in_cart):
        user = make_user()
        apples = make_product("Apples", "4.50", quantity=10)
        rice = make_product("Rice", "18.90", quantity=6)
        put_in_cart(user, apples, 3)
        put_in_cart(user, rice, 2)

        order = order_service.checkout(db, user.id)
        db.commit()

        assert order.status == OrderStatus.PENDING.value
        assert order.shipping_fee == Decimal("5.90")
        assert order.total_amount == Decimal("57.20")
        items = [(oi.product_id, oi.product_name, oi.quantity, oi.price, oi.subtotal) for oi in order.items]
        assert items == [
            (apples.id, "Apples", 3, Decimal("4.50"), Decimal("13.50")),
            (rice.id, "Rice", 2, Decimal("18.90"), Decimal("37.80")),
        ]
        assert stock_of(db, apples.id) == 7
        assert stock_of(db, rice.id) == 4
        assert cart_rows(db, user.id) == []

    def test_shipping_fee_is_persisted(self, db, make_user, make_product, put_in_cart):
        user = make_user()
        product = make_product("Cheese", "59.99", quantity=1)
        put_in_cart(user, product, 1)

        order = order_service.checkout(db, user.id)
        db.commit()
        db.expire_all()

        stored = db.get(Order, order.id)
        assert stored.shipping_fee == Decimal("5.90")
        assert stored.total_amount == Decimal("65.89")

    def test_free_shipping_at_threshold(self, db, make_user, make_product, put_in_cart):
        user = make_user()
        product = make_product("Hamper", "30.00", quantity=5)
        put_in_cart(user, product, 2)

        order = order_service.checkout(db, user.id)
        db.commit()

        assert order.shipping_fee == Decimal("0.00")
        assert order.total_amount == Decimal("60.00")

    def test_buying_the_last_unit(self, db, make_user, make_product, put_in_cart):
        user = make_user()
        product = make_product("Olive Oil", "12.40", quantity=3)
        put_in_cart(user, product, 3)

        order_service.checkout(db, user.id)
        db.commit()

        assert stock_of(db, product.id) == 0

    def test_order_snapshot_ignores_later_price_changes(self, db, make_user, make_product, put_in_cart):
        user = make_user()
        product = make_product("Eggs", "5.80", quantity=12)
        put_in_cart(user, product, 2)
        order = order_service.checkout(db, user.id)
        db.commit()
        order_id = order.id

        product.price = Decimal("7.00")
        product.name = "Organic Eggs"
        db.commit()

        invoice = order_service.get_invoice(db, order_id, user.id)
        assert invoice.items[0].product_name == "Eggs"
        assert invoice.items[0].price == Decimal("5.80")
        assert invoice.summary.subtotal == Decimal("11.60")

    def test_other_carts_are_untouched(self, db, make_user, make_product, put_in_cart):
        buyer, other = make_user(), make_user()
        product = make_product(quantity=10)
        put_in_cart(buyer, product, 2)
        put_in_cart(other, product, 4)

        order_service.checkout(db, buyer.id)
        db.commit()

        assert cart_rows(db, other.id) == [(product.id, 4)]


class TestCheckoutRejected:
    def test_empty_cart(self, db, make_user):
        user = make_user()

        with pytest.raises(CheckoutRejected) as exc_info:
            order_service.checkout(db, user.id)

        assert exc_info.value.reason == CheckoutRejection.EMPTY_CART
        assert exc_info.value.code == "EMPTY_CART"
        assert_nothing_written(db)

    def test_out_of_stock_item(self, db, make_user, make_product, put_in_cart, set_stock):
        user = make_user()
        apples = make_product("Apples", "4.50", quantity=10)
        milk = make_product("Milk", "3.95", quantity=5)
        put_in_cart(user, apples, 1)
        put_in_cart(user, milk, 2)
        set_stock(milk, 0)

        with pytest.raises(CheckoutRejected) as exc_info:
            order_service.checkout(db, user.id)

        assert exc_info.value.reason == CheckoutRejection.STOCK_ISSUES
        assert exc_info.value.names == ["Milk"]
        assert_nothing_written(db)
        assert stock_of(db, apples.id) == 10
        assert cart_rows(db, user.id) == [(apples.id, 1), (milk.id, 2)]

    def test_quantity_over_stock(self, db, make_user, make_product, put_in_cart, set_stock):
        user = make_user()
        product = make_product("Rice", "18.90", quantity=6)
        put_in_cart(user, product, 4)
        set_stock(product, 3)

        with pytest.raises(CheckoutRejected) as exc_info:
            order_service.checkout(db, user.id)

        assert exc_info.value.reason == CheckoutRejection.STOCK_ISSUES
        assert exc_info.value.names == ["Rice"]
        assert stock_of(db, product.id) == 3

    def test_removed_item(self, db, make_user, make_product, put_in_cart, delete_product):
        user = make_user()
        kept = make_product("Apples", quantity=10)
        gone = make_product("Olive Oil", "12.40", quantity=3)
        put_in_cart(user, kept, 1)
        put_in_cart(user, gone, 1)
        delete_product(gone)

        with pytest.raises(CheckoutRejected) as exc_info:
            order_service.checkout(db, user.id)

        assert exc_info.value.reason == CheckoutRejection.REMOVED_ITEMS
        assert exc_info.value.names == ["Olive Oil"]
        assert_nothing_written(db)
        assert len(cart_rows(db, user.id)) == 2

    def test_removed_items_reported_before_stock_issues(
        self, db, make_user, make_product, put_in_cart, set_stock, delete_product,
    ):
        user = make_user()
        short = make_product("Milk", quantity=5)
        gone = make_product("Olive Oil", quantity=3)
        put_in_cart(user, short, 2)
        put_in_cart(user, gone, 1)
        set_stock(short, 0)
        delete_product(gone)

        with pytest.raises(CheckoutRejected) as exc_info:
            order_service.checkout(db, user.id)

        assert exc_info.value.reason == CheckoutRejection.REMOVED_ITEMS


class TestCheckoutCommitFailures:
    def test_stock_taken_after_validation(self, db, make_user, make_product, put_in_cart, monkeypatch):
        user = make_user()
        apples = make_product("Apples", quantity=10)
        eggs = make_product("Eggs", "5.80", quantity=10)
        put_in_cart(user, apples, 2)
        put_in_cart(user, eggs, 2)

        real_decrement = catalog_service.decrement_stock
        eggs_id = eggs.id

        def racing_decrement(session, product_id, qty):
            if product_id == eggs_id:
                return 0
            return real_decrement(session, product_id, qty)

        monkeypatch.setattr(catalog_service, "decrement_stock", racing_decrement)

        with pytest.raises(CheckoutRejected) as exc_info:
            order_service.checkout(db, user.id)

        assert exc_info.value.reason == CheckoutRejection.STOCK_ISSUES
        assert exc_info.value.names == ["Eggs"]
        assert_nothing_written(db)
        assert stock_of(db, apples.id) == 10
        assert len(cart_rows(db, user.id)) == 2

    def test_storage_error_rolls_everything_back(self, db, make_user, make_product, put_in_cart, monkeypatch):
        user = make_user()
        apples = make_product("Apples", quantity=10)
        eggs = make_product("Eggs", "5.80", quantity=10)
        put_in_cart(user, apples, 2)
        put_in_cart(user, eggs, 2)

        real_decrement = catalog_service.decrement_stock
        calls = []

        def failing_decrement(session, product_id, qty):
            calls.append(product_id)
            if len(calls) == 2:
                raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))
            return real_decrement(session, product_id, qty)

        monkeypatch.setattr(catalog_service, "decrement_stock", failing_decrement)

        with pytest.raises(InfrastructureFailure) as exc_info:
            order_service.checkout(db, user.id)

        assert exc_info.value.item_index == 1
        assert exc_info.value.status_code == 500
        assert_nothing_written(db)
        assert stock_of(db, apples.id) == 10
        assert stock_of(db, eggs.id) == 10
        assert len(cart_rows(db, user.id)) == 2


class TestDecrementStock:
    def test_guard_refuses_when_not_enough(self, db, make_product):
        product = make_product(quantity=2)

        assert catalog_service.decrement_stock(db, product.id, 3) == 0
        db.commit()
        assert stock_of(db, product.id) == 2

    def test_decrements(self, db, make_product):
        product = make_product(quantity=5)

        assert catalog_service.decrement_stock(db, product.id, 5) == 1
        db.commit()
        assert stock_of(db, product.id) == 0
