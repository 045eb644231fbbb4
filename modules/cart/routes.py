"""
Cart & Order Routes
=====================
Cart view and edits, checkout, purchase history, invoice.
JSON in, JSON out; CSRF via the X-CSRF-Token header.
"""

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import ShopError
from common.flash import flash, flash_notice
from common.security import csrf_check, new_csrf_token, set_csrf_cookie
from modules.auth.deps import require_login
from modules.cart.service import CartLine, CartView, cart_service
from modules.order.models import Order, OrderItem
from modules.order.service import order_service

router = APIRouter(tags=["cart"])


# ==========================================
# Schemas
# ==========================================

class AddItemRequest(BaseModel):
    quantity: Any = 1


class UpdateItemRequest(BaseModel):
    cart_id: int
    quantity: Any = 1


class DeleteItemRequest(BaseModel):
    cart_id: int


# ==========================================
# Serializers
# ==========================================

def line_to_dict(line: CartLine) -> dict:
    data = asdict(line)
    data["line_total"] = line.line_total
    return data


def cart_view_to_dict(view: CartView) -> dict:
    return {
        "items": [line_to_dict(line) for line in view.items],
        "has_out_of_stock": view.has_out_of_stock,
        "has_stock_issues": view.has_stock_issues,
        "removed_items": [line.display_name for line in view.removed_items],
        "price_changed_items": [line.display_name for line in view.price_changed_items],
        "block_checkout": view.block_checkout,
        "summary": view.summary.as_dict(),
        "notices": [asdict(n) for n in view.notices],
        "cart_count": view.item_count,
    }


def order_item_to_dict(oi: OrderItem) -> dict:
    return {
        "product_id": oi.product_id,
        "product_name": oi.product_name,
        "quantity": oi.quantity,
        "price": oi.price,
        "subtotal": oi.subtotal,
    }


def order_to_dict(order: Order, with_items: bool = True) -> dict:
    data = {
        "id": order.id,
        "user_id": order.user_id,
        "status": order.status,
        "created_at": order.created_at,
        "summary": order_service.summary_for(order).as_dict(),
    }
    if with_items:
        data["items"] = [order_item_to_dict(oi) for oi in order.items]
    return data


def _fail(request: Request, db: Session, error: ShopError):
    """Undo the unit of work and queue the error for the next page."""
    db.rollback()
    flash(request, error.message, "error", data={"code": error.code, **error.details})
    raise error


# ==========================================
# 🛒 View Cart
# ==========================================

@router.get("/cart")
async def view_cart(
    request: Request,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    view = cart_service.get_user_cart(db, me.id)
    db.commit()

    for notice in view.notices:
        flash_notice(request, notice)

    csrf = new_csrf_token()
    response = JSONResponse(jsonable_encoder({**cart_view_to_dict(view), "csrf_token": csrf}))
    set_csrf_cookie(response, csrf)
    return response


# ==========================================
# ➕ Add / ✏️ Update / 🗑️ Remove
# ==========================================

@router.post("/cart/add/{product_id}")
async def add_to_cart(
    product_id: int,
    request: Request,
    data: Optional[AddItemRequest] = None,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request)
    quantity = data.quantity if data else 1
    try:
        cart_service.add_item(db, me.id, product_id, quantity)
    except ShopError as e:
        _fail(request, db, e)
    db.commit()

    flash(request, "Item added to cart!", "success")
    return {"success": True, "cart_count": cart_service.get_cart_count(db, me.id)}


@router.post("/cart/update")
async def update_cart(
    data: UpdateItemRequest,
    request: Request,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request)
    try:
        item = cart_service.update_quantity(db, data.cart_id, data.quantity, user_id=me.id)
    except ShopError as e:
        _fail(request, db, e)
    quantity = item.quantity
    db.commit()

    flash(request, "Cart updated.", "success")
    return {"success": True, "cart_id": data.cart_id, "quantity": quantity}


@router.post("/cart/delete")
async def delete_cart_item(
    data: DeleteItemRequest,
    request: Request,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request)
    cart_service.delete_item(db, data.cart_id, user_id=me.id)
    db.commit()

    flash(request, "Item removed from cart.", "success")
    return {"success": True}


@router.post("/cart/clear")
async def clear_cart(
    request: Request,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request)
    cart_service.clear_cart(db, me.id)
    db.commit()
    return {"success": True}


# ==========================================
# ✅ Checkout
# ==========================================

@router.post("/cart/checkout")
async def checkout(
    request: Request,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request)
    try:
        order = order_service.checkout(db, me.id)
    except ShopError as e:
        _fail(request, db, e)
    order_id = order.id
    db.commit()

    flash(request, f"Order #{order_id} placed.", "success", data={"order_id": order_id})
    return {"success": True, "order_id": order_id}


# ==========================================
# 📋 Purchase History
# ==========================================

@router.get("/purchases")
async def purchase_history(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    orders = order_service.get_by_user_id(db, me.id)
    return {"orders": [order_to_dict(o) for o in orders]}


# ==========================================
# 🧾 Invoice
# ==========================================

@router.get("/invoice/{order_id}")
async def invoice(
    order_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    inv = order_service.get_invoice(db, order_id, me.id, is_admin=me.is_admin)
    return {
        "order": order_to_dict(inv.order, with_items=False),
        "items": [order_item_to_dict(oi) for oi in inv.items],
        "summary": inv.summary.as_dict(),
    }
