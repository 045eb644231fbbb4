"""
Pricing Module - Calculator
=============================
Subtotal, shipping fee and total for a set of billable lines.

Pure functions: no database, no I/O. The same inputs always give the same
summary, so the live cart page and the amount persisted at checkout agree.
A line is anything exposing quantity, available, is_out_of_stock,
is_removed and effective_price (see CartLine in modules.cart.service).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from config.settings import FREE_SHIPPING_THRESHOLD, SHIPPING_FLAT_FEE
from common.helpers import to_decimal, to_money

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class CartSummary:
    subtotal: Decimal
    shipping_fee: Decimal
    total: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "shipping_fee": self.shipping_fee,
            "total": self.total,
        }


def billable_quantity(line) -> int:
    """Units actually charged: zero for unavailable lines, else capped at stock."""
    if line.is_out_of_stock or line.is_removed:
        return 0
    return max(0, min(int(line.quantity), int(line.available)))


def shipping_fee(
    subtotal,
    threshold: Optional[Decimal] = None,
    flat_fee: Optional[Decimal] = None,
) -> Decimal:
    """Flat fee below the threshold; free for an empty cart or at/above the threshold."""
    threshold = FREE_SHIPPING_THRESHOLD if threshold is None else to_decimal(threshold)
    flat_fee = SHIPPING_FLAT_FEE if flat_fee is None else to_decimal(flat_fee)

    subtotal = to_money(subtotal)
    if ZERO < subtotal < threshold:
        return to_money(flat_fee)
    return ZERO


def summarize(
    lines: Iterable,
    threshold: Optional[Decimal] = None,
    flat_fee: Optional[Decimal] = None,
) -> CartSummary:
    """
    Price a set of lines.

    Args:
        lines: cart lines (see module docstring)
        threshold: free-shipping threshold, defaults to FREE_SHIPPING_THRESHOLD
        flat_fee: fee charged below the threshold, defaults to SHIPPING_FLAT_FEE

    Returns:
        CartSummary with subtotal, shipping_fee and total, all rounded to cents
    """
    subtotal = ZERO
    for line in lines:
        qty = billable_quantity(line)
        if qty:
            subtotal += to_decimal(line.effective_price) * qty
    subtotal = to_money(subtotal)

    fee = shipping_fee(subtotal, threshold=threshold, flat_fee=flat_fee)
    return CartSummary(subtotal=subtotal, shipping_fee=fee, total=to_money(subtotal + fee))


def reconstruct_summary(total_amount, stored_shipping_fee, items: Iterable) -> CartSummary:
    """
    Display summary for a stored order.

    Stored values win. Orders written before shipping fees existed have no
    shipping_fee: it is derived as whatever the total exceeds the item
    subtotal by (never negative). A missing total is rebuilt from the parts.
    """
    subtotal = ZERO
    for item in items:
        if item.subtotal is not None:
            subtotal += to_decimal(item.subtotal)
        else:
            subtotal += to_decimal(item.price) * int(item.quantity)
    subtotal = to_money(subtotal)

    if stored_shipping_fee is not None:
        fee = to_money(stored_shipping_fee)
    elif total_amount is not None:
        fee = max(ZERO, to_money(total_amount) - subtotal)
    else:
        fee = ZERO

    total = to_money(total_amount) if total_amount is not None else to_money(subtotal + fee)
    return CartSummary(subtotal=subtotal, shipping_fee=fee, total=total)
