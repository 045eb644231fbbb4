"""
Order Module - Admin Routes
==============================
Order dashboard (all orders with owner, optional date range) and
monthly revenue / best-seller statistics.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import BEST_SELLERS_LIMIT
from common.exceptions import ValidationError
from common.helpers import month_range, now_utc, parse_date
from modules.admin.dashboard_service import dashboard_service
from modules.auth.deps import require_admin
from modules.cart.routes import order_to_dict
from modules.order.service import order_service

router = APIRouter(tags=["order-admin"])


def _parse_range(start_date: Optional[str], end_date: Optional[str]):
    try:
        start, end = parse_date(start_date), parse_date(end_date)
    except ValueError:
        raise ValidationError("Dates must be YYYY-MM-DD", details={"start_date": start_date, "end_date": end_date})
    if start and end and start > end:
        raise ValidationError("start_date is after end_date", details={"start_date": start_date, "end_date": end_date})
    return start, end


@router.get("/admin/orders")
async def admin_orders(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    start, end = _parse_range(start_date, end_date)
    orders = order_service.get_all_with_users(db, start_date=start, end_date=end)

    rows = []
    for order in orders:
        row = order_to_dict(order)
        row["username"] = order.user.username
        row["email"] = order.user.email
        row["address"] = order.user.address
        rows.append(row)

    return {
        "orders": rows,
        "start_date": start,
        "end_date": end,
    }


@router.get("/admin/orders/stats")
async def admin_order_stats(
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
    limit: int = Query(BEST_SELLERS_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    today = now_utc().date()
    year = year or today.year
    month = month or today.month
    try:
        start, end = month_range(year, month)
    except ValueError:
        raise ValidationError("Invalid month", details={"year": year, "month": month})

    return {
        "start_date": start,
        "end_date": end,
        "stats": dashboard_service.get_monthly_stats(db, start, end),
        "best_sellers": dashboard_service.get_monthly_best_sellers(db, start, end, limit=limit),
    }
