"""
Admin Dashboard Service
=========================
Aggregated order statistics for the admin dashboard.
"""

from datetime import date, datetime, time, timedelta
from typing import Dict, Any, List

from sqlalchemy.orm import Session
from sqlalchemy import func as sa_func

from config.settings import BEST_SELLERS_LIMIT
from common.helpers import to_money
from modules.order.models import Order, OrderItem


def _bounds(start: date, end: date):
    """Inclusive date range → [start 00:00, day after end 00:00)."""
    return (
        datetime.combine(start, time.min),
        datetime.combine(end + timedelta(days=1), time.min),
    )


class DashboardService:

    def get_monthly_stats(self, db: Session, start: date, end: date) -> Dict[str, Any]:
        """Revenue and order count for orders created within the range."""
        lo, hi = _bounds(start, end)
        row = (
            db.query(
                sa_func.count(Order.id).label("orders"),
                sa_func.coalesce(sa_func.sum(Order.total_amount), 0).label("revenue"),
            )
            .filter(Order.created_at >= lo, Order.created_at < hi)
            .one()
        )
        return {
            "total_revenue": to_money(row.revenue),
            "total_orders": int(row.orders or 0),
        }

    def get_monthly_best_sellers(
        self,
        db: Session,
        start: date,
        end: date,
        limit: int = BEST_SELLERS_LIMIT,
    ) -> List[Dict[str, Any]]:
        """Products ranked by units sold in the range, ties broken by revenue."""
        lo, hi = _bounds(start, end)
        total_qty = sa_func.sum(OrderItem.quantity).label("total_quantity")
        total_rev = sa_func.sum(OrderItem.subtotal).label("total_revenue")

        rows = (
            db.query(
                OrderItem.product_id,
                sa_func.max(OrderItem.product_name).label("product_name"),
                total_qty,
                total_rev,
            )
            .join(Order, Order.id == OrderItem.order_id)
            .filter(Order.created_at >= lo, Order.created_at < hi)
            .group_by(OrderItem.product_id)
            .order_by(total_qty.desc(), total_rev.desc(), OrderItem.product_id)
            .limit(limit)
            .all()
        )

        return [
            {
                "product_id": r.product_id,
                "product_name": r.product_name,
                "total_quantity": int(r.total_quantity or 0),
                "total_revenue": to_money(r.total_revenue),
            }
            for r in rows
        ]


dashboard_service = DashboardService()
