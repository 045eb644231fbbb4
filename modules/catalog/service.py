"""
Catalog Module - Service Layer
================================
Read access to products plus the one write this service performs:
the guarded stock decrement used by checkout.
"""

import logging
import math
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import func, update

from modules.catalog.models import Product

logger = logging.getLogger("freshcart.catalog")


class CatalogService:

    def get_by_id(self, db: Session, product_id: int) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id).first()

    def get_all(self, db: Session) -> List[Product]:
        return db.query(Product).order_by(Product.id).all()

    def decrement_stock(self, db: Session, product_id: int, qty: int) -> int:
        """
        Take `qty` units off a product's stock, only if that many are left.
        Returns the number of rows affected (0 means the guard refused).
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.quantity >= qty)
            .values(quantity=Product.quantity - qty)
        )
        result = db.execute(stmt)
        if result.rowcount == 0:
            logger.warning(f"Stock decrement refused: product={product_id} qty={qty}")
        return result.rowcount

    # ==========================================
    # Shop listing
    # ==========================================

    def search(
        self,
        db: Session,
        query: str = "",
        category: str = "",
        page: int = 1,
        per_page: int = 4,
    ) -> Tuple[List[Product], int, int, int]:
        """
        Filter by name (substring) and category (exact), both case-insensitive.
        The page number is clamped into range.
        Returns: (products, total, page, total_pages)
        """
        q = db.query(Product)
        query = (query or "").strip().lower()
        category = (category or "").strip().lower()
        if query:
            q = q.filter(func.lower(Product.name).contains(query, autoescape=True))
        if category:
            q = q.filter(func.lower(Product.category) == category)

        total = q.count()
        total_pages = max(1, math.ceil(total / per_page))
        page = min(max(1, page or 1), total_pages)

        products = (
            q.order_by(Product.id)
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return products, total, page, total_pages

    def get_categories(self, db: Session) -> List[str]:
        rows = (
            db.query(Product.category)
            .filter(Product.category.isnot(None), Product.category != "")
            .distinct()
            .order_by(Product.category)
            .all()
        )
        return [r[0] for r in rows]


# Singleton
catalog_service = CatalogService()
