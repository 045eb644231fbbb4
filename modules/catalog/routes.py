"""
Catalog Routes
================
Shop listing with search, category filter and pagination; product detail.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import SHOP_PAGE_SIZE
from common.exceptions import NotFoundError
from modules.auth.deps import require_login
from modules.cart.service import cart_service
from modules.catalog.models import Product
from modules.catalog.service import catalog_service

router = APIRouter(tags=["catalog"])


def product_to_dict(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "price": p.price,
        "quantity": p.quantity,
        "in_stock": p.in_stock,
        "image": p.image,
        "category": p.category,
        "description": p.description,
    }


@router.get("/shopping")
async def shopping(
    q: str = Query(""),
    category: str = Query(""),
    page: int = Query(1),
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    products, total, page, total_pages = catalog_service.search(
        db, query=q, category=category, page=page, per_page=SHOP_PAGE_SIZE,
    )
    return {
        "products": [product_to_dict(p) for p in products],
        "categories": catalog_service.get_categories(db),
        "search_query": q.strip(),
        "selected_category": category.strip(),
        "current_page": page,
        "total_pages": total_pages,
        "total_products": total,
        "cart_count": cart_service.get_cart_count(db, me.id),
    }


@router.get("/product/{product_id}")
async def product_detail(
    product_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    product = catalog_service.get_by_id(db, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return {"product": product_to_dict(product)}
