from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional
import logging
import math

from app.models.user import get_db
from app.models.product import Product, ProductVariant
from app.routers.products import to_product_out, with_relations
from app.utils.product_filters import (
    brand_condition,
    build_conditions,
    category_condition,
    is_all_category,
    sort_clause,
    split_values,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# 1. Storefront Product Filter
@router.get("/products")
def filter_products(
    page: int = Query(1, ge=1),
    limit: int = Query(8, ge=1, le=100),
    sort_by: str = "ASC_ORDER",
    category: Optional[str] = None,
    product_category: Optional[str] = None,
    brand: Optional[List[str]] = Query(None),
    color: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    is_new: Optional[bool] = None,
    is_sale: Optional[bool] = None,
    is_featured: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    """Paginated storefront listing. Count and page share one set of conditions."""
    category_filter = category or product_category
    brands = split_values(brand)
    conditions = build_conditions(
        category=category_filter,
        brands=brands,
        color=color,
        min_price=min_price,
        max_price=max_price,
        is_new=is_new,
        is_sale=is_sale,
        is_featured=is_featured,
    )
    logger.debug(
        "Filter page=%s limit=%s sort=%s category=%s brands=%s color=%s",
        page, limit, sort_by, category_filter or "ALL", brands, color,
    )

    total = db.query(func.count(Product.id)).filter(*conditions).scalar() or 0
    products = (
        with_relations(db.query(Product))
        .filter(*conditions)
        .order_by(sort_clause(sort_by), Product.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "products": [to_product_out(p) for p in products],
        "totalCount": total,
        "totalPages": max(1, math.ceil(total / limit)),
        "currentPage": page,
        "pageSize": limit,
        "filters": {
            "category": category_filter or "ALL",
            "brands": brands,
            "color": color,
            "min_price": min_price,
            "max_price": max_price,
            "is_new": is_new,
            "is_sale": is_sale,
            "is_featured": is_featured,
            "sort_by": sort_by,
        },
    }


# 2. Filter Categories
@router.get("/categories", response_model=List[str])
def filter_categories(db: Session = Depends(get_db)):
    rows = db.query(Product.category).filter(Product.category.isnot(None), Product.category != "").distinct().all()
    return ["ALL"] + sorted({r[0] for r in rows})


# 3. Filter Brands
@router.get("/brands", response_model=List[str])
def filter_brands(category: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(Product.brand).filter(Product.brand.isnot(None), Product.brand != "")
    if not is_all_category(category):
        query = query.filter(category_condition(category))
    return sorted({r[0] for r in query.distinct().all()})


# 4. Filter Colors
@router.get("/colors", response_model=List[str])
def filter_colors(
    category: Optional[str] = None,
    brand: Optional[List[str]] = Query(None),
    db: Session = Depends(get_db),
):
    query = (
        db.query(ProductVariant.color)
        .join(Product, Product.id == ProductVariant.product_id)
        .filter(ProductVariant.color.isnot(None), ProductVariant.color != "")
    )
    if not is_all_category(category):
        query = query.filter(category_condition(category))
    brands = split_values(brand)
    if brands:
        query = query.filter(brand_condition(brands))
    return sorted({r[0] for r in query.distinct().all()})
