"""Reusable SQL conditions for product listing and the storefront filter.

Each builder returns a SQLAlchemy boolean expression over ``Product``. The same
list of conditions is applied to the count query and the page query, so totals
always agree with the rows returned.
"""
from typing import List, Optional, Sequence

from sqlalchemy import String, func, literal, or_, select
from sqlalchemy.orm import aliased

from app.models.collection import Collection, ProductCollection
from app.models.product import Product, ProductVariant

SORT_OPTIONS = {
    "HIGH_TO_LOW": (Product.price, "desc"),
    "LOW_TO_HIGH": (Product.price, "asc"),
    "NEWEST": (Product.created_at, "desc"),
    "ASC_ORDER": (Product.title, "asc"),
    "DESC_ORDER": (Product.title, "desc"),
}


def sort_clause(sort_by: Optional[str]):
    column, direction = SORT_OPTIONS.get((sort_by or "").upper(), SORT_OPTIONS["ASC_ORDER"])
    return column.desc() if direction == "desc" else column.asc()


def split_values(raw) -> List[str]:
    """Accept "a,b" or ["a", "b,c"] and return trimmed, non-empty values."""
    if raw is None:
        return []
    parts = raw if isinstance(raw, (list, tuple)) else [raw]
    values = []
    for part in parts:
        values.extend(v.strip() for v in str(part).split(",") if v.strip())
    return values


def is_all_category(category: Optional[str]) -> bool:
    return not category or not category.strip() or category.strip().lower() == "all"


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _name_matches(name_column, category: str):
    # exact, name starts with filter, or filter starts with name
    name = func.lower(func.trim(name_column), type_=String)
    return or_(
        name == category,
        name.like(f"{escape_like(category)}%", escape="\\"),
        literal(category, String).like(name + "%"),
    )


def category_condition(category: str):
    """Fuzzy category match via the product column, a linked collection, or that collection's parent."""
    cat = category.strip().lower()
    direct = (
        select(ProductCollection.id)
        .join(Collection, ProductCollection.collection_id == Collection.id)
        .where(ProductCollection.product_id == Product.id, _name_matches(Collection.name, cat))
        .exists()
    )
    child = aliased(Collection)
    parent = aliased(Collection)
    via_parent = (
        select(ProductCollection.id)
        .join(child, ProductCollection.collection_id == child.id)
        .join(parent, child.parent_id == parent.id)
        .where(ProductCollection.product_id == Product.id, _name_matches(parent.name, cat))
        .exists()
    )
    return or_(func.lower(Product.category) == cat, direct, via_parent)


def brand_condition(brands: Sequence[str]):
    return func.lower(Product.brand).in_([b.lower() for b in brands])


def color_condition(color: str):
    return (
        select(ProductVariant.id)
        .where(ProductVariant.product_id == Product.id, func.lower(ProductVariant.color) == color.strip().lower())
        .exists()
    )


def collection_slug_condition(slug: str):
    return (
        select(ProductCollection.id)
        .join(Collection, ProductCollection.collection_id == Collection.id)
        .where(ProductCollection.product_id == Product.id, Collection.slug == slug)
        .exists()
    )


def build_conditions(
    category: Optional[str] = None,
    brands: Optional[Sequence[str]] = None,
    color: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    is_new: Optional[bool] = None,
    is_sale: Optional[bool] = None,
    is_featured: Optional[bool] = None,
) -> list:
    conditions = []
    if not is_all_category(category):
        conditions.append(category_condition(category))
    if brands:
        conditions.append(brand_condition(brands))
    if color and color.strip():
        conditions.append(color_condition(color))
    if min_price is not None:
        conditions.append(Product.price >= min_price)
    if max_price is not None:
        conditions.append(Product.price <= max_price)
    if is_new is not None:
        conditions.append(Product.is_new == is_new)
    if is_sale is not None:
        conditions.append(Product.is_sale == is_sale)
    if is_featured is not None:
        conditions.append(Product.is_featured == is_featured)
    return conditions
