from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, or_, select
from typing import List, Optional
import logging
import math

from app.models.user import User, get_db
from app.models.product import Product, ProductImage, ProductVariant
from app.models.collection import Collection, ProductCollection
from app.schemas.product import (
    CollectionRef,
    ProductCollectionsUpdate,
    ProductCreate,
    ProductImageOut,
    ProductOut,
    ProductUpdate,
    ProductVariantOut,
    ProductVariantsAdd,
)
from app.schemas.collection import CollectionOut
from app.utils.membership import set_product_collections
from app.utils.product_filters import build_conditions, collection_slug_condition, escape_like, split_values
from app.utils.security import require_admin
from app.utils.slug import slugify

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE_COLUMNS = {
    "id": Product.id,
    "title": Product.title,
    "price": Product.price,
    "brand": Product.brand,
    "category": Product.category,
    "stock": Product.stock,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
}


# Helpers

def with_relations(query):
    return query.options(
        selectinload(Product.images),
        selectinload(Product.variants),
        selectinload(Product.memberships).selectinload(ProductCollection.collection),
    )


def to_product_out(p: Product) -> ProductOut:
    return ProductOut(
        id=p.id,
        title=p.title,
        slug=p.slug,
        description=p.description,
        price=p.price,
        brand=p.brand,
        category=p.category,
        stock=p.stock or 0,
        is_new=bool(p.is_new),
        is_sale=bool(p.is_sale),
        is_featured=bool(p.is_featured),
        discount=p.discount or 0,
        meta_title=p.meta_title,
        meta_description=p.meta_description,
        meta_keywords=p.meta_keywords,
        meta_image=p.meta_image,
        created_at=p.created_at,
        updated_at=p.updated_at,
        images=[ProductImageOut.model_validate(i) for i in p.images],
        variants=[ProductVariantOut.model_validate(v) for v in p.variants],
        collections=[CollectionRef.model_validate(m.collection) for m in p.memberships if m.collection],
        new=bool(p.is_new),
        sale=bool(p.is_sale),
        featured=bool(p.is_featured),
    )


def _usable_images(images) -> list:
    # blob: URLs only exist in the admin browser session
    return [i for i in images or [] if i.src and not i.src.startswith("blob:")]


def _get_product_or_404(db: Session, id: int) -> Product:
    product = with_relations(db.query(Product)).filter(Product.id == id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# 1. List Products (admin grid and storefront search)
@router.get("/")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    sort: str = "id",
    direction: str = "asc",
    category: Optional[str] = None,
    brand: Optional[List[str]] = Query(None),
    colors: Optional[List[str]] = Query(None),
    sizes: Optional[List[str]] = Query(None),
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    is_new: Optional[bool] = None,
    is_sale: Optional[bool] = None,
    is_featured: Optional[bool] = None,
    collection: Optional[str] = None,
    search: Optional[str] = None,
    all: bool = False,
    db: Session = Depends(get_db),
):
    conditions = build_conditions(
        brands=split_values(brand),
        min_price=min_price,
        max_price=max_price,
        is_new=is_new,
        is_sale=is_sale,
        is_featured=is_featured,
    )
    if category and category.strip():
        conditions.append(func.lower(Product.category) == category.strip().lower())
    color_values = [c.lower() for c in split_values(colors)]
    if color_values:
        conditions.append(
            select(ProductVariant.id)
            .where(ProductVariant.product_id == Product.id, func.lower(ProductVariant.color).in_(color_values))
            .exists()
        )
    size_values = split_values(sizes)
    if size_values:
        conditions.append(
            select(ProductVariant.id)
            .where(ProductVariant.product_id == Product.id, ProductVariant.size.in_(size_values))
            .exists()
        )
    if collection:
        conditions.append(collection_slug_condition(collection))
    if search:
        term = f"%{escape_like(search.strip())}%"
        conditions.append(or_(Product.title.ilike(term, escape="\\"), Product.description.ilike(term, escape="\\")))

    total = db.query(func.count(Product.id)).filter(*conditions).scalar() or 0

    column = SORTABLE_COLUMNS.get(sort, Product.id)
    order = column.desc() if direction.lower() == "desc" else column.asc()
    query = with_relations(db.query(Product)).filter(*conditions).order_by(order, Product.id)
    if not all:
        query = query.offset((page - 1) * limit).limit(limit)
    items = [to_product_out(p) for p in query.all()]

    total_pages = 1 if all else max(1, math.ceil(total / limit))
    return {
        "products": {
            "items": items,
            "total": total,
            "totalPages": total_pages,
            "hasMore": (not all) and page < total_pages,
            "currentPage": page,
        }
    }


# 2. Distinct Categories
@router.get("/categories", response_model=List[str])
def list_categories(db: Session = Depends(get_db)):
    rows = db.query(Product.category).filter(Product.category.isnot(None), Product.category != "").distinct().all()
    return sorted({r[0] for r in rows})


# 3. Distinct Brands
@router.get("/brands", response_model=List[str])
def list_brands(db: Session = Depends(get_db)):
    rows = db.query(Product.brand).filter(Product.brand.isnot(None), Product.brand != "").distinct().all()
    return sorted({r[0] for r in rows})


# 4. Distinct Variant Colors
@router.get("/colors")
def list_colors(type: Optional[str] = None, db: Session = Depends(get_db)):
    """Variant colors, optionally narrowed to products of one category."""
    query = db.query(ProductVariant.color).filter(ProductVariant.color.isnot(None), ProductVariant.color != "")
    if type:
        query = query.join(Product, Product.id == ProductVariant.product_id).filter(
            func.lower(Product.category) == type.strip().lower()
        )
    return {"colors": sorted({r[0] for r in query.distinct().all()})}


# 5. Get Product by ID
@router.get("/{id}")
def get_product_by_id(id: int, db: Session = Depends(get_db)):
    product = _get_product_or_404(db, id)
    all_collections = db.query(Collection).order_by(Collection.level, Collection.name).all()
    return {
        "product": to_product_out(product),
        "productCollections": [m.collection_id for m in product.memberships],
        "allCollections": [CollectionOut.model_validate(c) for c in all_collections],
    }


# 6. Create Product (Admin)
@router.post("/", status_code=201)
def create_product(payload: ProductCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    data = payload.model_dump(exclude={"variants", "images", "collections"})
    product = Product(**data)
    product.meta_title = payload.meta_title or payload.title
    try:
        db.add(product)
        db.flush()
        if not product.slug:
            product.slug = f"{slugify(payload.title)}-{product.id}"
        for v in payload.variants:
            db.add(ProductVariant(product_id=product.id, **v.model_dump()))
        for img in _usable_images(payload.images):
            db.add(ProductImage(product_id=product.id, **img.model_dump(exclude={"id"})))
        collections = set_product_collections(db, product.id, payload.collections) if payload.collections else []
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Product %s created by user %s", product.id, admin.id)
    db.expire_all()
    product = _get_product_or_404(db, product.id)
    return {"message": "Product created successfully", "product": to_product_out(product), "collections": collections}


# 7. Add Variants (Admin)
@router.post("/{id}/variants", status_code=201)
def add_variants(id: int, payload: ProductVariantsAdd, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    product = _get_product_or_404(db, id)
    if not payload.variants:
        raise HTTPException(status_code=400, detail="At least one variant is required")
    for v in payload.variants:
        db.add(ProductVariant(product_id=product.id, **v.model_dump()))
    db.commit()
    db.expire_all()
    return {"message": "Variants added successfully", "product": to_product_out(_get_product_or_404(db, id))}


# 8. Update Product (Admin)
@router.put("/{id}")
def update_product(id: int, payload: ProductUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    product = _get_product_or_404(db, id)
    fields = payload.model_dump(exclude_unset=True, exclude={"variants", "images", "collections"})
    for key, value in fields.items():
        setattr(product, key, value)
    if payload.title and "slug" not in fields:
        product.slug = f"{slugify(payload.title)}-{product.id}"

    try:
        if payload.variants is not None:
            product.variants.clear()
            db.flush()
            for v in payload.variants:
                product.variants.append(ProductVariant(**v.model_dump()))
        if payload.images is not None:
            keep_ids = {i.id for i in payload.images if i.id is not None}
            for img in list(product.images):
                if img.id not in keep_ids:
                    product.images.remove(img)
            for img in _usable_images(payload.images):
                if img.id is None:
                    product.images.append(ProductImage(**img.model_dump(exclude={"id"})))
        db.flush()
        if payload.collections is not None:
            set_product_collections(db, product.id, payload.collections)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.expire_all()
    return {"message": "Product updated successfully", "product": to_product_out(_get_product_or_404(db, id))}


# 9. Delete Product (Admin)
@router.delete("/{id}")
def delete_product(id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    product = db.query(Product).filter(Product.id == id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    db.delete(product)
    db.commit()
    logger.info("Product %s deleted by user %s", id, admin.id)
    return {"message": "Product deleted successfully"}


# 10. Replace Product Collections (Admin)
@router.put("/{id}/collections")
def update_product_collections(
    id: int, payload: ProductCollectionsUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)
):
    product = db.query(Product).filter(Product.id == id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    try:
        collections = set_product_collections(db, id, payload.collections)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Product collections updated successfully", "product_id": id, "collections": collections}
