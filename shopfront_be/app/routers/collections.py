from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Dict, List, Optional
import logging

from app.models.user import User, get_db
from app.models.product import Product
from app.models.collection import Collection, ProductCollection
from app.models.mega_menu import MegaMenuCollection
from app.schemas.collection import (
    AddProductIn,
    BatchProductsIn,
    CollectionCreate,
    CollectionOut,
    CollectionUpdate,
    ToggleFeaturedIn,
)
from app.routers.products import to_product_out, with_relations
from app.routers.mega_menu import delete_menu_items
from app.utils import membership
from app.utils.security import require_admin
from app.utils.slug import slugify
from app.utils.tree import build_tree, flat_totals, roll_up_counts

logger = logging.getLogger(__name__)

router = APIRouter()

PREVIEW_SIZE = 5


# Helpers

def product_counts(db: Session) -> Dict[int, int]:
    rows = (
        db.query(ProductCollection.collection_id, func.count(func.distinct(ProductCollection.product_id)))
        .group_by(ProductCollection.collection_id)
        .all()
    )
    return {cid: int(count) for cid, count in rows}


def collection_row(c: Collection, counts: Dict[int, int]) -> dict:
    row = CollectionOut.model_validate(c).model_dump()
    row["products_count"] = counts.get(c.id, 0)
    return row


def build_collection_tree(db: Session, collection_type: Optional[str] = None, include_inactive: bool = False) -> List[dict]:
    query = db.query(Collection)
    if not include_inactive:
        query = query.filter(Collection.is_active.is_(True))
    if collection_type:
        query = query.filter(Collection.collection_type == collection_type)
    counts = product_counts(db)
    rows = [collection_row(c, counts) for c in query.order_by(Collection.level, Collection.name).all()]
    tree = build_tree(rows)
    roll_up_counts(tree)
    return tree


def unique_slug(db: Session, base: str, exclude_id: Optional[int] = None) -> str:
    slug = base
    suffix = 1
    while True:
        query = db.query(Collection.id).filter(Collection.slug == slug)
        if exclude_id is not None:
            query = query.filter(Collection.id != exclude_id)
        if not query.first():
            return slug
        suffix += 1
        slug = f"{base}-{suffix}"


def coerce_ids(values) -> List[int]:
    """Keep integer-like values, in order, without duplicates."""
    ids: List[int] = []
    for value in values or []:
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            candidate = value
        elif isinstance(value, str) and value.strip().isdigit():
            candidate = int(value.strip())
        else:
            continue
        if candidate not in ids:
            ids.append(candidate)
    return ids


def _get_collection_or_404(db: Session, id: int) -> Collection:
    collection = db.query(Collection).filter(Collection.id == id).first()
    if not collection:
        raise HTTPException(status_code=404, detail="Collection not found")
    return collection


def _collection_products(db: Session, collection_id: int, limit: Optional[int] = None) -> List[Product]:
    query = (
        with_relations(db.query(Product))
        .join(ProductCollection, ProductCollection.product_id == Product.id)
        .filter(ProductCollection.collection_id == collection_id)
        .order_by(Product.id)
    )
    if limit:
        query = query.limit(limit)
    return query.all()


# 1. List Collections (flat)
@router.get("/")
def list_collections(db: Session = Depends(get_db)):
    collections = db.query(Collection).order_by(Collection.level, Collection.name).all()
    counts = product_counts(db)
    rows = [collection_row(c, counts) for c in collections]
    totals = flat_totals(rows)

    previews: Dict[int, list] = {}
    memberships = (
        db.query(ProductCollection.collection_id, Product.id, Product.title, Product.slug, Product.price)
        .join(Product, Product.id == ProductCollection.product_id)
        .order_by(ProductCollection.collection_id, Product.id)
        .all()
    )
    for cid, pid, title, slug, price in memberships:
        bucket = previews.setdefault(cid, [])
        if len(bucket) < PREVIEW_SIZE:
            bucket.append({"id": pid, "title": title, "slug": slug, "price": float(price or 0)})

    for row in rows:
        row["total_products_count"] = totals.get(row["id"], 0)
        row["children_ids"] = [r["id"] for r in rows if r["parent_id"] == row["id"]]
        row["products"] = previews.get(row["id"], [])
    return rows


# 2. Collection Tree
@router.get("/tree")
def get_collection_tree(
    collection_type: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
):
    return build_collection_tree(db, collection_type, include_inactive)


# 3. Featured Brands
@router.get("/featured-brands")
def get_featured_brands(db: Session = Depends(get_db)):
    brands = (
        db.query(Collection)
        .filter(
            Collection.collection_type == "brand",
            Collection.is_active.is_(True),
            Collection.is_featured.is_(True),
        )
        .order_by(Collection.name)
        .all()
    )
    return [CollectionOut.model_validate(b) for b in brands]


def _collection_detail(db: Session, slug: str) -> dict:
    collection = db.query(Collection).filter(Collection.slug == slug).first()
    if not collection:
        raise HTTPException(status_code=404, detail="Collection not found")
    products = _collection_products(db, collection.id)
    return {
        "collection": CollectionOut.model_validate(collection),
        "products": [to_product_out(p) for p in products],
        "products_count": len(products),
    }


# 4. Get Collection by Slug
@router.get("/by-slug/{slug}")
def get_collection_by_slug(slug: str, db: Session = Depends(get_db)):
    return _collection_detail(db, slug)


@router.get("/{slug}")
def get_collection(slug: str, db: Session = Depends(get_db)):
    return _collection_detail(db, slug)


# 5. Create Collection (Admin)
@router.post("/", status_code=201)
def create_collection(payload: CollectionCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if not payload.name or not payload.name.strip():
        raise HTTPException(status_code=400, detail="Collection name is required")
    level = 0
    if payload.parent_id is not None:
        parent = db.query(Collection).filter(Collection.id == payload.parent_id).first()
        if not parent:
            raise HTTPException(status_code=400, detail="Parent collection not found")
        level = (parent.level or 0) + 1

    collection = Collection(
        name=payload.name.strip(),
        slug=unique_slug(db, slugify(payload.slug or payload.name)),
        description=payload.description,
        parent_id=payload.parent_id,
        collection_type=payload.collection_type or "custom",
        level=level,
        is_active=True if payload.is_active is None else payload.is_active,
        is_featured=bool(payload.is_featured),
        image_url=payload.image_url,
    )
    db.add(collection)
    db.commit()
    db.refresh(collection)
    logger.info("Collection %s (%s) created at level %s", collection.id, collection.slug, collection.level)
    return {"message": "Collection created successfully", "collection": CollectionOut.model_validate(collection)}


# 6. Update Collection (Admin)
@router.put("/{id}")
def update_collection(
    id: int, payload: CollectionUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)
):
    collection = _get_collection_or_404(db, id)
    fields = payload.model_dump(exclude_unset=True)

    if fields.get("slug") and fields["slug"] != collection.slug:
        taken = db.query(Collection.id).filter(Collection.slug == fields["slug"], Collection.id != id).first()
        if taken:
            raise HTTPException(status_code=400, detail="Slug already exists")

    parent_changed = "parent_id" in fields and fields["parent_id"] != collection.parent_id
    if parent_changed and fields["parent_id"] is not None:
        new_parent_id = fields["parent_id"]
        if new_parent_id == id:
            raise HTTPException(status_code=400, detail="A collection cannot be its own parent")
        if not db.query(Collection.id).filter(Collection.id == new_parent_id).first():
            raise HTTPException(status_code=400, detail="Parent collection not found")
        if membership.would_create_cycle(db, id, new_parent_id):
            raise HTTPException(
                status_code=400,
                detail="Circular reference detected: the new parent is a descendant of this collection",
            )

    for key, value in fields.items():
        if key == "name" and not (value or "").strip():
            raise HTTPException(status_code=400, detail="Collection name cannot be empty")
        if key in ("is_active", "is_featured", "collection_type", "slug") and value is None:
            continue
        setattr(collection, key, value)

    try:
        if parent_changed:
            db.flush()
            membership.recompute_levels(db, collection)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(collection)
    return {"message": "Collection updated successfully", "collection": CollectionOut.model_validate(collection)}


# 7. Toggle Brand Featured (Admin)
@router.patch("/{id}/toggle-featured")
def toggle_featured(
    id: int, payload: ToggleFeaturedIn, db: Session = Depends(get_db), admin: User = Depends(require_admin)
):
    collection = db.query(Collection).filter(Collection.id == id, Collection.collection_type == "brand").first()
    if not collection:
        raise HTTPException(status_code=404, detail="Brand collection not found")
    try:
        collection.is_featured = payload.isFeatured
        db.query(MegaMenuCollection).filter(MegaMenuCollection.collection_id == id).update(
            {MegaMenuCollection.is_featured: payload.isFeatured}, synchronize_session=False
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(collection)
    return {
        "message": f"Brand {'featured' if payload.isFeatured else 'unfeatured'} successfully",
        "collection": CollectionOut.model_validate(collection),
    }


# 8. Delete Collection (Admin)
@router.delete("/{id}")
def delete_collection(id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    collection = _get_collection_or_404(db, id)
    try:
        children = db.query(Collection).filter(Collection.parent_id == id).all()
        for child in children:
            child.parent_id = None
        db.flush()
        for child in children:
            membership.recompute_levels(db, child)
        menu_ids = [r[0] for r in db.query(MegaMenuCollection.id).filter(MegaMenuCollection.collection_id == id).all()]
        delete_menu_items(db, menu_ids)
        db.delete(collection)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Collection %s deleted; %s children re-rooted", id, len(children))
    return {"message": "Collection deleted successfully"}


# 9. Add Product to Collection (Admin)
@router.post("/{id}/products", status_code=201)
def add_product_to_collection(
    id: int,
    payload: AddProductIn,
    response: Response,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    ids = coerce_ids([payload.productId])
    if not ids:
        raise HTTPException(status_code=400, detail="A valid productId is required")
    product_id = ids[0]
    _get_collection_or_404(db, id)
    if not db.query(Product.id).filter(Product.id == product_id).first():
        raise HTTPException(status_code=404, detail="Product not found")
    try:
        added = membership.add_product(db, product_id, id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    if not added:
        response.status_code = 200
        return {"message": "Product is already in this collection", "collection_id": id, "product_id": product_id}
    return {"message": "Product added to collection successfully", "collection_id": id, "product_id": product_id}


# 10. Batch Add/Replace Products (Admin)
@router.post("/{id}/products/batch")
def batch_products(
    id: int,
    payload: BatchProductsIn,
    fullUpdate: bool = Query(False),
    removeFromParents: bool = Query(False),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    _get_collection_or_404(db, id)
    requested = coerce_ids(payload.productIds)
    if not requested:
        raise HTTPException(status_code=400, detail="productIds must contain at least one valid id")

    existing = {r[0] for r in db.query(Product.id).filter(Product.id.in_(requested)).all()}
    unknown = [pid for pid in requested if pid not in existing]
    if unknown:
        logger.warning("Batch for collection %s skipping unknown products %s", id, unknown)
    valid = [pid for pid in requested if pid in existing]

    removed: List[int] = []
    try:
        added = membership.add_products(db, id, valid)
        if fullUpdate:
            current = {
                r[0]
                for r in db.query(ProductCollection.product_id).filter(ProductCollection.collection_id == id).all()
            }
            for pid in sorted(current - set(valid)):
                membership.remove_product(db, pid, id, removeFromParents)
                removed.append(pid)
        db.commit()
    except Exception:
        db.rollback()
        raise

    count = db.query(func.count(ProductCollection.id)).filter(ProductCollection.collection_id == id).scalar() or 0
    preview = _collection_products(db, id, limit=10)
    logger.info("Batch for collection %s: added=%s removed=%s", id, added, removed)
    return {
        "success": True,
        "message": f"Added {len(added)} and removed {len(removed)} products",
        "collection_id": id,
        "products_count": count,
        "added": added,
        "removed": removed,
        "products": [to_product_out(p) for p in preview],
    }


# 11. Remove Product from Collection (Admin)
@router.delete("/{id}/products/{product_id}")
def remove_product_from_collection(
    id: int,
    product_id: int,
    removeFromParents: bool = Query(False),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    _get_collection_or_404(db, id)
    if not db.query(Product.id).filter(Product.id == product_id).first():
        raise HTTPException(status_code=404, detail="Product not found")
    relation = (
        db.query(ProductCollection)
        .filter(ProductCollection.collection_id == id, ProductCollection.product_id == product_id)
        .first()
    )
    if not relation:
        raise HTTPException(status_code=404, detail="Product is not in this collection")
    try:
        deleted = membership.remove_product(db, product_id, id, removeFromParents)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Product removed from collection successfully", "removed_rows": deleted}
