from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Iterable, List, Optional, Set
import logging

from pydantic import ValidationError

from app.models.user import User, get_db
from app.models.collection import Collection
from app.models.mega_menu import MegaMenuCollection
from app.schemas.mega_menu import MegaMenuCreate, MegaMenuUpdate, ReorderIn, ReorderItem
from app.utils.security import require_admin
from app.utils.tree import build_tree, descendant_ids, sort_tree

logger = logging.getLogger(__name__)

router = APIRouter()

NODE_FIELDS = (
    "id", "collection_id", "name", "slug", "description", "collection_type",
    "display_subcollections", "is_featured", "image_url", "level", "position",
)


# Helpers

def _menu_rows(db: Session, include_inactive: bool = False, storefront: bool = False) -> List[dict]:
    query = db.query(MegaMenuCollection, Collection).join(Collection, MegaMenuCollection.collection_id == Collection.id)
    if not include_inactive:
        query = query.filter(MegaMenuCollection.is_active.is_(True))
    if storefront:
        query = query.filter(Collection.is_active.is_(True))
    rows = []
    for item, collection in query.order_by(MegaMenuCollection.level, MegaMenuCollection.position).all():
        rows.append({
            "id": item.id,
            "collection_id": collection.id,
            "parent_menu_item_id": item.parent_menu_item_id,
            "name": collection.name,
            "slug": collection.slug,
            "description": collection.description,
            "collection_type": collection.collection_type,
            "image_url": collection.image_url,
            "position": item.position or 0,
            "level": item.level or 0,
            "is_active": bool(item.is_active),
            "is_featured": bool(item.is_featured),
            "display_subcollections": bool(item.display_subcollections),
        })
    return rows


def build_menu_tree(db: Session, include_inactive: bool = False) -> List[dict]:
    tree = build_tree(_menu_rows(db, include_inactive), parent_key="parent_menu_item_id")
    return sort_tree(tree)


def _storefront_node(node: dict) -> dict:
    out = {key: node[key] for key in NODE_FIELDS}
    out["children"] = [_storefront_node(child) for child in node["children"]]
    return out


def _all_menu_links(db: Session) -> List[dict]:
    return [
        {"id": i, "parent_menu_item_id": p}
        for i, p in db.query(MegaMenuCollection.id, MegaMenuCollection.parent_menu_item_id).all()
    ]


def delete_menu_items(db: Session, item_ids: Iterable[int]) -> int:
    """Delete the given menu items together with their menu subtrees."""
    item_ids = list(item_ids)
    if not item_ids:
        return 0
    links = _all_menu_links(db)
    doomed: Set[int] = set(item_ids)
    for item_id in item_ids:
        doomed |= descendant_ids(links, item_id, parent_key="parent_menu_item_id")
    deleted = (
        db.query(MegaMenuCollection)
        .filter(MegaMenuCollection.id.in_(doomed))
        .delete(synchronize_session=False)
    )
    db.flush()
    return deleted


def _recompute_menu_levels(db: Session, item: MegaMenuCollection) -> None:
    if item.parent_menu_item_id is None:
        item.level = 0
    else:
        parent_level = (
            db.query(MegaMenuCollection.level).filter(MegaMenuCollection.id == item.parent_menu_item_id).scalar()
        )
        item.level = (parent_level or 0) + 1
    queue = [item]
    seen = {item.id}
    while queue:
        node = queue.pop(0)
        for child in db.query(MegaMenuCollection).filter(MegaMenuCollection.parent_menu_item_id == node.id).all():
            if child.id in seen:
                continue
            seen.add(child.id)
            child.level = (node.level or 0) + 1
            queue.append(child)
    db.flush()


def _ensure_not_duplicate(
    db: Session, collection_id: int, parent_id: Optional[int], exclude_id: Optional[int] = None
) -> None:
    # NULL parents never collide in the unique constraint, so roots are checked here too
    duplicate = db.query(MegaMenuCollection.id).filter(MegaMenuCollection.collection_id == collection_id)
    if parent_id is None:
        duplicate = duplicate.filter(MegaMenuCollection.parent_menu_item_id.is_(None))
    else:
        duplicate = duplicate.filter(MegaMenuCollection.parent_menu_item_id == parent_id)
    if exclude_id is not None:
        duplicate = duplicate.filter(MegaMenuCollection.id != exclude_id)
    if duplicate.first():
        raise HTTPException(status_code=400, detail="Collection is already in the mega menu under this parent")


def _create_menu_item(db: Session, payload: MegaMenuCreate, parent_required: bool = False) -> MegaMenuCollection:
    if payload.collection_id is None:
        raise HTTPException(status_code=400, detail="collection_id is required")
    if parent_required and payload.parent_menu_item_id is None:
        raise HTTPException(status_code=400, detail="parent_menu_item_id is required")
    if not db.query(Collection.id).filter(Collection.id == payload.collection_id).first():
        raise HTTPException(status_code=404, detail="Collection not found")

    parent: Optional[MegaMenuCollection] = None
    if payload.parent_menu_item_id is not None:
        parent = db.query(MegaMenuCollection).filter(MegaMenuCollection.id == payload.parent_menu_item_id).first()
        if not parent:
            raise HTTPException(status_code=404, detail="Parent menu item not found")

    _ensure_not_duplicate(db, payload.collection_id, parent.id if parent else None)

    position = payload.position
    if position is None:
        siblings = db.query(func.max(MegaMenuCollection.position))
        if parent is None:
            siblings = siblings.filter(MegaMenuCollection.parent_menu_item_id.is_(None))
        else:
            siblings = siblings.filter(MegaMenuCollection.parent_menu_item_id == parent.id)
        current_max = siblings.scalar()
        position = 0 if current_max is None else current_max + 1

    item = MegaMenuCollection(
        collection_id=payload.collection_id,
        parent_menu_item_id=parent.id if parent else None,
        position=position,
        level=(parent.level or 0) + 1 if parent else 0,
        is_active=True if payload.is_active is None else payload.is_active,
        is_featured=bool(payload.is_featured),
        display_subcollections=bool(payload.display_subcollections),
    )
    db.add(item)
    if parent is not None and not parent.display_subcollections:
        parent.display_subcollections = True
    return item


def _menu_item_out(item: MegaMenuCollection) -> dict:
    return {
        "id": item.id,
        "collection_id": item.collection_id,
        "parent_menu_item_id": item.parent_menu_item_id,
        "position": item.position,
        "level": item.level,
        "is_active": item.is_active,
        "is_featured": item.is_featured,
        "display_subcollections": item.display_subcollections,
    }


# 1. Storefront Mega Menu
@router.get("/")
def get_mega_menu(db: Session = Depends(get_db)):
    rows = _menu_rows(db, storefront=True)
    tree = sort_tree(build_tree(rows, parent_key="parent_menu_item_id"))
    menu = []
    for top in tree:
        node = _storefront_node(top)
        node["featuredBrands"] = [
            {"id": child["collection_id"], "name": child["name"], "slug": child["slug"], "image_url": child["image_url"]}
            for child in node["children"]
            if child["collection_type"] == "brand" and child["is_featured"]
        ]
        menu.append(node)
    return menu


# 2. Admin Mega Menu Tree
@router.get("/tree")
def get_mega_menu_tree(include_inactive: bool = False, db: Session = Depends(get_db)):
    from app.routers.collections import build_collection_tree

    menu_tree = build_menu_tree(db, include_inactive)
    in_menu = {r[0] for r in db.query(MegaMenuCollection.collection_id).distinct().all()}

    def mark(nodes):
        for node in nodes:
            node["is_in_mega_menu"] = node["id"] in in_menu
            mark(node["children"])
        return nodes

    return {
        "megaMenu": menu_tree,
        "collectionsTree": mark(build_collection_tree(db, include_inactive=True)),
    }


# 3. Add Collection to Mega Menu (Admin)
@router.post("/", status_code=201)
def add_to_mega_menu(payload: MegaMenuCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    try:
        item = _create_menu_item(db, payload)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    db.refresh(item)
    return {"message": "Collection added to mega menu successfully", "megaMenuItem": _menu_item_out(item)}


# 4. Add Subcollection (Admin)
@router.post("/subcollection", status_code=201)
def add_subcollection(payload: MegaMenuCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    try:
        item = _create_menu_item(db, payload, parent_required=True)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    db.refresh(item)
    logger.info("Menu item %s added under %s", item.id, item.parent_menu_item_id)
    return {"message": "Subcollection added to mega menu successfully", "megaMenuItem": _menu_item_out(item)}


# 5. Update Menu Item (Admin)
@router.put("/{id}")
def update_mega_menu_item(
    id: int, payload: MegaMenuUpdate, db: Session = Depends(get_db), admin: User = Depends(require_admin)
):
    item = db.query(MegaMenuCollection).filter(MegaMenuCollection.id == id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Mega menu item not found")
    fields = payload.model_dump(exclude_unset=True)

    parent_changed = "parent_menu_item_id" in fields and fields["parent_menu_item_id"] != item.parent_menu_item_id
    new_parent = None
    if parent_changed and fields["parent_menu_item_id"] is not None:
        new_parent_id = fields["parent_menu_item_id"]
        if new_parent_id == id:
            raise HTTPException(status_code=400, detail="A menu item cannot be its own parent")
        new_parent = db.query(MegaMenuCollection).filter(MegaMenuCollection.id == new_parent_id).first()
        if not new_parent:
            raise HTTPException(status_code=404, detail="Parent menu item not found")
        if new_parent_id in descendant_ids(_all_menu_links(db), id, parent_key="parent_menu_item_id"):
            raise HTTPException(status_code=400, detail="A menu item cannot be moved under its own descendant")
    if parent_changed:
        _ensure_not_duplicate(db, item.collection_id, fields["parent_menu_item_id"], exclude_id=item.id)

    for key, value in fields.items():
        if value is None and key != "parent_menu_item_id":
            continue
        setattr(item, key, value)
    try:
        if parent_changed:
            db.flush()
            _recompute_menu_levels(db, item)
            if new_parent is not None:
                new_parent.display_subcollections = True
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(item)
    return {"message": "Mega menu item updated successfully", "megaMenuItem": _menu_item_out(item)}


# 6. Remove Menu Item (Admin)
@router.delete("/{id}")
def delete_mega_menu_item(id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if not db.query(MegaMenuCollection.id).filter(MegaMenuCollection.id == id).first():
        raise HTTPException(status_code=404, detail="Mega menu item not found")
    try:
        deleted = delete_menu_items(db, [id])
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Mega menu item removed successfully", "deleted": deleted}


# 7. Reorder (Admin)
@router.post("/reorder")
def reorder_mega_menu(payload: ReorderIn, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    try:
        entries = [ReorderItem.model_validate(entry) for entry in payload.items]
    except ValidationError:
        entries = []
    if not entries:
        raise HTTPException(status_code=400, detail="items must be a non-empty list of {id, position}")
    try:
        for entry in entries:
            db.query(MegaMenuCollection).filter(MegaMenuCollection.id == entry.id).update(
                {MegaMenuCollection.position: entry.position}, synchronize_session=False
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Mega menu reordered successfully", "megaMenu": build_menu_tree(db, include_inactive=True)}
