"""Product-to-collection membership with upward propagation.

A product in a collection is also a member of every ancestor of that collection.
Functions here stage changes on the given session and never commit; callers own
the transaction.
"""
import logging
from typing import Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from app.models.collection import Collection, ProductCollection

logger = logging.getLogger(__name__)


def ancestor_ids(db: Session, collection_id: int) -> List[int]:
    """Walk ``parent_id`` upward from ``collection_id``; nearest ancestor first."""
    ancestors: List[int] = []
    seen: Set[int] = {collection_id}
    current = db.query(Collection.parent_id).filter(Collection.id == collection_id).scalar()
    while current is not None and current not in seen:
        ancestors.append(current)
        seen.add(current)
        current = db.query(Collection.parent_id).filter(Collection.id == current).scalar()
    return ancestors


def would_create_cycle(db: Session, collection_id: int, new_parent_id: Optional[int]) -> bool:
    """True when ``new_parent_id`` is the collection itself or one of its descendants."""
    if new_parent_id is None:
        return False
    if new_parent_id == collection_id:
        return True
    return collection_id in ancestor_ids(db, new_parent_id)


def _member_collection_ids(db: Session, product_id: int) -> Set[int]:
    rows = db.query(ProductCollection.collection_id).filter(ProductCollection.product_id == product_id).all()
    return {r[0] for r in rows}


def add_product(db: Session, product_id: int, collection_id: int, chain: Optional[List[int]] = None) -> bool:
    """Add the product to the collection and each of its ancestors.

    Returns True when the product was not already a direct member of ``collection_id``.
    """
    if chain is None:
        chain = ancestor_ids(db, collection_id)
    existing = _member_collection_ids(db, product_id)
    added_direct = collection_id not in existing
    backfilled = []
    for cid in [collection_id] + chain:
        if cid in existing:
            continue
        db.add(ProductCollection(product_id=product_id, collection_id=cid))
        existing.add(cid)
        if cid != collection_id:
            backfilled.append(cid)
    db.flush()
    if backfilled:
        logger.info("Product %s propagated to ancestor collections %s", product_id, backfilled)
    return added_direct


def add_products(db: Session, collection_id: int, product_ids: Iterable[int]) -> List[int]:
    """Batch form of :func:`add_product`. Returns the ids newly added to ``collection_id``."""
    chain = ancestor_ids(db, collection_id)
    added = []
    for pid in product_ids:
        if add_product(db, pid, collection_id, chain):
            added.append(pid)
    return added


def remove_product(db: Session, product_id: int, collection_id: int, remove_from_parents: bool = False) -> int:
    """Delete the membership row, and the ancestor rows when asked. Returns rows deleted."""
    targets = [collection_id]
    if remove_from_parents:
        targets += ancestor_ids(db, collection_id)
    deleted = (
        db.query(ProductCollection)
        .filter(ProductCollection.product_id == product_id, ProductCollection.collection_id.in_(targets))
        .delete(synchronize_session=False)
    )
    db.flush()
    return deleted


def set_product_collections(db: Session, product_id: int, collection_ids: Iterable[int]) -> List[int]:
    """Replace the product's memberships with ``collection_ids`` plus their ancestors.

    Unknown collection ids are ignored. Returns the final sorted membership.
    """
    wanted = {int(c) for c in collection_ids}
    valid = {r[0] for r in db.query(Collection.id).filter(Collection.id.in_(wanted)).all()} if wanted else set()
    skipped = wanted - valid
    if skipped:
        logger.warning("Ignoring unknown collection ids %s for product %s", sorted(skipped), product_id)
    desired = set(valid)
    for cid in valid:
        desired.update(ancestor_ids(db, cid))
    existing = _member_collection_ids(db, product_id)
    stale = existing - desired
    if stale:
        db.query(ProductCollection).filter(
            ProductCollection.product_id == product_id, ProductCollection.collection_id.in_(stale)
        ).delete(synchronize_session=False)
    for cid in sorted(desired - existing):
        db.add(ProductCollection(product_id=product_id, collection_id=cid))
    db.flush()
    return sorted(desired)


def recompute_levels(db: Session, collection: Collection) -> None:
    """Set ``collection.level`` from its parent, then cascade down the subtree."""
    if collection.parent_id is None:
        collection.level = 0
    else:
        parent_level = db.query(Collection.level).filter(Collection.id == collection.parent_id).scalar()
        collection.level = (parent_level or 0) + 1
    queue = [collection]
    seen = {collection.id}
    while queue:
        node = queue.pop(0)
        for child in db.query(Collection).filter(Collection.parent_id == node.id).all():
            if child.id in seen:
                continue
            seen.add(child.id)
            child.level = (node.level or 0) + 1
            queue.append(child)
    db.flush()
