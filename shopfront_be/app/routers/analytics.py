from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import datetime, timedelta

from app.models.user import User, get_db
from app.models.product import Product
from app.models.order import Order
from app.models.payment import Payment
from app.models.collection import Collection, ProductCollection
from app.utils.security import require_admin

router = APIRouter()

REVENUE_MONTHS = 6


def _grouped(db: Session, column, label_default=None) -> dict:
    rows = db.query(column, func.count()).group_by(column).all()
    out = {}
    for key, count in rows:
        name = key if key is not None else label_default
        out[name] = out.get(name, 0) + int(count)
    return out


def trend_percentage(current: int, previous: int) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def _month_starts(now: datetime, months: int):
    """First day of each of the last ``months`` months, oldest first, including the current one."""
    year, month = now.year, now.month
    starts = []
    for _ in range(months):
        starts.append(datetime(year, month, 1))
        month -= 1
        if month == 0:
            month, year = 12, year - 1
    return list(reversed(starts))


def _order_stats(db: Session, now: datetime) -> dict:
    last_week = now - timedelta(days=7)
    two_weeks = now - timedelta(days=14)
    current = db.query(func.count(Order.id)).filter(Order.created_at >= last_week).scalar() or 0
    previous = (
        db.query(func.count(Order.id)).filter(Order.created_at >= two_weeks, Order.created_at < last_week).scalar() or 0
    )
    recent = (
        db.query(Order, User.name, User.email)
        .outerjoin(User, User.id == Order.user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(5)
        .all()
    )
    return {
        "total": db.query(func.count(Order.id)).scalar() or 0,
        "byStatus": _grouped(db, Order.status, "unknown"),
        "recentOrders": [
            {
                "id": o.id,
                "status": o.status,
                "total": float(o.total or 0),
                "payment_status": o.payment_status,
                "created_at": o.created_at.isoformat() if o.created_at else None,
                "user_name": name,
                "user_email": email,
            }
            for o, name, email in recent
        ],
        "trend": {"last7Days": current, "previous7Days": previous, "percentage": trend_percentage(current, previous)},
    }


def _payment_stats(db: Session) -> dict:
    recent = db.query(Payment).order_by(Payment.created_at.desc(), Payment.id.desc()).limit(5).all()
    return {
        "total": db.query(func.count(Payment.id)).scalar() or 0,
        "byStatus": _grouped(db, Payment.status, "unknown"),
        "byMethod": _grouped(db, Order.payment_method, "unknown"),
        "recentPayments": [
            {
                "id": p.id,
                "order_id": p.order_id,
                "amount": float(p.amount or 0),
                "currency": p.currency,
                "status": p.status,
                "created_at": p.created_at.isoformat() if p.created_at else None,
            }
            for p in recent
        ],
    }


def _product_stats(db: Session) -> dict:
    brands = (
        db.query(Product.brand, func.count(Product.id).label("count"))
        .filter(Product.brand.isnot(None), Product.brand != "")
        .group_by(Product.brand)
        .order_by(func.count(Product.id).desc(), Product.brand)
        .limit(10)
        .all()
    )
    return {
        "total": db.query(func.count(Product.id)).scalar() or 0,
        "byCategory": _grouped(db, Product.category, "uncategorized"),
        "topBrands": [{"brand": b, "count": int(c)} for b, c in brands],
    }


def _collection_stats(db: Session) -> dict:
    product_count = func.count(ProductCollection.id)
    top = (
        db.query(Collection.id, Collection.name, Collection.slug, product_count.label("products_count"))
        .outerjoin(ProductCollection, ProductCollection.collection_id == Collection.id)
        .group_by(Collection.id, Collection.name, Collection.slug)
        .order_by(product_count.desc(), Collection.name)
        .limit(5)
        .all()
    )
    return {
        "total": db.query(func.count(Collection.id)).scalar() or 0,
        "byType": _grouped(db, Collection.collection_type, "custom"),
        "topCollections": [
            {"id": cid, "name": name, "slug": slug, "products_count": int(count)} for cid, name, slug, count in top
        ],
    }


def _revenue_stats(db: Session, now: datetime) -> dict:
    captured = Payment.status == "captured"
    total = float(db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(captured).scalar() or 0)
    captured_count = db.query(func.count(Payment.id)).filter(captured).scalar() or 0

    starts = _month_starts(now, REVENUE_MONTHS)
    buckets = {start.strftime("%Y-%m"): 0.0 for start in starts}
    # bucketed in Python so the query stays portable across databases
    for amount, created_at in db.query(Payment.amount, Payment.created_at).filter(
        captured, Payment.created_at >= starts[0]
    ):
        key = created_at.strftime("%Y-%m")
        if key in buckets:
            buckets[key] += float(amount or 0)
    return {
        "total": total,
        "avgOrderValue": round(total / captured_count, 2) if captured_count else 0.0,
        "byMonth": [{"month": month, "total": round(value, 2)} for month, value in buckets.items()],
    }


# Dashboard (Admin)
@router.get("/dashboard")
def get_dashboard(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    now = datetime.utcnow()
    return {
        "orders": _order_stats(db, now),
        "payments": _payment_stats(db),
        "products": _product_stats(db),
        "collections": _collection_stats(db),
        "revenue": _revenue_stats(db, now),
    }
