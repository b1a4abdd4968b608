from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func
from decimal import Decimal
import logging
import math

from app.models.user import User, get_db
from app.models.order import Order, OrderItem
from app.models.product import Product, ProductVariant
from app.schemas.order import OrderCreate, OrderUpdate
from app.utils.security import get_current_user, is_admin, require_admin

logger = logging.getLogger(__name__)

router = APIRouter()


def _primary_image(product: Product):
    if not product or not product.images:
        return None
    primary = next((i for i in product.images if i.is_primary), product.images[0])
    return primary.src


def _variant_name(variant: ProductVariant):
    if not variant:
        return None
    return " ".join(part for part in (variant.size, variant.color) if part) or None


def map_order_to_out(order: Order, with_items: bool = True) -> dict:
    out = {
        "id": order.id,
        "user_id": order.user_id,
        "status": order.status,
        "total": float(order.total or 0),
        "shipping_address": order.shipping_address,
        "billing_address": order.billing_address,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "tracking_number": order.tracking_number,
        "razorpay_order_id": order.razorpay_order_id,
        "razorpay_payment_id": order.razorpay_payment_id,
        "payment_details": order.payment_details,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
    }
    if with_items:
        out["items"] = [
            {
                "id": i.id,
                "product_id": i.product_id,
                "variant_id": i.variant_id,
                "quantity": i.quantity,
                "price": float(i.price or 0),
                "title": i.product.title if i.product else None,
                "variant_name": _variant_name(i.variant),
                "image": _primary_image(i.product),
            }
            for i in order.items
        ]
    return out


def _load_order(db: Session, id: int):
    return (
        db.query(Order)
        .options(
            selectinload(Order.items).selectinload(OrderItem.product).selectinload(Product.images),
            selectinload(Order.items).selectinload(OrderItem.variant),
        )
        .filter(Order.id == id)
        .first()
    )


# 1. Create Order
@router.post("/", status_code=201)
def create_order(payload: OrderCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if not payload.items:
        raise HTTPException(status_code=400, detail="Order must contain at least one item")

    # Unit prices always come from the catalogue, never from the client
    total = Decimal("0")
    lines = []
    for item in payload.items:
        variant = None
        product = db.query(Product).filter(Product.id == item.product_id).first()
        if not product:
            raise HTTPException(status_code=400, detail=f"Product {item.product_id} not found")
        if item.variant_id is not None:
            variant = (
                db.query(ProductVariant)
                .filter(ProductVariant.id == item.variant_id, ProductVariant.product_id == product.id)
                .first()
            )
            if not variant:
                raise HTTPException(status_code=400, detail=f"Variant {item.variant_id} not found for product {product.id}")
        unit_price = Decimal(str(product.price or 0))
        if variant is not None and variant.price is not None:
            unit_price = Decimal(str(variant.price))
        total += unit_price * item.quantity
        lines.append((item, unit_price))

    details = payload.payment_details or {}
    order = Order(
        user_id=current_user.id,
        status="pending",
        total=total,
        shipping_address=payload.shipping_address,
        billing_address=payload.billing_address or payload.shipping_address,
        payment_method=payload.payment_method,
        payment_status="paid" if details.get("razorpay_payment_id") else "pending",
        razorpay_order_id=details.get("razorpay_order_id"),
        razorpay_payment_id=details.get("razorpay_payment_id"),
        payment_details=payload.payment_details,
    )
    try:
        db.add(order)
        db.flush()
        for item, unit_price in lines:
            db.add(
                OrderItem(
                    order_id=order.id,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    quantity=item.quantity,
                    price=unit_price,
                )
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Order %s created for user %s total=%s", order.id, current_user.id, total)
    return {"success": True, "message": "Order created successfully", "order": map_order_to_out(_load_order(db, order.id))}


# 2. List My Orders
@router.get("/")
def list_my_orders(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    orders = (
        db.query(Order)
        .filter(Order.user_id == current_user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return {"orders": [map_order_to_out(o, with_items=False) for o in orders]}


# 3. List All Orders (Admin)
@router.get("/admin/all")
def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    total = db.query(func.count(Order.id)).scalar() or 0
    rows = (
        db.query(Order, User.name, User.email)
        .outerjoin(User, User.id == Order.user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    orders = []
    for order, name, email in rows:
        out = map_order_to_out(order, with_items=False)
        out["user_name"] = name
        out["user_email"] = email
        orders.append(out)
    return {
        "orders": orders,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


# 4. Get Order by ID
@router.get("/{id}")
def get_order(id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    order = _load_order(db, id)
    if not order or (order.user_id != current_user.id and not is_admin(current_user)):
        raise HTTPException(status_code=404, detail="Order not found")
    return {"order": map_order_to_out(order)}


# 5. Update Order Status
@router.api_route("/{id}", methods=["PUT", "PATCH"])
def update_order(
    id: int, payload: OrderUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    order = db.query(Order).filter(Order.id == id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.user_id != current_user.id and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="Not allowed to update this order")
    fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not fields:
        raise HTTPException(status_code=400, detail="Nothing to update")
    for key, value in fields.items():
        setattr(order, key, value)
    db.commit()
    logger.info("Order %s updated by user %s: %s", id, current_user.id, fields)
    return {"success": True, "message": "Order updated successfully", "order": map_order_to_out(_load_order(db, id))}
