from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging
import math

from app.models.user import User, get_db
from app.models.order import Order
from app.models.payment import Payment
from app.schemas.payment import PaymentFailureIn, PaymentLogIn, PaymentOut, VerifyPaymentIn
from app.utils.razorpay_client import PaymentGatewayError, RazorpayGateway, get_payment_gateway
from app.utils.security import get_current_user, is_admin, require_admin

logger = logging.getLogger(__name__)

# Razorpay checkout flow, mounted at /api/payment
router = APIRouter()
# Client-side payment logging and simple listings, mounted at /api/payments
log_router = APIRouter()

ORDER_PAYMENT_STATUS = {"captured": "paid", "failed": "failed"}


def _owned_order_or_404(db: Session, order_id: int, user: User) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order or (order.user_id != user.id and not is_admin(user)):
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _paginated_payments(db: Session, page: int, limit: int) -> dict:
    total = db.query(func.count(Payment.id)).scalar() or 0
    rows = (
        db.query(Payment, User.name, User.email)
        .outerjoin(Order, Order.id == Payment.order_id)
        .outerjoin(User, User.id == Order.user_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    payments = []
    for payment, name, email in rows:
        out = PaymentOut.model_validate(payment).model_dump()
        out["user_name"] = name
        out["user_email"] = email
        payments.append(out)
    return {
        "payments": payments,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


# 1. Create Razorpay Order
@router.post("/orders/{order_id}", status_code=201)
def create_payment_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    order = _owned_order_or_404(db, order_id, current_user)

    existing = (
        db.query(Payment)
        .filter(Payment.order_id == order.id, Payment.status == "created")
        .order_by(Payment.id.desc())
        .first()
    )
    if existing:
        return {
            "success": True,
            "message": "Payment order already exists",
            "payment": PaymentOut.model_validate(existing),
            "key_id": gateway.key_id,
        }

    try:
        rp_order = gateway.create_order(order.total, receipt=f"order_{order.id}", notes={"order_id": str(order.id)})
    except PaymentGatewayError as e:
        raise HTTPException(status_code=502, detail=f"Payment gateway error: {e}")

    payment = Payment(
        order_id=order.id,
        razorpay_order_id=rp_order["id"],
        amount=order.total,
        currency=rp_order.get("currency") or gateway.currency,
        status="created",
        payment_method="razorpay",
        payment_data=rp_order,
    )
    order.razorpay_order_id = rp_order["id"]
    db.add(payment)
    db.commit()
    db.refresh(payment)
    logger.info("Razorpay order %s created for order %s", rp_order["id"], order.id)
    return {
        "success": True,
        "message": "Payment order created successfully",
        "payment": PaymentOut.model_validate(payment),
        "key_id": gateway.key_id,
    }


# 2. Verify Payment
@router.post("/verify")
def verify_payment(
    payload: VerifyPaymentIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    if not gateway.verify_signature(payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature):
        logger.warning("Invalid Razorpay signature for order %s", payload.razorpay_order_id)
        raise HTTPException(status_code=400, detail="Invalid payment signature")

    payment = db.query(Payment).filter(Payment.razorpay_order_id == payload.razorpay_order_id).first()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")

    try:
        details = gateway.fetch_payment(payload.razorpay_payment_id)
    except PaymentGatewayError as e:
        raise HTTPException(status_code=502, detail=f"Payment gateway error: {e}")

    status = details.get("status") or "authorized"
    payment.razorpay_payment_id = payload.razorpay_payment_id
    payment.razorpay_signature = payload.razorpay_signature
    payment.status = status
    payment.payment_method = details.get("method") or payment.payment_method
    payment.payment_data = details

    order = db.query(Order).filter(Order.id == payment.order_id).first()
    if order:
        order.payment_status = ORDER_PAYMENT_STATUS.get(status, "pending")
        order.razorpay_payment_id = payload.razorpay_payment_id
    db.commit()
    db.refresh(payment)
    logger.info("Payment %s verified with status %s", payload.razorpay_payment_id, status)
    return {"success": True, "message": "Payment verified successfully", "payment": PaymentOut.model_validate(payment)}


# 3. Record Payment Failure (webhook)
@router.post("/webhook")
def record_payment_failure(payload: PaymentFailureIn, db: Session = Depends(get_db)):
    payment = db.query(Payment).filter(Payment.razorpay_order_id == payload.razorpay_order_id).first()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    payment.status = "failed"
    payment.error_code = payload.error_code
    payment.error_description = payload.error_description
    order = db.query(Order).filter(Order.id == payment.order_id).first()
    if order:
        order.payment_status = "failed"
    db.commit()
    logger.info("Payment for %s marked failed: %s", payload.razorpay_order_id, payload.error_code)
    return {"success": True, "message": "Payment failure recorded"}


# 4. Payments for an Order
@router.get("/orders/{order_id}")
def get_order_payments(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    _owned_order_or_404(db, order_id, current_user)
    payments = (
        db.query(Payment)
        .filter(Payment.order_id == order_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )
    if not payments:
        raise HTTPException(status_code=404, detail="No payments found for this order")
    return {"success": True, "payments": [PaymentOut.model_validate(p) for p in payments]}


# 5. All Payments (Admin)
@router.get("/admin/all")
def list_all_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return {"success": True, **_paginated_payments(db, page, limit)}


# 6. Log Client Payment
@log_router.post("/log", status_code=201)
def log_payment(payload: PaymentLogIn, db: Session = Depends(get_db)):
    data = payload.model_dump()
    payment = Payment(
        order_id=payload.order_id,
        razorpay_order_id=payload.razorpay_order_id,
        razorpay_payment_id=payload.razorpay_payment_id,
        razorpay_signature=payload.razorpay_signature,
        amount=payload.amount,
        currency=payload.currency,
        status=payload.status,
        payment_method=payload.payment_method,
        payment_data=data,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return {"success": True, "message": "Payment logged successfully", "payment": PaymentOut.model_validate(payment)}


# 7. Simple Listings
@log_router.get("/admin/all")
def list_logged_payments(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    payments = db.query(Payment).order_by(Payment.created_at.desc(), Payment.id.desc()).all()
    return {"success": True, "count": len(payments), "payments": [PaymentOut.model_validate(p) for p in payments]}


@log_router.get("/orders/{order_id}")
def list_logged_order_payments(
    order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    _owned_order_or_404(db, order_id, current_user)
    payments = (
        db.query(Payment)
        .filter(Payment.order_id == order_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )
    return {"success": True, "count": len(payments), "payments": [PaymentOut.model_validate(p) for p in payments]}
