from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, Literal, Optional
from datetime import datetime

PaymentStatus = Literal["created", "authorized", "captured", "failed", "refunded"]


class VerifyPaymentIn(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PaymentFailureIn(BaseModel):
    razorpay_order_id: str
    error_code: Optional[str] = None
    error_description: Optional[str] = None


class PaymentLogIn(BaseModel):
    order_id: Optional[int] = None
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    amount: float
    currency: str = "INR"
    status: PaymentStatus = "created"
    payment_method: str = "razorpay"

    model_config = ConfigDict(extra="allow")


class PaymentOut(BaseModel):
    id: int
    order_id: Optional[int] = None
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    amount: float
    currency: Optional[str] = None
    status: Optional[str] = None
    payment_method: Optional[str] = None
    payment_data: Optional[Dict[str, Any]] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
