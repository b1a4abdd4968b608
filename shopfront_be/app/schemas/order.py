from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class OrderItemIn(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(default=1, gt=0)


class OrderCreate(BaseModel):
    items: List[OrderItemIn] = []
    shipping_address: Dict[str, Any]
    billing_address: Optional[Dict[str, Any]] = None
    payment_method: str = "razorpay"
    payment_details: Optional[Dict[str, Any]] = None


class OrderUpdate(BaseModel):
    status: Optional[str] = None
    payment_status: Optional[str] = None
    tracking_number: Optional[str] = None
