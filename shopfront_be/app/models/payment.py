from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from app.models.user import Base
from app.models.order import JSONType

PAYMENT_STATUSES = ("created", "authorized", "captured", "failed", "refunded")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    razorpay_order_id = Column(String(100), index=True)
    razorpay_payment_id = Column(String(100))
    razorpay_signature = Column(String(255))
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), default="INR")
    status = Column(String(20), default="created")  # created, authorized, captured, failed, refunded
    payment_method = Column(String(50))
    payment_data = Column(JSONType)
    error_code = Column(String(100))
    error_description = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order")
