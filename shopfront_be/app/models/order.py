from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from datetime import datetime
from app.models.user import Base

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(50), default="pending")  # pending, processing, completed, cancelled
    total = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_address = Column(JSONType)
    billing_address = Column(JSONType)
    payment_method = Column(String(50))
    payment_status = Column(String(50), default="pending")  # pending, paid, failed, refunded
    tracking_number = Column(String(100))

    razorpay_order_id = Column(String(100), index=True)
    razorpay_payment_id = Column(String(100))
    payment_details = Column(JSONType)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    user = relationship("User")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"))
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"))
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)  # unit price at time of order

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
    variant = relationship("ProductVariant")
