from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from app.models.user import Base


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), index=True)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    brand = Column(String(100), index=True)
    category = Column(String(100), index=True)
    stock = Column(Integer, default=0)
    is_new = Column(Boolean, default=False)
    is_sale = Column(Boolean, default=False)
    is_featured = Column(Boolean, default=False)
    discount = Column(Numeric(10, 2), default=0)

    meta_title = Column(String(255))
    meta_description = Column(Text)
    meta_keywords = Column(Text)
    meta_image = Column(String(500))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    images = relationship(
        "ProductImage", back_populates="product", cascade="all, delete-orphan", order_by="ProductImage.id"
    )
    variants = relationship(
        "ProductVariant", back_populates="product", cascade="all, delete-orphan", order_by="ProductVariant.id"
    )
    memberships = relationship("ProductCollection", back_populates="product", cascade="all, delete-orphan")


class ProductImage(Base):
    __tablename__ = "product_images"
    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    image_id = Column(String(100))
    alt = Column(String(255))
    src = Column(String(500), nullable=False)
    is_primary = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="images")


class ProductVariant(Base):
    __tablename__ = "product_variants"
    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String(100))
    size = Column(String(50))
    color = Column(String(50), index=True)
    image_id = Column(String(100))
    image_url = Column(String(500))
    # Overrides the product price when set
    price = Column(Numeric(10, 2))
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="variants")
