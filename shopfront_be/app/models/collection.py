from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from app.models.user import Base

COLLECTION_TYPES = ("category_parent", "category", "brand_parent", "brand", "custom")


class Collection(Base):
    __tablename__ = "collections"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text)
    parent_id = Column(Integer, ForeignKey("collections.id", ondelete="SET NULL"), index=True)
    collection_type = Column(String(50), default="custom")  # category_parent, category, brand_parent, brand, custom
    level = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    is_featured = Column(Boolean, default=False)
    image_url = Column(String(500))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    memberships = relationship("ProductCollection", back_populates="collection", cascade="all, delete-orphan")


class ProductCollection(Base):
    __tablename__ = "product_collections"
    __table_args__ = (UniqueConstraint("product_id", "collection_id", name="uq_product_collection"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    collection_id = Column(Integer, ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="memberships")
    collection = relationship("Collection", back_populates="memberships")
