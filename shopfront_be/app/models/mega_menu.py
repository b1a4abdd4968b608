from sqlalchemy import Column, Integer, Boolean, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from app.models.user import Base


class MegaMenuCollection(Base):
    __tablename__ = "mega_menu_collections"
    __table_args__ = (
        UniqueConstraint("collection_id", "parent_menu_item_id", name="uq_mega_menu_collection_parent"),
    )

    id = Column(Integer, primary_key=True, index=True)
    collection_id = Column(Integer, ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_menu_item_id = Column(
        Integer, ForeignKey("mega_menu_collections.id", ondelete="CASCADE"), index=True
    )
    position = Column(Integer, default=0)
    level = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    is_featured = Column(Boolean, default=False)
    display_subcollections = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    collection = relationship("Collection")
