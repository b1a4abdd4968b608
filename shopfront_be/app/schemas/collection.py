from pydantic import BaseModel, ConfigDict
from typing import Any, List, Literal, Optional
from datetime import datetime

CollectionType = Literal["category_parent", "category", "brand_parent", "brand", "custom"]


class CollectionCreate(BaseModel):
    # name is validated in the router so a missing value is a 400, not a 422
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[int] = None
    collection_type: Optional[CollectionType] = "custom"
    is_active: Optional[bool] = True
    is_featured: Optional[bool] = False
    image_url: Optional[str] = None


class CollectionUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[int] = None
    collection_type: Optional[CollectionType] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    image_url: Optional[str] = None


class CollectionOut(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    collection_type: Optional[str] = None
    level: int = 0
    is_active: bool = True
    is_featured: bool = False
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AddProductIn(BaseModel):
    productId: Any = None


class BatchProductsIn(BaseModel):
    productIds: List[Any] = []


class ToggleFeaturedIn(BaseModel):
    isFeatured: bool
