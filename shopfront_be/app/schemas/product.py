from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class ProductImageIn(BaseModel):
    id: Optional[int] = None
    image_id: Optional[str] = None
    alt: Optional[str] = None
    src: Optional[str] = None
    is_primary: Optional[bool] = False


class ProductImageOut(BaseModel):
    id: int
    image_id: Optional[str] = None
    alt: Optional[str] = None
    src: str
    is_primary: Optional[bool] = False

    model_config = ConfigDict(from_attributes=True)


class ProductVariantIn(BaseModel):
    sku: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    image_id: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)


class ProductVariantOut(ProductVariantIn):
    id: int

    model_config = ConfigDict(from_attributes=True)


class CollectionRef(BaseModel):
    id: int
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class ProductBase(BaseModel):
    title: str
    slug: Optional[str] = None
    description: Optional[str] = None
    price: float = Field(ge=0)
    brand: Optional[str] = None
    category: Optional[str] = None
    stock: Optional[int] = 0
    is_new: Optional[bool] = False
    is_sale: Optional[bool] = False
    is_featured: Optional[bool] = False
    discount: Optional[float] = 0
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    meta_image: Optional[str] = None


class ProductCreate(ProductBase):
    variants: List[ProductVariantIn] = []
    images: List[ProductImageIn] = []
    collections: List[int] = []


class ProductUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    brand: Optional[str] = None
    category: Optional[str] = None
    stock: Optional[int] = None
    is_new: Optional[bool] = None
    is_sale: Optional[bool] = None
    is_featured: Optional[bool] = None
    discount: Optional[float] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    meta_image: Optional[str] = None
    variants: Optional[List[ProductVariantIn]] = None
    images: Optional[List[ProductImageIn]] = None
    collections: Optional[List[int]] = None


class ProductCollectionsUpdate(BaseModel):
    collections: List[int] = []


class ProductVariantsAdd(BaseModel):
    variants: List[ProductVariantIn]


class ProductOut(ProductBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    images: List[ProductImageOut] = []
    variants: List[ProductVariantOut] = []
    collections: List[CollectionRef] = []
    # storefront aliases
    new: bool = False
    sale: bool = False
    featured: bool = False
