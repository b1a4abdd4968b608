from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session
import logging

from app.config import get_settings
from app.models.user import User, get_db
from app.models.product import Product, ProductImage
from app.models.collection import Collection
from app.schemas.product import ProductImageOut
from app.schemas.collection import CollectionOut
from app.utils.security import require_admin
from app.utils.storage import COLLECTION_IMAGES, PRODUCT_IMAGES, delete_upload_file, save_upload_file, upload_size

logger = logging.getLogger(__name__)

router = APIRouter()


def _validate_image(upload: UploadFile) -> None:
    if not upload or not upload.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not (upload.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image files are allowed")
    max_bytes = get_settings().MAX_UPLOAD_BYTES
    if upload_size(upload) > max_bytes:
        raise HTTPException(status_code=413, detail=f"File too large; the limit is {max_bytes // (1024 * 1024)}MB")


# 1. Upload Product Image (Admin)
@router.post("/products/{product_id}/images", status_code=201)
def upload_product_image(
    product_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    _validate_image(file)
    src = save_upload_file(file, subdir=PRODUCT_IMAGES)
    image = ProductImage(product_id=product.id, src=src, alt=f"Image for {product.title}", is_primary=not product.images)
    db.add(image)
    db.commit()
    db.refresh(image)
    logger.info("Stored %s for product %s", src, product.id)
    return {"message": "Image uploaded successfully", "image": ProductImageOut.model_validate(image)}


# 2. Delete Product Image (Admin)
@router.delete("/products/images/{image_id}")
def delete_product_image(image_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    image = db.query(ProductImage).filter(ProductImage.id == image_id).first()
    if not image:
        raise HTTPException(status_code=404, detail="Image not found")
    src = image.src
    db.delete(image)
    db.commit()
    delete_upload_file(src)
    return {"message": "Image deleted successfully"}


# 3. Upload Collection Image (Admin)
@router.post("/collections/{collection_id}/images", status_code=201)
def upload_collection_image(
    collection_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    collection = db.query(Collection).filter(Collection.id == collection_id).first()
    if not collection:
        raise HTTPException(status_code=404, detail="Collection not found")
    _validate_image(file)
    previous = collection.image_url
    collection.image_url = save_upload_file(file, subdir=COLLECTION_IMAGES)
    db.commit()
    db.refresh(collection)
    if previous and previous != collection.image_url:
        delete_upload_file(previous)
    return {"message": "Image uploaded successfully", "collection": CollectionOut.model_validate(collection)}


# 4. Delete Collection Image (Admin)
@router.delete("/collections/images/{collection_id}")
def delete_collection_image(collection_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    collection = db.query(Collection).filter(Collection.id == collection_id).first()
    if not collection:
        raise HTTPException(status_code=404, detail="Collection not found")
    if not collection.image_url:
        raise HTTPException(status_code=404, detail="Collection has no image")
    previous = collection.image_url
    collection.image_url = None
    db.commit()
    delete_upload_file(previous)
    return {"message": "Image deleted successfully"}
