from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
import logging

from app.config import get_settings
from app.routers import auth, products, collections, mega_menu, filter as filter_router
from app.routers import orders, payments, analytics, currencies, uploads
from app.utils.storage import COLLECTION_IMAGES, PRODUCT_IMAGES, UPLOAD_ROOT, ensure_upload_dirs

settings = get_settings()
logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Shopfront API")


@app.on_event("startup")
def on_startup():
    # Ensure all DB tables exist after all models are imported
    from app.models.user import Base, engine  # Base/engine single source
    import app.models.product  # register Product/ProductImage/ProductVariant
    import app.models.collection  # register Collection/ProductCollection
    import app.models.mega_menu  # register MegaMenuCollection
    import app.models.order  # register Order/OrderItem
    import app.models.payment  # register Payment
    import app.models.currency  # register Currency
    Base.metadata.create_all(bind=engine)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Internal Server Error", "error": str(exc)})


# Ensure upload directories exist before mounting
ensure_upload_dirs()

# Serve uploaded images, e.g. /uploads/product-images/<file>
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_ROOT)), name="uploads")
# Stored image paths are public as-is, e.g. /product-images/<file>
app.mount(f"/{PRODUCT_IMAGES}", StaticFiles(directory=str(UPLOAD_ROOT / PRODUCT_IMAGES)), name=PRODUCT_IMAGES)
app.mount(f"/{COLLECTION_IMAGES}", StaticFiles(directory=str(UPLOAD_ROOT / COLLECTION_IMAGES)), name=COLLECTION_IMAGES)

# CORS configuration for the storefront and admin panel
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(products.router, prefix="/api/products", tags=["products"])
app.include_router(collections.router, prefix="/api/collections", tags=["collections"])
app.include_router(mega_menu.router, prefix="/api/megamenu", tags=["megamenu"])
app.include_router(filter_router.router, prefix="/api/filter", tags=["filter"])
app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
app.include_router(payments.router, prefix="/api/payment", tags=["payment"])
app.include_router(payments.log_router, prefix="/api/payments", tags=["payments"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["analytics"])
app.include_router(currencies.router, prefix="/api/currencies", tags=["currencies"])
app.include_router(uploads.router, prefix="/api/uploads", tags=["uploads"])


@app.get("/health")
def health():
    return {"status": "ok", "message": "Server is running"}


# --- Entry point for local runs ---
if __name__ == "__main__":
    import uvicorn, os
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port, reload=False)
