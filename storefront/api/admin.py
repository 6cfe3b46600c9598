# Back office routes; every endpoint requires an admin identity.
from fastapi import APIRouter, Depends, UploadFile, File
from typing import List, Optional
from sqlalchemy.orm import Session
from storefront.api.deps import get_db
from storefront.core.auth import require_admin
from storefront.core.config import settings
from storefront.db.models import User
from storefront.schemas import (
    ProductCreate, ProductUpdate, ProductRead, OrderRead, OrderStatusUpdate,
    PaymentStatusUpdate, UserRead, StatsRead,
)
from storefront.services import catalog, orders
from storefront.services.storage import upload_bytes, file_ext

router = APIRouter(dependencies=[Depends(require_admin)])

# --- products ---
@router.get("/products", response_model=List[ProductRead])
def list_products(db: Session = Depends(get_db), q: Optional[str] = None, category: Optional[str] = None, status: Optional[str] = None):
    return catalog.list_products(db, q=q, category=category, status=status)

@router.get("/products/{product_id}", response_model=ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return catalog.get_product(db, product_id, include_deleted=True)

@router.post("/products", response_model=ProductRead, status_code=201)
def create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    return catalog.create_product(db, payload)

@router.patch("/products/{product_id}", response_model=ProductRead)
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    return catalog.update_product(db, product_id, payload)

@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: int, force: bool = False, db: Session = Depends(get_db)):
    if force:
        catalog.force_delete_product(db, product_id)
    else:
        catalog.delete_product(db, product_id)

@router.post("/products/{product_id}/image", response_model=ProductRead)
async def upload_product_image(product_id: int, file: UploadFile = File(...), db: Session = Depends(get_db)):
    catalog.get_product(db, product_id, include_deleted=True)
    content = await file.read()
    _, url = upload_bytes(settings.PRODUCT_IMAGES_BUCKET, "products", content, file.content_type or "application/octet-stream", ext=file_ext(file.filename))
    return catalog.set_image(db, product_id, url)

# --- orders ---
@router.get("/orders", response_model=List[OrderRead])
def list_orders(db: Session = Depends(get_db), status: Optional[str] = None, search: Optional[str] = None):
    return orders.list_orders(db, status=status, search=search)

@router.patch("/orders/{order_id}/status", response_model=OrderRead)
def set_order_status(order_id: int, payload: OrderStatusUpdate, db: Session = Depends(get_db)):
    return orders.set_status(db, order_id, payload.status)

@router.patch("/orders/{order_id}/payment-status", response_model=OrderRead)
def set_payment_status(order_id: int, payload: PaymentStatusUpdate, db: Session = Depends(get_db)):
    return orders.set_payment_status(db, order_id, payload.payment_status)

@router.delete("/orders/{order_id}", status_code=204)
def purge_order(order_id: int, db: Session = Depends(get_db)):
    orders.purge_order(db, order_id)

# --- users / dashboard ---
@router.get("/users", response_model=List[UserRead])
def list_users(db: Session = Depends(get_db)):
    return db.query(User).order_by(User.id).all()

@router.get("/stats", response_model=StatsRead)
def dashboard_stats(db: Session = Depends(get_db)):
    total, processing, revenue, by_status = orders.stats(db)
    return StatsRead(total_orders=total, processing_orders=processing, revenue_cents=revenue, products_by_status=by_status)
