import logging
from typing import Optional, List
from sqlalchemy import select, func
from sqlalchemy.orm import Session
from storefront.db import models
from storefront.db.models import ProductStatus, utcnow
from storefront.core.errors import NotFoundError, ConflictError
from storefront.schemas import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

def _filtered(stmt, q: Optional[str], category: Optional[str], status: Optional[str]):
    if q:
        stmt = stmt.where(models.Product.name.ilike(f"%{q.lower()}%"))
    if category and category != "all":
        stmt = stmt.where(models.Product.category == category)
    if status and status != "all":
        stmt = stmt.where(models.Product.status == status)
    return stmt

def list_active_products(db: Session, q: Optional[str] = None, category: Optional[str] = None,
                         limit: int = 50, offset: int = 0) -> List[models.Product]:
    stmt = _filtered(select(models.Product), q, category, ProductStatus.ACTIVE.value)
    stmt = stmt.order_by(models.Product.created_at.desc(), models.Product.id.desc()).offset(offset).limit(limit)
    return list(db.execute(stmt).scalars().all())

def list_products(db: Session, q: Optional[str] = None, category: Optional[str] = None,
                  status: Optional[str] = None) -> List[models.Product]:
    stmt = _filtered(select(models.Product), q, category, status)
    stmt = stmt.order_by(models.Product.created_at.desc(), models.Product.id.desc())
    return list(db.execute(stmt).scalars().all())

def get_product(db: Session, product_id: int, include_deleted: bool = False) -> models.Product:
    obj = db.get(models.Product, product_id)
    if not obj or (obj.status == ProductStatus.DELETED.value and not include_deleted):
        raise NotFoundError("Product not found")
    return obj

def create_product(db: Session, payload: ProductCreate) -> models.Product:
    obj = models.Product(**payload.model_dump())
    db.add(obj); db.commit(); db.refresh(obj)
    logger.info("created product %s (%s)", obj.id, obj.name)
    return obj

def update_product(db: Session, product_id: int, payload: ProductUpdate) -> models.Product:
    obj = get_product(db, product_id, include_deleted=True)
    for k, v in payload.model_dump(exclude_unset=True).items(): setattr(obj, k, v)
    db.add(obj); db.commit(); db.refresh(obj)
    return obj

def set_image(db: Session, product_id: int, url: str) -> models.Product:
    obj = get_product(db, product_id, include_deleted=True)
    obj.image_url = url
    db.add(obj); db.commit(); db.refresh(obj)
    return obj

def delete_product(db: Session, product_id: int):
    """Hard delete; refused while any order line still points at the product."""
    obj = get_product(db, product_id, include_deleted=True)
    referenced = db.execute(
        select(func.count()).select_from(models.OrderItem).where(models.OrderItem.product_id == product_id)
    ).scalar_one()
    if referenced:
        raise ConflictError("Cannot delete product that exists in orders. Use force delete instead.")
    db.delete(obj); db.commit()
    logger.info("deleted product %s", product_id)

def force_delete_product(db: Session, product_id: int) -> models.Product:
    # Soft delete: order line snapshots keep their product reference.
    obj = get_product(db, product_id, include_deleted=True)
    obj.status = ProductStatus.DELETED.value
    obj.deleted_at = utcnow()
    db.add(obj); db.commit(); db.refresh(obj)
    logger.info("soft deleted product %s", product_id)
    return obj
