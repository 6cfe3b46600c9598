from fastapi import APIRouter, Depends
from typing import List, Optional
from sqlalchemy.orm import Session
from storefront.api.deps import get_db
from storefront.schemas import ProductRead
from storefront.services import catalog

router = APIRouter()

@router.get("/", response_model=List[ProductRead])
def list_products(db: Session = Depends(get_db), q: Optional[str] = None, category: Optional[str] = None, limit: int = 50, offset: int = 0):
    return catalog.list_active_products(db, q=q, category=category, limit=limit, offset=offset)

@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return catalog.get_product(db, product_id)
