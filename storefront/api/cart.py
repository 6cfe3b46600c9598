from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from storefront.api.deps import get_db
from storefront.core.auth import Identity, get_current_identity
from storefront.schemas import CartItemAdd, CartItemUpdate, CartRead
from storefront.services import cart

router = APIRouter()

@router.get("/", response_model=CartRead)
def get_my_cart(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return cart.get_cart(db, identity.user_id)

@router.post("/items", response_model=CartRead, status_code=201)
def add_item(payload: CartItemAdd, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return cart.add_item(db, identity.user_id, payload.product_id, payload.size, payload.quantity)

@router.patch("/items/{line_id}", response_model=CartRead)
def update_item(line_id: str, payload: CartItemUpdate, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return cart.set_quantity(db, identity.user_id, line_id, payload.quantity)

@router.delete("/items/{line_id}", response_model=CartRead)
def remove_item(line_id: str, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    cart.remove_item(identity.user_id, line_id)
    return cart.get_cart(db, identity.user_id)

@router.post("/clear", response_model=CartRead)
def clear(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    cart.clear(identity.user_id)
    return cart.get_cart(db, identity.user_id)
