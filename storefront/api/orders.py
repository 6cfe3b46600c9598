from fastapi import APIRouter, Depends
from typing import List
from sqlalchemy.orm import Session
from storefront.api.deps import get_db, get_order_placer, get_order_canceller
from storefront.core.auth import Identity, get_current_identity
from storefront.schemas import CheckoutRequest, OrderRead
from storefront.services import orders
from storefront.services.orders import OrderPlacer, OrderCanceller

router = APIRouter()

@router.post("/checkout", response_model=OrderRead, status_code=201)
def checkout(payload: CheckoutRequest, identity: Identity = Depends(get_current_identity), placer: OrderPlacer = Depends(get_order_placer)):
    return placer.place_order(
        identity,
        payload.shipping,
        payload.payment_method,
        shipping_option=payload.shipping_option,
        card=payload.card,
    )

@router.get("/", response_model=List[OrderRead])
def my_orders(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return orders.list_user_orders(db, identity.user_id)

@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: int, identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return orders.get_order(db, identity, order_id)

@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(order_id: int, identity: Identity = Depends(get_current_identity), canceller: OrderCanceller = Depends(get_order_canceller)):
    return canceller.cancel(identity, order_id)
