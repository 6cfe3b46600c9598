from fastapi import Depends
from sqlalchemy.orm import Session
from storefront.db.session import SessionLocal
from storefront.services.payments import PaymentGateway, get_gateway
from storefront.services.orders import OrderPlacer, OrderCanceller

def get_db():
    db = SessionLocal()
    try: yield db
    finally: db.close()

def get_payment_gateway() -> PaymentGateway:
    return get_gateway()

def get_order_placer(db: Session = Depends(get_db), gateway: PaymentGateway = Depends(get_payment_gateway)) -> OrderPlacer:
    return OrderPlacer(db, gateway=gateway)

def get_order_canceller(db: Session = Depends(get_db)) -> OrderCanceller:
    return OrderCanceller(db)
