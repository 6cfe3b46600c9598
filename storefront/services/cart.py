import logging, time
from contextlib import contextmanager
from typing import List, Tuple, Optional, Dict, Any
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.orm import Session
from storefront.db import models
from storefront.db.models import ProductStatus
from storefront.core.errors import NotFoundError, PersistenceError
from storefront.schemas import CartRead, CartLineRead
from storefront.store import cart_store

logger = logging.getLogger(__name__)

@contextmanager
def redis_errors():
    try:
        yield
    except RedisError as exc:
        logger.error("cart store failure: %s", exc)
        raise PersistenceError("Cart is temporarily unavailable, please try again") from exc

def load_lines(db: Session, user_id: int) -> List[Tuple[Dict[str, Any], Optional[models.Product]]]:
    """Cart lines paired with their live product row (None when the product is gone)."""
    with redis_errors():
        lines = cart_store.get_lines(user_id)
    ids = {it["product_id"] for it in lines}
    products = {}
    if ids:
        products = {p.id: p for p in db.execute(select(models.Product).where(models.Product.id.in_(ids))).scalars()}
    return [(it, products.get(it["product_id"])) for it in lines]

def _line_view(line: Dict[str, Any], product: Optional[models.Product]) -> CartLineRead:
    if product is None or product.status == ProductStatus.DELETED.value:
        # keep the line visible so the customer can see it is no longer orderable
        return CartLineRead(
            id=line["id"], product_id=line["product_id"], size=line["size"], quantity=line["qty"],
            name=product.name if product else "Unknown Product",
            category=product.category if product else "General",
            brand=product.brand if product else "Generic",
            price_cents=product.price_cents if product else 0,
            stock=0, status=ProductStatus.DELETED.value, image_url=product.image_url if product else "",
            in_stock=False, line_total_cents=0,
        )
    return CartLineRead(
        id=line["id"], product_id=product.id, size=line["size"], quantity=line["qty"],
        name=product.name, category=product.category, brand=product.brand,
        price_cents=product.price_cents, stock=product.stock, status=product.status,
        image_url=product.image_url or "", in_stock=product.available_for_purchase,
        sizes=product.sizes or [], available_sizes=product.available_sizes or [],
        line_total_cents=product.price_cents * line["qty"],
    )

def get_cart(db: Session, user_id: int, warning: Optional[str] = None) -> CartRead:
    items = [_line_view(line, product) for line, product in load_lines(db, user_id)]
    return CartRead(items=items, subtotal_cents=sum(i.line_total_cents for i in items), warning=warning)

def add_item(db: Session, user_id: int, product_id: int, size: str, quantity: int) -> CartRead:
    product = db.get(models.Product, product_id)
    if not product or product.status == ProductStatus.DELETED.value:
        raise NotFoundError("Product not found")
    with redis_errors():
        line = cart_store.merge_line(user_id, product_id, size, quantity, created=time.time())
    warning = None
    if line["qty"] > product.stock:
        # stock is enforced at checkout, not here
        warning = f"Only {product.stock} of {product.name} in stock"
        logger.info("user %s cart line %s qty %s exceeds stock %s", user_id, line["id"], line["qty"], product.stock)
    return get_cart(db, user_id, warning=warning)

def _owned_line(user_id: int, line_id: str) -> Dict[str, Any]:
    line = cart_store.get_line(line_id)
    if not line or line["user_id"] != user_id:
        raise NotFoundError("Cart item not found")
    return line

def set_quantity(db: Session, user_id: int, line_id: str, quantity: int) -> CartRead:
    with redis_errors():
        line = _owned_line(user_id, line_id)
        if quantity < 1:
            cart_store.delete_line(user_id, line_id)
        else:
            line["qty"] = quantity
            cart_store.put_line(line)
    return get_cart(db, user_id)

def remove_item(user_id: int, line_id: str):
    with redis_errors():
        removed = cart_store.delete_line(user_id, line_id)
    if not removed:
        raise NotFoundError("Cart item not found")

def clear(user_id: int):
    with redis_errors():
        cart_store.clear_cart(user_id)
