"""Checkout and cancellation workflows.

``OrderPlacer`` turns a user's cart into an order. Validation, the stock
re-check and card authorization run first; the order row, its lines, the
payment record and the stock decrements are then written in a single
transaction. Each decrement is a conditional ``UPDATE ... WHERE stock >= qty``
so two checkouts racing for the last units cannot both succeed: the loser's
transaction is rolled back and it gets ``InsufficientStockError``.

``OrderCanceller`` reverses a ``processing`` or ``shipped`` order: stock is
put back and the order is marked ``cancelled`` in one transaction.
"""
import logging, secrets, string, time
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Tuple
from kafka.errors import KafkaError
from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from storefront.core.auth import Identity
from storefront.core.config import settings
from storefront.core.errors import (
    EmptyCartError, InsufficientStockError, InvalidOrderStateError, NotFoundError,
    PaymentDeclinedError, PersistenceError, ValidationError,
)
from storefront.db import models
from storefront.db.models import (
    CANCELLABLE_STATUSES, OrderStatus, PaymentMethod, PaymentStatus, ProductStatus, utcnow,
)
from storefront.kafka import producer
from storefront.schemas import CardIn, ShippingAddress
from storefront.services import cart as cart_service
from storefront.services import pricing
from storefront.services.payments import CardDetails, PaymentGateway, get_gateway, validate_card

logger = logging.getLogger(__name__)

ORDER_EVENTS_TOPIC = "order.events"
REQUIRED_SHIPPING_FIELDS = ("full_name", "email", "address", "city", "state", "zip_code")
_ALPHABET = string.digits + string.ascii_uppercase

def generate_order_number(now: Optional[float] = None) -> str:
    millis = int((time.time() if now is None else now) * 1000)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"ORD-{millis}-{suffix}"

def validate_shipping(shipping: ShippingAddress) -> dict:
    missing = [f for f in REQUIRED_SHIPPING_FIELDS if not (getattr(shipping, f) or "").strip()]
    if missing:
        raise ValidationError("Please fill in all required shipping information: " + ", ".join(missing))
    return {k: (v or "").strip() for k, v in shipping.model_dump().items()}

def _is_order_number_clash(exc: IntegrityError) -> bool:
    return "order_number" in str(exc.orig)


class _Wanted:
    """Quantity requested for one product, summed over every size in the cart."""
    __slots__ = ("product_id", "name", "available", "quantity")

    def __init__(self, product_id: int, product: Optional[models.Product]):
        self.product_id = product_id
        self.name = product.name if product else f"product {product_id}"
        if product is None or product.status != ProductStatus.ACTIVE.value:
            self.available = 0
        else:
            self.available = product.stock
        self.quantity = 0


def _snapshot(line: dict, p: models.Product) -> dict:
    return {
        "product_id": p.id,
        "size": line["size"],
        "quantity": line["qty"],
        "unit_price_cents": p.price_cents,
        "product_name": p.name,
        "brand": p.brand or "",
        "category": p.category or "",
        "image_url": p.image_url or "",
    }


class OrderPlacer:
    def __init__(self, db: Session, gateway: Optional[PaymentGateway] = None,
                 publish: Optional[Callable[[str, str, dict], None]] = None):
        self.db = db
        self.gateway = gateway or get_gateway()
        self.publish = publish or producer.send

    def place_order(self, identity: Identity, shipping: ShippingAddress, payment_method: str,
                    shipping_option: str = "standard", card: Optional[CardIn] = None) -> models.Order:
        # validating
        address = validate_shipping(shipping)
        shipping_label, shipping_cents = pricing.shipping_option(shipping_option)
        if payment_method not in (PaymentMethod.CARD.value, PaymentMethod.CASH_ON_DELIVERY.value):
            raise ValidationError(f"Unsupported payment method: {payment_method}")

        lines = cart_service.load_lines(self.db, identity.user_id)
        if not lines:
            raise EmptyCartError()
        wanted = self._check_stock(lines)
        items = [_snapshot(line, p) for line, p in lines]
        totals = pricing.order_totals(((it["unit_price_cents"], it["quantity"]) for it in items), shipping_cents)

        # payment
        payment_ref = None
        if payment_method == PaymentMethod.CARD.value:
            payment_ref = self._authorize(card, totals.total_cents)

        # persisting
        order = None
        for attempt in range(1, settings.ORDER_NUMBER_ATTEMPTS + 1):
            try:
                order = self._persist(identity, items, wanted, totals, address, shipping_label,
                                      payment_method, payment_ref)
                break
            except IntegrityError as exc:
                self.db.rollback()
                if not _is_order_number_clash(exc):
                    self._orphaned_payment(payment_ref)
                    raise PersistenceError() from exc
                logger.warning("order number clash on attempt %s, retrying", attempt)
            except InsufficientStockError:
                self.db.rollback()
                self._orphaned_payment(payment_ref)
                raise
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.exception("failed to persist order for user %s", identity.user_id)
                self._orphaned_payment(payment_ref)
                raise PersistenceError() from exc
        if order is None:
            self._orphaned_payment(payment_ref)
            raise PersistenceError("Could not allocate an order number, please try again")

        # clearing cart
        try:
            cart_service.clear(identity.user_id)
        except PersistenceError:
            logger.warning("order %s placed but cart of user %s was not cleared", order.order_number, identity.user_id)

        logger.info("placed order %s for user %s total=%s status=%s",
                    order.order_number, identity.user_id, order.total_cents, order.status)
        self._emit(order)
        return order

    def _check_stock(self, lines) -> Dict[int, _Wanted]:
        wanted: Dict[int, _Wanted] = OrderedDict()
        for line, product in lines:
            w = wanted.setdefault(line["product_id"], _Wanted(line["product_id"], product))
            w.quantity += line["qty"]
        for w in wanted.values():
            if w.quantity > w.available:
                logger.info("stock check failed for product %s: wanted %s, have %s", w.product_id, w.quantity, w.available)
                raise InsufficientStockError(w.product_id, w.name, w.quantity, w.available)
        return wanted

    def _authorize(self, card: Optional[CardIn], amount_cents: int) -> str:
        if card is None:
            raise ValidationError("Please fill in all card details")
        details = validate_card(CardDetails(number=card.number, expiry=card.expiry, cvc=card.cvc,
                                            holder_name=card.holder_name))
        result = self.gateway.authorize(details, amount_cents, settings.CURRENCY)
        if not result.success:
            logger.info("payment declined: %s", result.reason)
            raise PaymentDeclinedError(result.reason or "card_declined", result.requires_action)
        return result.reference

    def _persist(self, identity: Identity, items: List[dict], wanted: Dict[int, _Wanted], totals: pricing.Totals,
                 address: dict, shipping_label: str, payment_method: str,
                 payment_ref: Optional[str]) -> models.Order:
        paid = payment_method == PaymentMethod.CARD.value
        order = models.Order(
            user_id=identity.user_id,
            order_number=generate_order_number(),
            subtotal_cents=totals.subtotal_cents,
            shipping_cents=totals.shipping_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            currency=settings.CURRENCY,
            status=OrderStatus.PROCESSING.value if paid else OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PAID.value if paid else PaymentStatus.PENDING.value,
            payment_method=payment_method,
            shipping_method=shipping_label,
            shipping_address=address,
            payment_reference=payment_ref,
        )
        self.db.add(order)
        self.db.flush()
        for it in items:
            self.db.add(models.OrderItem(
                order_id=order.id,
                line_total_cents=it["unit_price_cents"] * it["quantity"],
                **it,
            ))
        if payment_ref:
            self.db.add(models.Payment(order_id=order.id, provider=self.gateway.name, reference=payment_ref,
                                       amount_cents=totals.total_cents, currency=settings.CURRENCY))
        for w in wanted.values():
            res = self.db.execute(
                update(models.Product)
                .where(models.Product.id == w.product_id, models.Product.stock >= w.quantity)
                .values(stock=models.Product.stock - w.quantity, updated_at=utcnow())
            )
            if res.rowcount != 1:
                current = self.db.execute(
                    select(models.Product.stock).where(models.Product.id == w.product_id)
                ).scalar_one_or_none()
                raise InsufficientStockError(w.product_id, w.name, w.quantity, current or 0)
        self.db.commit()
        self.db.refresh(order)
        return order

    def _orphaned_payment(self, payment_ref: Optional[str]):
        if payment_ref:
            logger.error("payment %s was authorized but no order was created; void it manually", payment_ref)

    def _emit(self, order: models.Order):
        try:
            self.publish(ORDER_EVENTS_TOPIC, order.order_number, {
                "type": "order.created",
                "order_id": order.id,
                "order_number": order.order_number,
                "user_id": order.user_id,
                "amount_cents": order.total_cents,
                "payment_method": order.payment_method,
                "items": [{"product_id": it.product_id, "qty": it.quantity, "unit_price_cents": it.unit_price_cents}
                          for it in order.items],
            })
        except KafkaError:
            logger.exception("failed to publish order.created for %s", order.order_number)


class OrderCanceller:
    def __init__(self, db: Session, publish: Optional[Callable[[str, str, dict], None]] = None):
        self.db = db
        self.publish = publish or producer.send

    def cancel(self, identity: Identity, order_id: int) -> models.Order:
        order = get_order(self.db, identity, order_id)
        if order.status not in CANCELLABLE_STATUSES:
            raise InvalidOrderStateError(f"Order in status '{order.status}' cannot be cancelled")
        try:
            res = self.db.execute(
                update(models.Order)
                .where(models.Order.id == order.id, models.Order.status.in_(CANCELLABLE_STATUSES))
                .values(
                    status=OrderStatus.CANCELLED.value,
                    payment_status=case(
                        (models.Order.payment_status == PaymentStatus.PAID.value, PaymentStatus.REFUND_PENDING.value),
                        else_=models.Order.payment_status,
                    ),
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                # someone else moved the order first
                self.db.rollback()
                raise InvalidOrderStateError("Order can no longer be cancelled")
            for it in order.items:
                if it.product_id is None:
                    continue
                self.db.execute(
                    update(models.Product)
                    .where(models.Product.id == it.product_id)
                    .values(stock=models.Product.stock + it.quantity, updated_at=utcnow())
                )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("failed to cancel order %s", order_id)
            raise PersistenceError() from exc
        self.db.refresh(order)
        logger.info("cancelled order %s (payment_status=%s)", order.order_number, order.payment_status)
        try:
            self.publish(ORDER_EVENTS_TOPIC, order.order_number, {
                "type": "order.cancelled",
                "order_id": order.id,
                "order_number": order.order_number,
                "payment_status": order.payment_status,
            })
        except KafkaError:
            logger.exception("failed to publish order.cancelled for %s", order.order_number)
        return order


# --- queries and back office ---

def _with_items(stmt):
    return stmt.options(selectinload(models.Order.items))

def list_user_orders(db: Session, user_id: int) -> List[models.Order]:
    stmt = _with_items(select(models.Order).where(models.Order.user_id == user_id))
    return list(db.execute(stmt.order_by(models.Order.created_at.desc(), models.Order.id.desc())).scalars())

def get_order(db: Session, identity: Identity, order_id: int) -> models.Order:
    order = db.get(models.Order, order_id)
    if not order or (order.user_id != identity.user_id and not identity.is_admin):
        raise NotFoundError("Order not found")
    return order

def list_orders(db: Session, status: Optional[str] = None, search: Optional[str] = None) -> List[models.Order]:
    stmt = _with_items(select(models.Order).join(models.User, models.Order.user_id == models.User.id))
    if status and status != "all":
        stmt = stmt.where(models.Order.status == status)
    if search:
        like = f"%{search.lower()}%"
        stmt = stmt.where(or_(
            func.lower(models.Order.order_number).like(like),
            func.lower(models.User.full_name).like(like),
            func.lower(models.User.email).like(like),
        ))
    return list(db.execute(stmt.order_by(models.Order.created_at.desc(), models.Order.id.desc())).scalars())

def _admin_get(db: Session, order_id: int) -> models.Order:
    order = db.get(models.Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order

def set_status(db: Session, order_id: int, status: str) -> models.Order:
    """Admin override; no stock side effects."""
    order = _admin_get(db, order_id)
    order.status = status
    db.add(order); db.commit(); db.refresh(order)
    logger.info("order %s status set to %s", order.order_number, status)
    return order

def set_payment_status(db: Session, order_id: int, payment_status: str) -> models.Order:
    order = _admin_get(db, order_id)
    order.payment_status = payment_status
    db.add(order); db.commit(); db.refresh(order)
    logger.info("order %s payment_status set to %s", order.order_number, payment_status)
    return order

def purge_order(db: Session, order_id: int):
    order = _admin_get(db, order_id)
    db.delete(order); db.commit()
    logger.info("purged order %s", order.order_number)

def stats(db: Session) -> Tuple[int, int, int, Dict[str, int]]:
    total = db.execute(select(func.count()).select_from(models.Order)).scalar_one()
    processing = db.execute(
        select(func.count()).select_from(models.Order).where(models.Order.status == OrderStatus.PROCESSING.value)
    ).scalar_one()
    revenue = db.execute(
        select(func.coalesce(func.sum(models.Order.total_cents), 0))
        .where(models.Order.status != OrderStatus.CANCELLED.value)
    ).scalar_one()
    by_status = dict(db.execute(
        select(models.Product.status, func.count()).group_by(models.Product.status)
    ).all())
    return total, processing, int(revenue), by_status
