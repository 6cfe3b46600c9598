import threading, json, logging
from kafka import KafkaConsumer
from sqlalchemy.orm import Session
from storefront.core.config import settings
from storefront.db.session import SessionLocal
from storefront.db.models import Order, OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

_stop_event = threading.Event()
_thread = None

def process_event(ev: dict, db: Session):
    """Apply a payment callback event to the order it references."""
    kind = ev.get("type")
    if kind not in ("payment.succeeded", "payment.refunded"):
        logger.debug("ignoring event %s", kind)
        return
    order_id = ev.get("order_id")
    order = db.get(Order, order_id) if order_id is not None else None
    if not order:
        logger.warning("%s for unknown order %s", kind, ev.get("order_id"))
        return
    if kind == "payment.succeeded":
        order.payment_status = PaymentStatus.PAID.value
        if order.status == OrderStatus.PENDING.value:
            order.status = OrderStatus.PROCESSING.value
        if ev.get("payment_reference"):
            order.payment_reference = ev["payment_reference"]
    else:
        order.payment_status = PaymentStatus.REFUNDED.value
    db.add(order); db.commit()
    logger.info("order %s payment_status=%s status=%s", order.order_number, order.payment_status, order.status)

def run_loop():
    consumer = KafkaConsumer(
        "payment.events",
        bootstrap_servers=[settings.KAFKA_BOOTSTRAP],
        group_id="storefront",
        value_deserializer=lambda v: json.loads(v.decode("utf-8")),
        enable_auto_commit=True,
        auto_offset_reset="earliest",
    )
    db = SessionLocal()
    try:
        for msg in consumer:
            if _stop_event.is_set(): break
            try:
                process_event(msg.value, db)
            except Exception:
                db.rollback()
                logger.exception("failed to process payment event at offset %s", msg.offset)
    finally:
        db.close()
        consumer.close()

def start():
    global _thread
    if not settings.KAFKA_ENABLED: return
    if _thread and _thread.is_alive(): return
    _stop_event.clear()
    _thread = threading.Thread(target=run_loop, daemon=True)
    _thread.start()

def stop():
    _stop_event.set()
