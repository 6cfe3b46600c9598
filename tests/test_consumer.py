from storefront.db import models
from storefront.kafka.consumer import process_event


def make_order(db, user, status="pending", payment_status="pending"):
    order = models.Order(user_id=user.id, order_number="ORD-1-ABCDEFGHI", subtotal_cents=1000, shipping_cents=499,
                         tax_cents=80, total_cents=1579, status=status, payment_status=payment_status,
                         payment_method="cash_on_delivery", shipping_address={"city": "London"})
    db.add(order); db.commit(); db.refresh(order)
    return order


def test_payment_succeeded_marks_order_paid(db, user):
    order = make_order(db, user)
    process_event({"type": "payment.succeeded", "order_id": order.id, "payment_reference": "pay_1"}, db)
    db.refresh(order)
    assert (order.status, order.payment_status, order.payment_reference) == ("processing", "paid", "pay_1")


def test_payment_succeeded_keeps_later_status(db, user):
    order = make_order(db, user, status="shipped")
    process_event({"type": "payment.succeeded", "order_id": order.id}, db)
    db.refresh(order)
    assert (order.status, order.payment_status) == ("shipped", "paid")


def test_payment_refunded(db, user):
    order = make_order(db, user, status="cancelled", payment_status="refund_pending")
    process_event({"type": "payment.refunded", "order_id": order.id}, db)
    db.refresh(order)
    assert order.payment_status == "refunded"
    assert order.total_cents == 1579


def test_unknown_order_and_event_are_ignored(db, user):
    order = make_order(db, user)
    process_event({"type": "payment.succeeded", "order_id": 424242}, db)
    process_event({"type": "something.else", "order_id": order.id}, db)
    db.refresh(order)
    assert order.payment_status == "pending"
