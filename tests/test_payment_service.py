from decimal import Decimal
from uuid import uuid4

from stockflow.core.errors import ConflictError, NotFoundError
from stockflow.models import OrderHeader, OrderPayment, Payment
from stockflow.schemas.order import OrderCreate, OrderPaymentCreate, OrderUpdate
from stockflow.services import OrderService, PaymentService


def _create(db, order_payload, **overrides):
    return OrderService.create_order(db, OrderCreate(**order_payload("sale", **overrides))).unwrap()


# ---- Delete ----

def test_delete_payment_recomputes_order(db, order_payload):
    order = _create(db, order_payload, payments=[{"amount": "50.00"}])
    assert order.payment_status == "paid"
    payment_id = order.payments[0].payment_id

    affected = PaymentService.delete_payment(db, payment_id).unwrap()

    assert affected == [order.id]
    refreshed = db.get(OrderHeader, order.id)
    assert refreshed.paid_amount == 0
    assert refreshed.due_amount == Decimal("50.00")
    assert refreshed.payment_status == "unpaid"
    assert refreshed.is_deletable is True
    assert db.query(Payment).count() == 0
    assert db.query(OrderPayment).count() == 0

    # No longer paid, so it can go
    assert OrderService.delete_order(db, order.id).ok


def test_delete_shared_payment_recomputes_every_order(db, order_payload):
    first = _create(db, order_payload, payments=[{"amount": "30.00"}])
    payment_id = first.payments[0].payment_id
    second = _create(db, order_payload, payments=[{"payment_id": str(payment_id), "amount": "20.00"}])

    affected = PaymentService.delete_payment(db, payment_id).unwrap()

    assert set(affected) == {first.id, second.id}
    for order_id in (first.id, second.id):
        order = db.get(OrderHeader, order_id)
        assert (order.paid_amount, order.payment_status) == (0, "unpaid")


def test_delete_missing_payment(db):
    result = PaymentService.delete_payment(db, uuid4())

    assert isinstance(result.error, NotFoundError)


# ---- Idempotency ----

def test_replayed_payment_is_applied_once(db, order_payload):
    order = _create(db, order_payload)
    payment = OrderPaymentCreate(amount=Decimal("20"), idempotency_key="till-7-0001")

    OrderService.add_payment(db, order.id, payment).unwrap()
    replayed = OrderService.add_payment(db, order.id, payment).unwrap()

    assert replayed.paid_amount == Decimal("20.00")
    assert replayed.payment_status == "partial"
    assert db.query(Payment).count() == 1
    assert db.query(OrderPayment).count() == 1
    assert db.query(Payment).one().idempotency_key == "till-7-0001"


def test_idempotency_key_of_another_order_is_a_conflict(db, order_payload):
    first = _create(db, order_payload)
    second = _create(db, order_payload)
    payment = OrderPaymentCreate(amount=Decimal("20"), idempotency_key="till-7-0002")
    OrderService.add_payment(db, first.id, payment).unwrap()

    result = OrderService.add_payment(db, second.id, payment)

    assert isinstance(result.error, ConflictError)
    assert db.get(OrderHeader, second.id).paid_amount == 0


def test_full_update_can_resend_the_same_keyed_payment(db, seed, order_payload):
    order = _create(db, order_payload, payments=[{"amount": "20", "idempotency_key": "till-7-0003"}])

    update = OrderUpdate(
        items=[{"product_id": seed.product_1, "quantity": 5, "unit_price": "10"}],
        payments=[{"amount": "20", "idempotency_key": "till-7-0003"}]
    )
    updated = OrderService.update_order(db, order.id, update).unwrap()

    assert updated.paid_amount == Decimal("20.00")
    assert db.query(Payment).count() == 1


# ---- Replaced payments ----

def test_full_update_removes_replaced_payments(db, seed, order_payload):
    order = _create(db, order_payload, payments=[{"amount": "50.00"}])
    old_payment_id = order.payments[0].payment_id

    update = OrderUpdate(
        items=[{"product_id": seed.product_1, "quantity": 5, "unit_price": "10"}],
        payments=[{"amount": "10.00"}]
    )
    OrderService.update_order(db, order.id, update).unwrap()

    assert db.query(Payment).count() == 1
    assert db.get(Payment, old_payment_id) is None


def test_full_update_keeps_payments_used_elsewhere(db, seed, order_payload):
    first = _create(db, order_payload, payments=[{"amount": "30.00"}])
    payment_id = first.payments[0].payment_id
    second = _create(db, order_payload, payments=[{"payment_id": str(payment_id), "amount": "20.00"}])

    update = OrderUpdate(items=[{"product_id": seed.product_1, "quantity": 5, "unit_price": "10"}])
    updated = OrderService.update_order(db, second.id, update).unwrap()

    assert updated.paid_amount == 0
    assert db.get(Payment, payment_id) is not None
    assert db.get(OrderHeader, first.id).paid_amount == Decimal("30.00")


def test_full_update_relinking_a_payment_keeps_it(db, seed, order_payload):
    order = _create(db, order_payload, payments=[{"amount": "50.00"}])
    payment_id = order.payments[0].payment_id

    update = OrderUpdate(
        items=[{"product_id": seed.product_1, "quantity": 5, "unit_price": "10"}],
        payments=[{"payment_id": payment_id, "amount": "25.00"}]
    )
    updated = OrderService.update_order(db, order.id, update).unwrap()

    assert updated.paid_amount == Decimal("25.00")
    assert db.query(Payment).count() == 1
    assert db.get(Payment, payment_id) is not None
