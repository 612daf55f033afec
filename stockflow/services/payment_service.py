"""
Payment Service - payment ledger and derived order payment fields
"""
import logging
from datetime import date
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Iterable, List, Optional, Union
from uuid import UUID

from stockflow.core.config import settings
from stockflow.core.errors import ValidationError, NotFoundError, ConflictError
from stockflow.core.transaction import OperationResult, run_in_transaction
from stockflow.models import (
    OrderHeader, OrderPayment, Payment, PaymentDirection, PaymentStatus, OrderType
)
from stockflow.schemas.order import OrderPaymentCreate

logger = logging.getLogger(__name__)

Number = Union[Decimal, float, int]

# Money leaving the company
OUTGOING_TYPES = {OrderType.PURCHASE.value, OrderType.SALE_RETURN.value}


def _decimal(value: Optional[Number]) -> Decimal:
    return Decimal(str(value or 0))


def determine_payment_status(paid: Number, total: Number, tolerance: Optional[Number] = None) -> PaymentStatus:
    """
    unpaid / partial / paid for an amount paid against a total.

    Non-positive totals are paid only on an exact match.
    """
    paid = _decimal(paid)
    total = _decimal(total)
    tolerance = _decimal(settings.PAYMENT_TOLERANCE if tolerance is None else tolerance)

    if total <= 0:
        return PaymentStatus.PAID if paid == total else PaymentStatus.UNPAID
    if paid < tolerance:
        return PaymentStatus.UNPAID
    if paid >= total - tolerance:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


class PaymentService:

    @staticmethod
    def attach_payments(
        db: Session,
        order: OrderHeader,
        payments: Iterable[OrderPaymentCreate],
        created_by: Optional[UUID] = None
    ) -> List[OrderPayment]:
        """Apply payments to an order, creating the payment entity unless an existing one is referenced"""
        allocations = []
        for payment_data in payments or []:
            amount = _decimal(payment_data.amount)
            if amount <= 0:
                raise ValidationError("Payment amount must be greater than 0")

            payment_date = payment_data.payment_date or date.today()

            payment = None
            if payment_data.payment_id:
                payment = db.query(Payment).filter(Payment.id == payment_data.payment_id).first()
                if not payment:
                    raise ValidationError(f"Payment {payment_data.payment_id} not found")
            elif payment_data.idempotency_key:
                payment = PaymentService._find_replayed_payment(db, order, payment_data.idempotency_key)
                if payment is not None and payment.id in {a.payment_id for a in order.payments}:
                    logger.info(
                        f"Payment with key {payment_data.idempotency_key} already applied "
                        f"to order {order.id}, skipping"
                    )
                    continue

            if payment is None:
                payment = Payment(
                    company_id=order.company_id,
                    warehouse_id=order.warehouse_id,
                    counterparty_id=order.counterparty_id,
                    direction=PaymentDirection.OUT.value
                    if order.order_type in OUTGOING_TYPES else PaymentDirection.IN.value,
                    payment_date=payment_date,
                    amount=amount,
                    payment_mode=payment_data.payment_mode,
                    notes=payment_data.remarks,
                    idempotency_key=payment_data.idempotency_key,
                    created_by=created_by
                )
                db.add(payment)
                db.flush()

            allocation = OrderPayment(
                company_id=order.company_id,
                payment_id=payment.id,
                amount=amount,
                payment_date=payment_date,
                remarks=payment_data.remarks
            )
            order.payments.append(allocation)
            allocations.append(allocation)

        db.flush()
        return allocations

    @staticmethod
    def _find_replayed_payment(db: Session, order: OrderHeader, idempotency_key: str) -> Optional[Payment]:
        """A payment already recorded under this key, unless it belongs to another order"""
        payment = db.query(Payment).filter(Payment.idempotency_key == idempotency_key).first()
        if payment is None:
            return None
        if any(allocation.order_id != order.id for allocation in payment.allocations):
            raise ConflictError(f"Idempotency key {idempotency_key} was used for another order")
        return payment

    @staticmethod
    def remove_unallocated_payments(db: Session, payment_ids: Iterable[UUID]) -> int:
        """Delete payments that no order allocation points at any more"""
        db.flush()
        removed = 0
        for payment_id in payment_ids:
            in_use = db.query(OrderPayment.id).filter(OrderPayment.payment_id == payment_id).first()
            if in_use:
                continue
            payment = db.query(Payment).filter(Payment.id == payment_id).first()
            if payment is not None:
                db.delete(payment)
                removed += 1
        db.flush()
        return removed

    @staticmethod
    def delete_payment(db: Session, payment_id: UUID) -> OperationResult:
        """Remove a payment and its allocations, then recompute every order it was applied to"""
        return run_in_transaction(db, PaymentService._delete_payment, payment_id)

    @staticmethod
    def _delete_payment(db: Session, payment_id: UUID) -> List[UUID]:
        payment = db.query(Payment).filter(Payment.id == payment_id).with_for_update().first()
        if not payment:
            raise NotFoundError("Payment not found")

        allocations = db.query(OrderPayment).filter(OrderPayment.payment_id == payment.id).all()
        order_ids: List[UUID] = []
        for allocation in allocations:
            if allocation.order_id not in order_ids:
                order_ids.append(allocation.order_id)
            db.delete(allocation)
        db.flush()

        db.delete(payment)
        db.flush()

        for order_id in order_ids:
            order = db.query(OrderHeader).filter(OrderHeader.id == order_id).first()
            if order is not None:
                PaymentService.refresh_order_totals(db, order)

        logger.info(f"Deleted payment {payment_id}, recomputed {len(order_ids)} order(s)")
        return order_ids

    @staticmethod
    def get_paid_amount(db: Session, order_id: UUID) -> Decimal:
        paid = db.query(func.coalesce(func.sum(OrderPayment.amount), 0)).filter(
            OrderPayment.order_id == order_id
        ).scalar()
        return _decimal(paid)

    @staticmethod
    def refresh_order_totals(db: Session, order: OrderHeader) -> OrderHeader:
        """Recompute paid, due, payment status and deletable from the payment ledger"""
        if order.order_type == OrderType.STOCK_TRANSFER.value:
            order.paid_amount = Decimal("0")
            order.due_amount = Decimal("0")
            order.payment_status = PaymentStatus.NOT_APPLICABLE.value
            return order

        db.flush()
        paid = PaymentService.get_paid_amount(db, order.id)
        total = _decimal(order.total)
        status = determine_payment_status(paid, total)

        order.paid_amount = paid
        order.due_amount = total - paid
        order.payment_status = status.value
        order.is_deletable = not (order.due_amount <= 0 and status == PaymentStatus.PAID)
        return order

    @staticmethod
    def get_order_payments(db: Session, order_id: UUID) -> List[OrderPayment]:
        return db.query(OrderPayment).filter(
            OrderPayment.order_id == order_id
        ).order_by(OrderPayment.payment_date, OrderPayment.id).all()
