"""
Payment Models
"""
from sqlalchemy import Column, String, Numeric, Date, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship
import enum

from stockflow.core import Base
from .base import UUIDMixin, TimestampMixin


class PaymentDirection(str, enum.Enum):
    IN = "in"    # Received from customer
    OUT = "out"  # Paid to supplier


class Payment(Base, UUIDMixin, TimestampMixin):
    """Payment"""
    __tablename__ = "payment"

    company_id = Column(Uuid(as_uuid=True), ForeignKey("company.id"), nullable=False)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouse.id"))
    counterparty_id = Column(Uuid(as_uuid=True), ForeignKey("counterparty.id"))

    direction = Column(String(10), default=PaymentDirection.IN.value, nullable=False)
    payment_date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(String(50))  # CASH, TRANSFER, CARD, CHEQUE
    idempotency_key = Column(String(255), unique=True, index=True)  # Client retry key (X-Idempotency-Key)

    notes = Column(Text)
    created_by = Column(Uuid(as_uuid=True))

    # Relationships
    allocations = relationship("OrderPayment", back_populates="payment")

class OrderPayment(Base, UUIDMixin):
    """Part of a payment applied to an order"""
    __tablename__ = "order_payment"

    company_id = Column(Uuid(as_uuid=True), ForeignKey("company.id"))
    payment_id = Column(Uuid(as_uuid=True), ForeignKey("payment.id"), nullable=False, index=True)
    order_id = Column(Uuid(as_uuid=True), ForeignKey("order_header.id"), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date)
    remarks = Column(Text)

    # Relationships
    payment = relationship("Payment", back_populates="allocations")
    order = relationship("OrderHeader", back_populates="payments")
