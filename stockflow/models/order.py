"""
Order Models
"""
from sqlalchemy import Column, String, Numeric, Integer, Boolean, Date, ForeignKey, Text, Index, Uuid
from sqlalchemy.orm import relationship
import enum

from stockflow.core import Base
from .base import UUIDMixin, TimestampMixin


class OrderType(str, enum.Enum):
    SALE = "sale"
    PURCHASE = "purchase"
    SALE_RETURN = "sale_return"
    PURCHASE_RETURN = "purchase_return"
    STOCK_TRANSFER = "stock_transfer"
    PROFORMA = "proforma"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    ORDERED = "ordered"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    RECEIVED = "received"
    COMPLETED = "completed"
    RETURNED = "returned"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    NOT_APPLICABLE = "n/a"  # Stock transfers


# Order types that require a customer/supplier
COUNTERPARTY_REQUIRED = {
    OrderType.SALE,
    OrderType.PURCHASE,
    OrderType.SALE_RETURN,
    OrderType.PURCHASE_RETURN,
}


class OrderHeader(Base, UUIDMixin, TimestampMixin):
    """Order Header"""
    __tablename__ = "order_header"

    # Company & Warehouses
    company_id = Column(Uuid(as_uuid=True), ForeignKey("company.id"), nullable=False, index=True)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouse.id"), nullable=False, index=True)  # Destination for transfers
    from_warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouse.id"), index=True)  # Source, transfers only

    # Customer / Supplier
    counterparty_id = Column(Uuid(as_uuid=True), ForeignKey("counterparty.id"), index=True)

    # Type & numbering
    order_type = Column(String(20), nullable=False, index=True)
    invoice_number = Column(String(50), nullable=False)
    invoice_type = Column(String(20), default="standard")
    order_date = Column(Date, nullable=False)

    # Amounts
    tax_rate = Column(Numeric(6, 3), default=0)
    tax_amount = Column(Numeric(12, 2), default=0)
    discount = Column(Numeric(12, 2), default=0)
    shipping = Column(Numeric(12, 2), default=0)
    subtotal = Column(Numeric(12, 2), default=0)
    total = Column(Numeric(12, 2), default=0)

    # Payment (derived from order_payment)
    paid_amount = Column(Numeric(12, 2), default=0)
    due_amount = Column(Numeric(12, 2), default=0)
    payment_status = Column(String(20), default=PaymentStatus.UNPAID.value, index=True)

    # Status
    order_status = Column(String(20), default=OrderStatus.PENDING.value, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    is_deletable = Column(Boolean, default=True, nullable=False)

    # Counters
    total_items = Column(Integer, default=0)
    total_quantity = Column(Integer, default=0)

    notes = Column(Text)
    terms_condition = Column(Text)

    # Links: returns / conversions
    original_order_id = Column(Uuid(as_uuid=True), ForeignKey("order_header.id"))
    is_converted = Column(Boolean, default=False, nullable=False)
    converted_sale_id = Column(Uuid(as_uuid=True), ForeignKey("order_header.id"))

    # User references
    created_by = Column(Uuid(as_uuid=True))

    # Relationships
    company = relationship("Company", back_populates="orders")
    warehouse = relationship("Warehouse", foreign_keys=[warehouse_id])
    from_warehouse = relationship("Warehouse", foreign_keys=[from_warehouse_id])
    counterparty = relationship("Counterparty", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.line_no"
    )
    payments = relationship("OrderPayment", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_order_invoice_number", invoice_number, unique=True),
    )

class OrderItem(Base, UUIDMixin):
    """Order Item/Line"""
    __tablename__ = "order_item"

    order_id = Column(Uuid(as_uuid=True), ForeignKey("order_header.id"), nullable=False, index=True)
    line_no = Column(Integer, default=1, nullable=False)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False, index=True)
    unit_id = Column(Uuid(as_uuid=True))

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), default=0)
    single_unit_price = Column(Numeric(12, 2), default=0)

    # Tax
    tax_rate = Column(Numeric(6, 3), default=0)
    tax_type = Column(String(20))  # inclusive, exclusive
    total_tax = Column(Numeric(12, 2), default=0)

    # Discount
    discount_rate = Column(Numeric(6, 3), default=0)
    total_discount = Column(Numeric(12, 2), default=0)

    # Line total
    subtotal = Column(Numeric(12, 2), default=0)

    # Return lines point at the line they return
    original_order_item_id = Column(Uuid(as_uuid=True))

    # Relationships
    order = relationship("OrderHeader", back_populates="items")
    product = relationship("Product")
