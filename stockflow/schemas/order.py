"""
Order Schemas
"""
from pydantic import BaseModel
from typing import Optional, List
from datetime import date
from uuid import UUID
from decimal import Decimal

from stockflow.models import OrderType, OrderStatus


class OrderItemCreate(BaseModel):
    # product/quantity are checked by the service so every rule reports the same way
    product_id: Optional[UUID] = None
    unit_id: Optional[UUID] = None
    quantity: Optional[int] = None
    unit_price: Decimal = Decimal("0")
    single_unit_price: Optional[Decimal] = None
    tax_rate: Decimal = Decimal("0")
    tax_type: Optional[str] = None
    total_tax: Decimal = Decimal("0")
    discount_rate: Decimal = Decimal("0")
    total_discount: Decimal = Decimal("0")
    subtotal: Optional[Decimal] = None
    original_order_item_id: Optional[UUID] = None

class OrderPaymentCreate(BaseModel):
    payment_id: Optional[UUID] = None  # Link an existing payment instead of creating one
    amount: Decimal
    payment_date: Optional[date] = None
    payment_mode: Optional[str] = None
    remarks: Optional[str] = None
    idempotency_key: Optional[str] = None

class OrderCreate(BaseModel):
    company_id: UUID
    warehouse_id: Optional[UUID] = None
    from_warehouse_id: Optional[UUID] = None
    counterparty_id: Optional[UUID] = None

    order_type: OrderType
    order_date: Optional[date] = None
    invoice_type: str = "standard"

    tax_rate: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    subtotal: Optional[Decimal] = None
    total: Optional[Decimal] = None

    order_status: Optional[OrderStatus] = None
    notes: Optional[str] = None
    terms_condition: Optional[str] = None
    is_deletable: bool = True
    original_order_id: Optional[UUID] = None

    items: List[OrderItemCreate] = []
    payments: List[OrderPaymentCreate] = []

class OrderUpdate(BaseModel):
    """Full update, or one of the two narrow modes selected by the flags"""
    is_payment_only: bool = False
    is_payment_status_only: bool = False

    warehouse_id: Optional[UUID] = None
    from_warehouse_id: Optional[UUID] = None
    counterparty_id: Optional[UUID] = None

    order_type: Optional[OrderType] = None
    order_date: Optional[date] = None
    invoice_type: Optional[str] = None

    tax_rate: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    shipping: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    total: Optional[Decimal] = None

    order_status: Optional[OrderStatus] = None
    notes: Optional[str] = None
    terms_condition: Optional[str] = None

    items: Optional[List[OrderItemCreate]] = None
    payments: List[OrderPaymentCreate] = []
