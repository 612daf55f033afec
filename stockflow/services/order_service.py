"""
Order Service - Business Logic for Orders
"""
import logging
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import List, Optional, Tuple
from uuid import UUID
from datetime import date
from decimal import Decimal

from stockflow.core.errors import ValidationError, NotFoundError, StateError
from stockflow.core.transaction import OperationResult, run_in_transaction
from stockflow.models import (
    OrderHeader, OrderItem, OrderType, OrderStatus, Company, Warehouse, Product, Counterparty,
    ReferenceKind, COUNTERPARTY_REQUIRED
)
from stockflow.schemas.order import OrderCreate, OrderUpdate, OrderItemCreate, OrderPaymentCreate
from .invoice_service import InvoiceService
from .order_item_service import OrderItemService
from .payment_service import PaymentService

logger = logging.getLogger(__name__)


def default_order_status(order_type: OrderType) -> OrderStatus:
    return OrderStatus.DELIVERED if order_type == OrderType.SALE else OrderStatus.RECEIVED


class OrderService:
    """Order lifecycle: every write runs as one transaction"""

    # ---- Reads ----

    @staticmethod
    def get_orders(
        db: Session,
        warehouse_id: Optional[UUID] = None,
        transfer_direction: Optional[str] = None,
        order_type: Optional[OrderType] = None,
        invoice_number: Optional[str] = None,
        counterparty_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        order_status: Optional[str] = None,
        payment_status: Optional[str] = None,
        product_id: Optional[UUID] = None,
        include_deleted: bool = False,
        page: int = 1,
        per_page: int = 10
    ) -> Tuple[List[OrderHeader], int]:
        """Get orders with filters and pagination"""
        query = db.query(OrderHeader)

        if not include_deleted:
            query = query.filter(OrderHeader.is_deleted.is_(False))

        if order_type:
            query = query.filter(OrderHeader.order_type == OrderType(order_type).value)

        if warehouse_id:
            # Transfers can be listed from the sending or the receiving side
            if transfer_direction == "sent":
                query = query.filter(OrderHeader.from_warehouse_id == warehouse_id)
            elif transfer_direction == "received":
                query = query.filter(OrderHeader.warehouse_id == warehouse_id)
            else:
                query = query.filter(or_(
                    OrderHeader.warehouse_id == warehouse_id,
                    OrderHeader.from_warehouse_id == warehouse_id
                ))

        if invoice_number:
            query = query.filter(OrderHeader.invoice_number.ilike(f"%{invoice_number}%"))

        if counterparty_id:
            query = query.filter(OrderHeader.counterparty_id == counterparty_id)

        if date_from:
            query = query.filter(OrderHeader.order_date >= date_from)

        if date_to:
            query = query.filter(OrderHeader.order_date <= date_to)

        if order_status and order_status != "all":
            query = query.filter(OrderHeader.order_status == order_status)

        if payment_status and payment_status != "all":
            query = query.filter(OrderHeader.payment_status == payment_status)

        if product_id:
            query = query.filter(OrderHeader.items.any(OrderItem.product_id == product_id))

        total = query.count()

        orders = query.order_by(OrderHeader.order_date.desc(), OrderHeader.created_at.desc())\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()

        return orders, total

    @staticmethod
    def get_order_by_id(db: Session, order_id: UUID) -> Optional[OrderHeader]:
        """Get order by ID"""
        return db.query(OrderHeader).filter(OrderHeader.id == order_id).first()

    @staticmethod
    def _get_for_update(db: Session, order_id: UUID) -> OrderHeader:
        order = db.query(OrderHeader).filter(OrderHeader.id == order_id).with_for_update().first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    # ---- Validation ----

    @staticmethod
    def _validate_payload(
        order_type: OrderType,
        warehouse_id: Optional[UUID],
        from_warehouse_id: Optional[UUID],
        counterparty_id: Optional[UUID],
        items: List[OrderItemCreate],
        payments: Optional[List[OrderPaymentCreate]] = None
    ) -> None:
        if not warehouse_id:
            raise ValidationError("Warehouse is required")

        if order_type == OrderType.STOCK_TRANSFER:
            if not from_warehouse_id:
                raise ValidationError("Source warehouse is required for a stock transfer")
            if from_warehouse_id == warehouse_id:
                raise ValidationError("Source and destination warehouses must differ")
            if payments:
                raise ValidationError("Stock transfers do not take payments")
        elif order_type in COUNTERPARTY_REQUIRED and not counterparty_id:
            raise ValidationError(f"A customer or supplier is required for {order_type.value} orders")

        OrderItemService.validate_items(items)

    @staticmethod
    def _check_references(
        db: Session,
        company_id: UUID,
        warehouse_ids: List[UUID],
        counterparty_id: Optional[UUID],
        items: List[OrderItemCreate]
    ) -> None:
        if not db.query(Company.id).filter(Company.id == company_id).first():
            raise ValidationError("Company not found")

        for warehouse_id in filter(None, warehouse_ids):
            if not db.query(Warehouse.id).filter(Warehouse.id == warehouse_id).first():
                raise ValidationError(f"Warehouse {warehouse_id} not found")

        if counterparty_id and not db.query(Counterparty.id).filter(Counterparty.id == counterparty_id).first():
            raise ValidationError("Customer/supplier not found")

        product_ids = {item.product_id for item in items}
        found = {row[0] for row in db.query(Product.id).filter(Product.id.in_(product_ids)).all()}
        missing = product_ids - found
        if missing:
            raise ValidationError(f"Unknown products: {', '.join(sorted(str(p) for p in missing))}")

    @staticmethod
    def _set_amounts(order: OrderHeader, data, items: List[OrderItemCreate]) -> None:
        """Header money fields and counters; subtotal/total fall back to the item lines"""
        for field in ("tax_rate", "tax_amount", "discount", "shipping"):
            value = getattr(data, field)
            if value is not None:
                setattr(order, field, value)

        if order.order_type == OrderType.STOCK_TRANSFER.value:
            order.tax_rate = Decimal("0")
            order.tax_amount = Decimal("0")

        subtotal = data.subtotal if data.subtotal is not None \
            else sum((OrderItemService.line_subtotal(i) for i in items), Decimal("0"))
        order.subtotal = subtotal

        if data.total is not None:
            order.total = data.total
        else:
            order.total = Decimal(subtotal) + Decimal(order.tax_amount or 0) \
                + Decimal(order.shipping or 0) - Decimal(order.discount or 0)

        order.total_items = len(items)
        order.total_quantity = sum(i.quantity for i in items)

    # ---- Create ----

    @staticmethod
    def create_order(db: Session, order_data: OrderCreate, created_by: Optional[UUID] = None) -> OperationResult:
        """Create an order with its items, stock effects and payments"""
        return run_in_transaction(db, OrderService._create_order, order_data, created_by)

    @staticmethod
    def _create_order(db: Session, data: OrderCreate, created_by: Optional[UUID]) -> OrderHeader:
        order_type = OrderType(data.order_type)
        is_transfer = order_type == OrderType.STOCK_TRANSFER
        from_warehouse_id = data.from_warehouse_id if is_transfer else None
        counterparty_id = None if is_transfer else data.counterparty_id

        OrderService._validate_payload(
            order_type, data.warehouse_id, from_warehouse_id, counterparty_id, data.items, data.payments
        )
        OrderService._check_references(
            db, data.company_id, [data.warehouse_id, from_warehouse_id], counterparty_id, data.items
        )

        order = OrderHeader(
            company_id=data.company_id,
            warehouse_id=data.warehouse_id,
            from_warehouse_id=from_warehouse_id,
            counterparty_id=counterparty_id,
            order_type=order_type.value,
            order_date=data.order_date or date.today(),
            invoice_type=data.invoice_type,
            order_status=(data.order_status or default_order_status(order_type)).value,
            notes=data.notes,
            terms_condition=data.terms_condition,
            is_deletable=data.is_deletable,
            original_order_id=data.original_order_id,
            created_by=created_by
        )
        OrderService._set_amounts(order, data, data.items)

        invoice_number = InvoiceService.assign_invoice_number(db, order)

        remark = f"Order {invoice_number}"
        for line_no, item_data in enumerate(data.items, start=1):
            item = OrderItemService.add_item(db, order, item_data, line_no)
            OrderItemService.apply_item_effects(
                db, order, item, ReferenceKind.ORDER, remark=remark, created_by=created_by
            )

        PaymentService.attach_payments(db, order, data.payments, created_by)
        PaymentService.refresh_order_totals(db, order)

        logger.info(f"Created {order.order_type} order {invoice_number} ({len(data.items)} items)")
        return order

    # ---- Update ----

    @staticmethod
    def update_order(
        db: Session,
        order_id: UUID,
        order_data: OrderUpdate,
        created_by: Optional[UUID] = None
    ) -> OperationResult:
        """Full update, payment-only update or status-only update depending on the flags"""
        if order_data.is_payment_status_only:
            operation = OrderService._refresh_payment_status
        elif order_data.is_payment_only:
            operation = OrderService._update_payments
        else:
            operation = OrderService._update_order
        return run_in_transaction(db, operation, order_id, order_data, created_by)

    @staticmethod
    def _refresh_payment_status(
        db: Session, order_id: UUID, data: OrderUpdate, created_by: Optional[UUID]
    ) -> OrderHeader:
        order = OrderService._get_for_update(db, order_id)
        if data.order_status:
            order.order_status = OrderStatus(data.order_status).value
        PaymentService.refresh_order_totals(db, order)
        logger.info(f"Refreshed payment status of {order.invoice_number}: {order.payment_status}")
        return order

    @staticmethod
    def _update_payments(
        db: Session, order_id: UUID, data: OrderUpdate, created_by: Optional[UUID]
    ) -> OrderHeader:
        order = OrderService._get_for_update(db, order_id)
        if order.is_deleted:
            raise StateError("Cannot add payments to a deleted order")
        if order.order_type == OrderType.STOCK_TRANSFER.value:
            raise StateError("Stock transfers do not take payments")
        if not data.payments:
            raise ValidationError("No payments supplied")

        PaymentService.attach_payments(db, order, data.payments, created_by)
        PaymentService.refresh_order_totals(db, order)
        logger.info(f"Added {len(data.payments)} payments to {order.invoice_number}: {order.payment_status}")
        return order

    @staticmethod
    def _update_order(
        db: Session, order_id: UUID, data: OrderUpdate, created_by: Optional[UUID]
    ) -> OrderHeader:
        order = OrderService._get_for_update(db, order_id)
        if order.is_deleted:
            raise StateError("Deleted orders cannot be edited")
        if data.items is None:
            raise ValidationError("Items are required for a full update")

        new_type = OrderType(data.order_type or order.order_type)
        is_transfer = new_type == OrderType.STOCK_TRANSFER
        warehouse_id = data.warehouse_id or order.warehouse_id
        from_warehouse_id = (data.from_warehouse_id or order.from_warehouse_id) if is_transfer else None
        counterparty_id = None if is_transfer else (data.counterparty_id or order.counterparty_id)

        OrderService._validate_payload(
            new_type, warehouse_id, from_warehouse_id, counterparty_id, data.items, data.payments
        )
        OrderService._check_references(
            db, order.company_id, [warehouse_id, from_warehouse_id], counterparty_id, data.items
        )

        # Undo the current items with the stored type and warehouses
        OrderItemService.reverse_items(
            db, order, ReferenceKind.ORDER_UPDATE_REVERSAL,
            remark=f"Reversal (update of order {order.invoice_number})",
            created_by=created_by
        )
        OrderItemService.clear_items(db, order)
        replaced_payment_ids = {allocation.payment_id for allocation in order.payments}
        order.payments.clear()
        db.flush()

        # Header
        order.order_type = new_type.value
        order.warehouse_id = warehouse_id
        order.from_warehouse_id = from_warehouse_id
        order.counterparty_id = counterparty_id
        if data.order_date:
            order.order_date = data.order_date
        if data.invoice_type:
            order.invoice_type = data.invoice_type
        if data.order_status:
            order.order_status = OrderStatus(data.order_status).value
        if data.notes is not None:
            order.notes = data.notes
        if data.terms_condition is not None:
            order.terms_condition = data.terms_condition
        OrderService._set_amounts(order, data, data.items)
        db.flush()

        remark = f"Order {order.invoice_number} (updated)"
        for line_no, item_data in enumerate(data.items, start=1):
            item = OrderItemService.add_item(db, order, item_data, line_no)
            OrderItemService.apply_item_effects(
                db, order, item, ReferenceKind.ORDER_UPDATE_APPLY, remark=remark, created_by=created_by
            )

        PaymentService.attach_payments(db, order, data.payments, created_by)
        PaymentService.remove_unallocated_payments(db, replaced_payment_ids)
        PaymentService.refresh_order_totals(db, order)

        logger.info(f"Updated order {order.invoice_number} ({len(data.items)} items)")
        return order

    # ---- Delete / Restore ----

    @staticmethod
    def delete_order(db: Session, order_id: UUID, created_by: Optional[UUID] = None) -> OperationResult:
        """Soft delete: reverse stock effects and flag the order"""
        return run_in_transaction(db, OrderService._delete_order, order_id, created_by)

    @staticmethod
    def _delete_order(db: Session, order_id: UUID, created_by: Optional[UUID]) -> OrderHeader:
        order = OrderService._get_for_update(db, order_id)
        if order.is_deleted:
            raise StateError("Order is already deleted")
        if not order.is_deletable:
            raise StateError("Order cannot be deleted (probably already paid)")

        OrderItemService.reverse_items(
            db, order, ReferenceKind.ORDER_DELETE,
            remark=f"Reversal for deleted order {order.invoice_number}",
            created_by=created_by
        )
        order.is_deleted = True

        logger.info(f"Deleted order {order.invoice_number}")
        return order

    @staticmethod
    def restore_order(db: Session, order_id: UUID, created_by: Optional[UUID] = None) -> OperationResult:
        """Re-apply stock effects of a soft-deleted order and reactivate it"""
        return run_in_transaction(db, OrderService._restore_order, order_id, created_by)

    @staticmethod
    def _restore_order(db: Session, order_id: UUID, created_by: Optional[UUID]) -> OrderHeader:
        order = OrderService._get_for_update(db, order_id)
        if not order.is_deleted:
            raise StateError("Only deleted orders can be restored")

        OrderItemService.restore_items(
            db, order, remark=f"Restored order {order.invoice_number}", created_by=created_by
        )
        order.is_deleted = False

        logger.info(f"Restored order {order.invoice_number}")
        return order

    # ---- Proforma conversion ----

    @staticmethod
    def convert_to_sale(db: Session, proforma_id: UUID, created_by: Optional[UUID] = None) -> OperationResult:
        """Turn a proforma into a sale dated today; returns (proforma, sale)"""
        return run_in_transaction(db, OrderService._convert_to_sale, proforma_id, created_by)

    @staticmethod
    def _convert_to_sale(
        db: Session, proforma_id: UUID, created_by: Optional[UUID]
    ) -> Tuple[OrderHeader, OrderHeader]:
        proforma = OrderService._get_for_update(db, proforma_id)
        if proforma.order_type != OrderType.PROFORMA.value:
            raise StateError("Only proforma orders can be converted to a sale")
        if proforma.is_converted:
            raise StateError("Proforma has already been converted")
        if proforma.is_deleted:
            raise StateError("Deleted proformas cannot be converted")
        if not proforma.items:
            raise ValidationError("Proforma has no items")

        today = date.today()
        sale = OrderHeader(
            company_id=proforma.company_id,
            warehouse_id=proforma.warehouse_id,
            counterparty_id=proforma.counterparty_id,
            order_type=OrderType.SALE.value,
            order_date=today,
            invoice_type="standard",
            tax_rate=proforma.tax_rate,
            tax_amount=proforma.tax_amount,
            discount=proforma.discount,
            shipping=proforma.shipping,
            subtotal=proforma.subtotal,
            total=proforma.total,
            order_status=OrderStatus.DELIVERED.value,
            notes=f"Converted from proforma #{proforma.invoice_number} on {today.isoformat()}",
            terms_condition=proforma.terms_condition,
            total_items=proforma.total_items,
            total_quantity=proforma.total_quantity,
            original_order_id=proforma.id,
            created_by=created_by
        )
        invoice_number = InvoiceService.assign_invoice_number(db, sale)

        remark = f"Order {invoice_number} (from proforma {proforma.invoice_number})"
        for source in proforma.items:
            item = OrderItemService.copy_item(db, sale, source)
            OrderItemService.apply_item_effects(
                db, sale, item, ReferenceKind.ORDER, remark=remark, created_by=created_by
            )

        PaymentService.refresh_order_totals(db, sale)

        proforma.is_converted = True
        proforma.converted_sale_id = sale.id
        note = f"Converted to sale #{invoice_number} on {today.isoformat()}"
        proforma.notes = f"{proforma.notes}\n{note}" if proforma.notes else note

        logger.info(f"Converted proforma {proforma.invoice_number} to sale {invoice_number}")
        return proforma, sale

    # ---- Payments ----

    @staticmethod
    def add_payment(
        db: Session,
        order_id: UUID,
        payment_data: OrderPaymentCreate,
        created_by: Optional[UUID] = None
    ) -> OperationResult:
        """Apply one payment to an active order"""
        update = OrderUpdate(is_payment_only=True, payments=[payment_data])
        return run_in_transaction(db, OrderService._update_payments, order_id, update, created_by)
