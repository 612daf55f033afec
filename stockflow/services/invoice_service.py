"""
Invoice Service - sequential invoice numbering
"""
import logging
import time
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional
from uuid import UUID

from stockflow.core.config import settings
from stockflow.core.errors import ConflictError
from stockflow.models import OrderHeader, Company, Warehouse, OrderType

logger = logging.getLogger(__name__)

# Fixed prefixes per order type
FIXED_PREFIXES = {
    OrderType.PURCHASE: "ACHT",
    OrderType.PURCHASE_RETURN: "R-ACHT",
    OrderType.STOCK_TRANSFER: "TRF",
}
DEFAULT_SALE_PREFIX = "SALE"
DEFAULT_PROFORMA_PREFIX = "DEF"
RETURN_PREFIX = "R-"
PROFORMA_PREFIX = "PF"


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class InvoiceService:
    """Invoice numbers: {prefix}{MM}{YYYY}-{sequence:04d}"""

    @staticmethod
    def resolve_prefix(
        db: Session,
        company_id: UUID,
        order_type: OrderType,
        warehouse_id: Optional[UUID] = None
    ) -> str:
        order_type = OrderType(order_type)
        if order_type in FIXED_PREFIXES:
            return FIXED_PREFIXES[order_type]

        company = db.query(Company).filter(Company.id == company_id).first()
        company_prefix = company.invoice_prefix if company else None

        if order_type == OrderType.PROFORMA:
            warehouse_prefix = None
            if warehouse_id:
                warehouse = db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
                warehouse_prefix = warehouse.invoice_prefix if warehouse else None
            return PROFORMA_PREFIX + (warehouse_prefix or company_prefix or DEFAULT_PROFORMA_PREFIX)

        sale_prefix = company_prefix or DEFAULT_SALE_PREFIX
        if order_type == OrderType.SALE_RETURN:
            return RETURN_PREFIX + sale_prefix
        return sale_prefix

    @staticmethod
    def last_sequence(
        db: Session,
        company_id: UUID,
        order_type: OrderType,
        prefix: str,
        year: int,
        warehouse_id: Optional[UUID] = None
    ) -> int:
        """
        Highest numeric sequence already used for this scope and year.

        Soft-deleted orders count since the uniqueness constraint covers them.
        Fallback numbers (non-numeric suffix) are ignored.
        """
        order_type = OrderType(order_type)
        pattern = f"{_escape_like(prefix)}__{year}-%"

        query = db.query(OrderHeader.invoice_number).filter(
            OrderHeader.order_type == order_type.value,
            OrderHeader.invoice_number.like(pattern, escape="\\")
        )

        if warehouse_id and order_type == OrderType.STOCK_TRANSFER:
            query = query.filter(OrderHeader.from_warehouse_id == warehouse_id)
        elif warehouse_id:
            query = query.filter(OrderHeader.warehouse_id == warehouse_id)
        else:
            query = query.filter(OrderHeader.company_id == company_id)

        highest = 0
        for (number,) in query.all():
            suffix = number.rsplit("-", 1)[-1]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return highest

    @staticmethod
    def invoice_exists(db: Session, invoice_number: str) -> bool:
        return db.query(OrderHeader.id).filter(
            OrderHeader.invoice_number == invoice_number
        ).first() is not None

    @staticmethod
    def fallback_invoice_number(prefix: str, order_date: date) -> str:
        stamp = str(int(time.time() * 1000))[-8:]
        return f"{prefix}{order_date.month:02d}{order_date.year}-T{stamp}"

    @staticmethod
    def next_invoice_number(
        db: Session,
        company_id: UUID,
        order_date: date,
        order_type: OrderType,
        warehouse_id: Optional[UUID] = None,
        max_probes: Optional[int] = None
    ) -> str:
        """Next free invoice number for the scope; only a unique-constraint insert makes it final"""
        prefix = InvoiceService.resolve_prefix(db, company_id, order_type, warehouse_id)
        max_probes = max_probes or settings.INVOICE_MAX_PROBES

        sequence = InvoiceService.last_sequence(
            db, company_id, order_type, prefix, order_date.year, warehouse_id
        ) + 1

        for _ in range(max_probes):
            candidate = f"{prefix}{order_date.month:02d}{order_date.year}-{sequence:04d}"
            if not InvoiceService.invoice_exists(db, candidate):
                return candidate
            sequence += 1

        fallback = InvoiceService.fallback_invoice_number(prefix, order_date)
        logger.warning(f"No free {prefix} sequence after {max_probes} probes, using {fallback}")
        return fallback

    @staticmethod
    def assign_invoice_number(db: Session, order: OrderHeader, retries: Optional[int] = None) -> str:
        """
        Number the order and flush its header inside a savepoint.

        A concurrent writer taking the same number surfaces as a unique
        violation; only the savepoint is rolled back and a new number is
        computed. The rest of the caller's transaction is kept.
        """
        retries = retries or settings.INVOICE_INSERT_RETRIES
        scope_warehouse = order.from_warehouse_id \
            if order.order_type == OrderType.STOCK_TRANSFER.value else order.warehouse_id

        for attempt in range(1, retries + 1):
            number = InvoiceService.next_invoice_number(
                db, order.company_id, order.order_date, OrderType(order.order_type), scope_warehouse
            )
            order.invoice_number = number
            try:
                with db.begin_nested():
                    db.add(order)
                    db.flush()
                return number
            except IntegrityError as e:
                if "invoice_number" not in str(e.orig):
                    raise
                logger.warning(f"Invoice number {number} taken concurrently (attempt {attempt}/{retries})")

        raise ConflictError(f"Could not allocate a unique invoice number after {retries} attempts")
