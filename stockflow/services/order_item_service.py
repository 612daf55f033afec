"""
Order Item Service - line items and their stock effects
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from stockflow.core.errors import ValidationError
from stockflow.models import OrderHeader, OrderItem, OrderType, MovementKind, ReferenceKind, StockMovement
from stockflow.schemas.order import OrderItemCreate
from .stock_service import StockService

logger = logging.getLogger(__name__)

PRIMARY = "primary"  # order.warehouse_id
SOURCE = "source"    # order.from_warehouse_id


@dataclass(frozen=True)
class StockEffect:
    side: str
    sign: int
    movement_kind: MovementKind


@dataclass(frozen=True)
class StockDelta:
    product_id: UUID
    warehouse_id: UUID
    quantity: int
    movement_kind: MovementKind
    related_warehouse_id: Optional[UUID] = None


# What one unit of an item does to stock, per order type
STOCK_EFFECTS: Dict[OrderType, Tuple[StockEffect, ...]] = {
    OrderType.SALE: (StockEffect(PRIMARY, -1, MovementKind.SALE),),
    OrderType.PURCHASE: (StockEffect(PRIMARY, 1, MovementKind.PURCHASE),),
    OrderType.SALE_RETURN: (StockEffect(PRIMARY, 1, MovementKind.RETURN_IN),),
    OrderType.PURCHASE_RETURN: (StockEffect(PRIMARY, -1, MovementKind.RETURN_OUT),),
    OrderType.STOCK_TRANSFER: (
        StockEffect(SOURCE, -1, MovementKind.TRANSFER_OUT),
        StockEffect(PRIMARY, 1, MovementKind.TRANSFER_IN),
    ),
    OrderType.PROFORMA: (),
}

_unmapped = set(OrderType) - set(STOCK_EFFECTS)
if _unmapped:
    raise RuntimeError(f"Order types without a stock effect: {sorted(t.value for t in _unmapped)}")


class OrderItemService:
    """Builds order lines and turns them into stock deltas"""

    @staticmethod
    def validate_items(items: Iterable[OrderItemCreate]) -> None:
        items = list(items or [])
        if not items:
            raise ValidationError("At least one item is required")
        for index, item in enumerate(items, start=1):
            if not item.product_id:
                raise ValidationError(f"Item {index}: product is required")
            if item.quantity is None or item.quantity <= 0:
                raise ValidationError(f"Item {index}: quantity must be greater than 0")

    @staticmethod
    def line_subtotal(item: OrderItemCreate) -> Decimal:
        if item.subtotal is not None:
            return Decimal(item.subtotal)
        return Decimal(item.unit_price) * item.quantity + Decimal(item.total_tax) - Decimal(item.total_discount)

    @staticmethod
    def add_item(db: Session, order: OrderHeader, item_data: OrderItemCreate, line_no: int) -> OrderItem:
        is_transfer = order.order_type == OrderType.STOCK_TRANSFER.value
        item = OrderItem(
            line_no=line_no,
            product_id=item_data.product_id,
            unit_id=item_data.unit_id,
            quantity=item_data.quantity,
            unit_price=item_data.unit_price,
            single_unit_price=item_data.single_unit_price
            if item_data.single_unit_price is not None else item_data.unit_price,
            # Transfers carry no tax
            tax_rate=Decimal("0") if is_transfer else item_data.tax_rate,
            tax_type=None if is_transfer else item_data.tax_type,
            total_tax=Decimal("0") if is_transfer else item_data.total_tax,
            discount_rate=item_data.discount_rate,
            total_discount=item_data.total_discount,
            subtotal=OrderItemService.line_subtotal(item_data),
            original_order_item_id=item_data.original_order_item_id
        )
        order.items.append(item)
        db.flush()
        return item

    @staticmethod
    def copy_item(db: Session, order: OrderHeader, source: OrderItem) -> OrderItem:
        item = OrderItem(
            line_no=source.line_no,
            product_id=source.product_id,
            unit_id=source.unit_id,
            quantity=source.quantity,
            unit_price=source.unit_price,
            single_unit_price=source.single_unit_price,
            tax_rate=source.tax_rate,
            tax_type=source.tax_type,
            total_tax=source.total_tax,
            discount_rate=source.discount_rate,
            total_discount=source.total_discount,
            subtotal=source.subtotal
        )
        order.items.append(item)
        db.flush()
        return item

    @staticmethod
    def clear_items(db: Session, order: OrderHeader) -> None:
        order.items.clear()
        db.flush()

    @staticmethod
    def stock_deltas(
        order_type: OrderType,
        warehouse_id: Optional[UUID],
        from_warehouse_id: Optional[UUID],
        product_id: UUID,
        quantity: int,
        reverse: bool = False
    ) -> List[StockDelta]:
        """Signed deltas one item causes; `reverse` negates every sign"""
        warehouses = {PRIMARY: warehouse_id, SOURCE: from_warehouse_id}
        counterparts = {PRIMARY: from_warehouse_id, SOURCE: warehouse_id}
        direction = -1 if reverse else 1

        deltas = []
        for effect in STOCK_EFFECTS[OrderType(order_type)]:
            deltas.append(StockDelta(
                product_id=product_id,
                warehouse_id=warehouses[effect.side],
                quantity=direction * effect.sign * int(quantity),
                movement_kind=effect.movement_kind,
                related_warehouse_id=counterparts[effect.side]
                if OrderType(order_type) == OrderType.STOCK_TRANSFER else None
            ))
        return deltas

    @staticmethod
    def apply_item_effects(
        db: Session,
        order: OrderHeader,
        item: OrderItem,
        reference_kind: ReferenceKind,
        remark: Optional[str] = None,
        reverse: bool = False,
        compensating: bool = False,
        order_type: Optional[OrderType] = None,
        warehouse_id: Optional[UUID] = None,
        from_warehouse_id: Optional[UUID] = None,
        created_by: Optional[UUID] = None
    ) -> List[StockMovement]:
        """
        Push one item's stock effect through the mutation engine.

        Type and warehouses default to the order's current values; pass them
        explicitly when the header is about to change. With `compensating`
        each movement is linked to the open ledger row it undoes.
        """
        deltas = OrderItemService.stock_deltas(
            order_type or order.order_type,
            warehouse_id or order.warehouse_id,
            from_warehouse_id or order.from_warehouse_id,
            item.product_id,
            item.quantity,
            reverse=reverse
        )

        apply = StockService.apply_compensating_delta if compensating else StockService.apply_delta
        movements = []
        for delta in deltas:
            movement = apply(
                db,
                delta.product_id,
                delta.warehouse_id,
                delta.quantity,
                delta.movement_kind,
                reference_kind,
                order.id,
                remark=remark,
                related_warehouse_id=delta.related_warehouse_id,
                created_by=created_by
            )
            if movement is not None:
                movements.append(movement)
        return movements

    @staticmethod
    def reverse_items(
        db: Session,
        order: OrderHeader,
        reference_kind: ReferenceKind,
        remark: Optional[str] = None,
        created_by: Optional[UUID] = None
    ) -> List[StockMovement]:
        """Undo the stock effect of every current item with the order's stored type and warehouses"""
        movements = []
        for item in order.items:
            movements.extend(OrderItemService.apply_item_effects(
                db, order, item, reference_kind,
                remark=remark,
                reverse=True,
                compensating=True,
                created_by=created_by
            ))
        logger.debug(f"Reversed {len(movements)} movements for order {order.invoice_number}")
        return movements

    @staticmethod
    def restore_items(
        db: Session,
        order: OrderHeader,
        remark: Optional[str] = None,
        created_by: Optional[UUID] = None
    ) -> List[StockMovement]:
        movements = []
        for item in order.items:
            movements.extend(OrderItemService.apply_item_effects(
                db, order, item, ReferenceKind.ORDER_RESTORE,
                remark=remark,
                compensating=True,
                created_by=created_by
            ))
        return movements
