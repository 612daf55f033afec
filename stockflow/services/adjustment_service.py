"""
Stock Adjustment Service - manual add/subtract corrections
"""
import logging
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from uuid import UUID

from stockflow.core.errors import ValidationError, NotFoundError
from stockflow.core.transaction import OperationResult, run_in_transaction
from stockflow.models import StockAdjustment, AdjustmentKind, MovementKind, ReferenceKind, Warehouse, Product
from stockflow.schemas.stock import StockAdjustmentCreate, StockAdjustmentUpdate
from .stock_service import StockService

logger = logging.getLogger(__name__)


def signed_quantity(adjustment_kind: AdjustmentKind, quantity: int) -> int:
    return quantity if AdjustmentKind(adjustment_kind) == AdjustmentKind.ADD else -quantity


class StockAdjustmentService:

    @staticmethod
    def get_adjustments(
        db: Session,
        warehouse_id: Optional[UUID] = None,
        page: int = 1,
        per_page: int = 10
    ) -> Tuple[List[StockAdjustment], int]:
        query = db.query(StockAdjustment)

        if warehouse_id:
            query = query.filter(StockAdjustment.warehouse_id == warehouse_id)

        total = query.count()

        adjustments = query.order_by(StockAdjustment.created_at.desc())\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()

        return adjustments, total

    @staticmethod
    def get_adjustment(db: Session, adjustment_id: UUID) -> Optional[StockAdjustment]:
        return db.query(StockAdjustment).filter(StockAdjustment.id == adjustment_id).first()

    @staticmethod
    def _get_or_404(db: Session, adjustment_id: UUID) -> StockAdjustment:
        adjustment = db.query(StockAdjustment).filter(
            StockAdjustment.id == adjustment_id
        ).with_for_update().first()
        if not adjustment:
            raise NotFoundError("Stock adjustment not found")
        return adjustment

    @staticmethod
    def create_adjustment(
        db: Session,
        data: StockAdjustmentCreate,
        created_by: Optional[UUID] = None
    ) -> OperationResult:
        return run_in_transaction(db, StockAdjustmentService._create_adjustment, data, created_by)

    @staticmethod
    def _create_adjustment(db: Session, data: StockAdjustmentCreate, created_by: Optional[UUID]) -> StockAdjustment:
        if data.quantity is None or data.quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        warehouse = db.query(Warehouse).filter(Warehouse.id == data.warehouse_id).first()
        if not warehouse:
            raise ValidationError("Warehouse not found")
        if not db.query(Product.id).filter(Product.id == data.product_id).first():
            raise ValidationError("Product not found")

        adjustment = StockAdjustment(
            company_id=data.company_id or warehouse.company_id,
            warehouse_id=data.warehouse_id,
            product_id=data.product_id,
            quantity=data.quantity,
            adjustment_kind=AdjustmentKind(data.adjustment_kind).value,
            notes=data.notes,
            created_by=created_by
        )
        db.add(adjustment)
        db.flush()

        StockService.apply_delta(
            db,
            adjustment.product_id,
            adjustment.warehouse_id,
            signed_quantity(adjustment.adjustment_kind, adjustment.quantity),
            MovementKind.ADJUSTMENT,
            ReferenceKind.ADJUSTMENT,
            adjustment.id,
            remark=data.notes or "Stock adjustment",
            created_by=created_by
        )

        logger.info(
            f"Stock adjustment {adjustment.adjustment_kind} {adjustment.quantity} "
            f"product={adjustment.product_id} warehouse={adjustment.warehouse_id}"
        )
        return adjustment

    @staticmethod
    def update_adjustment(
        db: Session,
        adjustment_id: UUID,
        data: StockAdjustmentUpdate,
        created_by: Optional[UUID] = None
    ) -> OperationResult:
        return run_in_transaction(db, StockAdjustmentService._update_adjustment, adjustment_id, data, created_by)

    @staticmethod
    def _update_adjustment(
        db: Session, adjustment_id: UUID, data: StockAdjustmentUpdate, created_by: Optional[UUID]
    ) -> StockAdjustment:
        adjustment = StockAdjustmentService._get_or_404(db, adjustment_id)

        new_quantity = adjustment.quantity if data.quantity is None else data.quantity
        new_kind = AdjustmentKind(data.adjustment_kind or adjustment.adjustment_kind)
        if new_quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        # Only the difference reaches the ledger
        net = signed_quantity(new_kind, new_quantity) - signed_quantity(adjustment.adjustment_kind, adjustment.quantity)
        StockService.apply_delta(
            db,
            adjustment.product_id,
            adjustment.warehouse_id,
            net,
            MovementKind.ADJUSTMENT,
            ReferenceKind.ADJUSTMENT_UPDATE,
            adjustment.id,
            remark=f"Adjustment updated: {adjustment.adjustment_kind} {adjustment.quantity} -> {new_kind.value} {new_quantity}",
            created_by=created_by
        )

        adjustment.quantity = new_quantity
        adjustment.adjustment_kind = new_kind.value
        if data.notes is not None:
            adjustment.notes = data.notes

        logger.info(f"Updated stock adjustment {adjustment.id} (net {net:+d})")
        return adjustment

    @staticmethod
    def delete_adjustment(db: Session, adjustment_id: UUID, created_by: Optional[UUID] = None) -> OperationResult:
        return run_in_transaction(db, StockAdjustmentService._delete_adjustment, adjustment_id, created_by)

    @staticmethod
    def _delete_adjustment(db: Session, adjustment_id: UUID, created_by: Optional[UUID]) -> UUID:
        adjustment = StockAdjustmentService._get_or_404(db, adjustment_id)

        # After updates the net effect is spread over several rows; link to the newest one
        latest = StockService.find_open_movement(
            db, adjustment.id, adjustment.product_id, adjustment.warehouse_id, MovementKind.ADJUSTMENT
        )
        StockService.apply_delta(
            db,
            adjustment.product_id,
            adjustment.warehouse_id,
            -signed_quantity(adjustment.adjustment_kind, adjustment.quantity),
            MovementKind.ADJUSTMENT,
            ReferenceKind.ADJUSTMENT_DELETE,
            adjustment.id,
            remark=f"Reversal for deleted adjustment {adjustment.id}",
            reverses_movement_id=latest.id if latest else None,
            created_by=created_by
        )

        db.delete(adjustment)
        logger.info(f"Deleted stock adjustment {adjustment_id}")
        return adjustment_id
