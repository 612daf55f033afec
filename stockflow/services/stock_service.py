"""
Stock Service - materialized stock + append-only movement ledger
"""
import logging
from sqlalchemy.orm import Session, aliased
from sqlalchemy import func, select, update, insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from typing import List, Optional, Dict, Tuple, Union
from uuid import UUID

from stockflow.core.errors import ValidationError
from stockflow.models import ProductStock, StockMovement, Product, Warehouse, MovementKind, ReferenceKind

logger = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _value(kind: Union[str, MovementKind, ReferenceKind]) -> str:
    return kind.value if hasattr(kind, "value") else str(kind)


class StockService:
    """Stock mutation engine and ledger reads"""

    @staticmethod
    def _increment(db: Session, product_id: UUID, warehouse_id: UUID, quantity: int) -> None:
        """
        Add `quantity` to the (product, warehouse) row in one statement,
        creating the row (opening = max(quantity, 0)) when it does not exist.
        """
        table = ProductStock.__table__
        values = {
            "product_id": product_id,
            "warehouse_id": warehouse_id,
            "quantity": quantity,
            "opening_quantity": max(quantity, 0),
        }

        insert_fn = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
        if insert_fn is not None:
            stmt = insert_fn(table).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.product_id, table.c.warehouse_id],
                set_={
                    "quantity": table.c.quantity + stmt.excluded.quantity,
                    "updated_at": func.now(),
                }
            )
            db.execute(stmt)
            return

        # Generic path: atomic UPDATE, insert only when no row matched
        result = db.execute(
            update(table)
            .where(table.c.product_id == product_id, table.c.warehouse_id == warehouse_id)
            .values(quantity=table.c.quantity + quantity, updated_at=func.now())
        )
        if result.rowcount == 0:
            db.execute(insert(table).values(**values))

    @staticmethod
    def apply_delta(
        db: Session,
        product_id: UUID,
        warehouse_id: UUID,
        quantity: int,
        movement_kind: MovementKind,
        reference_kind: ReferenceKind,
        reference_id: Union[str, UUID],
        remark: Optional[str] = None,
        related_warehouse_id: Optional[UUID] = None,
        reverses_movement_id: Optional[int] = None,
        created_by: Optional[UUID] = None
    ) -> Optional[StockMovement]:
        """
        Apply a signed stock change and append its ledger entry.

        Runs inside the caller's transaction; a zero delta writes nothing.
        Storage errors propagate so the caller can roll back.
        """
        if not product_id or not warehouse_id:
            raise ValidationError("Product and warehouse are required for a stock movement")

        quantity = int(quantity)
        if quantity == 0:
            return None

        StockService._increment(db, product_id, warehouse_id, quantity)

        movement = StockMovement(
            product_id=product_id,
            warehouse_id=warehouse_id,
            related_warehouse_id=related_warehouse_id,
            movement_kind=_value(movement_kind),
            quantity=quantity,
            reference_kind=_value(reference_kind),
            reference_id=str(reference_id),
            reverses_movement_id=reverses_movement_id,
            remark=remark,
            created_by=created_by
        )
        db.add(movement)
        db.flush()

        logger.debug(
            f"Stock {quantity:+d} product={product_id} warehouse={warehouse_id} "
            f"kind={movement.movement_kind} ref={movement.reference_kind}:{movement.reference_id}"
        )
        return movement

    @staticmethod
    def find_open_movement(
        db: Session,
        reference_id: Union[str, UUID],
        product_id: UUID,
        warehouse_id: UUID,
        movement_kind: MovementKind,
        quantity: Optional[int] = None
    ) -> Optional[StockMovement]:
        """Latest movement of a reference that nothing has reversed yet, optionally with an exact signed quantity"""
        reversal = aliased(StockMovement)
        already_reversed = select(reversal.id).where(reversal.reverses_movement_id == StockMovement.id).exists()

        query = db.query(StockMovement).filter(
            StockMovement.reference_id == str(reference_id),
            StockMovement.product_id == product_id,
            StockMovement.warehouse_id == warehouse_id,
            StockMovement.movement_kind == _value(movement_kind),
            ~already_reversed
        )
        if quantity is not None:
            query = query.filter(StockMovement.quantity == quantity)
        return query.order_by(StockMovement.id.desc()).first()

    @staticmethod
    def apply_compensating_delta(
        db: Session,
        product_id: UUID,
        warehouse_id: UUID,
        quantity: int,
        movement_kind: MovementKind,
        reference_kind: ReferenceKind,
        reference_id: Union[str, UUID],
        remark: Optional[str] = None,
        related_warehouse_id: Optional[UUID] = None,
        created_by: Optional[UUID] = None
    ) -> Optional[StockMovement]:
        """Apply a delta that undoes an earlier one, linking it to the movement it compensates"""
        target = StockService.find_open_movement(
            db, reference_id, product_id, warehouse_id, movement_kind, -int(quantity)
        )
        return StockService.apply_delta(
            db,
            product_id,
            warehouse_id,
            quantity,
            movement_kind,
            reference_kind,
            reference_id,
            remark=remark,
            related_warehouse_id=related_warehouse_id,
            reverses_movement_id=target.id if target else None,
            created_by=created_by
        )

    @staticmethod
    def get_quantity(db: Session, product_id: UUID, warehouse_id: UUID) -> int:
        """Current materialized stock (0 when the pair has never moved)"""
        qty = db.query(ProductStock.quantity).filter(
            ProductStock.product_id == product_id,
            ProductStock.warehouse_id == warehouse_id
        ).scalar()
        return int(qty or 0)

    @staticmethod
    def get_ledger_sum(db: Session, product_id: UUID, warehouse_id: UUID) -> int:
        total = db.query(func.coalesce(func.sum(StockMovement.quantity), 0)).filter(
            StockMovement.product_id == product_id,
            StockMovement.warehouse_id == warehouse_id
        ).scalar()
        return int(total or 0)

    @staticmethod
    def get_stock_history(
        db: Session,
        product_id: UUID,
        warehouse_id: Optional[UUID] = None,
        page: int = 1,
        per_page: int = 10
    ) -> Tuple[List[StockMovement], int]:
        """Ledger entries for a product, newest first"""
        query = db.query(StockMovement).filter(StockMovement.product_id == product_id)

        if warehouse_id:
            query = query.filter(StockMovement.warehouse_id == warehouse_id)

        total = query.count()

        movements = query.order_by(StockMovement.id.desc())\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()

        return movements, total

    @staticmethod
    def get_stock_summary(
        db: Session,
        warehouse_id: Optional[UUID] = None,
        search: Optional[str] = None
    ) -> List[Dict]:
        """Get current stock by product and warehouse"""
        query = db.query(ProductStock, Product, Warehouse)\
            .join(Product, Product.id == ProductStock.product_id)\
            .join(Warehouse, Warehouse.id == ProductStock.warehouse_id)

        if warehouse_id:
            query = query.filter(ProductStock.warehouse_id == warehouse_id)

        if search:
            search_term = f"%{search}%"
            query = query.filter(Product.sku.ilike(search_term) | Product.name.ilike(search_term))

        results = []
        for stock, product, warehouse in query.order_by(Product.sku).all():
            results.append({
                "product_id": str(product.id),
                "sku": product.sku,
                "product_name": product.name,
                "warehouse_id": str(warehouse.id),
                "warehouse_name": warehouse.name,
                "quantity": stock.quantity,
                "opening_quantity": stock.opening_quantity,
            })

        return results

    @staticmethod
    def reconcile(db: Session) -> List[Dict]:
        """(product, warehouse) pairs whose materialized stock differs from the ledger sum"""
        ledger = db.query(
            StockMovement.product_id.label("product_id"),
            StockMovement.warehouse_id.label("warehouse_id"),
            func.sum(StockMovement.quantity).label("ledger_quantity")
        ).group_by(
            StockMovement.product_id,
            StockMovement.warehouse_id
        ).subquery()

        rows = db.query(
            ProductStock.product_id,
            ProductStock.warehouse_id,
            ProductStock.quantity,
            func.coalesce(ledger.c.ledger_quantity, 0)
        ).outerjoin(
            ledger,
            (ledger.c.product_id == ProductStock.product_id) & (ledger.c.warehouse_id == ProductStock.warehouse_id)
        ).all()

        mismatches = []
        for product_id, warehouse_id, quantity, ledger_quantity in rows:
            if int(quantity) != int(ledger_quantity):
                mismatches.append({
                    "product_id": str(product_id),
                    "warehouse_id": str(warehouse_id),
                    "quantity": int(quantity),
                    "ledger_quantity": int(ledger_quantity),
                })

        if mismatches:
            logger.warning(f"Stock reconciliation found {len(mismatches)} mismatched pairs")
        return mismatches
