"""
Stock & Inventory Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Index, Uuid, event
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from stockflow.core import Base
from stockflow.core.errors import StateError
from .base import UUIDMixin, TimestampMixin


class MovementKind(str, enum.Enum):
    SALE = "sale"
    PURCHASE = "purchase"
    RETURN_IN = "return_in"
    RETURN_OUT = "return_out"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    ADJUSTMENT = "adjustment"


class ReferenceKind(str, enum.Enum):
    ORDER = "order"
    ORDER_UPDATE_REVERSAL = "order_update_reversal"
    ORDER_UPDATE_APPLY = "order_update_apply"
    ORDER_DELETE = "order_delete"
    ORDER_RESTORE = "order_restore"
    ADJUSTMENT = "adjustment"
    ADJUSTMENT_UPDATE = "adjustment_update"
    ADJUSTMENT_DELETE = "adjustment_delete"


class AdjustmentKind(str, enum.Enum):
    ADD = "add"
    SUBTRACT = "subtract"


class ProductStock(Base, UUIDMixin):
    """Materialized current stock per (product, warehouse)"""
    __tablename__ = "product_stock"

    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouse.id"), nullable=False, index=True)

    quantity = Column(Integer, default=0, nullable=False)
    opening_quantity = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    product = relationship("Product", back_populates="stock")
    warehouse = relationship("Warehouse", back_populates="stock")

    __table_args__ = (
        Index("ix_product_stock_pair", product_id, warehouse_id, unique=True),
    )

class StockMovement(Base):
    """Stock Movement Ledger (append-only)"""
    __tablename__ = "stock_movement"

    # Integer key keeps ledger order
    id = Column(Integer, primary_key=True, autoincrement=True)

    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouse.id"), nullable=False)
    related_warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouse.id"))  # Other side of a transfer

    # Movement info
    movement_kind = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)  # Positive or negative

    # Reference
    reference_kind = Column(String(30), nullable=False)
    reference_id = Column(String(50), nullable=False, index=True)
    reverses_movement_id = Column(Integer, ForeignKey("stock_movement.id"))

    # Metadata
    remark = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_by = Column(Uuid(as_uuid=True))

    # Relationships
    product = relationship("Product")
    warehouse = relationship("Warehouse", foreign_keys=[warehouse_id])

    __table_args__ = (
        Index("ix_stock_movement_pair", product_id, warehouse_id),
    )

class StockAdjustment(Base, UUIDMixin, TimestampMixin):
    """Manual stock correction"""
    __tablename__ = "stock_adjustment"

    company_id = Column(Uuid(as_uuid=True), ForeignKey("company.id"))
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouse.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("product.id"), nullable=False)

    quantity = Column(Integer, nullable=False)  # Always positive, sign comes from kind
    adjustment_kind = Column(String(20), nullable=False)
    notes = Column(Text)
    created_by = Column(Uuid(as_uuid=True))

    # Relationships
    product = relationship("Product")
    warehouse = relationship("Warehouse")


@event.listens_for(StockMovement, "before_update")
def _block_movement_update(mapper, connection, target):
    raise StateError(f"Stock movement {target.id} is append-only and cannot be updated")


@event.listens_for(StockMovement, "before_delete")
def _block_movement_delete(mapper, connection, target):
    raise StateError(f"Stock movement {target.id} is append-only and cannot be deleted")
