"""
Stock Schemas
"""
from pydantic import BaseModel
from typing import Optional
from uuid import UUID

from stockflow.models import AdjustmentKind


class StockAdjustmentCreate(BaseModel):
    company_id: Optional[UUID] = None
    warehouse_id: UUID
    product_id: UUID
    quantity: int
    adjustment_kind: AdjustmentKind
    notes: Optional[str] = None

class StockAdjustmentUpdate(BaseModel):
    quantity: Optional[int] = None
    adjustment_kind: Optional[AdjustmentKind] = None
    notes: Optional[str] = None
