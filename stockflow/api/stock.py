"""
Stock Endpoints - adjustments, ledger history, summary
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from stockflow.core.config import settings
from stockflow.models import StockAdjustment
from stockflow.schemas.stock import StockAdjustmentCreate, StockAdjustmentUpdate
from stockflow.services import StockService, StockAdjustmentService
from .deps import get_db, get_current_user_id, unwrap_result

router = APIRouter(tags=["Stock"])


def serialize_adjustment(adjustment: StockAdjustment) -> dict:
    return {
        "id": str(adjustment.id),
        "company_id": str(adjustment.company_id) if adjustment.company_id else None,
        "warehouse_id": str(adjustment.warehouse_id),
        "product_id": str(adjustment.product_id),
        "quantity": adjustment.quantity,
        "adjustment_kind": adjustment.adjustment_kind,
        "notes": adjustment.notes,
        "created_by": str(adjustment.created_by) if adjustment.created_by else None,
        "created_at": adjustment.created_at.isoformat() if adjustment.created_at else None,
    }

# ===================== ADJUSTMENTS =====================

@router.get("/stock-adjustments")
def list_adjustments(
    warehouse_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    adjustments, total = StockAdjustmentService.get_adjustments(db, warehouse_id, page, limit)
    return {
        "adjustments": [serialize_adjustment(a) for a in adjustments],
        "total": total,
        "page": page,
        "limit": limit
    }

@router.get("/stock-adjustments/{adjustment_id}")
def get_adjustment(adjustment_id: UUID, db: Session = Depends(get_db)):
    adjustment = StockAdjustmentService.get_adjustment(db, adjustment_id)
    if not adjustment:
        raise HTTPException(status_code=404, detail="Stock adjustment not found")
    return serialize_adjustment(adjustment)

@router.post("/stock-adjustments", status_code=201)
def create_adjustment(
    data: StockAdjustmentCreate,
    db: Session = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id)
):
    adjustment = unwrap_result(StockAdjustmentService.create_adjustment(db, data, created_by=user_id))
    return serialize_adjustment(adjustment)

@router.put("/stock-adjustments/{adjustment_id}")
def update_adjustment(
    adjustment_id: UUID,
    data: StockAdjustmentUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id)
):
    adjustment = unwrap_result(StockAdjustmentService.update_adjustment(db, adjustment_id, data, created_by=user_id))
    return serialize_adjustment(adjustment)

@router.delete("/stock-adjustments/{adjustment_id}")
def delete_adjustment(
    adjustment_id: UUID,
    db: Session = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id)
):
    unwrap_result(StockAdjustmentService.delete_adjustment(db, adjustment_id, created_by=user_id))
    return {"message": "Stock adjustment deleted", "id": str(adjustment_id)}

# ===================== LEDGER =====================

@router.get("/stock-history")
def stock_history(
    product_id: UUID = Query(...),
    warehouse_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    movements, total = StockService.get_stock_history(db, product_id, warehouse_id, page, limit)
    return {
        "history": [
            {
                "id": m.id,
                "product_id": str(m.product_id),
                "warehouse_id": str(m.warehouse_id),
                "related_warehouse_id": str(m.related_warehouse_id) if m.related_warehouse_id else None,
                "movement_kind": m.movement_kind,
                "quantity": m.quantity,
                "reference_kind": m.reference_kind,
                "reference_id": m.reference_id,
                "reverses_movement_id": m.reverses_movement_id,
                "remark": m.remark,
                "created_by": str(m.created_by) if m.created_by else None,
                "created_at": m.created_at.isoformat() if m.created_at else None,
            }
            for m in movements
        ],
        "total": total,
        "page": page,
        "limit": limit,
        "pages": (total + limit - 1) // limit
    }

@router.get("/stock/summary")
def stock_summary(
    warehouse_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    return {"stock": StockService.get_stock_summary(db, warehouse_id, search)}

@router.get("/stock/reconcile")
def stock_reconcile(db: Session = Depends(get_db)):
    mismatches = StockService.reconcile(db)
    return {"consistent": not mismatches, "mismatches": mismatches}
