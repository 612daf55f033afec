"""
Payment Endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID

from stockflow.services import PaymentService
from .deps import get_db, unwrap_result

router = APIRouter(tags=["Payments"])


@router.delete("/payments/{payment_id}")
def delete_payment(payment_id: UUID, db: Session = Depends(get_db)):
    order_ids = unwrap_result(PaymentService.delete_payment(db, payment_id))
    return {
        "message": "Payment deleted",
        "paymentId": str(payment_id),
        "orderIds": [str(order_id) for order_id in order_ids]
    }
