"""
Order Endpoints
"""
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
from datetime import date

from stockflow.core.config import settings
from stockflow.models import OrderHeader, OrderType
from stockflow.schemas.order import OrderCreate, OrderUpdate, OrderPaymentCreate
from stockflow.services import OrderService, PaymentService
from .deps import get_db, get_current_user_id, unwrap_result

router = APIRouter(tags=["Orders"])


def _str(value) -> Optional[str]:
    return str(value) if value is not None else None


def serialize_order(order: OrderHeader) -> dict:
    return {
        "id": str(order.id),
        "invoice_number": order.invoice_number,
        "invoice_type": order.invoice_type,
        "order_type": order.order_type,
        "order_date": order.order_date.isoformat() if order.order_date else None,
        "company_id": _str(order.company_id),
        "warehouse_id": _str(order.warehouse_id),
        "from_warehouse_id": _str(order.from_warehouse_id),
        "counterparty_id": _str(order.counterparty_id),
        "tax_rate": float(order.tax_rate or 0),
        "tax_amount": float(order.tax_amount or 0),
        "discount": float(order.discount or 0),
        "shipping": float(order.shipping or 0),
        "subtotal": float(order.subtotal or 0),
        "total": float(order.total or 0),
        "paid_amount": float(order.paid_amount or 0),
        "due_amount": float(order.due_amount or 0),
        "payment_status": order.payment_status,
        "order_status": order.order_status,
        "total_items": order.total_items,
        "total_quantity": order.total_quantity,
        "notes": order.notes,
        "terms_condition": order.terms_condition,
        "is_deleted": order.is_deleted,
        "is_deletable": order.is_deletable,
        "is_converted": order.is_converted,
        "original_order_id": _str(order.original_order_id),
        "converted_sale_id": _str(order.converted_sale_id),
        "created_by": _str(order.created_by),
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "items": [
            {
                "id": str(item.id),
                "line_no": item.line_no,
                "product_id": str(item.product_id),
                "unit_id": _str(item.unit_id),
                "quantity": item.quantity,
                "unit_price": float(item.unit_price or 0),
                "single_unit_price": float(item.single_unit_price or 0),
                "tax_rate": float(item.tax_rate or 0),
                "tax_type": item.tax_type,
                "total_tax": float(item.total_tax or 0),
                "discount_rate": float(item.discount_rate or 0),
                "total_discount": float(item.total_discount or 0),
                "subtotal": float(item.subtotal or 0),
                "original_order_item_id": _str(item.original_order_item_id),
            }
            for item in order.items
        ]
    }


# ===================== ORDERS =====================

@router.get("/orders")
def list_orders(
    warehouse_id: Optional[UUID] = Query(None),
    transfer_direction: Optional[str] = Query(None, description="sent or received"),
    order_type: Optional[OrderType] = Query(None),
    invoice_number: Optional[str] = Query(None),
    counterparty_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    order_status: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None),
    product_id: Optional[UUID] = Query(None),
    include_deleted: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    orders, total = OrderService.get_orders(
        db,
        warehouse_id=warehouse_id,
        transfer_direction=transfer_direction,
        order_type=order_type,
        invoice_number=invoice_number,
        counterparty_id=counterparty_id,
        date_from=date_from,
        date_to=date_to,
        order_status=order_status,
        payment_status=payment_status,
        product_id=product_id,
        include_deleted=include_deleted,
        page=page,
        per_page=limit
    )
    return {
        "orders": [serialize_order(o) for o in orders],
        "total": total,
        "page": page,
        "limit": limit,
        "pages": (total + limit - 1) // limit
    }

@router.get("/orders/{order_id}")
def get_order(order_id: UUID, db: Session = Depends(get_db)):
    order = OrderService.get_order_by_id(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return serialize_order(order)

@router.post("/orders", status_code=201)
def create_order(
    order_data: OrderCreate,
    db: Session = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id)
):
    order = unwrap_result(OrderService.create_order(db, order_data, created_by=user_id))
    return {"orderId": str(order.id), "invoice_number": order.invoice_number}

@router.put("/orders/{order_id}")
def update_order(
    order_id: UUID,
    order_data: OrderUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id)
):
    order = unwrap_result(OrderService.update_order(db, order_id, order_data, created_by=user_id))
    return {
        "message": "Order updated",
        "orderId": str(order.id),
        "invoice_number": order.invoice_number,
        "paid_amount": float(order.paid_amount or 0),
        "due_amount": float(order.due_amount or 0),
        "payment_status": order.payment_status,
        "is_deletable": order.is_deletable
    }

@router.delete("/orders/{order_id}")
def delete_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id)
):
    order = unwrap_result(OrderService.delete_order(db, order_id, created_by=user_id))
    return {"message": "Order deleted", "orderId": str(order.id)}

@router.post("/orders/{order_id}/restore")
def restore_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id)
):
    order = unwrap_result(OrderService.restore_order(db, order_id, created_by=user_id))
    return {"message": "Order restored", "orderId": str(order.id)}

@router.post("/orders/{order_id}/convert-to-sale")
def convert_to_sale(
    order_id: UUID,
    db: Session = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id)
):
    proforma, sale = unwrap_result(OrderService.convert_to_sale(db, order_id, created_by=user_id))
    return {
        "message": "Proforma converted to sale",
        "proformaId": str(proforma.id),
        "saleId": str(sale.id),
        "invoice_number": sale.invoice_number
    }

# ===================== PAYMENTS =====================

@router.get("/orders/{order_id}/payments")
def list_order_payments(order_id: UUID, db: Session = Depends(get_db)):
    if not OrderService.get_order_by_id(db, order_id):
        raise HTTPException(status_code=404, detail="Order not found")

    return {
        "payments": [
            {
                "id": str(p.id),
                "payment_id": str(p.payment_id),
                "amount": float(p.amount or 0),
                "payment_date": p.payment_date.isoformat() if p.payment_date else None,
                "payment_mode": p.payment.payment_mode if p.payment else None,
                "remarks": p.remarks
            }
            for p in PaymentService.get_order_payments(db, order_id)
        ]
    }

@router.post("/orders/{order_id}/payments", status_code=201)
def add_order_payment(
    order_id: UUID,
    payment_data: OrderPaymentCreate,
    x_idempotency_key: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    user_id: Optional[UUID] = Depends(get_current_user_id)
):
    if x_idempotency_key and not payment_data.idempotency_key:
        payment_data.idempotency_key = x_idempotency_key

    order = unwrap_result(OrderService.add_payment(db, order_id, payment_data, created_by=user_id))
    return {
        "orderId": str(order.id),
        "paid_amount": float(order.paid_amount or 0),
        "due_amount": float(order.due_amount or 0),
        "payment_status": order.payment_status
    }
