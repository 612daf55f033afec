from .stock_service import StockService
from .invoice_service import InvoiceService
from .order_item_service import OrderItemService, STOCK_EFFECTS
from .payment_service import PaymentService, determine_payment_status
from .order_service import OrderService
from .adjustment_service import StockAdjustmentService

__all__ = [
    "StockService", "InvoiceService", "OrderItemService", "STOCK_EFFECTS",
    "PaymentService", "determine_payment_status", "OrderService", "StockAdjustmentService",
]
