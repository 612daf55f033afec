from .order import OrderItemCreate, OrderPaymentCreate, OrderCreate, OrderUpdate
from .stock import StockAdjustmentCreate, StockAdjustmentUpdate

__all__ = [
    "OrderItemCreate", "OrderPaymentCreate", "OrderCreate", "OrderUpdate",
    "StockAdjustmentCreate", "StockAdjustmentUpdate",
]
