from .base import TimestampMixin, UUIDMixin
from .master import Company, Warehouse, Product, Counterparty, CounterpartyKind
from .order import OrderHeader, OrderItem, OrderType, OrderStatus, PaymentStatus, COUNTERPARTY_REQUIRED
from .stock import ProductStock, StockMovement, StockAdjustment, MovementKind, ReferenceKind, AdjustmentKind
from .finance import Payment, OrderPayment, PaymentDirection

__all__ = [
    # Base
    "TimestampMixin", "UUIDMixin",
    # Master
    "Company", "Warehouse", "Product", "Counterparty", "CounterpartyKind",
    # Order
    "OrderHeader", "OrderItem", "OrderType", "OrderStatus", "PaymentStatus", "COUNTERPARTY_REQUIRED",
    # Stock
    "ProductStock", "StockMovement", "StockAdjustment", "MovementKind", "ReferenceKind", "AdjustmentKind",
    # Finance
    "Payment", "OrderPayment", "PaymentDirection",
]
