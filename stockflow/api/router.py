"""
API Router - JSON Endpoints
"""
from fastapi import APIRouter

from stockflow.api.orders import router as orders_router
from stockflow.api.payments import router as payments_router
from stockflow.api.stock import router as stock_router

api_router = APIRouter(prefix="/api")

api_router.include_router(orders_router)
api_router.include_router(payments_router)
api_router.include_router(stock_router)
