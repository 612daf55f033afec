"""
StockFlow - Order & Stock Transaction Engine
FastAPI Application Entry Point
"""
import uvicorn

from stockflow.application import create_app
from stockflow.core import settings

# Create FastAPI app
app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )
