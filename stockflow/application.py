"""
StockFlow - Order & Stock Transaction Engine
FastAPI application factory
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from stockflow import __version__
from stockflow.core import settings, Database, create_database
from stockflow.core.log_config import configure_logging
from stockflow.api.router import api_router

logger = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the app around `database` (or one from settings)"""
    database = database or create_database()

    # Lifespan for startup/shutdown
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        # Startup: Create tables if not exist
        database.create_all()
        logger.info(f"{settings.APP_NAME} starting on port {settings.APP_PORT}")

        yield

        database.dispose()
        logger.info(f"{settings.APP_NAME} shutting down")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Orders, stock ledger and invoice numbering",
        version=__version__,
        lifespan=lifespan
    )
    app.state.database = database

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    # Include routers
    app.include_router(api_router)

    # Health check
    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "app": settings.APP_NAME}

    return app
