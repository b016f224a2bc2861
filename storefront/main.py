"""
Grocery storefront service

Checkout pricing (delivery radius and fee) and the order lifecycle.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError

from shared.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from storefront.api import pricing, routes
from storefront.api.errors import register_error_handlers
from storefront.core_settings import get_settings
from storefront.infrastructure.db import engine, init_models

settings = get_settings()
SERVICE_DESCRIPTION = "Grocery storefront: delivery pricing and orders"
PROJECT_ROOT = Path(__file__).resolve().parent.parent

setup_logging(service_name=settings.SERVICE_NAME, level=settings.LOG_LEVEL)

logger = get_logger(__name__)

def run_migrations(database_url: Optional[str] = None) -> None:
    alembic_ini = PROJECT_ROOT / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("alembic.ini not found, creating tables from models")
        init_models()
        return
    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    if database_url:
        config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.SERVICE_NAME} version {settings.SERVICE_VERSION}")
    try:
        run_migrations()
        logger.info("Database migrations completed")
    except SQLAlchemyError:
        logger.error("Database migration failed", exc_info=True)
        raise
    yield
    logger.info(f"Shutting down {settings.SERVICE_NAME}")

app = FastAPI(
    title=settings.SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_error_handlers(app)

health_service = ServiceHealth(settings.SERVICE_NAME, engine, settings.SERVICE_VERSION)
app.include_router(health_service.create_health_router())

app.include_router(pricing.router)
app.include_router(routes.router)
app.include_router(routes.admin_router)

@app.get("/")
async def root():
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs"
    }
