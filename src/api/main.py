from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
import logging
import time

from src.api.core.database import engine
from src.api.core.errors import (
    DomainError,
    domain_error_handler,
    integrity_error_handler,
    request_validation_handler,
    unhandled_error_handler,
)
from src.api.config import settings
from src.utils.logger import setup_logging

# Configure logging
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    setup_logging(log_level=settings.LOG_LEVEL, log_dir=settings.LOG_DIR)
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            logger.info("Database connected")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        # Don't raise - allow API to start even if DB is temporarily unavailable

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Coffee farm registration, spatial verification, harvest and warehouse ledger API",
    version=VERSION,
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    lifespan=lifespan
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# GZip compression for responses
app.add_middleware(GZipMiddleware, minimum_size=1000)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s")
    return response


# Error envelope handlers
app.add_exception_handler(DomainError, domain_error_handler)
app.add_exception_handler(IntegrityError, integrity_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_error_handler)


# Health check endpoint
@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint for monitoring"""
    db_status = "connected"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Health check database probe failed: {e}")
        db_status = "disconnected"

    return {
        "success": True,
        "status": "healthy" if db_status == "connected" else "degraded",
        "version": VERSION,
        "database": db_status,
    }


API_PREFIX = settings.API_PREFIX

# Import routers
from src.api.routers import (  # noqa: E402
    districts,
    facilities,
    farms,
    productivities,
    users,
    verification,
    warehouses,
)

# Include routers
app.include_router(
    users.router,
    prefix=f"{API_PREFIX}/users",
    tags=["Users"]
)
app.include_router(
    districts.router,
    prefix=f"{API_PREFIX}/districts",
    tags=["Districts"]
)
# Verification first: its static paths (/pending, /verified, /verify/bulk)
# must win over /farms/{farm_id}
app.include_router(
    verification.router,
    prefix=f"{API_PREFIX}/farms",
    tags=["Verification"]
)
app.include_router(
    farms.router,
    prefix=f"{API_PREFIX}/farms",
    tags=["Farms"]
)
app.include_router(
    productivities.router,
    prefix=f"{API_PREFIX}/productivities",
    tags=["Productivities"]
)
app.include_router(
    warehouses.router,
    prefix=f"{API_PREFIX}/warehouses",
    tags=["Warehouse Inventory"]
)
app.include_router(
    facilities.router,
    prefix=f"{API_PREFIX}/warehouse-facilities",
    tags=["Warehouse Facilities"]
)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """API root endpoint"""
    return {
        "success": True,
        "message": f"Welcome to {settings.APP_NAME}",
        "docs": f"{API_PREFIX}/docs",
        "version": VERSION,
        "endpoints": {
            "health": "/health",
            "docs": f"{API_PREFIX}/docs",
            "users": f"{API_PREFIX}/users",
            "districts": f"{API_PREFIX}/districts",
            "farms": f"{API_PREFIX}/farms",
            "productivities": f"{API_PREFIX}/productivities",
            "warehouses": f"{API_PREFIX}/warehouses",
            "warehouse_facilities": f"{API_PREFIX}/warehouse-facilities",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
