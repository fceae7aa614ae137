from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

# Import database components
from pdv_core.database.database import sync_engine, Base

# Import errors
from pdv_core.common.exceptions import PDVError

# Import routers
from pdv_core.modules.cash.router import cash_sessions_router
from pdv_core.modules.pricing.router import pricing_router, drafts_router
from pdv_core.modules.checkout.router import checkout_router, saved_sales_router

# Import models for table creation
import pdv_core.modules.cash.models

from pdv_core.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="PDV Core API",
    description="Motor de precios del carrito y ledger de caja para punto de venta",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PDVError)
async def pdv_error_handler(request: Request, exc: PDVError):
    """Traduce errores del dominio a respuestas JSON con formato consistente"""
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"{exc.code} en {request.url.path}: {exc.detail}")
    else:
        logger.debug(f"{exc.code} en {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code}
    )


# Include routers
app.include_router(cash_sessions_router, prefix="/api/v1")
app.include_router(pricing_router, prefix="/api/v1")
app.include_router(drafts_router, prefix="/api/v1")
app.include_router(checkout_router, prefix="/api/v1")
app.include_router(saved_sales_router, prefix="/api/v1")

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT in ("development", "test"):
    Base.metadata.create_all(bind=sync_engine)


@app.get("/")
async def read_root():
    return {
        "message": "PDV Core API is running",
        "version": "1.0.0",
        "pdv": settings.PDV_NUMBER,
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("PDV Core API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
