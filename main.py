from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging

from config.settings import settings
from db.session import create_tables
from utilities.jwt import validate_env_variables
from utilities.log import setup_logging
from utilities.middleware import LoggingMiddleware, ErrorLoggingMiddleware, RateLimitMiddleware
from utilities.response import error_response
from core.expiry import start_expiry_scheduler, shutdown_expiry_scheduler

# Import API routers
from api.payment import router as payment_router
from api.user_plan import router as user_plan_router

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting MediMind Payment API...")

    # Missing gateway credentials only disable that gateway
    validate_env_variables()

    try:
        create_tables()
        logger.info("Database tables created/verified")
    except Exception as e:
        logger.error(f"Database initialisation failed: {e}")
        raise

    start_expiry_scheduler()

    logger.info(f"Stripe: {'ready' if settings.STRIPE_ENABLED else 'not configured'}")
    logger.info(f"SSLCommerz: {'ready' if settings.SSLCOMMERZ_ENABLED else 'not configured'}")

    yield

    shutdown_expiry_scheduler()
    logger.info("Shutting down MediMind Payment API...")

app = FastAPI(
    title="MediMind Payment API",
    description="Plan checkout through Stripe and SSLCommerz with webhook/IPN confirmation",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(ErrorLoggingMiddleware)
app.add_middleware(LoggingMiddleware)
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware)

# Global exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions"""
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_response(message), headers=exc.headers)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors: 400 with the first problem named"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {location + ': ' if location else ''}{first.get('msg')}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=error_response(message))

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content=error_response("Internal server error"))

# Health/status
@app.get("/")
async def root():
    """Reports which gateways are configured"""
    return {
        "status": "ok",
        "service": "MediMind Payment API",
        "stripe": settings.STRIPE_ENABLED,
        "sslcommerz": settings.SSLCOMMERZ_ENABLED,
    }

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "MediMind Payment API is running"}

# Include routers
app.include_router(payment_router, prefix="/api")
app.include_router(user_plan_router, prefix="/api")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=True,
        log_level="info"
    )
