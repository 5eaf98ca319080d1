from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from agent_affiliate.api.deps import DB
from agent_affiliate.api.v1.router import api_router, redirect_router
from agent_affiliate.config import settings
from agent_affiliate.core.exceptions import AffiliateError
from agent_affiliate.database import init_db
from agent_affiliate.schemas.base import ErrorResponse


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables if missing (Alembic owns real migrations)
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    yield

    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Onboarding", "description": "How agents get started (wallet address is the identity)"},
    {"name": "Merchants", "description": "Merchants paying cashback in the settlement token"},
    {"name": "Links", "description": "Affiliate link generation and per-wallet link listing"},
    {"name": "Earnings", "description": "Reward ledger summary per wallet"},
    {"name": "Webhooks", "description": "Conversion postbacks from affiliate networks"},
]

FULL_API_DESCRIPTION = """
## Agent Affiliate API

Attributes affiliate purchases to AI agents by wallet address.

| Step | Call |
|------|------|
| Onboard | `GET /api/start` |
| Find a merchant | `GET /api/merchants?query=travel` |
| Get a link | `POST /api/links { walletAddress, merchantId }` |
| Share | `GET /s/{code}` redirects to the tracking URL |
| Check earnings | `GET /api/earnings?walletAddress=0x...` |

### Envelope

Every response is `{"success": true, "data": ...}` or `{"success": false, "error": "..."}`.

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Invalid wallet address, missing field, merchant without USDT cashback |
| 404 | Unknown merchant, link or short code |
| 409 | Postback could not be reconciled under concurrent updates |
| 502 | Tracking link could not be generated |
| 500 | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=FULL_API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(api_router)
app.include_router(redirect_router)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(AffiliateError)
async def affiliate_error_handler(request: Request, exc: AffiliateError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details}")
    return error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return error_response(400, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, str(exc.detail))


# Global exception handler so nothing escapes without the envelope
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, "Internal server error")


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check(db: DB):
    """Health check endpoint with database validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        health_status["checks"]["database"] = "connected"
    except Exception as e:
        logger.warning(f"Health check database probe failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "start": f"{settings.API_PREFIX}/start",
        "docs": "/docs",
    }
