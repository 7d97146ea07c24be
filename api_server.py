"""
FastAPI server for PaperDesk
Serves the pricing, order, payment and wallet API
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from config.config import API_RATE_LIMIT, validate_config, WEBAPP_URL
from config.logging import setup_logging
from src.core.errors import InvalidInputError, NotFoundError
from src.database.engine import dispose_engine
from src.api.router import router as api_router

# Setup logging at module level (must run before app creation)
# so it also applies when uvicorn imports the module
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events
    """
    logger.info("Starting PaperDesk API Server...")

    # NOTE: Database tables managed by Alembic migrations
    # Run: alembic upgrade head

    yield

    logger.info("Shutting down PaperDesk API Server...")
    await dispose_engine()
    logger.info("Database connections closed")


# Per-IP rate limit for every endpoint
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[API_RATE_LIMIT],
    storage_uri="memory://",
)

app = FastAPI(
    title="PaperDesk API",
    description="Pricing, orders and payments for the writing marketplace",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# CORS: exact origins only
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

if WEBAPP_URL and WEBAPP_URL not in allowed_origins:
    allowed_origins.append(WEBAPP_URL)

if os.getenv("ENVIRONMENT") == "development":
    ngrok_url = os.getenv("NGROK_URL")
    if ngrok_url and ngrok_url not in allowed_origins:
        allowed_origins.append(ngrok_url)
        logger.warning(f"Development mode: added ngrok URL to CORS: {ngrok_url}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Basic hardening headers on every response"""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "SAMEORIGIN"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    if os.getenv("ENVIRONMENT") == "production" and request.url.scheme == "https":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    return response


# All API endpoints live under /api
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "service": "PaperDesk API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    """Field-level validation failures from the service layer"""
    logger.warning(f"Invalid input on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "invalid_input",
            "errors": [e.to_dict() for e in exc.errors],
        },
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=404,
        content={"success": False, "error": "not_found", "detail": str(exc)},
    )


# Error handler for HTTPException (must be before generic Exception handler)
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Return the original status code and detail
    """
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code}: {exc.detail}")

    content = exc.detail if isinstance(exc.detail, dict) else {"detail": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unexpected errors
    """
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "detail": str(exc) if getattr(app, "debug", False) else "An error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn

    try:
        validate_config()
    except ValueError as e:
        logger.error(str(e))
        raise SystemExit(1)

    logger.info("Configuration validated successfully")

    # Localhost only; exposed through the reverse proxy
    uvicorn.run(
        "api_server:app",
        host="127.0.0.1",
        port=8003,
        reload=os.getenv("ENVIRONMENT") == "development",
        log_level="info",
    )
