"""FastAPI application."""
import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .domain_errors import DomainError, ValidationError
from .problem_details import build_internal_error_response, build_problem_details_response
from .routers import auth, download, download_gates, gate, oauth

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create app
app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Download gate funnel API for The Backstage"
)

# Production safety checks (fail closed on insecure config).
if settings.ENV.lower() == "production" and settings.JWT_SECRET_KEY == "change-me-in-production":
    raise RuntimeError("JWT_SECRET_KEY must be set in production.")
if settings.ENV.lower() == "production" and not settings.cors_origins:
    raise RuntimeError("ALLOWED_ORIGINS must be set in production (explicit frontend origin required).")
if settings.ENV.lower() == "production" and any(origin.strip() == "*" for origin in settings.cors_origins):
    raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard when using credentials).")
if settings.ENV.lower() == "production" and any(
    origin.startswith("http://localhost") or origin.startswith("http://127.0.0.1") for origin in settings.cors_origins
):
    raise RuntimeError("ALLOWED_ORIGINS contains localhost in production; set it to your real frontend origin.")

# CORS
cors_methods = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
cors_headers = ["Authorization", "Content-Type"]
if settings.ENV.lower() != "production":
    cors_headers = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=cors_methods,
    allow_headers=cors_headers,
)


@app.exception_handler(DomainError)
def handle_domain_error(request: Request, exc: DomainError):
    return build_problem_details_response(exc)


@app.exception_handler(RequestValidationError)
def handle_request_validation_error(request: Request, exc: RequestValidationError):
    fields = [".".join(str(part) for part in err.get("loc", ()) if part != "body") for err in exc.errors()]
    return build_problem_details_response(
        ValidationError("Invalid request", details={"fields": [field for field in fields if field]})
    )


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return build_internal_error_response()


# Include routers
app.include_router(auth.router, prefix="/api")
app.include_router(oauth.router, prefix="/api")
app.include_router(gate.router, prefix="/api")
app.include_router(download.router, prefix="/api")
app.include_router(download_gates.router, prefix="/api")


@app.get("/api/system/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint."""
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check: database unavailable")
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "version": "1.0.0",
        "database": database,
        "serverTime": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "The Backstage download gate API",
        "version": "1.0.0",
        "docs": "/docs"
    }
