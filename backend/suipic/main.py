"""
Main FastAPI application entry point.
"""
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging

from suipic.core.config import settings
from suipic.core.database import init_db, close_db
from suipic.core.errors import (
    SuipicError,
    http_exception_handler,
    request_validation_handler,
    suipic_error_handler,
    unhandled_error_handler,
)
from suipic.core.security import reset_identity_verifier
from suipic.api import auth, users, albums, images, feedback

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting init_db()...")
    await init_db()
    logger.info("init_db() complete.")
    yield
    # Shutdown
    logger.info("Shutting down db...")
    reset_identity_verifier()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Photo proofing for photographers, collaborators and clients",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Security headers middleware
@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    return response


# Error envelope
app.add_exception_handler(SuipicError, suipic_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

# Include routers
app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/v1/users", tags=["users"])
app.include_router(albums.router, prefix="/api/v1/albums", tags=["albums"])
app.include_router(images.album_images_router, prefix="/api/v1/albums", tags=["images"])
app.include_router(images.router, prefix="/api/v1/images", tags=["images"])
app.include_router(feedback.router, prefix="/api/v1/images", tags=["feedback"])


@app.get("/")
async def root():
    """API root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"success": True, "data": {"status": "healthy"}}
