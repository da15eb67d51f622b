"""
Main FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from app.core.config import settings
from app.core.exceptions import ServiceError
from app.core.logging_config import logger, setup_logging
from app.core.middleware import RequestLoggingMiddleware
from app.db.session import init_db
from app.utils.tasks import shutdown_background_tasks
from app.routes import auth
from app.routes.api import (
    bookings, content, cron, directory, draft_mode, notifications, payments, pro, roadmap, webhooks
)
from app.routes.admin import (
    bookings as admin_bookings,
    dashboard as admin_dashboard,
    moderation as admin_moderation,
    roadmap as admin_roadmap,
    users as admin_users,
    websocket as admin_websocket,
)

setup_logging(
    log_level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    log_file=settings.LOG_FILE
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        init_db()
    except Exception as e:
        logger.error(f"Error initializing database: {str(e)}")
        raise
    yield
    shutdown_background_tasks(wait=True)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Casaora - Home services marketplace API",
    debug=settings.DEBUG,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else settings.CORS_ORIGINS,
    allow_credentials=not settings.DEBUG,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions"""
    logger.warning(f"HTTP exception: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "status_code": exc.status_code},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    """Handle domain errors raised by services"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{type(exc).__name__}: {exc.status_code} - {exc.message}")
    content = {"error": exc.message, "status_code": exc.status_code}
    if exc.details:
        content["details"] = jsonable_encoder(exc.details)
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors"""
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "Validation error", "details": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "status_code": 500}
    )


# Include routers
app.include_router(auth.router)
app.include_router(bookings.router)
app.include_router(payments.router)
app.include_router(pro.router)
app.include_router(webhooks.router)
app.include_router(notifications.router)
app.include_router(directory.router)
app.include_router(roadmap.router)
app.include_router(content.router)
app.include_router(draft_mode.router)
app.include_router(cron.router)

# Include admin routers
app.include_router(admin_dashboard.router)
app.include_router(admin_users.router)
app.include_router(admin_bookings.router)
app.include_router(admin_moderation.router)
app.include_router(admin_roadmap.router)
app.include_router(admin_websocket.router)  # WebSocket for notifications


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
