"""
FlightBot - Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import auth_router, bookings_router, chat_router, flights_router, websocket_router
from .bot.service import init_chatbot_service
from .config import settings
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware, reset_rate_limits
from .services.booking_service import init_booking_service
from .services.flight_service import init_flight_service
from .storage import LocalStorage, get_booking_storage, get_chat_storage, get_flight_storage, init_all_storage

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)

    storage = LocalStorage(settings.local_storage_path)
    init_all_storage(storage)
    logger.info("Storage initialized")

    flight_service = init_flight_service(get_flight_storage())
    init_booking_service(get_booking_storage(), get_flight_storage())
    init_chatbot_service(
        flight_service,
        chat_storage=get_chat_storage(),
        idle_timeout_minutes=settings.session_idle_timeout_minutes,
    )
    reset_rate_limits()

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    logger.info(f"Debug mode: {settings.debug}")
    if not flight_service.external_client.configured:
        logger.info("External flight API not configured, searches will use synthetic flights")
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Conversational flight search and booking assistant",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware (after CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "Route not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")),
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    logger.info(f"Validation failed for {request.method} {request.url.path}",
                extra={"extra_fields": {"errors": jsonable_encoder(errors)}})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Something went wrong!",
            "error": str(exc) if settings.debug else "Internal server error",
        },
    )


# Include routers
app.include_router(auth_router)
app.include_router(flights_router)
app.include_router(bookings_router)
app.include_router(chat_router)
app.include_router(websocket_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "message": "Welcome to FlightBot - your flight booking assistant"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "storage": settings.storage_type,
        "version": settings.app_version
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "flightbot.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
