"""
FastAPI backend for the message service.

One cached read path and one invalidating write path, wired through the
dependency injection container.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.exceptions import StoreUnavailable, ValidationError
from core.health import get_health_status, set_startup_time
from core.logging import configure_logging, get_logger
from routers import messages

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting message service")
    set_startup_time()

    await container.database().startup()
    await container.cache().startup()

    logger.info("Services started successfully",
                cache_backend=container.cache().backend,
                cache_key=settings.message_cache_key,
                cache_ttl=settings.cache_ttl)
    yield

    await container.message_service().wait_for_pending()
    await container.cache().shutdown()
    await container.database().shutdown()
    logger.info("Services shutdown complete")


app = FastAPI(
    title="Message Service",
    version="1.0.0",
    description="Latest-message API with read-through caching",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error("Unhandled exception", path=request.url.path,
                         error=f"{type(e).__name__}: {e}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": type(e).__name__,
                    "detail": "Internal server error"
                }
            )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"success": False, "error": "ValidationError", "field": exc.field, "detail": str(exc)},
    )


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.warning("Row store unavailable", path=request.url.path, operation=exc.operation,
                   reason=exc.reason)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"success": False, "error": "StoreUnavailable", "detail": "Message store unavailable"},
        headers={"Retry-After": "1"},
    )


app.add_middleware(CatchAllExceptionsMiddleware)

# CORS must be added after the exception middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(messages.router)


@app.get("/health")
async def health_check():
    """Collaborator connectivity and uptime."""
    return await get_health_status(container.database(), container.cache(), settings)


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting message service",
                host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        reload_excludes=["*.pyc", "__pycache__", "*.log", "*.db"] if settings.debug else None,
        workers=1 if settings.debug else settings.workers
    )
