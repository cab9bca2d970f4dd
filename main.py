"""
Main FastAPI Application.
Entry point for the Dynamic Form Builder API.
"""

from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request, status # type: ignore
from fastapi.middleware.cors import CORSMiddleware # type: ignore
from fastapi.responses import JSONResponse # type: ignore
import psutil

from formbuilder.config import settings
from formbuilder.core.exceptions import AppException
from formbuilder.core.form_store import FormStore
from formbuilder.core.logging_config import (
    setup_logging,
    get_logger,
    log_operation_start,
    log_operation_end,
    log_api_request
)
from formbuilder.core.preview_service import PreviewSession
from formbuilder.core.responses import ResponseHandler
from formbuilder.core.storage import SavedFormsRepository, create_key_value_store

from formbuilder.api.routes import form_builder_routes, saved_forms_routes, preview_routes

API_PREFIX = "/api/v1"

setup_logging(
    log_level="DEBUG" if settings.DEBUG else "INFO",
    log_dir=settings.LOG_DIR,
    enable_file_logging=settings.ENABLE_FILE_LOGGING
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open storage and load saved forms on startup; close storage on shutdown."""
    logger.info(
        f"Starting {settings.APP_NAME} {settings.APP_VERSION} "
        f"(environment={settings.ENVIRONMENT}, debug={settings.DEBUG}, storage={settings.STORAGE_BACKEND})"
    )
    logger.perf.log_memory_usage("Application Startup")

    log_operation_start(logger, "load_saved_forms", backend=settings.STORAGE_BACKEND)
    try:
        kv_store = create_key_value_store(settings)
        form_store = FormStore(SavedFormsRepository(kv_store))
        await form_store.load_saved_forms()
    except Exception as e:
        logger.critical(f"Could not open form storage: {str(e)}", exc_info=True)
        log_operation_end(logger, "load_saved_forms", success=False, error=str(e))
        raise
    log_operation_end(logger, "load_saved_forms", success=True)

    app.state.kv_store = kv_store
    app.state.form_store = form_store
    app.state.preview_session = PreviewSession()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    logger.perf.log_performance_snapshot("Application Shutdown")
    try:
        kv_store.close()
    except Exception as e:
        logger.error(f"Error closing form storage: {str(e)}", exc_info=True)
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Build forms with validated and derived fields, save them, and preview them live",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Time every request and log its outcome."""
    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"Request failed: {request.method} {request.url.path} - {str(e)}",
            extra={"method": request.method, "path": request.url.path},
            exc_info=True
        )
        raise

    duration_ms = (time.time() - start_time) * 1000
    log_api_request(
        logger,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms
    )
    response.headers["X-Process-Time"] = f"{duration_ms:.2f}"
    return response


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Render application exceptions in the error envelope."""
    logger.warning(
        f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, "details": exc.details}
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ResponseHandler.error(
            code=exc.error_code,
            message=exc.message,
            status_code=exc.status_code,
            details=exc.details
        )
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {str(exc)}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ResponseHandler.error(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred" if not settings.DEBUG else str(exc),
            status_code=500
        )
    )


for router in (form_builder_routes.router, saved_forms_routes.router, preview_routes.router):
    app.include_router(router, prefix=API_PREFIX)
    logger.debug(f"Registered routes under {API_PREFIX}{router.prefix}")


@app.get("/health", tags=["System"])
async def health_check(request: Request):
    """Service status with storage, builder and process details."""
    form_store: FormStore = request.app.state.form_store
    preview: PreviewSession = request.app.state.preview_session

    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "storage": {
            "backend": settings.STORAGE_BACKEND,
            "saved_forms": len(form_store.saved_forms)
        },
        "builder": {
            "has_current_form": form_store.current_form is not None,
            "preview_active": preview.is_active
        },
        "performance": {
            "memory_mb": round(psutil.Process().memory_info().rss / 1024 / 1024, 2)
        }
    }


@app.get("/", tags=["System"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
        "health": "/health",
        "api_prefix": API_PREFIX
    }


if __name__ == "__main__":
    import uvicorn # type: ignore

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,
        access_log=False
    )
