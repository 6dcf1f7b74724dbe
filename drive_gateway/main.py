"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Tests can inject settings and an in-memory Drive
- Explicit about initialization order

For local development:
    DRIVE_MOCK_MODE=true uvicorn drive_gateway.main:app --reload

For production:
    python -m drive_gateway
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .api.middleware import UploadSizeLimitMiddleware
from .api.routes import categories, files, health
from .config.settings import Settings, get_settings
from .core.categories import CategoryResolver
from .core.errors import ConfigurationError, GatewayError
from .core.transfer import TransferProxy
from .infrastructure.drive.client import (
    DriveClient,
    DriveConfig,
    create_drive_client,
    load_service_account_info,
)

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)

MOCK_ROOT_FOLDER_ID = "root"


def check_configuration(settings: Settings) -> None:
    """
    Validate the settings without contacting Google.

    Raises ConfigurationError when required settings are missing or the
    service account blob cannot be decoded. Mock mode needs nothing.
    """
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing_fields)}"
        )

    if not settings.drive_mock_mode:
        load_service_account_info(settings.service_account_json_base64)


def build_drive_client(settings: Settings) -> DriveClient:
    """
    Create the Drive client the settings ask for.

    Raises ConfigurationError when the settings are incomplete, unless
    mock mode is on.
    """
    check_configuration(settings)

    if settings.drive_mock_mode:
        return create_drive_client(
            mock_mode=True,
            root_folder_id=settings.folder_id or MOCK_ROOT_FOLDER_ID,
        )

    config = DriveConfig(
        service_account_info=load_service_account_info(settings.service_account_json_base64),
        scopes=settings.drive_scopes_list,
    )
    return create_drive_client(config=config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the Drive client, the category resolver and the transfer proxy
    once per process. A configuration error aborts startup, so the server
    never listens without a usable backend.
    """
    settings: Settings = app.state.settings

    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "Drive Gateway starting",
        extra={
            "version": settings.api_version,
            "mock_mode": settings.drive_mock_mode,
        }
    )

    drive = app.state.drive
    if drive is None:
        try:
            drive = build_drive_client(settings)
        except ConfigurationError as e:
            logger.error("Invalid configuration", extra={"error": e.message})
            raise

    root_folder_id = settings.folder_id or MOCK_ROOT_FOLDER_ID
    resolver = CategoryResolver(drive, root_folder_id, settings.category_seed)

    app.state.drive = drive
    app.state.resolver = resolver
    app.state.transfer = TransferProxy(
        drive,
        resolver,
        max_upload_bytes=settings.max_upload_bytes,
        list_page_size=settings.list_page_size,
        chunk_size=settings.download_chunk_size,
    )

    logger.info(
        "Category map loaded",
        extra={"categories": [name for name, _ in resolver.categories()]}
    )

    yield

    # Shutdown
    logger.info("Drive Gateway shutting down")


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Turn gateway errors into `{"error": message}` with the error's status."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error": exc.message,
        }
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed requests are caller mistakes: 400 with the same error shape."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
        for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": problems or "Invalid request"})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all exception handler.

    We log the full error server-side but return a generic message.
    """
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        },
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


def create_app(
    settings: Optional[Settings] = None,
    drive: Optional[DriveClient] = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Settings to use instead of the environment
        drive: Drive client to use instead of building one from settings
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Browse, upload and download files kept in a Google Drive folder.

        Files are grouped into categories; each category is a folder under
        the root folder, created the first time something is uploaded to it.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.drive = drive

    app.add_middleware(
        UploadSizeLimitMiddleware,
        max_upload_bytes=settings.max_upload_bytes,
        paths=["/api/upload"],
    )

    # CORS middleware
    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_origins_list != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/_health",
        tags=["Health"],
    )

    app.include_router(
        categories.router,
        prefix="/api",
        tags=["Categories"],
    )

    app.include_router(
        files.router,
        prefix="/api",
        tags=["Files"],
    )

    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    if settings.static_dir:
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


# Create the application instance
# This is what uvicorn imports; configuration is validated at startup
app = create_app()
