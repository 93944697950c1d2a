"""SimpleHost Backend Application.

This is the main entry point for the SimpleHost service.
SimpleHost is a minimal file relay: upload a file through a web form, get
back a download link that stays valid for one hour, after which the file
is deleted.

Modules:
    - files: upload form, uploads, downloads and the expiring file registry
"""
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from app.config import AppConfig, get_config
from app.files import FileRegistry, FileRelayError, FileRelayService
from app.files.router import router as files_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Multipart parsing logs every part at DEBUG.
for _noisy in ("multipart", "python_multipart"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config: AppConfig = app.state.config

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    storage_root = Path(config.storage.root)
    storage_root.mkdir(parents=True, exist_ok=True)
    logger.info(
        "Storage root ready: %s (ttl=%smin, max upload=%d bytes)",
        storage_root,
        config.storage.ttl_minutes,
        config.storage.max_upload_bytes,
    )

    yield  # Application runs here

    # Shutdown
    await app.state.registry.close()
    logger.info("Application shutdown complete")


async def file_relay_error_handler(request: Request, exc: FileRelayError) -> PlainTextResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return PlainTextResponse(exc.detail, status_code=exc.status_code)


def create_app(
    config: Optional[AppConfig] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Build the FastAPI application with its own registry and relay service.

    Args:
        config: Settings to use; defaults to the process-wide config
        clock: Wall-clock source for naming and expiry (injectable for tests)
    """
    config = config or get_config()
    storage = config.storage

    registry = FileRegistry(
        storage_root=storage.root,
        ttl_seconds=storage.ttl_seconds,
        delete_retry_attempts=storage.delete_retry_attempts,
        delete_retry_backoff_seconds=storage.delete_retry_backoff_seconds,
        clock=clock,
    )
    relay_service = FileRelayService(
        registry,
        file_prefix=storage.file_prefix,
        max_upload_bytes=storage.max_upload_bytes,
    )

    application = FastAPI(
        title="SimpleHost API",
        description="Temporary file relay with expiring download links",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.config = config
    application.state.registry = registry
    application.state.relay_service = relay_service

    application.add_exception_handler(FileRelayError, file_relay_error_handler)
    application.include_router(files_router)

    @application.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object with the number of live (unexpired) files.
        """
        return {"status": "ok", "active_files": await registry.active_count()}

    return application


app = create_app()


if __name__ == "__main__":
    server = get_config().server
    uvicorn.run(app, host=server.host, port=server.port, log_level="info")
