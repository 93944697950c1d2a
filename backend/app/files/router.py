"""FastAPI router for the upload form, uploads and downloads."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, StreamingResponse

from app.config import StorageSettings

from .naming import content_disposition
from .pages import render_upload_form, render_upload_result
from .service import FileRelayService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


def get_relay_service(request: Request) -> FileRelayService:
    """Return the relay service owned by the running application."""
    return request.app.state.relay_service


def get_storage_settings(request: Request) -> StorageSettings:
    return request.app.state.config.storage


@router.get("/", response_class=HTMLResponse)
async def upload_page(storage: StorageSettings = Depends(get_storage_settings)) -> HTMLResponse:
    """Serve the static upload form."""
    return HTMLResponse(render_upload_form(storage.max_upload_bytes))


@router.get("/upload")
async def upload_route_get() -> PlainTextResponse:
    """Uploads are POST-only; a plain GET is treated as an unknown route."""
    return PlainTextResponse("Route Doesn't Exist :/", status_code=404)


@router.api_route("/upload", methods=["POST", "PUT", "PATCH", "DELETE"], response_class=HTMLResponse)
async def upload_file(
    request: Request,
    service: FileRelayService = Depends(get_relay_service),
    storage: StorageSettings = Depends(get_storage_settings),
) -> HTMLResponse:
    """Store an uploaded file and return a page with its download link.

    The multipart body must carry a ``file`` part and stay under the
    configured size cap.

    Returns:
        HTML page naming the stored file and linking to /download

    Raises:
        MethodNotAllowed (405): For PUT, PATCH or DELETE
        BadRequest (400): Malformed or oversized form, or no ``file`` part
        InternalError (500): The file could not be written
    """
    result = await service.handle_upload(request.method, request.headers, request.stream())
    return HTMLResponse(render_upload_result(result, storage.ttl_minutes))


@router.get("/download")
async def download_file(
    file: Optional[str] = Query(None),
    service: FileRelayService = Depends(get_relay_service),
) -> StreamingResponse:
    """Stream a stored file as an attachment while its link is still valid.

    Args:
        file: Generated file name from the upload result page

    Raises:
        BadRequest (400): Missing or invalid file name
        NotFound (404): Unknown, expired, or already deleted
    """
    handle = await service.open_download(file)
    logger.info("Serving %s (%d bytes, %s)", handle.file_name, handle.size, handle.content_type)
    return StreamingResponse(
        handle.iter_chunks(),
        media_type=handle.content_type,
        headers={
            "Content-Disposition": content_disposition(handle.file_name),
            "Content-Length": str(handle.size),
        },
    )
