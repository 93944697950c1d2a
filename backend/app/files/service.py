"""File relay service.

Handles the upload path (method check, size-capped multipart parsing,
collision-safe file creation, registration) and the download path (name
validation, registry lookup, opening the stored file).

Files are stored flat in the storage root: {storage_root}/{prefix}-{secs}{ext}
"""
import logging
import os
import shutil
from dataclasses import dataclass
from typing import AsyncIterator, BinaryIO, Iterator, Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from .errors import BadRequest, InternalError, MethodNotAllowed, NotFound
from .naming import (
    build_storage_name,
    detect_content_type,
    download_link,
    original_extension,
    validate_file_name,
)
from .registry import FileRegistry
from .schemas import DEFAULT_FILE_PREFIX, MAX_UPLOAD_BYTES, UploadResult

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadHandle:
    """An opened stored file, ready to be streamed to the client."""
    file_name: str
    fileobj: BinaryIO
    size: int
    content_type: str

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the file body and close the handle when done."""
        try:
            while True:
                chunk = self.fileobj.read(chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.fileobj.close()


class FileRelayService:
    """Service for storing uploads and serving them back until they expire."""

    def __init__(
        self,
        registry: FileRegistry,
        file_prefix: str = DEFAULT_FILE_PREFIX,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
    ) -> None:
        self._registry = registry
        self._file_prefix = file_prefix
        self._max_upload_bytes = max_upload_bytes

    @property
    def registry(self) -> FileRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def handle_upload(
        self,
        method: str,
        headers: Headers,
        stream: AsyncIterator[bytes],
    ) -> UploadResult:
        """Accept a multipart upload carrying a ``file`` part.

        Args:
            method: HTTP method of the request; only POST is accepted
            headers: Request headers (Content-Type must be multipart/form-data)
            stream: The raw request body

        Returns:
            UploadResult with the generated name and download link

        Raises:
            MethodNotAllowed: For anything but POST
            BadRequest: Malformed form, missing ``file`` part, or body over the cap
            InternalError: The file could not be created or written
        """
        if method.upper() != "POST":
            raise MethodNotAllowed()

        content_type = headers.get("content-type", "")
        if not content_type.lower().startswith("multipart/form-data"):
            raise BadRequest("Unable to parse form")

        declared = headers.get("content-length")
        if declared is not None:
            try:
                declared_size = int(declared)
            except ValueError:
                raise BadRequest("Unable to parse form")
            if declared_size > self._max_upload_bytes:
                raise BadRequest(self._too_large_detail())

        parser = MultiPartParser(headers, self._limit_body(stream))
        try:
            form = await parser.parse()
        except (MultiPartException, KeyError, ValueError) as exc:
            logger.warning("Rejected malformed upload: %s", exc)
            raise BadRequest("Unable to parse form")

        try:
            uploads = [item for item in form.getlist("file") if isinstance(item, UploadFile) and item.filename]
            if not uploads:
                raise BadRequest("Unable to get the file from form")
            upload = uploads[0]
            return await self.store_upload(upload.filename or "", upload.file)
        finally:
            await form.close()

    async def store_upload(self, filename: str, source: BinaryIO) -> UploadResult:
        """Write *source* under a generated name, then register it.

        Only the extension of *filename* is kept. The entry is published after
        the bytes are on disk, so anyone who sees it can open the file.
        """
        extension = original_extension(filename)
        unix_seconds = int(self._registry.now())
        file_name = await run_in_threadpool(self._write_new_file, unix_seconds, extension, source)
        expires_at = await self._registry.register(file_name)

        result = UploadResult(
            file_name=file_name,
            download_url=download_link(file_name),
            expires_at=expires_at,
        )
        logger.info("File uploaded: %r stored as %s", filename, file_name)
        return result

    def _write_new_file(self, unix_seconds: int, extension: str, source: BinaryIO) -> str:
        # Exclusive create: a second upload in the same second with the same
        # extension gets a sequence suffix instead of overwriting the first.
        sequence = 0
        while True:
            file_name = build_storage_name(self._file_prefix, unix_seconds, extension, sequence)
            path = self._registry.path_for(file_name)
            try:
                out = open(path, "xb")
            except FileExistsError:
                sequence += 1
                continue
            except (OSError, ValueError) as exc:
                logger.error("Unable to create %s: %s", path, exc)
                raise InternalError("Unable to create the file on server") from exc

            with out:
                try:
                    shutil.copyfileobj(source, out, CHUNK_SIZE)
                except OSError as exc:
                    logger.error("Unable to write %s: %s", path, exc)
                    raise InternalError("Unable to save the file") from exc
            return file_name

    async def _limit_body(self, stream: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        received = 0
        async for chunk in stream:
            received += len(chunk)
            if received > self._max_upload_bytes:
                raise BadRequest(self._too_large_detail())
            yield chunk

    def _too_large_detail(self) -> str:
        return f"Upload exceeds size limit ({self._max_upload_bytes} bytes)"

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    async def open_download(self, file_name: Optional[str]) -> DownloadHandle:
        """Open a registered, unexpired file for streaming.

        Raises:
            BadRequest: Name missing or not a plain file name
            NotFound: Unknown, expired, or gone from disk
        """
        if not file_name:
            raise BadRequest("File name is required")
        validate_file_name(file_name)

        if await self._registry.lookup(file_name) is None:
            raise NotFound("File not found or expired")

        return await run_in_threadpool(self._open_stored, file_name)

    def _open_stored(self, file_name: str) -> DownloadHandle:
        path = self._registry.path_for(file_name)
        try:
            fileobj = open(path, "rb")
        except OSError as exc:
            logger.warning("Registered file missing on disk: %s (%s)", file_name, exc)
            raise NotFound("File not found")

        size = os.fstat(fileobj.fileno()).st_size
        return DownloadHandle(
            file_name=file_name,
            fileobj=fileobj,
            size=size,
            content_type=detect_content_type(file_name),
        )
