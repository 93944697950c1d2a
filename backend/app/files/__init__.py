"""Temporary file relay module for SimpleHost.

Uploaded files are written under the storage root with a generated name
(``simplehost-<unix seconds><original extension>``) and registered in an
in-memory registry together with their expiry time. A one-shot task deletes
each file once its time-to-live has passed.

Nothing survives a restart: the registry and the pending deletions live only
as long as the process.
"""

from .errors import BadRequest, FileRelayError, InternalError, MethodNotAllowed, NotFound
from .registry import FileRegistry
from .service import DownloadHandle, FileRelayService

__all__ = [
    "BadRequest",
    "DownloadHandle",
    "FileRegistry",
    "FileRelayError",
    "FileRelayService",
    "InternalError",
    "MethodNotAllowed",
    "NotFound",
]
