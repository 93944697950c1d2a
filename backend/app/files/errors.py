"""Error kinds surfaced by the file relay.

Each kind maps to exactly one HTTP status. The exception handler registered
in ``app.main`` turns them into plain-text responses.
"""
from typing import Optional


class FileRelayError(Exception):
    """Base class for per-request failures."""

    status_code: int = 500
    default_detail: str = "Internal server error"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class MethodNotAllowed(FileRelayError):
    status_code = 405
    default_detail = "Only POST method is allowed"


class BadRequest(FileRelayError):
    status_code = 400
    default_detail = "Bad request"


class NotFound(FileRelayError):
    status_code = 404
    default_detail = "File not found or expired"


class InternalError(FileRelayError):
    status_code = 500
    default_detail = "Unable to save the file"
