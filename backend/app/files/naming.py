"""Helpers for generated storage names, download links and response headers."""
import mimetypes
import urllib.parse

from .errors import BadRequest

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def original_extension(filename: str) -> str:
    """Return the extension of *filename*, including the leading dot.

    Only the final path element is considered, and everything from its last
    dot onwards counts as the extension, so ``archive.tar.gz`` gives ``.gz``
    and ``.bashrc`` gives ``.bashrc``. A name without a dot gives ``""``.

    Examples:
        >>> original_extension("report.pdf")
        '.pdf'
        >>> original_extension("notes")
        ''
    """
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    dot = base.rfind(".")
    if dot < 0:
        return ""
    return base[dot:]


def build_storage_name(prefix: str, unix_seconds: int, extension: str, sequence: int = 0) -> str:
    """Build ``{prefix}-{unix_seconds}{extension}``.

    A non-zero *sequence* is only used when the plain name is already taken
    and is inserted before the extension.
    """
    if sequence:
        return f"{prefix}-{unix_seconds}-{sequence}{extension}"
    return f"{prefix}-{unix_seconds}{extension}"


def validate_file_name(file_name: str) -> str:
    """Reject names that could resolve outside the storage root."""
    if not file_name:
        raise BadRequest("File name is required")
    if (
        "/" in file_name
        or "\\" in file_name
        or "\x00" in file_name
        or ".." in file_name
        or file_name == "."
    ):
        raise BadRequest("Invalid file name")
    return file_name


def download_link(file_name: str) -> str:
    return "/download?file=" + urllib.parse.quote(file_name, safe="")


def detect_content_type(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or DEFAULT_CONTENT_TYPE


def content_disposition(file_name: str) -> str:
    # Same rule Starlette's FileResponse applies: plain names are quoted,
    # anything else goes through RFC 5987 encoding.
    quoted = urllib.parse.quote(file_name)
    if quoted != file_name:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{file_name}"'
