"""Pydantic schemas for the file relay.

UploadResult is what a successful upload produces: the generated storage
name, the relative download link and the absolute expiry time. The HTML
success page is rendered from it; the JSON form is logged and used in tests.
"""
from pydantic import BaseModel, Field

# Hard cap on the whole multipart request body: 10 MiB
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

# Files are kept for one hour
FILE_TTL_MINUTES = 60

DEFAULT_FILE_PREFIX = "simplehost"


class UploadResult(BaseModel):
    """Result of a stored and registered upload."""
    file_name: str = Field(..., description="Generated storage name")
    download_url: str = Field(..., description="Relative link to download the file")
    expires_at: float = Field(..., description="Unix timestamp after which the link is dead")
