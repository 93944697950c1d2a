"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from app.config import AppConfig, StorageSettings
from app.main import create_app

START_TIME = 1_700_000_000.0


class FakeClock:
    """Wall clock that only moves when a test tells it to."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def multipart_body(filename: str, content: bytes, field: str = "file", boundary: str = "simplehostboundary"):
    """Build a raw multipart/form-data body and matching headers."""
    body = (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{field}"; filename="{filename}"\r\n'
        "Content-Type: application/octet-stream\r\n\r\n"
    ).encode() + content + f"\r\n--{boundary}--\r\n".encode()
    headers = {
        "content-type": f"multipart/form-data; boundary={boundary}",
        "content-length": str(len(body)),
    }
    return body, headers


async def body_stream(body: bytes, chunk_size: int = 1024):
    for start in range(0, len(body), chunk_size):
        yield body[start:start + chunk_size]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def storage_root(tmp_path):
    """Storage directory; created by the app lifespan on startup."""
    return tmp_path / "uploads"


@pytest.fixture
def app_config(storage_root):
    return AppConfig(storage=StorageSettings(root=str(storage_root)))


@pytest.fixture
def relay_app(app_config, fake_clock):
    return create_app(app_config, clock=fake_clock)


@pytest.fixture
def api_client(relay_app):
    """Provide a TestClient with the lifespan running.

    Entering the client keeps one event loop alive for the whole test, which
    the per-file expiry tasks need.
    """
    with TestClient(relay_app) as client:
        yield client
