"""Unit tests for FileRelayService upload and download handling."""
import asyncio
import io

import pytest
from starlette.datastructures import Headers

from app.files import BadRequest, FileRegistry, FileRelayService, MethodNotAllowed, NotFound

from conftest import FakeClock, body_stream, multipart_body


def _service(root, max_upload_bytes=1024, clock=None):
    registry = FileRegistry(root, ttl_seconds=3600, clock=clock or FakeClock())
    return FileRelayService(registry, file_prefix="simplehost", max_upload_bytes=max_upload_bytes)


def _read(handle) -> bytes:
    return b"".join(handle.iter_chunks())


class TestHandleUpload:
    """Tests for the upload path below the HTTP layer."""

    @pytest.mark.asyncio
    async def test_stores_and_registers(self, tmp_path):
        service = _service(tmp_path)
        body, headers = multipart_body("report.pdf", b"abc")

        result = await service.handle_upload("POST", Headers(headers), body_stream(body))

        assert result.file_name == "simplehost-1700000000.pdf"
        assert result.download_url == "/download?file=simplehost-1700000000.pdf"
        assert result.expires_at == 1_700_000_000 + 3600
        assert (tmp_path / result.file_name).read_bytes() == b"abc"
        await service.registry.close()

    @pytest.mark.asyncio
    async def test_rejects_non_post(self, tmp_path):
        service = _service(tmp_path)
        body, headers = multipart_body("report.pdf", b"abc")

        with pytest.raises(MethodNotAllowed):
            await service.handle_upload("GET", Headers(headers), body_stream(body))

    @pytest.mark.asyncio
    async def test_cap_enforced_without_content_length(self, tmp_path):
        """A chunked body that grows past the cap is rejected mid-stream."""
        service = _service(tmp_path, max_upload_bytes=1024)
        body, headers = multipart_body("big.bin", b"x" * 4096)
        del headers["content-length"]

        with pytest.raises(BadRequest):
            await service.handle_upload("POST", Headers(headers), body_stream(body, chunk_size=256))

        assert list(tmp_path.iterdir()) == []
        assert service.registry.pending_expiries == 0

    @pytest.mark.asyncio
    async def test_declared_length_over_cap(self, tmp_path):
        service = _service(tmp_path, max_upload_bytes=1024)
        body, headers = multipart_body("big.bin", b"x" * 2048)

        with pytest.raises(BadRequest, match="size limit"):
            await service.handle_upload("POST", Headers(headers), body_stream(body))

        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_boundary(self, tmp_path):
        service = _service(tmp_path)
        headers = Headers({"content-type": "multipart/form-data"})

        with pytest.raises(BadRequest, match="Unable to parse form"):
            await service.handle_upload("POST", headers, body_stream(b"garbage"))

    @pytest.mark.asyncio
    async def test_empty_filename_is_not_a_file(self, tmp_path):
        service = _service(tmp_path)
        body, headers = multipart_body("", b"")

        with pytest.raises(BadRequest, match="Unable to get the file from form"):
            await service.handle_upload("POST", Headers(headers), body_stream(body))

        assert list(tmp_path.iterdir()) == []
        assert service.registry.pending_expiries == 0

    @pytest.mark.asyncio
    async def test_wrong_field_name(self, tmp_path):
        service = _service(tmp_path)
        body, headers = multipart_body("report.pdf", b"abc", field="upload")

        with pytest.raises(BadRequest, match="Unable to get the file from form"):
            await service.handle_upload("POST", Headers(headers), body_stream(body))


class TestConcurrentUploads:
    """N simultaneous uploads get distinct, independent links."""

    @pytest.mark.asyncio
    async def test_distinct_names_and_contents(self, tmp_path):
        service = _service(tmp_path, max_upload_bytes=10 * 1024 * 1024)
        payloads = [f"payload-{i}".encode() * (i + 1) for i in range(20)]

        results = await asyncio.gather(
            *(service.store_upload("same.txt", io.BytesIO(p)) for p in payloads)
        )

        names = [r.file_name for r in results]
        assert len(set(names)) == len(payloads)
        for result, payload in zip(results, payloads):
            handle = await service.open_download(result.file_name)
            assert _read(handle) == payload
        await service.registry.close()


class TestOpenDownload:
    """Tests for the download path below the HTTP layer."""

    @pytest.mark.asyncio
    async def test_opens_registered_file(self, tmp_path):
        service = _service(tmp_path)
        result = await service.store_upload("notes.txt", io.BytesIO(b"hello"))

        handle = await service.open_download(result.file_name)

        assert handle.size == 5
        assert handle.content_type == "text/plain"
        assert _read(handle) == b"hello"
        assert handle.fileobj.closed
        await service.registry.close()

    @pytest.mark.asyncio
    async def test_open_handle_survives_deletion(self, tmp_path):
        """A download that already opened the file finishes even if expiry runs."""
        service = _service(tmp_path)
        result = await service.store_upload("notes.txt", io.BytesIO(b"hello"))
        handle = await service.open_download(result.file_name)

        assert await service.registry.expire_and_delete(result.file_name)

        assert _read(handle) == b"hello"
        with pytest.raises(NotFound):
            await service.open_download(result.file_name)
        await service.registry.close()

    @pytest.mark.asyncio
    async def test_expired_entry(self, tmp_path):
        clock = FakeClock()
        service = _service(tmp_path, clock=clock)
        result = await service.store_upload("notes.txt", io.BytesIO(b"hello"))
        clock.advance(3600)

        with pytest.raises(NotFound, match="expired"):
            await service.open_download(result.file_name)
        await service.registry.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", [None, ""])
    async def test_missing_name(self, tmp_path, name):
        service = _service(tmp_path)
        with pytest.raises(BadRequest, match="required"):
            await service.open_download(name)
