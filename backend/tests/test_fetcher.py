"""
Source fetcher tests

Remote sources go through an httpx.MockTransport; no real network.
"""

import httpx
import pytest

from conftest import REMOTE_MISSING, REMOTE_OK, REMOTE_UNREACHABLE, open_image, remote_transport
from image_optimizer.errors import SourceNotFound, SourceReadError, SourceTooLarge, UpstreamFailure
from image_optimizer.fetcher import SourceFetcher
from image_optimizer.models import LocalSource, RemoteSource


@pytest.fixture
def source_fetcher():
    return SourceFetcher(client=httpx.AsyncClient(transport=remote_transport()))


class TestRemoteFetch:
    @pytest.mark.asyncio
    async def test_success(self, source_fetcher):
        data = await source_fetcher.fetch(RemoteSource(REMOTE_OK))
        assert open_image(data).size == (640, 480)

    @pytest.mark.asyncio
    async def test_non_success_status(self, source_fetcher):
        with pytest.raises(UpstreamFailure) as exc_info:
            await source_fetcher.fetch(RemoteSource(REMOTE_MISSING))
        assert "404" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error(self, source_fetcher):
        with pytest.raises(UpstreamFailure):
            await source_fetcher.fetch(RemoteSource(REMOTE_UNREACHABLE))

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        fetcher = SourceFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(UpstreamFailure) as exc_info:
            await fetcher.fetch(RemoteSource(REMOTE_OK))
        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_declared_length_over_limit(self):
        fetcher = SourceFetcher(
            client=httpx.AsyncClient(transport=remote_transport()), max_source_bytes=1024
        )
        with pytest.raises(SourceTooLarge) as exc_info:
            await fetcher.fetch(RemoteSource(REMOTE_OK))
        assert isinstance(exc_info.value, UpstreamFailure)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_streamed_body_over_limit(self):
        async def chunks():
            for _ in range(4):
                yield b"x" * 8

        def handler(request):
            return httpx.Response(200, content=chunks())

        fetcher = SourceFetcher(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), max_source_bytes=20
        )
        with pytest.raises(SourceTooLarge):
            await fetcher.fetch(RemoteSource(REMOTE_OK))

    @pytest.mark.asyncio
    async def test_body_at_limit_is_accepted(self):
        def handler(request):
            return httpx.Response(200, content=b"x" * 20)

        fetcher = SourceFetcher(
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), max_source_bytes=20
        )
        assert await fetcher.fetch(RemoteSource(REMOTE_OK)) == b"x" * 20

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self, source_fetcher):
        await source_fetcher.close()
        assert not source_fetcher.http_client.is_closed

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self):
        fetcher = SourceFetcher(timeout=5.0)
        await fetcher.close()
        assert fetcher.http_client.is_closed


class TestLocalFetch:
    @pytest.mark.asyncio
    async def test_reads_whole_file(self, source_fetcher, assets_dir):
        path = assets_dir / "square.png"
        assert await source_fetcher.fetch(LocalSource(path)) == path.read_bytes()

    @pytest.mark.asyncio
    async def test_missing_file(self, source_fetcher, assets_dir):
        with pytest.raises(SourceNotFound):
            await source_fetcher.fetch(LocalSource(assets_dir / "missing.png"))

    @pytest.mark.asyncio
    async def test_directory_is_not_found(self, source_fetcher, assets_dir):
        with pytest.raises(SourceNotFound):
            await source_fetcher.fetch(LocalSource(assets_dir / "nested"))

    @pytest.mark.asyncio
    async def test_read_error(self, source_fetcher, assets_dir, monkeypatch):
        def broken_read(path):
            raise PermissionError("denied")

        monkeypatch.setattr("image_optimizer.fetcher._read_file", broken_read)
        with pytest.raises(SourceReadError):
            await source_fetcher.fetch(LocalSource(assets_dir / "square.png"))

    @pytest.mark.asyncio
    async def test_file_over_limit(self, assets_dir):
        fetcher = SourceFetcher(
            client=httpx.AsyncClient(transport=remote_transport()), max_source_bytes=10
        )
        with pytest.raises(SourceTooLarge):
            await fetcher.fetch(LocalSource(assets_dir / "square.png"))

    @pytest.mark.asyncio
    async def test_unknown_location_type(self, source_fetcher):
        with pytest.raises(TypeError):
            await source_fetcher.fetch("/square.png")
