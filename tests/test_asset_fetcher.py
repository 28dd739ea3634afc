"""Test the asset fetcher against an in-process aiohttp server."""

import asyncio

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from src.exceptions import FetchFailed, InvalidSource, NetworkError
from src.loaders.asset_fetcher import AssetFetcher, is_absolute_http_url

IMAGE_BYTES = b"\x89PNG fake image payload" * 100


def _make_app() -> web.Application:
    async def image(request):
        return web.Response(body=IMAGE_BYTES, content_type="image/png")

    async def hop(request):
        remaining = int(request.match_info["n"])
        if remaining == 0:
            raise web.HTTPFound("/image.png")
        raise web.HTTPFound(f"/hop/{remaining - 1}")

    async def loop(request):
        raise web.HTTPFound("/loop")

    async def missing(request):
        return web.Response(status=404, text="not here")

    async def no_location(request):
        return web.Response(status=302)

    async def bad_scheme(request):
        return web.Response(status=302, headers={"Location": "ftp://example.com/file.png"})

    async def bad_location(request):
        return web.Response(status=302, headers={"Location": "http://[broken/file.png"})

    async def truncated(request):
        # promises more bytes than it sends, then drops the connection
        response = web.StreamResponse(headers={"Content-Length": str(len(IMAGE_BYTES) * 2)})
        await response.prepare(request)
        await response.write(IMAGE_BYTES)
        request.transport.close()
        return response

    app = web.Application()
    app.router.add_get("/image.png", image)
    app.router.add_get("/hop/{n}", hop)
    app.router.add_get("/loop", loop)
    app.router.add_get("/missing", missing)
    app.router.add_get("/no-location", no_location)
    app.router.add_get("/bad-scheme", bad_scheme)
    app.router.add_get("/bad-location", bad_location)
    app.router.add_get("/truncated", truncated)
    return app


def fetch_from_server(path: str, destination, max_redirects: int = 5):
    """Start the test server, fetch ``path`` into ``destination`` and stop."""

    async def scenario():
        server = test_utils.TestServer(_make_app())
        await server.start_server()
        try:
            async with aiohttp.ClientSession() as session:
                fetcher = AssetFetcher(session, max_redirects=max_redirects, timeout_seconds=5)
                return await fetcher.fetch(str(server.make_url(path)), destination)
        finally:
            await server.close()

    return asyncio.run(scenario())


class TestIsAbsoluteHttpUrl:
    def test_accepts_http_and_https(self):
        assert is_absolute_http_url("https://cdn.example.com/a.jpg")
        assert is_absolute_http_url("http://cdn.example.com/a.jpg")

    def test_rejects_everything_else(self):
        assert not is_absolute_http_url("")
        assert not is_absolute_http_url(None)
        assert not is_absolute_http_url("/media/a.jpg")
        assert not is_absolute_http_url("//cdn.example.com/a.jpg")
        assert not is_absolute_http_url("ftp://cdn.example.com/a.jpg")
        assert not is_absolute_http_url("data:image/png;base64,AAAA")
        assert not is_absolute_http_url("http://[::1/a.jpg")


class TestFetch:
    """Test AssetFetcher.fetch outcomes."""

    def test_downloads_file(self, tmp_path):
        destination = tmp_path / "img-0.png"
        result = fetch_from_server("/image.png", destination)

        assert result == destination
        assert destination.read_bytes() == IMAGE_BYTES

    def test_follows_redirects(self, tmp_path):
        destination = tmp_path / "img-0.png"
        fetch_from_server("/hop/0", destination)
        assert destination.read_bytes() == IMAGE_BYTES

    def test_redirect_cap_is_inclusive(self, tmp_path):
        # /hop/4 -> ... -> /hop/0 -> /image.png is exactly five redirects
        destination = tmp_path / "img-0.png"
        fetch_from_server("/hop/4", destination, max_redirects=5)
        assert destination.exists()

    def test_too_many_redirects(self, tmp_path):
        destination = tmp_path / "img-0.png"
        with pytest.raises(NetworkError, match="Too many redirects"):
            fetch_from_server("/hop/5", destination, max_redirects=5)
        assert not destination.exists()

    def test_redirect_loop(self, tmp_path):
        destination = tmp_path / "img-0.png"
        with pytest.raises(NetworkError):
            fetch_from_server("/loop", destination)
        assert not destination.exists()

    def test_not_found(self, tmp_path):
        destination = tmp_path / "img-0.png"
        with pytest.raises(FetchFailed) as exc_info:
            fetch_from_server("/missing", destination)

        assert exc_info.value.status_code == 404
        assert not destination.exists()

    def test_redirect_without_location(self, tmp_path):
        with pytest.raises(FetchFailed) as exc_info:
            fetch_from_server("/no-location", tmp_path / "img-0.png")
        assert exc_info.value.status_code == 302

    def test_redirect_to_non_http_target(self, tmp_path):
        with pytest.raises(InvalidSource):
            fetch_from_server("/bad-scheme", tmp_path / "img-0.png")

    def test_malformed_redirect_target(self, tmp_path):
        with pytest.raises(InvalidSource):
            fetch_from_server("/bad-location", tmp_path / "img-0.png")

    def test_partial_file_removed_after_dropped_connection(self, tmp_path):
        destination = tmp_path / "img-0.png"
        with pytest.raises(NetworkError):
            fetch_from_server("/truncated", destination)
        assert not destination.exists()

    @pytest.mark.parametrize(
        "url", ["", "/media/a.jpg", "ftp://cdn/a.jpg", "http://[::1/a.jpg"]
    )
    def test_invalid_source(self, tmp_path, url):
        async def scenario():
            async with aiohttp.ClientSession() as session:
                await AssetFetcher(session).fetch(url, tmp_path / "img-0.jpg")

        with pytest.raises(InvalidSource):
            asyncio.run(scenario())

    def test_connection_refused(self, tmp_path):
        async def scenario():
            async with aiohttp.ClientSession() as session:
                await AssetFetcher(session, timeout_seconds=5).fetch(
                    "http://127.0.0.1:9/img.jpg", tmp_path / "img-0.jpg"
                )

        with pytest.raises(NetworkError):
            asyncio.run(scenario())
