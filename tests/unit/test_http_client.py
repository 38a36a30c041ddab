"""Unit tests for the aiohttp fetch adapter against a local test server."""

import asyncio

from aiohttp import test_utils, web

from manifest_engine.config import EngineSettings
from manifest_engine.utils.http_client import HttpClient

PLAYLIST = "#EXTM3U\n#EXT-X-ENDLIST\n"


def _build_app(hits):
    async def ok(request):
        hits["ok"] += 1
        return web.Response(text=PLAYLIST)

    async def missing(request):
        hits["missing"] += 1
        return web.Response(status=404)

    async def flaky(request):
        hits["flaky"] += 1
        if hits["flaky"] < 3:
            return web.Response(status=503)
        return web.Response(text=PLAYLIST)

    async def broken(request):
        hits["broken"] += 1
        return web.Response(status=500)

    async def limited(request):
        hits["limited"] += 1
        if hits["limited"] == 1:
            return web.Response(status=429, headers={"Retry-After": "0"})
        return web.Response(text=PLAYLIST)

    async def echo(request):
        return web.Response(text=f"{request.headers.get('Referer')}|{request.headers.get('User-Agent')}")

    async def slow(request):
        await asyncio.sleep(0.5)
        return web.Response(text=PLAYLIST)

    app = web.Application()
    app.router.add_get("/ok.m3u8", ok)
    app.router.add_get("/missing.m3u8", missing)
    app.router.add_get("/flaky.m3u8", flaky)
    app.router.add_get("/broken.m3u8", broken)
    app.router.add_get("/limited.m3u8", limited)
    app.router.add_get("/echo", echo)
    app.router.add_get("/slow.m3u8", slow)
    return app


def _run(path, settings=None, **kwargs):
    """Serves the test app, fetches ``path`` once, and returns (result, hits)."""

    hits = {"ok": 0, "missing": 0, "flaky": 0, "broken": 0, "limited": 0}

    async def scenario():
        async with test_utils.TestServer(_build_app(hits)) as server:
            async with HttpClient(settings or EngineSettings(retry_delay_ms=0)) as client:
                return await client.fetch(str(server.make_url(path)), **kwargs)

    return asyncio.run(scenario()), hits


def test_successful_fetch():
    """Test that a 200 response returns its body."""
    result, hits = _run("/ok.m3u8")

    assert result.success is True
    assert result.status == 200
    assert result.content == PLAYLIST
    assert result.retry_count == 0
    assert hits["ok"] == 1


def test_client_error_is_not_retried():
    """Test that 4xx responses other than 429 fail immediately."""
    result, hits = _run("/missing.m3u8", max_retries=3)

    assert result.success is False
    assert result.status == 404
    assert result.content is None
    assert hits["missing"] == 1


def test_server_error_is_retried_until_success():
    """Test that 5xx responses are retried with backoff."""
    result, hits = _run("/flaky.m3u8", max_retries=2)

    assert result.success is True
    assert result.retry_count == 2
    assert hits["flaky"] == 3


def test_retries_are_bounded():
    """Test that a persistent 5xx gives up after max_retries + 1 attempts."""
    result, hits = _run("/broken.m3u8", max_retries=2)

    assert result.success is False
    assert result.status == 500
    assert result.retry_count == 2
    assert hits["broken"] == 3


def test_rate_limit_honours_retry_after():
    """Test that 429 is retried using the server's Retry-After."""
    result, hits = _run("/limited.m3u8", settings=EngineSettings(retry_delay_ms=60_000), max_retries=1)

    assert result.success is True
    assert hits["limited"] == 2


def test_caller_headers_are_sent():
    """Test that caller headers merge over the default browser headers."""
    result, _ = _run("/echo", settings=EngineSettings(user_agent="engine-test/1.0"), headers={"Referer": "https://site.example/"})

    assert result.content == "https://site.example/|engine-test/1.0"


def test_timeout_reports_network_failure():
    """Test that an attempt exceeding its timeout becomes status 0."""
    result, _ = _run("/slow.m3u8", timeout_ms=50, max_retries=0)

    assert result.success is False
    assert result.status == 0
    assert result.error


def test_connection_refused():
    """Test that network errors are retried and then reported with status 0."""

    async def scenario():
        async with HttpClient(EngineSettings(retry_delay_ms=0)) as client:
            return await client.fetch("http://127.0.0.1:1/master.m3u8", max_retries=1, timeout_ms=2000)

    result = asyncio.run(scenario())

    assert result.success is False
    assert result.status == 0
    assert result.retry_count == 1
    assert result.error
