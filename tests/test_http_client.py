import asyncio

import aiohttp
import pytest
from aiohttp import web
from aiohttp import test_utils

from state_watcher.errors import FetchFailure
from state_watcher.http_client import PreviewClient
from state_watcher.models import PollTarget
from state_watcher.parser import parse_state


def _text(body: str):
    async def handler(request: web.Request) -> web.Response:
        return web.Response(text=body)
    return handler


async def _echo_cache_headers(request: web.Request) -> web.Response:
    return web.Response(
        text=f"{request.headers.get('Cache-Control', '')}|{request.headers.get('Pragma', '')}\n"
    )


async def _server_error(request: web.Request) -> web.Response:
    return web.Response(status=500, text="open\n")


async def _slow(request: web.Request) -> web.Response:
    await asyncio.sleep(1)
    return web.Response(text="open\n")


@pytest.fixture
async def server():
    app = web.Application()
    app.router.add_get("/open", _text("open\n"))
    app.router.add_get("/closed", _text("  Closed  \n"))
    app.router.add_get("/multi", _text("op\nen\nignored\n"))
    app.router.add_get("/crlf", _text("open\r\nsecond\r\n"))
    app.router.add_get("/empty", _text(""))
    app.router.add_get("/blank", _text("\n\n\n"))
    app.router.add_get("/short", _text("only"))
    app.router.add_get("/headers", _echo_cache_headers)
    app.router.add_get("/error", _server_error)
    app.router.add_get("/slow", _slow)
    app.router.add_get("/big", _text("o" * 600_000))
    async with test_utils.TestServer(app) as srv:
        yield srv


@pytest.fixture
async def session():
    async with aiohttp.ClientSession() as s:
        yield s


def target(server, path: str, line_count: int = 1) -> PollTarget:
    return PollTarget(str(server.make_url(path)), line_count)


async def test_reads_first_line_without_terminator(server, session):
    client = PreviewClient(session)

    text = await client.get_preview(target(server, "/open"))

    assert text == "open"
    assert parse_state(text).is_open


async def test_concatenates_requested_lines(server, session):
    client = PreviewClient(session)

    assert await client.get_preview(target(server, "/multi", 2)) == "open"
    assert await client.get_preview(target(server, "/crlf", 2)) == "opensecond"


async def test_whitespace_is_left_to_the_interpreter(server, session):
    client = PreviewClient(session)

    text = await client.get_preview(target(server, "/closed"))

    assert text == "  Closed  "
    assert not parse_state(text).is_open


@pytest.mark.parametrize("path, line_count, expected", [
    ("/empty", 1, ""),
    ("/blank", 2, ""),
    ("/short", 3, "only"),
])
async def test_short_bodies_are_not_errors(server, session, path, line_count, expected):
    client = PreviewClient(session)

    assert await client.get_preview(target(server, path, line_count)) == expected


async def test_sends_no_cache_headers(server, session):
    client = PreviewClient(session)

    text = await client.get_preview(target(server, "/headers"))

    assert text == "no-cache|no-cache"


async def test_http_error_status_is_a_fetch_failure(server, session):
    client = PreviewClient(session)

    with pytest.raises(FetchFailure) as info:
        await client.get_preview(target(server, "/error"))

    assert "500" in str(info.value)


async def test_timeout_is_a_fetch_failure(server, session):
    client = PreviewClient(session, timeout=0.2)

    with pytest.raises(FetchFailure, match="timed out"):
        await client.get_preview(target(server, "/slow"))


async def test_connection_refused_is_a_fetch_failure(session, unused_tcp_port):
    client = PreviewClient(session)

    with pytest.raises(FetchFailure) as info:
        await client.get_preview(PollTarget(f"http://127.0.0.1:{unused_tcp_port}/state"))

    assert isinstance(info.value.__cause__, aiohttp.ClientError)


async def test_oversized_first_line_is_a_fetch_failure(server, session):
    client = PreviewClient(session)

    with pytest.raises(FetchFailure, match="malformed response"):
        await client.get_preview(target(server, "/big"))
