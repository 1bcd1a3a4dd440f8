# Line-preview HTTP client.

# The state endpoint returns a tiny text body whose first line is the state.
# We never need the rest of the document, so the body is read line by line
# and the response is released as soon as enough lines are in hand.
#
# Caching is disabled on every request: a cached "open" from an hour ago is
# worse than a failed poll.

import asyncio
import logging

import aiohttp
from aiohttp.http_exceptions import HttpProcessingError

from state_watcher.config import REQUEST_TIMEOUT_SECONDS
from state_watcher.errors import FetchFailure
from state_watcher.models import PollTarget

log = logging.getLogger(__name__)

_NO_CACHE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


class PreviewClient:
    """
    Reads the first few lines of a URL through a shared aiohttp.ClientSession.

    One attempt per call; retrying is the scheduler's business.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        timeout: float | None = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_preview(self, target: PollTarget) -> str:
        """
        GET target.url and return up to target.line_count lines, joined with
        no delimiter and stripped of their line terminators.

        A body shorter than line_count lines is returned as-is (possibly "").

        Raises:
            FetchFailure  on connection errors, timeouts, non-2xx statuses
                          and bodies cut off mid-stream
        """
        log.debug("Opening connection to %s", target.url)
        try:
            async with self._session.get(
                target.url,
                headers=_NO_CACHE_HEADERS,
                timeout=self._timeout,
            ) as resp:
                resp.raise_for_status()
                lines = await self._read_lines(resp, target.line_count)

        except aiohttp.ClientResponseError as exc:
            raise FetchFailure(target.url, f"HTTP {exc.status} {exc.message}") from exc
        except asyncio.TimeoutError as exc:
            raise FetchFailure(target.url, "timed out") from exc
        except aiohttp.ClientError as exc:
            raise FetchFailure(target.url, str(exc) or exc.__class__.__name__) from exc
        except HttpProcessingError as exc:
            # e.g. LineTooLong: a first line past the reader's buffer limit
            raise FetchFailure(target.url, f"malformed response: {exc.message or exc.__class__.__name__}") from exc

        log.debug("Connection to %s closed after %d line(s)", target.url, len(lines))
        return "".join(lines)

    async def _read_lines(self, resp: aiohttp.ClientResponse, line_count: int) -> list[str]:
        lines: list[str] = []
        for i in range(line_count):
            raw = await resp.content.readline()
            if not raw:
                log.debug("Stream ended after %d of %d line(s)", i, line_count)
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            log.debug("read line %d: %r", i + 1, line)
            lines.append(line)
        return lines
