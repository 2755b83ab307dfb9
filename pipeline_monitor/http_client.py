
# HTTP transport for feed requests.
#
# FeedSession sends a FeedRequest over a shared aiohttp.ClientSession and hands
# back status, headers and the raw body. It never interprets the status code;
# that is the feed readers' job. Anything that prevents a response from
# arriving (refused connection, DNS failure, timeout) becomes a TransportError.

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Mapping, Protocol

import aiohttp

from pipeline_monitor.config import CONNECTION_LIMIT, REQUEST_TIMEOUT_SECONDS, USER_AGENT
from pipeline_monitor.exceptions import TransportError
from pipeline_monitor.request_builders import FeedRequest

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedResponse:
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None


class Transport(Protocol):
    async def send(self, request: FeedRequest) -> FeedResponse: ...


def open_session() -> aiohttp.ClientSession:
    """Shared session with a bounded connection pool. Call from inside the event loop."""
    return aiohttp.ClientSession(
        connector=aiohttp.TCPConnector(limit=CONNECTION_LIMIT),
        headers={"User-Agent": USER_AGENT},
    )


def describe_client_error(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "The request timed out."
    if isinstance(exc, aiohttp.ClientConnectorError):
        return "Could not connect to the server."
    if isinstance(exc, aiohttp.ServerDisconnectedError):
        return "The server closed the connection."
    return str(exc) or type(exc).__name__


class FeedSession:
    """
    Wraps an aiohttp.ClientSession for sending FeedRequests.

    One instance is shared by all feed readers. It holds no per-URL state, so
    concurrent sends for different pipelines never interfere.
    """

    def __init__(self, session: aiohttp.ClientSession, timeout: float = REQUEST_TIMEOUT_SECONDS) -> None:
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def send(self, request: FeedRequest) -> FeedResponse:
        """
        Send request and read the whole body.

        Raises:
            TransportError  when no response was received
        """
        data = dict(request.data) if request.data is not None else None
        try:
            async with self._session.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                data=data,
                timeout=self._timeout,
            ) as resp:
                body = await resp.read()
                log.debug("%s %s -> %d (%d bytes)", request.method, request.url, resp.status, len(body))
                return FeedResponse(resp.status, dict(resp.headers), body)

        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            log.warning("No response from %s: %s", request.url, describe_client_error(exc))
            raise TransportError(describe_client_error(exc)) from exc
