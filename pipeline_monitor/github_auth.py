
# GitHub OAuth device flow, used once to obtain a token for private workflows.
#
#   1. request_device_code() → the user opens verification_uri and types user_code
#   2. poll_for_token() asks for the token every `interval` seconds until the
#      user has confirmed, backing off by 5s whenever GitHub answers slow_down
#
# The token is handed back to the caller; storing it is the credential store's job.

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pipeline_monitor.exceptions import AuthorizationError, HTTPStatusError, MalformedDocumentError
from pipeline_monitor.http_client import FeedResponse, Transport
from pipeline_monitor.request_builders import github_access_token_request, github_device_code_request

log = logging.getLogger(__name__)

SLOW_DOWN_INCREMENT_SECONDS = 5


@dataclass(frozen=True)
class DeviceCode:
    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int     # seconds
    interval: int       # seconds between token polls


def _json_object(response: FeedResponse) -> dict[str, Any]:
    if response.status != 200:
        raise HTTPStatusError(response.status)
    try:
        document = json.loads(response.body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedDocumentError(str(exc)) from exc
    if not isinstance(document, dict):
        raise MalformedDocumentError("expected a JSON object")
    return document


async def request_device_code(session: Transport) -> DeviceCode:
    document = _json_object(await session.send(github_device_code_request()))
    if "error" in document:
        raise AuthorizationError(document.get("error_description") or document["error"])
    try:
        return DeviceCode(
            device_code=document["device_code"],
            user_code=document["user_code"],
            verification_uri=document["verification_uri"],
            expires_in=int(document.get("expires_in", 900)),
            interval=int(document.get("interval", 5)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedDocumentError(f"incomplete device code response: {exc}") from exc


async def poll_for_token(
    session: Transport,
    code: DeviceCode,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> str:
    """
    Wait for the user to authorize the device and return the access token.

    Raises:
        AuthorizationError  when the user denies access or the code expires
    """
    interval = code.interval
    waited = 0

    while True:
        if waited >= code.expires_in:
            raise AuthorizationError("the device code has expired")
        await sleep(interval)
        waited += interval

        document = _json_object(await session.send(github_access_token_request(code.device_code)))
        token = document.get("access_token")
        if token:
            log.info("Received GitHub access token")
            return token

        error = document.get("error")
        if error == "authorization_pending":
            continue
        if error == "slow_down":
            interval = int(document.get("interval") or interval + SLOW_DOWN_INCREMENT_SECONDS)
            log.debug("Asked to slow down, polling every %ds", interval)
            continue
        raise AuthorizationError(document.get("error_description") or error or "no access token in response")
