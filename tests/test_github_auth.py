"""Tests for the GitHub device flow."""

import asyncio
import json

import pytest

from pipeline_monitor.exceptions import AuthorizationError, HTTPStatusError, MalformedDocumentError
from pipeline_monitor.github_auth import DeviceCode, poll_for_token, request_device_code
from pipeline_monitor.http_client import FeedResponse
from pipeline_monitor.request_builders import github_access_token_request, github_device_code_request

DEVICE_CODE_URL = github_device_code_request().url
TOKEN_URL = github_access_token_request("x").url

CODE = DeviceCode("dc-123", "WDJB-MJHT", "https://github.com/login/device", expires_in=900, interval=5)


def _json(document):
    return FeedResponse(200, {"Content-Type": "application/json"}, json.dumps(document).encode())


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class TestRequestDeviceCode:
    """Tests for request_device_code()."""

    def test_parses_response(self, fake_transport):
        transport = fake_transport({DEVICE_CODE_URL: _json({
            "device_code": "dc-123",
            "user_code": "WDJB-MJHT",
            "verification_uri": "https://github.com/login/device",
            "expires_in": 899,
            "interval": 5,
        })})

        code = asyncio.run(request_device_code(transport))

        assert code.user_code == "WDJB-MJHT"
        assert code.expires_in == 899
        assert transport.requests[0].method == "POST"
        assert transport.requests[0].headers["Accept"] == "application/json"

    def test_incomplete_response(self, fake_transport):
        transport = fake_transport({DEVICE_CODE_URL: _json({"user_code": "WDJB-MJHT"})})
        with pytest.raises(MalformedDocumentError):
            asyncio.run(request_device_code(transport))

    def test_error_response(self, fake_transport):
        transport = fake_transport({DEVICE_CODE_URL: _json({"error": "unauthorized_client"})})
        with pytest.raises(AuthorizationError):
            asyncio.run(request_device_code(transport))

    def test_http_error(self, fake_transport):
        with pytest.raises(HTTPStatusError):
            asyncio.run(request_device_code(fake_transport()))


class TestPollForToken:
    """Tests for poll_for_token()."""

    def test_pending_then_token(self, fake_transport):
        transport = fake_transport({TOKEN_URL: [
            _json({"error": "authorization_pending"}),
            _json({"error": "authorization_pending"}),
            _json({"access_token": "gho_abc", "token_type": "bearer"}),
        ]})
        sleep = FakeSleep()

        token = asyncio.run(poll_for_token(transport, CODE, sleep))

        assert token == "gho_abc"
        assert sleep.delays == [5, 5, 5]
        assert len(transport.requests) == 3

    def test_slow_down_increases_interval(self, fake_transport):
        transport = fake_transport({TOKEN_URL: [
            _json({"error": "slow_down"}),
            _json({"access_token": "gho_abc"}),
        ]})
        sleep = FakeSleep()

        asyncio.run(poll_for_token(transport, CODE, sleep))

        assert sleep.delays == [5, 10]

    def test_slow_down_uses_server_interval(self, fake_transport):
        transport = fake_transport({TOKEN_URL: [
            _json({"error": "slow_down", "interval": 15}),
            _json({"access_token": "gho_abc"}),
        ]})
        sleep = FakeSleep()

        asyncio.run(poll_for_token(transport, CODE, sleep))

        assert sleep.delays == [5, 15]

    def test_access_denied(self, fake_transport):
        transport = fake_transport({TOKEN_URL: _json({
            "error": "access_denied",
            "error_description": "The authorization request was denied.",
        })})

        with pytest.raises(AuthorizationError, match="denied"):
            asyncio.run(poll_for_token(transport, CODE, FakeSleep()))

    def test_expiry(self, fake_transport):
        transport = fake_transport({TOKEN_URL: _json({"error": "authorization_pending"})})
        code = DeviceCode("dc-123", "WDJB-MJHT", "https://github.com/login/device", expires_in=10, interval=5)

        with pytest.raises(AuthorizationError, match="expired"):
            asyncio.run(poll_for_token(transport, code, FakeSleep()))

        assert len(transport.requests) == 2
