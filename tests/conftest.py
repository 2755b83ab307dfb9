"""Shared fakes for the feed tests."""

import pytest

from pipeline_monitor.http_client import FeedResponse
from pipeline_monitor.models import Feed, FeedType, Pipeline

CONNECTFOUR_FEED = b"""<Projects>
    <Project activity='Sleeping' lastBuildLabel='build.888' lastBuildStatus='Success' lastBuildTime='2024-02-11T23:19:26+01:00' name='connectfour'/>
</Projects>"""


class FakeTransport:
    """Answers requests from a table keyed by URL (query string ignored).

    Values are FeedResponse objects or exceptions to raise. A list value is
    consumed one entry per request, the last entry repeating. Unknown URLs get
    a 404.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

    async def send(self, request):
        self.requests.append(request)
        outcome = self.routes.get(request.url.split("?", 1)[0], FeedResponse(404))
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def urls(self):
        return [r.url for r in self.requests]


@pytest.fixture
def fake_transport():
    """Factory for FakeTransport instances."""
    return FakeTransport


@pytest.fixture
def cctray_pipeline():
    return Pipeline(
        name="connectfour",
        feed=Feed(FeedType.CCTRAY, "http://localhost:8086/cctray.xml", "connectfour"),
        identity="p-connectfour",
    )


@pytest.fixture
def github_pipeline():
    return Pipeline(
        name="ccmenu2 | Build and test",
        feed=Feed(
            FeedType.GITHUB,
            "https://api.github.com/repos/erikdoe/ccmenu2/actions/workflows/build-and-test.yaml/runs",
        ),
        identity="p-ccmenu2",
    )


@pytest.fixture
def connectfour_feed():
    return CONNECTFOUR_FEED
