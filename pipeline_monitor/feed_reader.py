
# Feed readers: fetch one pipeline's feed once and return the updated pipeline.
#
# Each poll follows the same steps:
#   1. skip entirely while the feed is paused after a rate-limit response
#   2. clear an elapsed pause
#   3. look up a credential (never fatal)
#   4. build the request (InvalidURLError for unusable URLs)
#   5. send exactly one request
#   6. classify the response and either replace the status wholesale or fold
#      the error into connection_error plus a degraded status
#
# Readers work on immutable Pipeline values and return a new one. They keep no
# state between polls, so a single reader instance serves every pipeline of
# its feed type concurrently.

import logging
import time
from dataclasses import replace

from pipeline_monitor.cctray_parser import find_project, parse_projects
from pipeline_monitor.config import (
    GITHUB_CREDENTIAL_SERVICE,
    RATE_LIMIT_REMAINING_HEADER,
    RATE_LIMIT_RESET_HEADER,
)
from pipeline_monitor.credentials import CredentialStore, lookup_credential
from pipeline_monitor.exceptions import (
    FeedReaderError,
    HTTPStatusError,
    RateLimitError,
    TargetNotFoundError,
)
from pipeline_monitor.github_parser import parse_runs, pipeline_status
from pipeline_monitor.http_client import FeedResponse, Transport
from pipeline_monitor.models import Feed, FeedType, Pipeline, Status
from pipeline_monitor.request_builders import (
    FeedRequest,
    cctray_request,
    github_feed_request,
    url_credential,
    url_host,
)

log = logging.getLogger(__name__)


def _int_header(response: FeedResponse, name: str) -> int | None:
    value = response.header(name)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def check_rate_limit(response: FeedResponse) -> None:
    """Raise RateLimitError for a 403/429 whose headers say no requests remain."""
    if response.status not in (403, 429):
        return
    if _int_header(response, RATE_LIMIT_REMAINING_HEADER) != 0:
        return
    reset = _int_header(response, RATE_LIMIT_RESET_HEADER)
    if reset is not None:
        raise RateLimitError(reset)


class FeedReader:
    """Shared poll skeleton. Subclasses build the request and interpret the body."""

    def build_request(self, feed: Feed, credentials: CredentialStore | None) -> FeedRequest:
        raise NotImplementedError

    def parse_status(self, pipeline: Pipeline, body: bytes) -> Status:
        raise NotImplementedError

    async def poll(
        self,
        pipeline: Pipeline,
        session: Transport,
        credentials: CredentialStore | None = None,
        now: float | None = None,
    ) -> Pipeline:
        now = time.time() if now is None else now

        if pipeline.feed.pause_until is not None:
            if pipeline.feed.is_paused(now):
                log.debug("Skipping %s, paused until %d", pipeline.name, pipeline.feed.pause_until)
                return pipeline
            pipeline = replace(pipeline, feed=pipeline.feed.without_pause())

        try:
            request = self.build_request(pipeline.feed, credentials)
            response = await session.send(request)
            status = self._status_from_response(pipeline, response)

        except RateLimitError as exc:
            log.info("Rate limit hit for %s, pausing until %d", pipeline.name, exc.reset_epoch)
            pipeline = replace(pipeline, feed=pipeline.feed.with_pause_until(exc.reset_epoch))
            return self._failed(pipeline, str(exc))

        except FeedReaderError as exc:
            log.warning("Polling %s failed: %s", pipeline.name, exc)
            return self._failed(pipeline, str(exc))

        except Exception as exc:
            log.exception("Unexpected error polling %s: %s", pipeline.name, exc)
            return self._failed(pipeline, f"Unexpected error: {exc}")

        log.debug("Updated %s: %s", pipeline.name, status.activity.value)
        return replace(pipeline, status=status, connection_error=None)

    def _status_from_response(self, pipeline: Pipeline, response: FeedResponse) -> Status:
        check_rate_limit(response)
        if response.status != 200:
            raise HTTPStatusError(response.status)
        return self.parse_status(pipeline, response.body)

    @staticmethod
    def _failed(pipeline: Pipeline, message: str) -> Pipeline:
        return replace(pipeline, status=pipeline.status.degraded(), connection_error=message)


class CCTrayFeedReader(FeedReader):
    """
    Polls a CCTray feed document and picks out the configured project.

    Basic auth is used when the feed URL names a user (http://dev@host/cctray.xml);
    the password is looked up under the server's host name.
    """

    def build_request(self, feed: Feed, credentials: CredentialStore | None) -> FeedRequest:
        credential = None
        if url_credential(feed.url) is not None:
            password = lookup_credential(credentials, url_host(feed.url) or "")
            credential = url_credential(feed.url, password)
        return cctray_request(feed, credential)

    def parse_status(self, pipeline: Pipeline, body: bytes) -> Status:
        project = find_project(parse_projects(body), pipeline.feed.project_name or pipeline.name)
        if project is None:
            raise TargetNotFoundError()
        return project.status


class GitHubFeedReader(FeedReader):
    """Polls the runs endpoint of a GitHub Actions workflow."""

    def build_request(self, feed: Feed, credentials: CredentialStore | None) -> FeedRequest:
        token = lookup_credential(credentials, GITHUB_CREDENTIAL_SERVICE)
        return github_feed_request(feed, token)

    def parse_status(self, pipeline: Pipeline, body: bytes) -> Status:
        status = pipeline_status(parse_runs(body))
        if status is None:
            raise TargetNotFoundError()
        return status


READERS: dict[FeedType, FeedReader] = {
    FeedType.CCTRAY: CCTrayFeedReader(),
    FeedType.GITHUB: GitHubFeedReader(),
}


async def poll_pipeline(
    pipeline: Pipeline,
    session: Transport,
    credentials: CredentialStore | None = None,
    now: float | None = None,
) -> Pipeline:
    """Poll pipeline with the reader for its feed type."""
    return await READERS[pipeline.feed.type].poll(pipeline, session, credentials, now)
