
# Finds the feed behind a CCTray server URL entered by a user and lists the
# projects it contains.
#
# Probing policy:
#   - candidates are the URL itself, then (only when the URL has no file
#     extension) the well-known feed paths from config.CCTRAY_FEED_PATHS
#   - a candidate that fails (no response, HTTP error, not XML) is remembered
#     and probing continues
#   - a candidate that answers with a valid but empty feed ends probing; the
#     server was found, it just has nothing to offer
#   - a candidate whose first project is valid is accepted
#   - if nothing is accepted, the first candidate's URL and result are returned

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from pipeline_monitor.cctray_parser import parse_projects
from pipeline_monitor.config import CCTRAY_FEED_PATHS
from pipeline_monitor.credentials import CredentialStore, HTTPCredential, lookup_credential
from pipeline_monitor.exceptions import FeedReaderError, InvalidURLError, http_status_description
from pipeline_monitor.http_client import Transport
from pipeline_monitor.models import DiscoveredProject
from pipeline_monitor.request_builders import (
    checked_url,
    cctray_projects_request,
    url_credential,
    url_host,
)

log = logging.getLogger(__name__)

EMPTY_FEED_MESSAGE = "The feed does not contain any projects."


@dataclass(frozen=True)
class DiscoveryResult:
    url: str
    projects: list[DiscoveredProject]


def add_scheme_if_necessary(url: str) -> str:
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        return "http://" + url
    return url


def candidate_urls(base_url: str) -> list[str]:
    parts = urlsplit(base_url)
    last_segment = parts.path.rsplit("/", 1)[-1]
    candidates = [base_url]
    if "." not in last_segment:
        base_path = parts.path.rstrip("/")
        candidates += [
            urlunsplit((parts.scheme, parts.netloc, base_path + path, "", ""))
            for path in CCTRAY_FEED_PATHS
        ]
    return candidates


async def fetch_projects(
    url: str,
    session: Transport,
    credential: HTTPCredential | None = None,
) -> list[DiscoveredProject]:
    """
    Projects in the feed at url, sorted by name ignoring case.

    Never raises for feed problems; a failure comes back as a single invalid
    placeholder whose message describes it.
    """
    try:
        response = await session.send(cctray_projects_request(url, credential))
    except FeedReaderError as exc:
        return [DiscoveredProject(message=str(exc))]

    if response.status != 200:
        return [DiscoveredProject(message=http_status_description(response.status))]

    try:
        projects = parse_projects(response.body)
    except FeedReaderError as exc:
        return [DiscoveredProject(message=str(exc))]

    found = [DiscoveredProject(name=p.name, is_valid=True) for p in projects]
    found.sort(key=lambda p: p.name.lower())
    return found


async def discover_projects(
    url: str,
    session: Transport,
    credential: HTTPCredential | None = None,
    credentials: CredentialStore | None = None,
) -> DiscoveryResult:
    """
    Locate the feed for a user-entered server URL.

    The credential, when not given, is derived from a user name in the URL with
    the password looked up in credentials under the server's host name.
    """
    url = add_scheme_if_necessary(url)
    try:
        checked_url(url)
    except InvalidURLError as exc:
        return DiscoveryResult(url, [DiscoveredProject(message=str(exc))])

    if credential is None and url_credential(url) is not None:
        credential = url_credential(url, lookup_credential(credentials, url_host(url) or ""))

    candidates = candidate_urls(url)
    first_result: list[DiscoveredProject] | None = None

    for candidate in candidates:
        projects = await fetch_projects(candidate, session, credential)
        log.debug("Probed %s: %d item(s)", candidate, len(projects))

        if not projects:
            log.info("Found empty feed at %s", candidate)
            return DiscoveryResult(candidate, [DiscoveredProject(message=EMPTY_FEED_MESSAGE)])
        if projects[0].is_valid:
            log.info("Found feed with %d project(s) at %s", len(projects), candidate)
            return DiscoveryResult(candidate, projects)
        if first_result is None:
            first_result = projects

    log.info("No feed found for %s", url)
    return DiscoveryResult(candidates[0], first_result or [])
