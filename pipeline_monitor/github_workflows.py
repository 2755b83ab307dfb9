# Lists the repositories of a GitHub owner and the workflows of a repository,
# so a user can pick the workflow whose runs URL becomes a pipeline feed.
#
# With a token, the owner's private repositories are merged into the public
# list. Failing to read them only costs the private entries.

import json
import logging
from dataclasses import dataclass
from typing import Any

from pipeline_monitor.exceptions import FeedReaderError, HTTPStatusError, MalformedDocumentError
from pipeline_monitor.feed_reader import check_rate_limit
from pipeline_monitor.http_client import FeedResponse, Transport
from pipeline_monitor.request_builders import (
    FeedRequest,
    github_feed_url,
    github_private_repositories_request,
    github_repositories_request,
    github_workflows_request,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Repository:
    owner: str
    name: str
    private: bool = False


@dataclass(frozen=True)
class Workflow:
    id: int
    name: str
    path: str

    @property
    def file_name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    def feed_url(self, owner: str, repository: str) -> str:
        return github_feed_url(owner, repository, self.file_name)


async def _get_json(session: Transport, request: FeedRequest) -> Any:
    response: FeedResponse = await session.send(request)
    check_rate_limit(response)
    if response.status != 200:
        raise HTTPStatusError(response.status)
    try:
        return json.loads(response.body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedDocumentError(str(exc)) from exc


def _repositories(document: Any) -> list[Repository]:
    if not isinstance(document, list):
        raise MalformedDocumentError("expected a list of repositories")
    repositories = []
    for entry in document:
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            continue
        owner = entry.get("owner") if isinstance(entry.get("owner"), dict) else {}
        repositories.append(Repository(
            owner=owner.get("login") or "",
            name=entry["name"],
            private=bool(entry.get("private")),
        ))
    return repositories


async def list_repositories(session: Transport, owner: str, token: str | None = None) -> list[Repository]:
    """
    Repositories of owner, sorted by name ignoring case.

    Raises:
        FeedReaderError  when the public list cannot be read
    """
    found = {r.name: r for r in _repositories(await _get_json(session, github_repositories_request(owner, token)))}

    if token:
        try:
            private = _repositories(await _get_json(session, github_private_repositories_request(token)))
        except FeedReaderError as exc:
            log.warning("Could not list private repositories: %s", exc)
        else:
            for repository in private:
                if repository.owner.lower() == owner.lower():
                    found.setdefault(repository.name, repository)

    return sorted(found.values(), key=lambda r: r.name.lower())


async def list_workflows(
    session: Transport,
    owner: str,
    repository: str,
    token: str | None = None,
) -> list[Workflow]:
    """Workflows defined in owner/repository, sorted by name ignoring case."""
    document = await _get_json(session, github_workflows_request(owner, repository, token))
    if not isinstance(document, dict) or not isinstance(document.get("workflows"), list):
        raise MalformedDocumentError("expected an object with a workflows list")

    workflows = [
        Workflow(id=entry.get("id") or 0, name=entry.get("name") or entry["path"], path=entry["path"])
        for entry in document["workflows"]
        if isinstance(entry, dict) and isinstance(entry.get("path"), str)
    ]
    return sorted(workflows, key=lambda w: w.name.lower())
