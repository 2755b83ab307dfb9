import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

log = logging.getLogger(__name__)


def parse_dt(value: Any) -> datetime | None:
    """
    Timestamp from a feed attribute or JSON field, as an aware UTC datetime.

    CCTray servers send server-local times such as '2024-02-11T23:19:26+01:00',
    some without any offset (read as local time). GitHub sends
    '2024-02-11T22:19:26Z'. Missing, blank or non-string values give None.
    """
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        log.warning("Ignoring unparseable timestamp %r", value)
        return None
    return parsed.astimezone(timezone.utc)


def format_dt(dt: datetime | None, missing: str = "Unknown") -> str:
    if dt is None:
        return missing
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


class FeedType(str, Enum):
    CCTRAY = "cctray"
    GITHUB = "github"


class Activity(str, Enum):
    SLEEPING = "sleeping"
    BUILDING = "building"
    OTHER = "other"


class BuildResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    UNKNOWN = "unknown"


class BuildTrend(str, Enum):
    FIXING = "fixing"                    # building, last build failed
    STILL_FAILING = "still_failing"      # idle, last build failed
    BUILDING = "building"                # building, last build succeeded
    STILL_SUCCEEDING = "still_succeeding"


@dataclass(frozen=True)
class Build:
    result: BuildResult = BuildResult.UNKNOWN
    label: str | None = None
    timestamp: datetime | None = None
    duration: int | None = None    # seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result.value,
            "label": self.label,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Build | None":
        if not data:
            return None
        return cls(
            result=BuildResult(data.get("result", BuildResult.UNKNOWN.value)),
            label=data.get("label"),
            timestamp=parse_dt(data.get("timestamp")),
            duration=data.get("duration"),
        )


@dataclass(frozen=True)
class Status:
    """
    Point-in-time snapshot of a pipeline.

    An empty Status (activity OTHER, no builds) means "no data yet"; a pipeline
    always carries one.
    """
    activity: Activity = Activity.OTHER
    last_build: Build | None = None
    current_build: Build | None = None
    web_url: str | None = None

    def __post_init__(self) -> None:
        if self.current_build is not None and self.activity != Activity.BUILDING:
            raise ValueError(f"current build given for activity {self.activity.value!r}")

    @property
    def has_ever_built(self) -> bool:
        return self.last_build is not None

    @property
    def build_trend(self) -> BuildTrend | None:
        if self.last_build is None or self.last_build.result == BuildResult.UNKNOWN:
            return None
        failed = self.last_build.result == BuildResult.FAILURE
        if self.activity == Activity.BUILDING:
            return BuildTrend.FIXING if failed else BuildTrend.BUILDING
        return BuildTrend.STILL_FAILING if failed else BuildTrend.STILL_SUCCEEDING

    def degraded(self) -> "Status":
        """
        Status shown after a failed poll: the activity becomes OTHER while the
        last known build stays visible. The current build goes away with the
        building activity.
        """
        return replace(self, activity=Activity.OTHER, current_build=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "activity": self.activity.value,
            "lastBuild": self.last_build.to_dict() if self.last_build else None,
            "currentBuild": self.current_build.to_dict() if self.current_build else None,
            "webUrl": self.web_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Status":
        if not data:
            return cls()
        activity = Activity(data.get("activity", Activity.OTHER.value))
        current_build = Build.from_dict(data.get("currentBuild"))
        return cls(
            activity=activity,
            last_build=Build.from_dict(data.get("lastBuild")),
            current_build=current_build if activity == Activity.BUILDING else None,
            web_url=data.get("webUrl"),
        )


@dataclass(frozen=True)
class Feed:
    """
    Where a pipeline's status comes from.

    Equality covers (type, url, project_name) only. pause_until is scheduling
    state written by the feed readers after a rate-limit response.
    """
    type: FeedType
    url: str
    project_name: str | None = None             # cctray only: project in a multi-project feed
    pause_until: int | None = field(default=None, compare=False)   # epoch seconds

    def is_paused(self, now: float) -> bool:
        return self.pause_until is not None and now < self.pause_until

    def with_pause_until(self, epoch_seconds: int) -> "Feed":
        return replace(self, pause_until=epoch_seconds)

    def without_pause(self) -> "Feed":
        return replace(self, pause_until=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "url": self.url,
            "projectName": self.project_name,
            "pauseUntil": self.pause_until,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Feed":
        return cls(
            type=FeedType(data["type"]),
            url=data["url"],
            project_name=data.get("projectName"),
            pause_until=data.get("pauseUntil"),
        )


def _new_identity() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Pipeline:
    name: str
    feed: Feed
    status: Status = field(default_factory=Status)
    connection_error: str | None = None
    identity: str = field(default_factory=_new_identity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "name": self.name,
            "feed": self.feed.to_dict(),
            "status": self.status.to_dict(),
            "connectionError": self.connection_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Pipeline":
        kwargs: dict[str, Any] = {}
        if data.get("identity"):
            kwargs["identity"] = data["identity"]
        return cls(
            name=data["name"],
            feed=Feed.from_dict(data["feed"]),
            status=Status.from_dict(data.get("status")),
            connection_error=data.get("connectionError"),
            **kwargs,
        )


@dataclass(frozen=True)
class DiscoveredProject:
    """A project offered while adding a CCTray pipeline; placeholders carry a message."""
    name: str = ""
    is_valid: bool = False
    message: str | None = None
