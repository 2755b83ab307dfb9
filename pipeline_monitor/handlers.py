
# status handlers: the output layer.

# A handler receives the previous and the merged value of a pipeline after
# every poll and decides whether anything worth reporting happened. All
# formatting lives here; the models stay plain data.

# to add a new output target, implement a class with:
#     async def handle(self, previous: Pipeline, current: Pipeline) -> None: ...
# and pass it into PipelineMonitor in main.py.

import logging
from datetime import datetime, timezone
from typing import Callable

from pipeline_monitor.models import Activity, BuildResult, BuildTrend, Pipeline, format_dt

log = logging.getLogger(__name__)

_RESET = "\033[0m"
_RED = "\033[31m"
_BRIGHT_RED = "\033[91m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_BLUE = "\033[34m"

_EVENT_COLOR: dict[str, str] = {
    "broken": _BRIGHT_RED,
    "still failing": _RED,
    "fixed": _GREEN,
    "successful": _GREEN,
    "started": _BLUE,
    "error": _YELLOW,
}


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def completed_build_event(previous: Pipeline, current: Pipeline) -> str | None:
    """'fixed', 'broken', 'still failing' or 'successful' when current shows a newly finished build."""
    new = current.status.last_build
    old = previous.status.last_build
    if new is None or new == old:
        return None
    if new.result == BuildResult.FAILURE:
        if old is not None and old.result == BuildResult.FAILURE:
            return "still failing"
        return "broken"
    if new.result == BuildResult.SUCCESS:
        if old is not None and old.result == BuildResult.FAILURE:
            return "fixed"
        return "successful"
    return None


def describe_change(previous: Pipeline, current: Pipeline) -> tuple[str, str] | None:
    """(event, detail) for a reportable change between two values of one pipeline, else None."""
    if current.connection_error:
        if current.connection_error != previous.connection_error:
            return "error", current.connection_error
        return None

    status = current.status
    if status.activity == Activity.BUILDING and previous.status.activity != Activity.BUILDING:
        detail = "fixing a failed build" if status.build_trend == BuildTrend.FIXING else "build in progress"
        return "started", detail

    event = completed_build_event(previous, current)
    if event is not None:
        build = status.last_build
        detail = f"Label={build.label or 'N/A'} | Time={format_dt(build.timestamp)}"
        if build.duration is not None:
            detail += f" | Duration={build.duration}s"
        return event, detail

    return None


class ConsoleStatusHandler:
    """
    Emits one line per reportable pipeline change to stdout.

    Format:
        [2026-02-21T12:39:08Z] connectfour | FIXED | Label=build.889 | Time=2026-02-21 12:30:00 UTC | Duration=53s
    """

    def __init__(self, color: bool = True, now: Callable[[], datetime] = _utc_now) -> None:
        self._color = color
        self._now = now

    async def handle(self, previous: Pipeline, current: Pipeline) -> None:
        change = describe_change(previous, current)
        if change is None:
            log.debug("No reportable change for %s", current.name)
            return
        print(self._format(current, *change), flush=True)

    def _event_label(self, event: str) -> str:
        color = _EVENT_COLOR.get(event) if self._color else None
        return f"{color}{event.upper()}{_RESET}" if color else event.upper()

    def _format(self, pipeline: Pipeline, event: str, detail: str) -> str:
        stamp = self._now().strftime("%Y-%m-%dT%H:%M:%SZ")
        return f"[{stamp}] {pipeline.name} | {self._event_label(event)} | {detail}"
