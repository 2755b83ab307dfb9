
# parses a GitHub Actions "list workflow runs" response and projects the most
# recent run onto a Status.
#
# Design decisions:
#   - Runs are sorted by start time here; API ordering is not relied upon.
#   - Start time is run_started_at, falling back to created_at (re-runs keep
#     their created_at but get a new run_started_at).
#   - Duration is only known for completed runs: updated_at - start, never < 0.
#   - Only the newest run decides activity. When it is still running, the
#     newest *completed* run among the fetched ones becomes the last build, so
#     the pipeline keeps showing whether the previous build was green.

import json
from dataclasses import dataclass
from datetime import datetime, timezone

from pipeline_monitor.exceptions import MalformedDocumentError
from pipeline_monitor.models import Activity, Build, BuildResult, Status, parse_dt

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

_ACTIVITY: dict[str, Activity] = {
    "completed": Activity.SLEEPING,
    "in_progress": Activity.BUILDING,
    "queued": Activity.BUILDING,
}

_RESULT: dict[str, BuildResult] = {
    "success": BuildResult.SUCCESS,
    "failure": BuildResult.FAILURE,
}


@dataclass(frozen=True)
class WorkflowRun:
    id: int | None
    status: str
    conclusion: str | None
    run_number: int | None
    started_at: datetime | None
    updated_at: datetime | None
    html_url: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


def _field(entry: dict, key: str, kind: type | tuple[type, ...]):
    value = entry.get(key)
    if value is not None and (not isinstance(value, kind) or isinstance(value, bool)):
        raise MalformedDocumentError(f"{key} has unexpected type {type(value).__name__}")
    return value


def _run_from_dict(entry: dict) -> WorkflowRun:
    return WorkflowRun(
        id=_field(entry, "id", int),
        status=_field(entry, "status", str) or "",
        conclusion=_field(entry, "conclusion", str),
        run_number=_field(entry, "run_number", int),
        started_at=parse_dt(_field(entry, "run_started_at", str) or _field(entry, "created_at", str)),
        updated_at=parse_dt(_field(entry, "updated_at", str)),
        html_url=_field(entry, "html_url", str),
    )


def parse_runs(data: bytes) -> list[WorkflowRun]:
    """
    Parse a workflow runs document. Returns the runs newest first.

    Raises:
        MalformedDocumentError  when data is not JSON of the expected shape
    """
    try:
        document = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedDocumentError(str(exc)) from exc

    if not isinstance(document, dict) or not isinstance(document.get("workflow_runs"), list):
        raise MalformedDocumentError("expected an object with a workflow_runs list")

    entries = document["workflow_runs"]
    if not all(isinstance(entry, dict) for entry in entries):
        raise MalformedDocumentError("workflow_runs contains a non-object entry")

    runs = [_run_from_dict(entry) for entry in entries]
    runs.sort(key=lambda r: r.started_at or _EPOCH, reverse=True)
    return runs


def _label(run: WorkflowRun) -> str | None:
    return str(run.run_number) if run.run_number is not None else None


def _completed_build(run: WorkflowRun) -> Build:
    duration = None
    if run.started_at is not None and run.updated_at is not None:
        duration = max(0, int((run.updated_at - run.started_at).total_seconds()))
    return Build(
        result=_RESULT.get(run.conclusion or "", BuildResult.UNKNOWN),
        label=_label(run),
        timestamp=run.started_at,
        duration=duration,
    )


def pipeline_status(runs: list[WorkflowRun]) -> Status | None:
    """Status for the newest run in runs (newest first), or None when there are no runs."""
    if not runs:
        return None

    newest = runs[0]
    activity = _ACTIVITY.get(newest.status, Activity.OTHER)

    if newest.is_completed:
        return Status(activity=activity, last_build=_completed_build(newest), web_url=newest.html_url)

    previous = next((r for r in runs[1:] if r.is_completed), None)
    last_build = _completed_build(previous) if previous is not None else None
    current_build = None
    if activity == Activity.BUILDING:
        current_build = Build(result=BuildResult.UNKNOWN, label=_label(newest), timestamp=newest.started_at)

    return Status(
        activity=activity,
        last_build=last_build,
        current_build=current_build,
        web_url=newest.html_url,
    )
