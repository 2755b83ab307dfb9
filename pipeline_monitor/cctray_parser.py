
# parses a CCTray feed document into one CCTrayProject per <Project> element.
#
# A feed looks like:
#
#   <Projects>
#     <Project name='connectfour' activity='Sleeping' lastBuildStatus='Success'
#              lastBuildLabel='build.888' lastBuildTime='2024-02-11T23:19:26+01:00'
#              webUrl='http://ci.example.com/connectfour'/>
#   </Projects>
#
# Notes:
#   - A document without any project elements is valid and yields []. Callers
#     tell "parsed, nothing there" apart from MalformedDocumentError.
#   - Attributes not listed below are ignored; missing optional ones leave the
#     matching Build field as None.
#   - Elements without a name cannot be matched to a pipeline and are skipped.

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from pipeline_monitor.exceptions import MalformedDocumentError
from pipeline_monitor.models import Activity, Build, BuildResult, Status, parse_dt

log = logging.getLogger(__name__)

_ACTIVITY: dict[str, Activity] = {
    "Sleeping": Activity.SLEEPING,
    "Building": Activity.BUILDING,
}

_RESULT: dict[str, BuildResult] = {
    "Success": BuildResult.SUCCESS,
    "Failure": BuildResult.FAILURE,
}


@dataclass(frozen=True)
class CCTrayProject:
    name: str
    status: Status


def _project_status(attrs: dict[str, str]) -> Status:
    activity = _ACTIVITY.get(attrs.get("activity", ""), Activity.OTHER)

    last_build = None
    if "lastBuildStatus" in attrs:
        last_build = Build(
            result=_RESULT.get(attrs["lastBuildStatus"], BuildResult.UNKNOWN),
            label=attrs.get("lastBuildLabel") or None,
            timestamp=parse_dt(attrs.get("lastBuildTime")),
        )

    current_build = None
    if activity == Activity.BUILDING:
        current_build = Build(
            result=BuildResult.UNKNOWN,
            timestamp=parse_dt(attrs.get("buildStartTime")),
        )

    return Status(
        activity=activity,
        last_build=last_build,
        current_build=current_build,
        web_url=attrs.get("webUrl") or None,
    )


def parse_projects(data: bytes) -> list[CCTrayProject]:
    """
    Parse a CCTray feed.

    Raises:
        MalformedDocumentError  when data is not well-formed XML
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise MalformedDocumentError(str(exc)) from exc

    projects: list[CCTrayProject] = []
    for element in root.iter("Project"):
        name = element.get("name")
        if not name:
            log.debug("Skipping project element without a name")
            continue
        projects.append(CCTrayProject(name=name, status=_project_status(dict(element.attrib))))
    return projects


def find_project(projects: list[CCTrayProject], name: str | None) -> CCTrayProject | None:
    for project in projects:
        if project.name == name:
            return project
    return None
