"""Tests for the CCTray feed parser."""

from datetime import datetime, timezone

import pytest

from pipeline_monitor.cctray_parser import find_project, parse_projects
from pipeline_monitor.exceptions import MalformedDocumentError
from pipeline_monitor.models import Activity, BuildResult


class TestParseProjects:
    """Tests for parse_projects()."""

    def test_sleeping_project_with_last_build(self, connectfour_feed):
        projects = parse_projects(connectfour_feed)

        assert len(projects) == 1
        status = projects[0].status
        assert projects[0].name == "connectfour"
        assert status.activity == Activity.SLEEPING
        assert status.last_build.result == BuildResult.SUCCESS
        assert status.last_build.label == "build.888"
        assert status.last_build.timestamp == datetime(2024, 2, 11, 22, 19, 26, tzinfo=timezone.utc)
        assert status.last_build.duration is None
        assert status.current_build is None

    def test_building_project_has_current_build(self):
        data = b"""<Projects>
            <Project name='p' activity='Building' lastBuildStatus='Failure'
                     buildStartTime='2024-02-12T08:00:00Z'/>
        </Projects>"""
        status = parse_projects(data)[0].status

        assert status.activity == Activity.BUILDING
        assert status.last_build.result == BuildResult.FAILURE
        assert status.current_build.result == BuildResult.UNKNOWN
        assert status.current_build.timestamp == datetime(2024, 2, 12, 8, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("activity", ["CheckingModifications", "Pending", ""])
    def test_unrecognized_activity_maps_to_other(self, activity):
        data = f"<Projects><Project name='p' activity='{activity}'/></Projects>".encode()
        assert parse_projects(data)[0].status.activity == Activity.OTHER

    def test_unknown_build_status(self):
        data = b"<Projects><Project name='p' activity='Sleeping' lastBuildStatus='Exception'/></Projects>"
        assert parse_projects(data)[0].status.last_build.result == BuildResult.UNKNOWN

    def test_missing_optional_attributes(self):
        data = b"<Projects><Project name='p' activity='Sleeping'/></Projects>"
        status = parse_projects(data)[0].status
        assert status.last_build is None
        assert status.web_url is None

    def test_web_url_and_unknown_attributes(self):
        data = b"""<Projects><Project name='p' activity='Sleeping' lastBuildStatus='Success'
            webUrl='http://ci/p' nextBuildTime='2024-02-12T08:00:00Z' category='x'/></Projects>"""
        status = parse_projects(data)[0].status
        assert status.web_url == "http://ci/p"
        assert status.last_build.label is None

    def test_empty_feed(self):
        assert parse_projects(b"<Projects></Projects>") == []

    def test_projects_without_name_are_skipped(self):
        data = b"<Projects><Project activity='Sleeping'/><Project name='b'/></Projects>"
        assert [p.name for p in parse_projects(data)] == ["b"]

    @pytest.mark.parametrize("data", [b"", b"not xml", b"<Projects><Project name='p'></Projects>", b"{}"])
    def test_malformed_document(self, data):
        with pytest.raises(MalformedDocumentError):
            parse_projects(data)


class TestFindProject:
    """Tests for picking the configured project out of a feed."""

    FEED = b"""<Projects>
        <Project activity='Sleeping' lastBuildStatus='Success' name='other-project'/>
        <Project activity='Building' lastBuildStatus='Failure' lastBuildLabel='7' name='connectfour'/>
    </Projects>"""

    def test_matches_by_name(self):
        project = find_project(parse_projects(self.FEED), "connectfour")
        assert project.status.activity == Activity.BUILDING
        assert project.status.last_build.label == "7"

    def test_no_match(self):
        assert find_project(parse_projects(self.FEED), "missing") is None
        assert find_project([], "connectfour") is None
