"""Tests for the status model."""

from datetime import datetime, timezone

import pytest

from pipeline_monitor.models import (
    Activity,
    Build,
    BuildResult,
    BuildTrend,
    Feed,
    FeedType,
    Pipeline,
    Status,
    format_dt,
    parse_dt,
)


class TestParseDt:
    """Tests for timestamp parsing."""

    def test_offset_is_converted_to_utc(self):
        dt = parse_dt("2024-02-11T23:19:26+01:00")
        assert dt == datetime(2024, 2, 11, 22, 19, 26, tzinfo=timezone.utc)

    def test_zulu_suffix(self):
        assert parse_dt("2024-02-11T22:19:26Z") == datetime(2024, 2, 11, 22, 19, 26, tzinfo=timezone.utc)

    def test_fractional_seconds(self):
        dt = parse_dt("2024-02-11T22:19:26.250Z")
        assert dt.microsecond == 250000

    def test_missing_and_invalid_values(self):
        assert parse_dt(None) is None
        assert parse_dt("") is None
        assert parse_dt("yesterday") is None

    def test_non_string_values(self):
        assert parse_dt(1707645566) is None
        assert parse_dt(["2024-02-11T22:19:26Z"]) is None

    def test_format_dt(self):
        assert format_dt(parse_dt("2024-02-11T23:19:26+01:00")) == "2024-02-11 22:19:26 UTC"
        assert format_dt(None) == "Unknown"
        assert format_dt(None, missing="N/A") == "N/A"


class TestStatus:
    """Tests for Status invariants and derived values."""

    def test_default_status_is_empty(self):
        status = Status()
        assert status.activity == Activity.OTHER
        assert status.last_build is None
        assert status.current_build is None
        assert not status.has_ever_built

    def test_current_build_requires_building_activity(self):
        with pytest.raises(ValueError):
            Status(activity=Activity.SLEEPING, current_build=Build())

    def test_has_ever_built(self):
        assert Status(last_build=Build(BuildResult.SUCCESS)).has_ever_built

    @pytest.mark.parametrize(
        "activity, result, trend",
        [
            (Activity.BUILDING, BuildResult.FAILURE, BuildTrend.FIXING),
            (Activity.BUILDING, BuildResult.SUCCESS, BuildTrend.BUILDING),
            (Activity.SLEEPING, BuildResult.FAILURE, BuildTrend.STILL_FAILING),
            (Activity.SLEEPING, BuildResult.SUCCESS, BuildTrend.STILL_SUCCEEDING),
            (Activity.SLEEPING, BuildResult.UNKNOWN, None),
        ],
    )
    def test_build_trend(self, activity, result, trend):
        current = Build() if activity == Activity.BUILDING else None
        status = Status(activity=activity, last_build=Build(result), current_build=current)
        assert status.build_trend == trend

    def test_build_trend_without_last_build(self):
        assert Status(activity=Activity.BUILDING, current_build=Build()).build_trend is None

    def test_degraded_keeps_last_build(self):
        last = Build(BuildResult.FAILURE, label="41")
        status = Status(
            activity=Activity.BUILDING,
            last_build=last,
            current_build=Build(),
            web_url="http://ci/p",
        )
        degraded = status.degraded()
        assert degraded.activity == Activity.OTHER
        assert degraded.last_build == last
        assert degraded.current_build is None
        assert degraded.web_url == "http://ci/p"

    def test_degraded_empty_status_stays_empty(self):
        assert Status().degraded() == Status()


class TestFeed:
    """Tests for Feed equality and pause state."""

    def test_pause_does_not_affect_equality(self):
        feed = Feed(FeedType.GITHUB, "https://api.github.com/x")
        paused = feed.with_pause_until(1700000000)
        assert paused == feed
        assert hash(paused) == hash(feed)
        assert paused.pause_until == 1700000000

    def test_project_name_is_part_of_identity(self):
        a = Feed(FeedType.CCTRAY, "http://ci/cc.xml", "a")
        b = Feed(FeedType.CCTRAY, "http://ci/cc.xml", "b")
        assert a != b

    def test_is_paused(self):
        feed = Feed(FeedType.GITHUB, "https://api.github.com/x", pause_until=100)
        assert feed.is_paused(99)
        assert not feed.is_paused(100)
        assert not feed.without_pause().is_paused(0)


class TestPipelineSerialization:
    """Tests for the persisted record form."""

    def test_round_trip(self):
        pipeline = Pipeline(
            name="connectfour",
            feed=Feed(FeedType.CCTRAY, "http://ci/cctray.xml", "connectfour", pause_until=5),
            status=Status(
                activity=Activity.SLEEPING,
                last_build=Build(
                    BuildResult.SUCCESS,
                    label="build.888",
                    timestamp=datetime(2024, 2, 11, 22, 19, 26, tzinfo=timezone.utc),
                    duration=53,
                ),
            ),
            connection_error="boom",
            identity="abc",
        )
        record = pipeline.to_dict()

        assert record["feed"] == {
            "type": "cctray",
            "url": "http://ci/cctray.xml",
            "projectName": "connectfour",
            "pauseUntil": 5,
        }
        assert record["connectionError"] == "boom"
        assert Pipeline.from_dict(record) == pipeline

    def test_minimal_record_gets_empty_status_and_identity(self):
        pipeline = Pipeline.from_dict(
            {"name": "x", "feed": {"type": "github", "url": "https://api.github.com/x"}}
        )
        assert pipeline.status == Status()
        assert pipeline.identity
        assert pipeline.feed.project_name is None

    def test_identities_are_unique_by_default(self):
        feed = Feed(FeedType.CCTRAY, "http://ci/cc.xml", "x")
        assert Pipeline("x", feed).identity != Pipeline("x", feed).identity
