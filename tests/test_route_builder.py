"""
Unit tests for turning parsed tracks into routes.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from trackmap.models.route_models import FeatureCollection, ImportOptions, Track, TrackPoint
from trackmap.services.gpx_parser import ParseResult, parse
from trackmap.services.route_builder import build_route, build_routes, compute_stats
from conftest import box_route, make_route


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestComputeStats:
    def test_sample_track_stats(self, sample_gpx):
        track = parse(sample_gpx, "ride.gpx")[0]
        stats = compute_stats(track.points)
        assert stats.distance_km == pytest.approx(2.64, rel=0.02)
        assert stats.duration_h == pytest.approx(1.0)
        assert stats.elevation_gain == pytest.approx(10.0)
        assert stats.avg_speed == pytest.approx(stats.distance_km)

    def test_single_point_has_no_stats(self):
        stats = compute_stats([TrackPoint(lat=1, lon=1)])
        assert stats.distance_km is None and stats.duration_h is None

    def test_missing_times_and_elevations(self):
        stats = compute_stats([TrackPoint(lat=51, lon=8), TrackPoint(lat=51.1, lon=8)])
        assert stats.distance_km == pytest.approx(11.1, rel=0.01)
        assert stats.duration_h is None
        assert stats.elevation_gain is None
        assert stats.avg_speed is None


class TestBuildRoute:
    def test_route_fields(self, sample_gpx):
        track = parse(sample_gpx, "ride.gpx")[0]
        route = build_route(track, "job1", period_key="week", now=NOW)
        assert route.id == "job1:0"
        assert route.name == "Morning Ride"
        assert route.date == "2024-05-01T08:00:00Z"
        assert route.period_key == "week"
        assert route.created_at == NOW.isoformat()
        assert route.lines() == [[[8.0, 51.0, 100.0], [8.01, 51.01, 110.0], [8.02, 51.02, 105.0]]]
        assert route.bbox == (8.0, 51.0, 8.02, 51.02)
        assert route.point_count == 3

    def test_empty_track_builds_route_without_geometry(self):
        route = build_route(Track(id="0", name="empty"), "job")
        assert route.lines() == []
        assert route.bbox == (0.0, 0.0, 0.0, 0.0)
        assert route.date is None


class TestBuildRoutes:
    def _result(self, job_id, tracks, error=None):
        return ParseResult(job_id=job_id, name=f"{job_id}.gpx", tracks=tracks, error=error)

    def _track(self, tid, coords, name="t"):
        return Track(id=tid, name=name, points=[TrackPoint(lat=lat, lon=lon) for lon, lat in coords])

    def test_ids_are_prefixed_by_job(self):
        results = [
            self._result("a", [self._track("0", [(1, 1), (2, 2)]), self._track("1", [(3, 3), (4, 4)])]),
            self._result("b", [self._track("0", [(5, 5), (6, 6)])]),
        ]
        routes = build_routes(results, now=NOW)
        assert [r.id for r in routes] == ["a:0", "a:1", "b:0"]

    def test_failed_results_are_skipped(self):
        results = [self._result("a", [], error="boom"), self._result("b", [self._track("0", [(1, 1), (2, 2)])])]
        assert [r.id for r in build_routes(results)] == ["b:0"]

    def test_merge_identical_tracks(self):
        same = [(1, 1), (2, 2)]
        results = [
            self._result("a", [self._track("0", same)]),
            self._result("b", [self._track("0", same), self._track("1", [(3, 3), (4, 4)])]),
        ]
        merged = build_routes(results, ImportOptions(merge_identical_tracks=True))
        assert [r.id for r in merged] == ["a:0", "b:1"]
        unmerged = build_routes(results, ImportOptions(merge_identical_tracks=False))
        assert len(unmerged) == 3

    def test_manual_color_mode_applies_default_color(self):
        results = [self._result("a", [self._track("0", [(1, 1), (2, 2)])])]
        routes = build_routes(results, ImportOptions(color_mode="manual", default_color="#123456", period_grouping="year"))
        assert routes[0].color == "#123456"
        assert routes[0].period_key == "year"

    def test_auto_color_mode_leaves_color_unset(self):
        results = [self._result("a", [self._track("0", [(1, 1), (2, 2)])])]
        assert build_routes(results)[0].color is None


class TestRouteModel:
    def test_route_is_immutable(self):
        route = box_route("r", 1, 1, 2, 2)
        with pytest.raises(ValidationError):
            route.geojson = FeatureCollection()
        with pytest.raises(ValidationError):
            route.geojson.features[0].geometry.coordinates = [[50.0, 50.0], [60.0, 60.0]]

    def test_copy_with_new_geometry_recomputes_bounds(self):
        route = box_route("r", 1, 1, 2, 2)
        moved = route.model_copy(update={"geojson": box_route("tmp", 50, 50, 60, 60).geojson})
        assert moved.bbox == (50.0, 50.0, 60.0, 60.0)
        assert route.bbox == (1.0, 1.0, 2.0, 2.0)

    def test_drawable_flag_follows_geometry(self):
        assert box_route("r", 1, 1, 2, 2).is_drawable
        assert not make_route("single", [(5.0, 5.0)]).is_drawable
        assert not make_route("nan", [(1.0, 1.0), (float("nan"), 2.0)]).is_drawable
        assert not make_route("empty", []).is_drawable
