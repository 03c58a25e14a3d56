"""Shared fixtures for trackmap tests."""

import pytest

from trackmap.models.route_models import Feature, FeatureCollection, LineStringGeometry, Route


def make_route(route_id, coords, **kwargs):
    features = []
    if coords:
        features.append(Feature(geometry=LineStringGeometry(coordinates=[list(c) for c in coords])))
    return Route(id=route_id, name=kwargs.pop("name", route_id), geojson=FeatureCollection(features=features), **kwargs)


def box_route(route_id, min_lon, min_lat, max_lon, max_lat, **kwargs):
    """Diagonal two-point route whose bbox is exactly the given box."""
    return make_route(route_id, [(min_lon, min_lat), (max_lon, max_lat)], **kwargs)


class ManualTimer:
    """Stand-in for threading.Timer that fires only when told to."""

    created = None

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.started = False
        self.cancelled = False
        self.daemon = False
        if ManualTimer.created is not None:
            ManualTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def route_factory():
    return make_route


@pytest.fixture
def box_route_factory():
    return box_route


@pytest.fixture
def timers():
    ManualTimer.created = []
    yield ManualTimer.created
    ManualTimer.created = None


@pytest.fixture
def manual_timer(timers):
    return ManualTimer


@pytest.fixture
def clock():
    return FakeClock()


SAMPLE_GPX = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <trk>
    <name>Morning Ride</name>
    <trkseg>
      <trkpt lat="51.0" lon="8.0"><ele>100.0</ele><time>2024-05-01T08:00:00Z</time></trkpt>
      <trkpt lat="51.01" lon="8.01"><ele>110.0</ele><time>2024-05-01T08:30:00Z</time></trkpt>
      <trkpt lat="51.02" lon="8.02"><ele>105.0</ele><time>2024-05-01T09:00:00Z</time></trkpt>
    </trkseg>
  </trk>
</gpx>
"""


@pytest.fixture
def sample_gpx():
    return SAMPLE_GPX
