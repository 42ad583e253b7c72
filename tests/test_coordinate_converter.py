"""Tests for the Frenet frame transform."""

import math

import numpy as np
import pytest

from highway_planner.core.coordinate_converter import (
    closest_waypoint,
    get_frenet,
    get_xy,
    next_waypoint,
    normalize_angle,
)
from highway_planner.core.track import Track


def test_normalize_angle():
    """Test angle normalization."""
    assert abs(normalize_angle(0.0)) < 1e-6
    assert abs(normalize_angle(2 * np.pi)) < 1e-6
    assert abs(normalize_angle(np.pi) - np.pi) < 1e-6
    assert abs(normalize_angle(-np.pi) - (-np.pi)) < 1e-6
    assert abs(normalize_angle(3 * np.pi) - (-np.pi)) < 1e-6
    assert abs(normalize_angle(1.5 * np.pi) - (-0.5 * np.pi)) < 1e-6


def test_normalize_angle_array():
    angles = np.array([0.0, 2.5 * np.pi, -2.5 * np.pi])
    result = normalize_angle(angles)
    np.testing.assert_allclose(result, [0.0, 0.5 * np.pi, -0.5 * np.pi], atol=1e-9)


def test_closest_waypoint_tie_goes_to_lowest_index(straight_track):
    # (5, 1) is equidistant from waypoints 0 and 1
    assert closest_waypoint(5.0, 1.0, straight_track) == 0


def test_next_waypoint_skips_waypoint_behind(straight_track):
    # Closest waypoint (10, 0) is behind a vehicle heading +x at x=12
    assert next_waypoint(12.0, 0.0, 0.0, straight_track) == 2
    # ... and ahead of one at x=8
    assert next_waypoint(8.0, 0.0, 0.0, straight_track) == 1
    # Driving backwards, (10, 0) is ahead again
    assert next_waypoint(12.0, 0.0, math.pi, straight_track) == 1


def test_next_waypoint_wraps_to_first():
    track = Track([0.0, 10.0, 20.0], [0.0, 0.0, 0.0], [0.0, 10.0, 20.0], [0.0] * 3, [-1.0] * 3)
    # Closest waypoint is the last one, behind the vehicle
    assert next_waypoint(21.0, 0.0, 0.0, track) == 0


def test_get_xy_straight_track(straight_track):
    x, y = get_xy(25.0, 0.0, straight_track)
    assert x == pytest.approx(25.0)
    assert y == pytest.approx(0.0)

    # Positive d lies to the right of the driving direction
    x, y = get_xy(25.0, 6.0, straight_track)
    assert x == pytest.approx(25.0)
    assert y == pytest.approx(-6.0)


def test_get_frenet_straight_track(straight_track):
    s, d = get_frenet(37.0, -6.0, 0.0, straight_track)
    assert s == pytest.approx(37.0)
    assert d == pytest.approx(6.0)

    s, d = get_frenet(37.0, 2.0, 0.0, straight_track)
    assert d == pytest.approx(-2.0)


@pytest.mark.parametrize("s", [10.0, 500.0, 3000.0, 6000.0])
@pytest.mark.parametrize("d", [2.0, 6.0, 10.0])
def test_round_trip_on_ring(converter, s, d):
    x, y = converter.to_cartesian(s, d)
    s2, d2 = converter.to_frenet(x, y, converter.heading_at(s))
    assert s2 == pytest.approx(s, abs=1e-6)
    assert d2 == pytest.approx(d, abs=1e-6)


def test_positive_d_points_away_from_ring_center(converter):
    x, y = converter.to_cartesian(500.0, 6.0)
    x0, y0 = converter.to_cartesian(500.0, 0.0)
    assert math.hypot(x - 1000.0, y - 2000.0) > math.hypot(x0 - 1000.0, y0 - 2000.0)


def test_s_increases_along_lane(converter):
    s_values = np.arange(7.0, 1000.0, 7.0)
    result = []
    for s in s_values:
        x, y = converter.to_cartesian(s, 6.0)
        result.append(converter.to_frenet(x, y, converter.heading_at(s))[0])
    assert np.all(np.diff(result) > 0)


def test_s_wraps_around_track(converter):
    x1, y1 = converter.to_cartesian(123.0, 6.0)
    x2, y2 = converter.to_cartesian(123.0 + converter.max_s, 6.0)
    assert x1 == pytest.approx(x2)
    assert y1 == pytest.approx(y2)


def test_get_xy_closing_segment(ring_track, converter):
    # s = 0 lies at the end of the closing segment, i.e. on waypoint 0
    x, y = converter.to_cartesian(0.0, 0.0)
    assert x == pytest.approx(ring_track.x[0])
    assert y == pytest.approx(ring_track.y[0])

    # Between the last waypoint and max_s the closing segment is used
    s = 0.5 * (ring_track.s[-1] + ring_track.max_s)
    x, y = converter.to_cartesian(s, 0.0)
    assert x == pytest.approx(0.5 * (ring_track.x[-1] + ring_track.x[0]))
    assert y == pytest.approx(0.5 * (ring_track.y[-1] + ring_track.y[0]))


def test_to_cartesian_many(converter):
    points = converter.to_cartesian_many([10.0, 20.0, 30.0], 6.0)
    assert points.shape == (3, 2)
    np.testing.assert_allclose(points[1], converter.to_cartesian(20.0, 6.0))
