"""Shared fixtures for highway planner tests."""

import math
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from highway_planner.config import PlannerConfig
from highway_planner.core.coordinate_converter import FrenetConverter, rad2deg
from highway_planner.core.lanes import LaneModel
from highway_planner.core.telemetry import MPH_TO_MPS
from highway_planner.core.track import Track, make_ring_track


@pytest.fixture
def ring_track():
    return make_ring_track()


@pytest.fixture
def straight_track():
    """Waypoints every 10m along the x axis, lanes on the -y side."""
    xs = [float(i * 10) for i in range(21)]
    return Track(xs, [0.0] * len(xs), xs, [0.0] * len(xs), [-1.0] * len(xs))


@pytest.fixture
def converter(ring_track):
    return FrenetConverter(ring_track)


@pytest.fixture
def config():
    return PlannerConfig()


@pytest.fixture
def lane_model(config):
    return LaneModel(config.lane_width, config.lane_count)


@pytest.fixture
def make_telemetry(converter):
    """Factory for simulator-unit telemetry records on the ring track."""

    def _make(s, d, speed=0.0, previous_path=None, sensor_fusion=None):
        x, y = converter.to_cartesian(s, d)
        yaw = converter.heading_at(s)
        previous_path = previous_path if previous_path is not None else []
        if previous_path:
            end_x, end_y = previous_path[-1]
            end_s, end_d = converter.to_frenet(end_x, end_y, yaw)
        else:
            end_s, end_d = 0.0, 0.0
        return {
            'x': x,
            'y': y,
            'yaw': rad2deg(yaw),
            'speed': speed / MPH_TO_MPS,
            's': s,
            'd': d,
            'previous_path_x': [p[0] for p in previous_path],
            'previous_path_y': [p[1] for p in previous_path],
            'end_path_s': end_s,
            'end_path_d': end_d,
            'sensor_fusion': sensor_fusion if sensor_fusion is not None else [],
        }

    return _make


@pytest.fixture
def make_vehicle(converter):
    """Factory for sensor-fusion rows of a vehicle following its lane."""

    def _make(vehicle_id, s, d, speed):
        x, y = converter.to_cartesian(s, d)
        heading = converter.heading_at(s)
        return [vehicle_id, x, y, speed * math.cos(heading), speed * math.sin(heading), s, d]

    return _make
