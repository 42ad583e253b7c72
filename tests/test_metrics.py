"""Tests for path metrics."""

import numpy as np
import pytest

from highway_planner.core.metrics import (
    path_accelerations,
    path_jerks,
    path_speeds,
    path_total_accelerations,
    summarize_run,
)

DT = 0.02


def constant_accel_path(v0, a, n):
    t = np.arange(n) * DT
    return np.column_stack([v0 * t + 0.5 * a * t ** 2, np.zeros(n)])


def test_constant_speed():
    points = constant_accel_path(10.0, 0.0, 20)
    np.testing.assert_allclose(path_speeds(points, DT), 10.0)
    np.testing.assert_allclose(path_accelerations(points, DT), 0.0, atol=1e-6)


def test_constant_acceleration():
    points = constant_accel_path(5.0, 2.0, 30)
    np.testing.assert_allclose(path_accelerations(points, DT), 2.0, atol=1e-6)
    np.testing.assert_allclose(path_jerks(points, DT), 0.0, atol=1e-3)


def test_short_paths():
    assert path_speeds(np.zeros((1, 2)), DT).size == 0
    assert path_accelerations(np.zeros((2, 2)), DT).size == 0
    assert path_jerks(np.zeros((3, 2)), DT).size == 0


def test_summarize_run():
    points = constant_accel_path(10.0, 0.0, 51)
    metrics = summarize_run(points, DT, lanes=[1, 1, 0, 0, 1], min_gaps=[30.0, 12.0, float('inf')],
                            speed_limit=9.0)
    assert metrics['duration'] == pytest.approx(1.0)
    assert metrics['distance'] == pytest.approx(10.0)
    assert metrics['lane_changes'] == 2
    assert metrics['min_gap'] == pytest.approx(12.0)
    assert metrics['speed_limit_violations'] == 50
    assert not metrics['collision']


def test_summarize_run_flags_collision():
    metrics = summarize_run(constant_accel_path(10.0, 0.0, 5), DT, [1], [3.0], speed_limit=20.0)
    assert metrics['collision']


def test_total_acceleration_includes_lateral_part():
    # Uniform circular motion: constant speed, centripetal acceleration v^2 / r
    radius, speed = 50.0, 10.0
    angles = np.arange(100) * speed * DT / radius
    points = np.column_stack([radius * np.cos(angles), radius * np.sin(angles)])
    np.testing.assert_allclose(path_accelerations(points, DT), 0.0, atol=1e-6)
    np.testing.assert_allclose(path_total_accelerations(points, DT), speed ** 2 / radius, rtol=1e-3)
    assert path_total_accelerations(np.zeros((2, 2)), DT).size == 0


def test_rounding_at_the_limit_is_not_a_violation():
    points = constant_accel_path(22.0 * (1.0 + 1e-9), 0.0, 51)
    metrics = summarize_run(points, DT, [1], [float('inf')], speed_limit=22.0)
    assert metrics['speed_limit_violations'] == 0
    assert metrics['max_total_accel'] == pytest.approx(0.0, abs=1e-6)
