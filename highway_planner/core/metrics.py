"""Comfort and safety metrics of an executed or planned path."""

from typing import Dict, Sequence

import numpy as np

# Relative tolerance on the speed limit for rounding in point coordinates
SPEED_LIMIT_RTOL = 1e-6


def path_speeds(points: np.ndarray, dt: float) -> np.ndarray:
    """Speed between consecutive fixed-step points, shape (n - 1,)."""
    points = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(points) < 2:
        return np.empty(0)
    return np.hypot(np.diff(points[:, 0]), np.diff(points[:, 1])) / dt


def path_accelerations(points: np.ndarray, dt: float) -> np.ndarray:
    """Longitudinal acceleration from consecutive speeds, shape (n - 2,)."""
    speeds = path_speeds(points, dt)
    if len(speeds) < 2:
        return np.empty(0)
    return np.diff(speeds) / dt


def path_total_accelerations(points: np.ndarray, dt: float) -> np.ndarray:
    """Magnitude of the acceleration vector, lateral part included, shape (n - 2,).

    Computed from differences of consecutive velocity vectors.
    """
    points = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(points) < 3:
        return np.empty(0)
    velocities = np.diff(points, axis=0) / dt
    return np.linalg.norm(np.diff(velocities, axis=0), axis=1) / dt


def path_jerks(points: np.ndarray, dt: float) -> np.ndarray:
    """Longitudinal jerk from consecutive accelerations, shape (n - 3,)."""
    accels = path_accelerations(points, dt)
    if len(accels) < 2:
        return np.empty(0)
    return np.diff(accels) / dt


def summarize_run(
    driven: np.ndarray,
    dt: float,
    lanes: Sequence[int],
    min_gaps: Sequence[float],
    speed_limit: float,
    collision_gap: float = 5.0
) -> Dict[str, float]:
    """Aggregate metrics of a closed-loop run.

    Args:
        driven: Every point the ego occupied, one per dt, shape (n, 2)
        dt: Time between points [s]
        lanes: Lane reported at every planning cycle
        min_gaps: Smallest same-lane distance to another vehicle per cycle [m]
        speed_limit: Speed limit [m/s]
        collision_gap: Same-lane distance below which a cycle counts as a collision [m]

    Returns:
        Dictionary of metrics
    """
    speeds = path_speeds(driven, dt)
    accels = path_accelerations(driven, dt)
    total_accels = path_total_accelerations(driven, dt)
    jerks = path_jerks(driven, dt)
    gaps = np.asarray(min_gaps, dtype=float)

    lane_changes = sum(1 for a, b in zip(lanes, lanes[1:]) if a != b)

    return {
        'duration': float(max(len(driven) - 1, 0) * dt),
        'distance': float(np.sum(speeds) * dt),
        'avg_speed': float(np.mean(speeds)) if len(speeds) else 0.0,
        'max_speed': float(np.max(speeds)) if len(speeds) else 0.0,
        'max_abs_accel': float(np.max(np.abs(accels))) if len(accels) else 0.0,
        'max_total_accel': float(np.max(total_accels)) if len(total_accels) else 0.0,
        'max_abs_jerk': float(np.max(np.abs(jerks))) if len(jerks) else 0.0,
        'speed_limit_violations': int(np.sum(speeds > speed_limit * (1.0 + SPEED_LIMIT_RTOL))),
        'lane_changes': int(lane_changes),
        'min_gap': float(np.min(gaps)) if len(gaps) else float('inf'),
        'collision': bool(np.any(gaps < collision_gap)) if len(gaps) else False,
    }
