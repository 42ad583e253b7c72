"""Spline trajectory synthesis.

Every cycle the unconsumed tail of the previous trajectory is kept as is and
extended to the horizon. The extension follows a cubic spline fitted, in a
frame local to the end of the tail, through two history anchors and a few
forward anchors on the target lane centerline. Points are spaced along the
spline so that consecutive points are ``v * dt`` apart, with ``v`` taken from
a jerk-limited speed profile.
"""

import math
from typing import TYPE_CHECKING, Tuple

import numpy as np
from loguru import logger

if TYPE_CHECKING:
    from ..config import PlannerConfig

from ..core.coordinate_converter import FrenetConverter
from ..core.data_structures import EgoState, Trajectory
from ..core.errors import TrajectoryError
from ..core.lanes import LaneModel
from .cubic_spline import CubicSpline1D
from .speed_profile import plan_speeds

# Tail chords shorter than this carry no usable heading
MIN_CHORD = 1e-6

# Newton refinement of each step so that chords are exactly v * dt long
MAX_CHORD_ITERATIONS = 8
CHORD_TOLERANCE = 1e-12


class TrajectorySynthesizer:
    """Extend the previous trajectory to a full horizon towards a target lane.

    Args:
        converter: Frenet frame transform of the track
        lane_model: Lane partition of the road
        config: Planner configuration (horizon, dt, limits, anchor offsets)
    """

    def __init__(
        self,
        converter: FrenetConverter,
        lane_model: LaneModel,
        config: 'PlannerConfig'
    ):
        self.converter = converter
        self.lane_model = lane_model
        self.config = config

    def synthesize(
        self,
        ego: EgoState,
        previous_path: np.ndarray,
        target_lane: int,
        target_speed: float
    ) -> Trajectory:
        """Build the trajectory of this cycle.

        Args:
            ego: Ego state of this cycle
            previous_path: Unconsumed points of the last trajectory, shape (n, 2)
            target_lane: Lane whose centerline the new points converge to
            target_speed: Speed the new points converge to [m/s]

        Returns:
            Trajectory of exactly ``config.horizon`` points

        Raises:
            TrajectoryError: If the anchors do not advance in the local frame
                or the spline cannot be sampled
        """
        horizon = self.config.horizon
        dt = self.config.dt

        tail = np.asarray(previous_path, dtype=float).reshape(-1, 2)
        if len(tail) > horizon:
            tail = tail[:horizon]
        n_new = horizon - len(tail)

        if n_new == 0:
            return Trajectory(x=tuple(tail[:, 0]), y=tuple(tail[:, 1]), dt=dt, reused=len(tail))

        ref_x, ref_y, ref_yaw, prev_x, prev_y = self._history_anchors(ego, tail)
        if len(tail) == 0:
            ref_s = ego.s
        else:
            ref_s, _ = self.converter.to_frenet(ref_x, ref_y, ref_yaw)

        # Forward anchors are measured from the reference point, which leads
        # the ego by the whole tail
        anchors_x = [prev_x, ref_x]
        anchors_y = [prev_y, ref_y]
        d = self.lane_model.lane_center(target_lane)
        for offset in self.config.anchor_offsets:
            x, y = self.converter.to_cartesian(ref_s + offset, d)
            anchors_x.append(x)
            anchors_y.append(y)

        local = self._to_local(np.array(anchors_x), np.array(anchors_y), ref_x, ref_y, ref_yaw)
        if np.any(np.diff(local[:, 0]) <= 0):
            raise TrajectoryError(
                f"Anchors are not increasing along the reference heading: local x = {np.round(local[:, 0], 3).tolist()}"
            )
        spline = CubicSpline1D(local[:, 0], local[:, 1])

        v0, a0 = self._terminal_motion(ego, tail, dt)
        speeds, _ = plan_speeds(
            v0, a0, target_speed, n_new, dt,
            self.config.max_accel, self.config.max_jerk, self.config.max_speed,
        )

        new_local = np.zeros((n_new, 2))
        x_local, y_local = 0.0, 0.0
        for i, v in enumerate(speeds):
            x_local, y_local = self._advance(spline, x_local, y_local, v * dt)
            new_local[i] = (x_local, y_local)

        new_points = self._to_global(new_local, ref_x, ref_y, ref_yaw)
        if not np.all(np.isfinite(new_points)):
            raise TrajectoryError("Trajectory contains non-finite points")

        points = np.vstack([tail, new_points])
        logger.debug(
            f"Trajectory: reused {len(tail)} points, added {n_new} towards lane {target_lane} "
            f"(v {v0:.2f} -> {speeds[-1]:.2f} m/s, target {target_speed:.2f})"
        )
        return Trajectory(x=tuple(points[:, 0]), y=tuple(points[:, 1]), dt=dt, reused=len(tail))

    @staticmethod
    def _advance(spline: CubicSpline1D, x: float, y: float, step: float) -> Tuple[float, float]:
        """Next point on the spline whose chord from (x, y) is ``step`` long.

        Starts from the tangent estimate ``step / sqrt(1 + y'^2)`` and refines
        it with Newton iterations on the chord length.
        """
        if step <= 0.0:
            return x, y

        slope = spline.calc_first_derivative(x)
        if slope is None:
            raise TrajectoryError(f"Spline sampled outside its anchors at local x={x:.2f}")
        x_next = x + step / math.sqrt(1.0 + slope * slope)

        for _ in range(MAX_CHORD_ITERATIONS):
            y_next = spline.calc_position(x_next)
            slope = spline.calc_first_derivative(x_next)
            if y_next is None or slope is None:
                raise TrajectoryError(f"Spline sampled outside its anchors at local x={x_next:.2f}")
            dx, dy = x_next - x, y_next - y
            chord = math.hypot(dx, dy)
            error = chord - step
            if abs(error) <= CHORD_TOLERANCE:
                break
            x_next -= error * chord / (dx + dy * slope)

        y_next = spline.calc_position(x_next)
        if y_next is None:
            raise TrajectoryError(f"Spline sampled outside its anchors at local x={x_next:.2f}")
        return x_next, y_next

    @staticmethod
    def _history_anchors(ego: EgoState, tail: np.ndarray) -> Tuple[float, float, float, float, float]:
        """Reference point, reference heading and the point behind it.

        The reference is the end of the tail, or the ego position without a
        tail. The heading comes from the last tail chord when it is long
        enough, otherwise from the ego yaw.
        """
        if len(tail) == 0:
            ref_x, ref_y = ego.x, ego.y
        else:
            ref_x, ref_y = float(tail[-1, 0]), float(tail[-1, 1])

        if len(tail) >= 2:
            prev_x, prev_y = float(tail[-2, 0]), float(tail[-2, 1])
            if math.hypot(ref_x - prev_x, ref_y - prev_y) >= MIN_CHORD:
                return ref_x, ref_y, math.atan2(ref_y - prev_y, ref_x - prev_x), prev_x, prev_y

        ref_yaw = ego.yaw
        return ref_x, ref_y, ref_yaw, ref_x - math.cos(ref_yaw), ref_y - math.sin(ref_yaw)

    @staticmethod
    def _terminal_motion(ego: EgoState, tail: np.ndarray, dt: float) -> Tuple[float, float]:
        """Speed and acceleration at the end of the tail."""
        if len(tail) < 2:
            return ego.speed, 0.0
        step = np.hypot(np.diff(tail[-3:, 0]), np.diff(tail[-3:, 1])) / dt
        if len(step) < 2:
            return float(step[-1]), 0.0
        return float(step[-1]), float((step[-1] - step[-2]) / dt)

    @staticmethod
    def _to_local(xs: np.ndarray, ys: np.ndarray, ref_x: float, ref_y: float, yaw: float) -> np.ndarray:
        dx = xs - ref_x
        dy = ys - ref_y
        c, s = math.cos(yaw), math.sin(yaw)
        return np.column_stack([dx * c + dy * s, -dx * s + dy * c])

    @staticmethod
    def _to_global(points: np.ndarray, ref_x: float, ref_y: float, yaw: float) -> np.ndarray:
        c, s = math.cos(yaw), math.sin(yaw)
        lx, ly = points[:, 0], points[:, 1]
        return np.column_stack([lx * c - ly * s + ref_x, lx * s + ly * c + ref_y])
