"""Coordinate conversion utilities between Cartesian and Frenet frames.

The Frenet frame is defined against the piecewise-linear track centerline:
- s: longitudinal distance along the waypoint polyline
- d: lateral offset from it, positive to the right of the driving direction

The lateral sign is decided by comparing distances to a fixed reference
point, which matches the map and simulator this planner drives against.
"""

import math
from typing import Optional, Tuple, Union

import numpy as np
from loguru import logger

from .track import Track

# Fixed point used to decide the sign of d
SIGN_REFERENCE_X = 1000.0
SIGN_REFERENCE_Y = 2000.0


def deg2rad(x: float) -> float:
    return x * math.pi / 180.0


def rad2deg(x: float) -> float:
    return x * 180.0 / math.pi


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two points."""
    return math.hypot(x2 - x1, y2 - y1)


def normalize_angle(angle: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Normalize angle to [-pi, pi] range.

    Args:
        angle: Input angle in radians

    Returns:
        Normalized angle in [-pi, pi]
    """
    two_pi = 2.0 * np.pi

    # x - n*y with n the nearest integer, as math.remainder does
    n = np.round(angle / two_pi)
    a = angle - n * two_pi

    # Positive odd multiples of pi map to -pi
    if np.isscalar(a):
        if abs(a + np.pi) < 1e-9 and angle > 0:
            return -np.pi
        return float(a)

    mask = (np.abs(a + np.pi) < 1e-9) & (angle > 0)
    if np.any(mask):
        a[mask] = -np.pi

    return a


def closest_waypoint(x: float, y: float, track: Track) -> int:
    """Index of the waypoint nearest to (x, y).

    Exact ties resolve to the lowest index.
    """
    dists = np.hypot(track.x - x, track.y - y)
    # argmin returns the first occurrence of the minimum
    return int(np.argmin(dists))


def next_waypoint(
    x: float,
    y: float,
    theta: float,
    track: Track,
    max_angle: float = math.pi / 2
) -> int:
    """Index of the first waypoint ahead of a vehicle.

    The closest waypoint is used unless it lies behind the vehicle, i.e. the
    angle between the heading and the bearing to the waypoint exceeds
    ``max_angle``; in that case the following waypoint is returned.

    Args:
        x, y: Vehicle position [m]
        theta: Vehicle heading [rad]
        track: Waypoint map
        max_angle: Largest heading-to-bearing angle still considered ahead [rad]

    Returns:
        Waypoint index
    """
    idx = closest_waypoint(x, y, track)

    heading = math.atan2(track.y[idx] - y, track.x[idx] - x)
    angle = abs(normalize_angle(theta - heading))

    if angle > max_angle:
        idx = (idx + 1) % len(track)

    return idx


def _segment_lengths(track: Track) -> np.ndarray:
    """Cumulative centerline length up to each waypoint (index 0 -> 0.0)."""
    seg = np.hypot(np.diff(track.x), np.diff(track.y))
    return np.concatenate([[0.0], np.cumsum(seg)])


def get_frenet(
    x: float,
    y: float,
    theta: float,
    track: Track,
    cumulative: Optional[np.ndarray] = None
) -> Tuple[float, float]:
    """Transform from Cartesian x, y to Frenet s, d.

    Args:
        x, y: Position [m]
        theta: Heading [rad]
        track: Waypoint map
        cumulative: Precomputed cumulative segment lengths (see FrenetConverter)

    Returns:
        (s, d)
    """
    next_wp = next_waypoint(x, y, theta, track)
    prev_wp = next_wp - 1
    if next_wp == 0:
        prev_wp = len(track) - 1

    n_x = track.x[next_wp] - track.x[prev_wp]
    n_y = track.y[next_wp] - track.y[prev_wp]
    x_x = x - track.x[prev_wp]
    x_y = y - track.y[prev_wp]

    # Projection of the position onto the segment
    proj_norm = (x_x * n_x + x_y * n_y) / (n_x * n_x + n_y * n_y)
    proj_x = proj_norm * n_x
    proj_y = proj_norm * n_y

    frenet_d = distance(x_x, x_y, proj_x, proj_y)

    center_x = SIGN_REFERENCE_X - track.x[prev_wp]
    center_y = SIGN_REFERENCE_Y - track.y[prev_wp]
    center_to_pos = distance(center_x, center_y, x_x, x_y)
    center_to_ref = distance(center_x, center_y, proj_x, proj_y)

    if center_to_pos <= center_to_ref:
        frenet_d *= -1

    if cumulative is None:
        cumulative = _segment_lengths(track)
    frenet_s = float(cumulative[prev_wp]) + distance(0.0, 0.0, proj_x, proj_y)

    return frenet_s, frenet_d


def get_xy(s: float, d: float, track: Track) -> Tuple[float, float]:
    """Transform from Frenet s, d to Cartesian x, y.

    ``s`` is reduced modulo the track length before the lookup.

    Args:
        s: Longitudinal position [m]
        d: Lateral offset [m]
        track: Waypoint map

    Returns:
        (x, y)
    """
    n = len(track)
    s = s % track.max_s

    prev_wp = -1
    while prev_wp < n - 1 and s > track.s[prev_wp + 1]:
        prev_wp += 1

    if prev_wp == -1:
        # s lies before the first waypoint: closing segment of the loop
        prev_wp = n - 1
        seg_s = s + track.max_s - track.s[prev_wp]
    else:
        seg_s = s - track.s[prev_wp]

    wp2 = (prev_wp + 1) % n

    heading = math.atan2(track.y[wp2] - track.y[prev_wp], track.x[wp2] - track.x[prev_wp])

    seg_x = track.x[prev_wp] + seg_s * math.cos(heading)
    seg_y = track.y[prev_wp] + seg_s * math.sin(heading)

    perp_heading = heading - math.pi / 2

    return (
        float(seg_x + d * math.cos(perp_heading)),
        float(seg_y + d * math.sin(perp_heading)),
    )


class FrenetConverter:
    """Frame transform bound to one track.

    Keeps the cumulative segment-length table so that repeated Cartesian to
    Frenet conversions do not re-sum the polyline.

    Args:
        track: Waypoint map
    """

    def __init__(self, track: Track):
        self.track = track
        self._cumulative = _segment_lengths(track)
        self._cumulative.setflags(write=False)
        logger.info(f"Frenet converter initialized with {len(track)} waypoints, max_s={track.max_s:.2f}m")

    @property
    def max_s(self) -> float:
        return self.track.max_s

    def closest_waypoint(self, x: float, y: float) -> int:
        return closest_waypoint(x, y, self.track)

    def next_waypoint(self, x: float, y: float, theta: float) -> int:
        return next_waypoint(x, y, theta, self.track)

    def to_frenet(self, x: float, y: float, theta: float) -> Tuple[float, float]:
        return get_frenet(x, y, theta, self.track, self._cumulative)

    def to_cartesian(self, s: float, d: float) -> Tuple[float, float]:
        return get_xy(s, d, self.track)

    def to_cartesian_many(self, s_values, d_values) -> np.ndarray:
        """Convert several Frenet points at once.

        Args:
            s_values: Longitudinal positions [m]
            d_values: Lateral offsets [m], scalar or one per s

        Returns:
            Array of shape (n, 2)
        """
        s_values = np.atleast_1d(np.asarray(s_values, dtype=float))
        d_values = np.broadcast_to(np.asarray(d_values, dtype=float), s_values.shape)
        return np.array([get_xy(s, d, self.track) for s, d in zip(s_values, d_values)])

    def heading_at(self, s: float) -> float:
        """Heading of the centerline segment containing s [rad]."""
        x0, y0 = get_xy(s, 0.0, self.track)
        x1, y1 = get_xy(s + 1.0, 0.0, self.track)
        return math.atan2(y1 - y0, x1 - x0)
