"""Static track map.

The track is a closed, piecewise-linear centerline described by discrete
waypoints. It is built once at startup and shared read-only by every
planning cycle.
"""

import math
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
from loguru import logger

from .data_structures import Waypoint
from .errors import TrackError


class Track:
    """Ordered, cyclic sequence of waypoints plus the wrap-around distance.

    Args:
        x, y: Waypoint positions [m]
        s: Longitudinal distance of each waypoint [m], strictly increasing
        dx, dy: Unit normal vectors of each waypoint
        max_s: Track length at which s wraps back to 0 [m]. Defaults to the
            last waypoint s plus the closing segment back to the first one.
    """

    def __init__(
        self,
        x: List[float],
        y: List[float],
        s: List[float],
        dx: List[float],
        dy: List[float],
        max_s: Optional[float] = None
    ):
        arrays = [np.array(v, dtype=float) for v in (x, y, s, dx, dy)]
        n = len(arrays[0])
        if n < 2:
            raise TrackError(f"Track needs at least 2 waypoints, got {n}")
        if any(len(a) != n for a in arrays):
            raise TrackError(
                "Waypoint columns must have the same length, got "
                f"{[len(a) for a in arrays]}"
            )
        if not all(np.all(np.isfinite(a)) for a in arrays):
            raise TrackError("Waypoint columns contain non-finite values")
        if np.any(np.diff(arrays[2]) <= 0):
            raise TrackError("Waypoint s values must be strictly increasing")

        for a in arrays:
            a.setflags(write=False)
        self.x, self.y, self.s, self.dx, self.dy = arrays

        closing = math.hypot(self.x[0] - self.x[-1], self.y[0] - self.y[-1])
        if max_s is None:
            max_s = float(self.s[-1] + closing)
        if max_s <= self.s[-1]:
            raise TrackError(
                f"max_s ({max_s}) must be greater than the last waypoint s ({self.s[-1]})"
            )
        self.max_s = float(max_s)

    def __len__(self) -> int:
        return len(self.x)

    def __getitem__(self, idx: int) -> Waypoint:
        idx = idx % len(self)
        return Waypoint(
            x=float(self.x[idx]),
            y=float(self.y[idx]),
            s=float(self.s[idx]),
            dx=float(self.dx[idx]),
            dy=float(self.dy[idx]),
        )

    @property
    def waypoints(self) -> List[Waypoint]:
        return [self[i] for i in range(len(self))]


def load_track_csv(path: Union[str, Path], max_s: Optional[float] = None) -> Track:
    """Load a waypoint map file.

    Each row holds ``x y s dx dy`` separated by whitespace (or commas).

    Args:
        path: Map file
        max_s: Wrap-around distance; computed from the map when omitted

    Returns:
        Loaded track
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Track map not found: {path}")

    with open(path, 'r') as f:
        text = f.read().replace(',', ' ')
    rows = [line.split() for line in text.splitlines() if line.strip()]

    try:
        data = np.array(rows, dtype=float)
    except ValueError as e:
        raise TrackError(f"Failed to parse track map {path}: {e}") from e

    if data.ndim != 2 or data.shape[1] != 5:
        raise TrackError(f"Track map {path} must have 5 columns (x y s dx dy)")

    track = Track(data[:, 0], data[:, 1], data[:, 2], data[:, 3], data[:, 4], max_s=max_s)
    logger.info(f"Loaded track with {len(track)} waypoints from {path} (max_s={track.max_s:.3f})")
    return track


def make_ring_track(
    radius: float = 1100.0,
    n_waypoints: int = 181,
    center: tuple = (1000.0, 2000.0)
) -> Track:
    """Build a circular, counter-clockwise track.

    Lanes lie on the outside of the circle, so positive Frenet d points away
    from ``center``. The default center coincides with the reference point of
    the lateral sign convention in the frame transform.

    Args:
        radius: Centerline radius [m]
        n_waypoints: Number of waypoints
        center: Circle center (x, y) [m]

    Returns:
        Ring track
    """
    if n_waypoints < 3:
        raise TrackError(f"A ring track needs at least 3 waypoints, got {n_waypoints}")

    cx, cy = center
    theta = np.linspace(0.0, 2.0 * np.pi, n_waypoints, endpoint=False)
    x = cx + radius * np.cos(theta)
    y = cy + radius * np.sin(theta)

    seg = np.hypot(np.diff(x), np.diff(y))
    s = np.concatenate([[0.0], np.cumsum(seg)])
    closing = math.hypot(x[0] - x[-1], y[0] - y[-1])

    track = Track(x, y, s, np.cos(theta), np.sin(theta), max_s=float(s[-1] + closing))
    logger.debug(f"Ring track built: radius={radius}m, {n_waypoints} waypoints, max_s={track.max_s:.2f}m")
    return track
