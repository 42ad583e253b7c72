"""Core data structures for the highway path planner.

This module defines the per-cycle value records shared by every component of
the planning pipeline. All of them are immutable: a planning cycle builds new
records from fresh telemetry and never edits the ones of a previous cycle.
"""

import math
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Optional, Tuple

import numpy as np


class Maneuver(Enum):
    """Behavior states of the lane-keep / lane-change policy."""
    KEEP_LANE = auto()
    CHANGE_LEFT = auto()
    CHANGE_RIGHT = auto()


@dataclass(frozen=True)
class Waypoint:
    """A single map waypoint of the track centerline.

    Attributes:
        x, y: Position in the world frame [m]
        s: Longitudinal distance along the track [m]
        dx, dy: Unit normal pointing to the lane side of the road
    """
    x: float
    y: float
    s: float
    dx: float
    dy: float


@dataclass(frozen=True)
class EgoState:
    """State of the ego vehicle reported for one planning cycle.

    Attributes:
        x: X coordinate in world frame [m]
        y: Y coordinate in world frame [m]
        yaw: Heading angle [rad]
        speed: Speed [m/s]
        s: Frenet longitudinal position [m]
        d: Frenet lateral offset [m]
        end_path_s: Frenet s of the last unconsumed previous-path point [m]
        end_path_d: Frenet d of the last unconsumed previous-path point [m]
    """
    x: float
    y: float
    yaw: float
    speed: float
    s: float
    d: float
    end_path_s: float = 0.0
    end_path_d: float = 0.0

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [x, y, yaw, speed, s, d]."""
        return np.array([self.x, self.y, self.yaw, self.speed, self.s, self.d])


@dataclass(frozen=True)
class Detection:
    """One vehicle reported by sensor fusion for the current cycle."""
    id: int
    x: float
    y: float
    vx: float
    vy: float
    s: float
    d: float

    @property
    def speed(self) -> float:
        """Speed magnitude [m/s]."""
        return math.hypot(self.vx, self.vy)


@dataclass(frozen=True)
class LaneTraffic:
    """Nearest vehicles around the ego reference position in one lane.

    Gaps are Frenet distances from the ego reference s. ``leader_gap`` is
    positive, ``follower_gap`` is reported as a non-negative magnitude.
    Fields are None when no vehicle lies inside the look-ahead (leader) or
    look-behind (follower) window.
    """
    lane: int
    leader_id: Optional[int] = None
    leader_gap: Optional[float] = None
    leader_speed: Optional[float] = None
    follower_id: Optional[int] = None
    follower_gap: Optional[float] = None
    follower_speed: Optional[float] = None

    @property
    def has_leader(self) -> bool:
        return self.leader_gap is not None

    @property
    def has_follower(self) -> bool:
        return self.follower_gap is not None


@dataclass(frozen=True)
class TrafficState:
    """Per-cycle snapshot of the surrounding traffic.

    Attributes:
        ego_lane: Lane the policy is currently driving in (or changing to)
        lanes: One LaneTraffic entry per lane, indexed by lane number
        too_close: True when the ego-lane leader gap is below the safety distance
        feasible: Merge feasibility for every existing adjacent lane
        reference_s: Ego s the gaps were measured from [m]
        closing_speed: Ego speed minus ego-lane leader speed [m/s], None without a leader
    """
    ego_lane: int
    lanes: Tuple[LaneTraffic, ...]
    too_close: bool
    feasible: Dict[int, bool] = field(default_factory=dict)
    reference_s: float = 0.0
    closing_speed: Optional[float] = None

    def lane(self, lane: int) -> LaneTraffic:
        """Traffic summary of a given lane."""
        return self.lanes[lane]


@dataclass(frozen=True)
class PlanningContext:
    """State carried from one planning cycle to the next.

    Replaces the process-wide reference velocity and lane variables: each
    cycle receives the previous context and returns a new one.
    """
    lane: int
    target_speed: float
    maneuver: Maneuver = Maneuver.KEEP_LANE
    cycle: int = 0


@dataclass(frozen=True)
class BehaviorDecision:
    """Output of the behavior policy for one cycle."""
    maneuver: Maneuver
    target_lane: int
    target_speed: float
    reason: str = ""


@dataclass(frozen=True)
class Trajectory:
    """Fixed-step path handed to the trajectory-following controller.

    Attributes:
        x, y: World coordinates of each point [m]
        dt: Time between consecutive points [s]
        reused: Number of leading points copied from the previous path
    """
    x: Tuple[float, ...]
    y: Tuple[float, ...]
    dt: float = 0.02
    reused: int = 0

    def __post_init__(self):
        if len(self.x) != len(self.y):
            raise ValueError(
                f"Trajectory x and y must have the same length, got {len(self.x)} and {len(self.y)}"
            )

    def __len__(self) -> int:
        return len(self.x)

    def to_array(self) -> np.ndarray:
        """Points as an array of shape (n, 2)."""
        if len(self.x) == 0:
            return np.empty((0, 2))
        return np.column_stack([self.x, self.y])


@dataclass(frozen=True)
class CycleResult:
    """Record of one completed planning cycle."""
    cycle: int
    ego: EgoState
    traffic: TrafficState
    decision: BehaviorDecision
    trajectory: Trajectory
