"""Core module: track, frame transform, lanes, traffic and behavior."""

from .data_structures import (
    Maneuver,
    Waypoint,
    EgoState,
    Detection,
    LaneTraffic,
    TrafficState,
    PlanningContext,
    BehaviorDecision,
    Trajectory,
    CycleResult,
)
from .errors import PlannerError, TrackError, TelemetryError, TrajectoryError
from .track import Track, load_track_csv, make_ring_track
from .coordinate_converter import (
    FrenetConverter,
    closest_waypoint,
    next_waypoint,
    get_frenet,
    get_xy,
    normalize_angle,
)
from .lanes import LaneModel
from .traffic import build_traffic_state, signed_gap
from .state_machine import BehaviorPolicy
from .telemetry import parse_telemetry, build_control_record, MPH_TO_MPS

__all__ = [
    'Maneuver',
    'Waypoint',
    'EgoState',
    'Detection',
    'LaneTraffic',
    'TrafficState',
    'PlanningContext',
    'BehaviorDecision',
    'Trajectory',
    'CycleResult',
    'PlannerError',
    'TrackError',
    'TelemetryError',
    'TrajectoryError',
    'Track',
    'load_track_csv',
    'make_ring_track',
    'FrenetConverter',
    'closest_waypoint',
    'next_waypoint',
    'get_frenet',
    'get_xy',
    'normalize_angle',
    'LaneModel',
    'build_traffic_state',
    'signed_gap',
    'BehaviorPolicy',
    'parse_telemetry',
    'build_control_record',
    'MPH_TO_MPS',
]
