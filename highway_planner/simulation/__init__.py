"""Planning cycle and closed-loop simulation."""

from .path_planner import HighwayPathPlanner
from .highway_runner import HighwayRunner, TrafficVehicle, RunRecord, build_track

__all__ = [
    'HighwayPathPlanner',
    'HighwayRunner',
    'TrafficVehicle',
    'RunRecord',
    'build_track',
]
