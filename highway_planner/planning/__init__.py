"""Trajectory planning module."""

from .cubic_spline import CubicSpline1D
from .speed_profile import plan_speeds
from .trajectory_synthesizer import TrajectorySynthesizer

__all__ = [
    'CubicSpline1D',
    'plan_speeds',
    'TrajectorySynthesizer',
]
