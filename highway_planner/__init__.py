"""Highway path planner: lane keeping, lane changes and smooth trajectories."""

__version__ = "0.1.0"
