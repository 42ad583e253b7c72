"""Exceptions raised by the planning pipeline."""


class PlannerError(Exception):
    """Base class for planning errors."""
    pass


class TrackError(PlannerError):
    """Raised when a waypoint map is not a valid track."""
    pass


class TelemetryError(PlannerError):
    """Raised when a per-cycle input record is malformed or incomplete."""
    pass


class TrajectoryError(PlannerError):
    """Raised when a trajectory cannot be synthesized from the anchor points."""
    pass
