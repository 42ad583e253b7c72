"""Configuration management module."""

import math
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger


@dataclass
class PlannerConfig:
    """Configuration of the highway planner and its closed-loop runner.

    Attributes:
        # Time parameters
        dt: Time between consecutive trajectory points [s]
        horizon: Number of points in every emitted trajectory

        # Road
        lane_width: Width of one lane [m]
        lane_count: Number of lanes
        starting_lane: Lane used when the first ego d is off-road
        track_path: Optional waypoint map file (x y s dx dy per row)
        max_s: Track wrap-around distance [m], computed from the map when None
        ring_radius: Radius of the synthetic ring track used without a map [m]
        ring_waypoints: Number of waypoints of the synthetic ring track

        # Speed / comfort limits
        max_speed: Maximum speed [m/s]
        min_speed: Lowest target speed the policy decelerates to [m/s]
        speed_step: Target speed increase per cycle [m/s]
        decel_step: Target speed decrease per cycle when blocked [m/s]
        max_accel: Maximum longitudinal acceleration [m/s²]
        max_jerk: Maximum longitudinal jerk [m/s³]

        # Traffic / behavior
        safety_distance: Leader gap below which the ego lane is too close [m]
        merge_gap_ahead: Minimum leader gap in a lane to merge into [m]
        merge_gap_behind: Minimum follower gap in a lane to merge into [m]
        look_ahead: Window ahead of the ego in which leaders are tracked [m]
        look_behind: Window behind the ego in which followers are tracked [m]
        lane_priority: Order in which adjacent lanes are tried ('left', 'right')
        lane_change_tolerance: |d - lane center| at which a lane change is complete [m]
        project_detections: Extrapolate detections to the end of the previous path

        # Trajectory
        anchor_offsets: Forward anchor distances from the s of the trajectory reference point [m]

        # Telemetry
        telemetry_units: 'simulator' (yaw in degrees, speed in mph) or 'si'
        history_size: Number of cycle results kept in memory

        # Closed-loop runner
        total_cycles: Number of cycles to run
        points_per_cycle: Points consumed by the vehicle between cycles
        ego_initial_s: Initial ego s [m]
        ego_initial_speed: Initial ego speed [m/s]
        traffic: List of {id, s, d, speed} vehicles driving at constant speed
        output_path: Output directory for results
    """
    # Time parameters
    dt: float = 0.02
    horizon: int = 50

    # Road
    lane_width: float = 4.0
    lane_count: int = 3
    starting_lane: int = 1
    track_path: Optional[str] = None
    max_s: Optional[float] = None
    ring_radius: float = 1100.0
    ring_waypoints: int = 181

    # Speed / comfort limits
    max_speed: float = 22.0  # ~49.2 mph
    min_speed: float = 0.0
    speed_step: float = 0.1
    decel_step: float = 0.1
    max_accel: float = 5.0
    max_jerk: float = 10.0

    # Traffic / behavior
    safety_distance: float = 30.0
    merge_gap_ahead: float = 30.0
    merge_gap_behind: float = 15.0
    look_ahead: float = 100.0
    look_behind: float = 50.0
    lane_priority: List[str] = field(default_factory=lambda: ['left', 'right'])
    lane_change_tolerance: float = 0.5
    project_detections: bool = True

    # Trajectory
    anchor_offsets: List[float] = field(default_factory=lambda: [50.0, 80.0, 90.0])

    # Telemetry
    telemetry_units: str = 'simulator'
    history_size: int = 1000

    # Closed-loop runner
    total_cycles: int = 500
    points_per_cycle: int = 3
    ego_initial_s: float = 100.0
    ego_initial_speed: float = 0.0
    traffic: List[Dict[str, Any]] = field(default_factory=list)
    output_path: str = 'output'

    # Internal: loaded from
    config_path: Optional[str] = None


class ConfigValidationError(ValueError):
    """Raised when configuration validation fails."""
    pass


def validate_config(config: PlannerConfig) -> None:
    """Validate configuration values for consistency and correctness.

    Args:
        config: Configuration to validate

    Raises:
        ConfigValidationError: If validation fails
    """
    errors: List[str] = []

    # Time parameters
    if config.dt <= 0:
        errors.append(f"dt must be positive, got {config.dt}")
    if config.horizon < 2:
        errors.append(f"horizon must be at least 2, got {config.horizon}")

    # Road
    if config.lane_width <= 0:
        errors.append(f"lane_width must be positive, got {config.lane_width}")
    if config.lane_count <= 0:
        errors.append(f"lane_count must be positive, got {config.lane_count}")
    if not 0 <= config.starting_lane < max(config.lane_count, 1):
        errors.append(f"starting_lane must be in [0, {config.lane_count - 1}], got {config.starting_lane}")
    if config.max_s is not None and config.max_s <= 0:
        errors.append(f"max_s must be positive, got {config.max_s}")
    if config.track_path is not None and not Path(config.track_path).exists():
        errors.append(f"track_path does not exist: {config.track_path}")
    if config.ring_radius <= 0:
        errors.append(f"ring_radius must be positive, got {config.ring_radius}")
    if config.ring_waypoints < 3:
        errors.append(f"ring_waypoints must be at least 3, got {config.ring_waypoints}")

    # Speed / comfort limits
    if config.max_speed <= 0:
        errors.append(f"max_speed must be positive, got {config.max_speed}")
    if config.min_speed < 0:
        errors.append(f"min_speed must be non-negative, got {config.min_speed}")
    if config.min_speed > config.max_speed:
        errors.append(f"min_speed ({config.min_speed}) must be <= max_speed ({config.max_speed})")
    if config.speed_step <= 0:
        errors.append(f"speed_step must be positive, got {config.speed_step}")
    if config.decel_step <= 0:
        errors.append(f"decel_step must be positive, got {config.decel_step}")
    if config.max_accel <= 0:
        errors.append(f"max_accel must be positive, got {config.max_accel}")
    if config.max_jerk <= 0:
        errors.append(f"max_jerk must be positive, got {config.max_jerk}")

    # Traffic / behavior
    for name in ('safety_distance', 'merge_gap_ahead', 'merge_gap_behind', 'look_ahead', 'look_behind'):
        value = getattr(config, name)
        if value <= 0:
            errors.append(f"{name} must be positive, got {value}")
    if config.look_ahead < config.safety_distance:
        errors.append(f"look_ahead ({config.look_ahead}) must be >= safety_distance ({config.safety_distance})")
    if not config.lane_priority:
        errors.append("lane_priority must name at least one side")
    for side in config.lane_priority:
        if side not in ('left', 'right'):
            errors.append(f"lane_priority entries must be 'left' or 'right', got '{side}'")
    if len(set(config.lane_priority)) != len(config.lane_priority):
        errors.append(f"lane_priority must not repeat sides, got {config.lane_priority}")
    if config.lane_change_tolerance <= 0 or config.lane_change_tolerance >= config.lane_width / 2:
        errors.append(
            f"lane_change_tolerance must be in (0, {config.lane_width / 2}), got {config.lane_change_tolerance}"
        )

    # Trajectory
    if len(config.anchor_offsets) < 1:
        errors.append("anchor_offsets must contain at least one distance")
    if any(o <= 0 for o in config.anchor_offsets):
        errors.append(f"anchor_offsets must be positive, got {config.anchor_offsets}")
    if any(b <= a for a, b in zip(config.anchor_offsets, config.anchor_offsets[1:])):
        errors.append(f"anchor_offsets must be strictly increasing, got {config.anchor_offsets}")
    # Anchors must lie beyond the distance one horizon can cover
    reach = config.max_speed * config.dt * config.horizon
    if config.anchor_offsets and config.anchor_offsets[-1] <= reach:
        errors.append(
            f"last anchor offset ({config.anchor_offsets[-1]}) must exceed the horizon reach ({reach:.1f}m)"
        )

    # Telemetry
    if config.telemetry_units not in ['simulator', 'si']:
        errors.append(f"telemetry_units must be one of ['simulator', 'si'], got '{config.telemetry_units}'")
    if config.history_size <= 0:
        errors.append(f"history_size must be positive, got {config.history_size}")

    # Closed-loop runner
    if config.total_cycles <= 0:
        errors.append(f"total_cycles must be positive, got {config.total_cycles}")
    if config.points_per_cycle <= 0 or config.points_per_cycle >= config.horizon:
        errors.append(f"points_per_cycle must be in [1, {config.horizon - 1}], got {config.points_per_cycle}")
    if config.ego_initial_speed < 0 or config.ego_initial_speed > config.max_speed:
        errors.append(f"ego_initial_speed must be in [0, max_speed], got {config.ego_initial_speed}")
    for i, vehicle in enumerate(config.traffic):
        missing = [k for k in ('id', 's', 'd', 'speed') if k not in vehicle]
        if missing:
            errors.append(f"traffic[{i}] is missing {missing}")
            continue
        try:
            values = [float(vehicle[k]) for k in ('s', 'd', 'speed')]
        except (TypeError, ValueError):
            errors.append(f"traffic[{i}] has non-numeric values: {vehicle}")
            continue
        if not all(math.isfinite(v) for v in values):
            errors.append(f"traffic[{i}] has non-finite values")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigValidationError(error_msg)


def load_config(config_path: str) -> PlannerConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Loaded configuration
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML file {config_path}: {e}") from e

    if config_dict is None:
        raise ValueError(f"YAML file {config_path} is empty or contains no valid content")

    try:
        config = PlannerConfig(**config_dict)
    except TypeError as e:
        raise ValueError(f"Invalid configuration structure in {config_path}: {e}") from e

    config.config_path = str(config_path)

    # Relative map paths are resolved against the config file
    if config.track_path is not None and not Path(config.track_path).is_absolute():
        config.track_path = str(config_path.parent / config.track_path)

    try:
        validate_config(config)
    except ConfigValidationError:
        logger.error(f"Configuration validation failed for {config_path}")
        raise

    logger.info(f"Configuration loaded and validated from {config_path}")

    return config


def save_config(config: PlannerConfig, config_path: str):
    """Save configuration to YAML file.

    Args:
        config: Configuration to save
        config_path: Path to save YAML file
    """
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = asdict(config)
    config_dict.pop('config_path', None)

    with open(config_path, 'w') as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2)

    logger.info(f"Configuration saved to {config_path}")


__all__ = [
    'PlannerConfig',
    'ConfigValidationError',
    'validate_config',
    'load_config',
    'save_config',
]
