"""Per-cycle input/output records at the planner boundary.

The transport delivers one telemetry record per cycle and expects a control
record back. Records arrive in the driving simulator's units (heading in
degrees, ego speed in mph); everything past this module is SI.
"""

import math
from typing import Any, Dict, List, Mapping, Tuple

import numpy as np

from .coordinate_converter import deg2rad
from .data_structures import Detection, EgoState, Trajectory
from .errors import TelemetryError

MPH_TO_MPS = 0.44704

REQUIRED_FIELDS = (
    'x', 'y', 's', 'd', 'yaw', 'speed',
    'previous_path_x', 'previous_path_y',
    'end_path_s', 'end_path_d',
    'sensor_fusion',
)

# id, x, y, vx, vy, s, d
SENSOR_FUSION_COLUMNS = 7


def _number(value: Any, name: str) -> float:
    """Convert a record value to a finite float or raise TelemetryError."""
    if isinstance(value, bool):
        raise TelemetryError(f"Field '{name}' must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise TelemetryError(f"Field '{name}' must be numeric, got {value!r}") from e
    if not math.isfinite(number):
        raise TelemetryError(f"Field '{name}' must be finite, got {value!r}")
    return number


def _sequence(value: Any, name: str) -> List[Any]:
    if isinstance(value, (str, bytes)) or not hasattr(value, '__len__'):
        raise TelemetryError(f"Field '{name}' must be a list, got {type(value).__name__}")
    return list(value)


def parse_detections(rows: Any) -> List[Detection]:
    """Parse sensor-fusion rows ``[id, x, y, vx, vy, s, d]``."""
    detections = []
    for i, row in enumerate(_sequence(rows, 'sensor_fusion')):
        row = _sequence(row, f'sensor_fusion[{i}]')
        if len(row) < SENSOR_FUSION_COLUMNS:
            raise TelemetryError(
                f"sensor_fusion[{i}] needs {SENSOR_FUSION_COLUMNS} columns, got {len(row)}"
            )
        values = [_number(v, f'sensor_fusion[{i}][{j}]') for j, v in enumerate(row[:SENSOR_FUSION_COLUMNS])]
        detections.append(Detection(
            id=int(values[0]),
            x=values[1],
            y=values[2],
            vx=values[3],
            vy=values[4],
            s=values[5],
            d=values[6],
        ))
    return detections


def parse_telemetry(
    record: Mapping[str, Any],
    units: str = 'simulator'
) -> Tuple[EgoState, np.ndarray, List[Detection]]:
    """Validate and convert one telemetry record.

    Args:
        record: Telemetry record of one cycle
        units: 'simulator' (yaw in degrees, speed in mph) or 'si'

    Returns:
        ego: Ego state
        previous_path: Unconsumed previous-path points, shape (n, 2)
        detections: Sensor-fusion detections

    Raises:
        TelemetryError: If a field is missing or malformed
    """
    if not isinstance(record, Mapping):
        raise TelemetryError(f"Telemetry record must be a mapping, got {type(record).__name__}")

    missing = [name for name in REQUIRED_FIELDS if name not in record or record[name] is None]
    if missing:
        raise TelemetryError(f"Telemetry record is missing fields: {missing}")

    if units not in ('simulator', 'si'):
        raise ValueError(f"units must be 'simulator' or 'si', got '{units}'")

    yaw = _number(record['yaw'], 'yaw')
    speed = _number(record['speed'], 'speed')
    if units == 'simulator':
        yaw = deg2rad(yaw)
        speed = speed * MPH_TO_MPS
    if speed < 0:
        raise TelemetryError(f"Field 'speed' must be non-negative, got {record['speed']!r}")

    path_x = [_number(v, 'previous_path_x') for v in _sequence(record['previous_path_x'], 'previous_path_x')]
    path_y = [_number(v, 'previous_path_y') for v in _sequence(record['previous_path_y'], 'previous_path_y')]
    if len(path_x) != len(path_y):
        raise TelemetryError(
            f"previous_path_x ({len(path_x)}) and previous_path_y ({len(path_y)}) must have the same length"
        )
    previous_path = np.column_stack([path_x, path_y]) if path_x else np.empty((0, 2))

    ego = EgoState(
        x=_number(record['x'], 'x'),
        y=_number(record['y'], 'y'),
        yaw=yaw,
        speed=speed,
        s=_number(record['s'], 's'),
        d=_number(record['d'], 'd'),
        end_path_s=_number(record['end_path_s'], 'end_path_s'),
        end_path_d=_number(record['end_path_d'], 'end_path_d'),
    )

    return ego, previous_path, parse_detections(record['sensor_fusion'])


def build_control_record(trajectory: Trajectory) -> Dict[str, List[float]]:
    """Control record carrying the planned path back to the simulator."""
    return {
        'next_x': list(trajectory.x),
        'next_y': list(trajectory.y),
    }
