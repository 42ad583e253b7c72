"""Planning cycle: telemetry in, trajectory out.

HighwayPathPlanner wires the frame transform, lane model, traffic model,
behavior policy and trajectory synthesizer into one call per telemetry
record, and carries the planning context from one cycle to the next.
"""

import json
from collections import deque
from typing import Any, Deque, Mapping, Optional

from loguru import logger

from ..config import PlannerConfig
from ..core.coordinate_converter import FrenetConverter
from ..core.data_structures import CycleResult, PlanningContext, Trajectory
from ..core.errors import TelemetryError, TrajectoryError
from ..core.lanes import LaneModel
from ..core.state_machine import BehaviorPolicy
from ..core.telemetry import build_control_record, parse_telemetry
from ..core.track import Track
from ..core.traffic import build_traffic_state
from ..planning.trajectory_synthesizer import TrajectorySynthesizer

MESSAGE_PREFIX = '42'
MANUAL_MESSAGE = '42["manual",{}]'


def extract_payload(raw: str) -> Optional[str]:
    """JSON array carried by a socket.io event message, None without one."""
    if 'null' in raw:
        return None
    start = raw.find('[')
    end = raw.rfind(']')
    if start == -1 or end == -1 or end < start:
        return None
    return raw[start:end + 1]


class HighwayPathPlanner:
    """Stateful planner driven one telemetry record at a time.

    Args:
        track: Waypoint map of the highway
        config: Planner configuration
    """

    def __init__(self, track: Track, config: PlannerConfig):
        self.config = config
        self.track = track
        self.converter = FrenetConverter(track)
        self.lane_model = LaneModel(config.lane_width, config.lane_count)
        self.policy = BehaviorPolicy(config, self.lane_model)
        self.synthesizer = TrajectorySynthesizer(self.converter, self.lane_model, config)

        self.context: Optional[PlanningContext] = None
        self.history: Deque[CycleResult] = deque(maxlen=config.history_size)
        self.rejected_cycles = 0

        logger.info(
            f"Path planner initialized: {config.lane_count} lanes of {config.lane_width}m, "
            f"max speed {config.max_speed:.1f}m/s, horizon {config.horizon} points"
        )

    def plan(self, telemetry: Mapping[str, Any]) -> Optional[Trajectory]:
        """Run one planning cycle.

        A malformed record or an unbuildable trajectory rejects the cycle:
        the context and history stay as they were and None is returned.

        Args:
            telemetry: Telemetry record of this cycle

        Returns:
            Trajectory to execute, or None if the cycle was rejected
        """
        try:
            ego, previous_path, detections = parse_telemetry(telemetry, self.config.telemetry_units)

            context = self.context if self.context is not None else self.policy.initial_context(ego)

            has_tail = len(previous_path) > 0
            project = self.config.project_detections and has_tail
            traffic = build_traffic_state(
                ego,
                detections,
                context.lane,
                self.lane_model,
                self.converter.max_s,
                safety_distance=self.config.safety_distance,
                merge_gap_ahead=self.config.merge_gap_ahead,
                merge_gap_behind=self.config.merge_gap_behind,
                look_ahead=self.config.look_ahead,
                look_behind=self.config.look_behind,
                prediction_time=len(previous_path) * self.config.dt if project else 0.0,
                use_path_end=project,
            )

            decision, next_context = self.policy.decide(context, traffic, ego)
            trajectory = self.synthesizer.synthesize(
                ego, previous_path, decision.target_lane, decision.target_speed
            )
        except (TelemetryError, TrajectoryError) as e:
            self.rejected_cycles += 1
            logger.warning(f"Planning cycle rejected: {e}")
            return None

        self.context = next_context
        self.history.append(CycleResult(
            cycle=context.cycle,
            ego=ego,
            traffic=traffic,
            decision=decision,
            trajectory=trajectory,
        ))
        return trajectory

    def handle_message(self, raw: str) -> Optional[str]:
        """Answer one socket.io text frame from the simulator.

        Args:
            raw: Incoming frame, e.g. ``42["telemetry",{...}]``

        Returns:
            Outgoing frame, or None when nothing should be sent back
        """
        if not raw or len(raw) <= 2 or not raw.startswith(MESSAGE_PREFIX):
            return None

        payload = extract_payload(raw[len(MESSAGE_PREFIX):])
        if payload is None:
            return MANUAL_MESSAGE

        try:
            message = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding undecodable message: {e}")
            return None

        if not isinstance(message, list) or len(message) < 2 or message[0] != 'telemetry':
            return None

        trajectory = self.plan(message[1])
        if trajectory is None:
            return None

        return MESSAGE_PREFIX + json.dumps(['control', build_control_record(trajectory)])
