"""Lane-keep / lane-change behavior state machine.

This module defines the states and transitions of the highway behavior
policy: keep the lane at the highest allowed speed, move to a free adjacent
lane when the leader gets too close, or slow down when boxed in.
"""

from typing import Optional, Tuple, TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from ..config import PlannerConfig

from .data_structures import BehaviorDecision, EgoState, Maneuver, PlanningContext, TrafficState
from .lanes import LaneModel


class BehaviorPolicy:
    """Greedy single-step policy choosing the target lane and speed.

    A lane change, once issued, is not re-evaluated until the ego reaches the
    target lane centerline. Only single-lane changes are considered.

    Args:
        config: Planner configuration (speed limits, steps, lane priority)
        lane_model: Lane partition of the road
    """

    def __init__(self, config: 'PlannerConfig', lane_model: LaneModel) -> None:
        self.config = config
        self.lane_model = lane_model

    def initial_context(self, ego: EgoState) -> PlanningContext:
        """Context for the first cycle, derived from the first ego state."""
        lane = self.lane_model.lane_of(ego.d)
        if lane is None:
            logger.warning(
                f"Ego d={ego.d:.2f} is outside the drivable band, "
                f"starting in lane {self.config.starting_lane}"
            )
            lane = self.config.starting_lane
        target_speed = min(max(ego.speed, 0.0), self.config.max_speed)
        return PlanningContext(lane=lane, target_speed=target_speed)

    def decide(
        self,
        context: PlanningContext,
        traffic: TrafficState,
        ego: EgoState
    ) -> Tuple[BehaviorDecision, PlanningContext]:
        """Evaluate the policy once.

        Args:
            context: Context returned by the previous cycle
            traffic: Traffic state of this cycle, built for ``context.lane``
            ego: Ego state of this cycle

        Returns:
            Decision for this cycle and the context for the next one
        """
        maneuver = context.maneuver
        lane = context.lane

        if maneuver is not Maneuver.KEEP_LANE and self._lane_change_complete(lane, ego.d):
            logger.info(f"Lane change to lane {lane} complete (d={ego.d:.2f})")
            maneuver = Maneuver.KEEP_LANE

        if maneuver is Maneuver.KEEP_LANE and traffic.too_close:
            target = self._pick_lane(lane, traffic)
            if target is not None:
                new_maneuver = Maneuver.CHANGE_LEFT if target < lane else Maneuver.CHANGE_RIGHT
                leader_gap = traffic.lane(lane).leader_gap
                logger.info(
                    f"Leader {leader_gap:.1f}m ahead in lane {lane}, "
                    f"changing to lane {target} ({new_maneuver.name})"
                )
                decision = BehaviorDecision(
                    maneuver=new_maneuver,
                    target_lane=target,
                    target_speed=context.target_speed,
                    reason=f"too close in lane {lane}, lane {target} free",
                )
                return decision, self._next_context(context, decision)

        if traffic.too_close:
            speed = self._decelerate(context.target_speed)
            if maneuver is Maneuver.KEEP_LANE:
                reason = f"too close in lane {lane}, no adjacent lane free"
                logger.debug(f"Blocked in lane {lane}, target speed {context.target_speed:.2f} -> {speed:.2f}")
            else:
                reason = f"too close while changing to lane {lane}"
        else:
            speed = self._accelerate(context.target_speed)
            reason = "lane clear" if maneuver is Maneuver.KEEP_LANE else f"changing to lane {lane}"

        decision = BehaviorDecision(
            maneuver=maneuver,
            target_lane=lane,
            target_speed=speed,
            reason=reason,
        )
        return decision, self._next_context(context, decision)

    def _pick_lane(self, lane: int, traffic: TrafficState) -> Optional[int]:
        """First adjacent lane, in priority order, that can be merged into."""
        for candidate in self.lane_model.adjacent_lanes(lane, self.config.lane_priority):
            if traffic.feasible.get(candidate, False):
                return candidate
        return None

    def _lane_change_complete(self, lane: int, d: float) -> bool:
        return abs(d - self.lane_model.lane_center(lane)) <= self.config.lane_change_tolerance

    def _accelerate(self, speed: float) -> float:
        return min(speed + self.config.speed_step, self.config.max_speed)

    def _decelerate(self, speed: float) -> float:
        # Never raise the speed, even when it is already below the floor
        floor = min(self.config.min_speed, speed)
        return max(speed - self.config.decel_step, floor)

    @staticmethod
    def _next_context(context: PlanningContext, decision: BehaviorDecision) -> PlanningContext:
        return PlanningContext(
            lane=decision.target_lane,
            target_speed=decision.target_speed,
            maneuver=decision.maneuver,
            cycle=context.cycle + 1,
        )
