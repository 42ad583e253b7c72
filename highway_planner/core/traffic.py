"""Per-cycle traffic model built from sensor-fusion detections.

Every detection on the drivable band is assigned to a lane and compared with
the ego reference position. The result is a TrafficState holding, for each
lane, the nearest vehicle ahead and behind, plus the two derived flags the
behavior policy consumes: whether the ego lane is too close and which
adjacent lanes can be merged into.
"""

from typing import Dict, Iterable, List, Optional

from loguru import logger

from .data_structures import Detection, EgoState, LaneTraffic, TrafficState
from .lanes import LaneModel


def signed_gap(s_from: float, s_to: float, max_s: float) -> float:
    """Distance from ``s_from`` to ``s_to`` wrapped into (-max_s/2, max_s/2]."""
    gap = (s_to - s_from) % max_s
    if gap > max_s / 2.0:
        gap -= max_s
    return gap


def _lane_traffic(
    lane: int,
    candidates: List[tuple],
    look_ahead: float,
    look_behind: float
) -> LaneTraffic:
    """Nearest leader and follower among (gap, detection) pairs of one lane."""
    leader: Optional[tuple] = None
    follower: Optional[tuple] = None

    for gap, det in candidates:
        if 0.0 < gap <= look_ahead:
            if leader is None or gap < leader[0]:
                leader = (gap, det)
        elif -look_behind <= gap <= 0.0:
            if follower is None or -gap < follower[0]:
                follower = (-gap, det)

    return LaneTraffic(
        lane=lane,
        leader_id=leader[1].id if leader else None,
        leader_gap=leader[0] if leader else None,
        leader_speed=leader[1].speed if leader else None,
        follower_id=follower[1].id if follower else None,
        follower_gap=follower[0] if follower else None,
        follower_speed=follower[1].speed if follower else None,
    )


def build_traffic_state(
    ego: EgoState,
    detections: Iterable[Detection],
    ego_lane: int,
    lane_model: LaneModel,
    max_s: float,
    safety_distance: float = 30.0,
    merge_gap_ahead: float = 30.0,
    merge_gap_behind: float = 15.0,
    look_ahead: float = 100.0,
    look_behind: float = 50.0,
    prediction_time: float = 0.0,
    use_path_end: bool = False
) -> TrafficState:
    """Classify detections by lane and derive the gap flags.

    Detections are extrapolated along the track at constant speed for
    ``prediction_time`` seconds, and gaps are measured from the end of the
    previous path when ``use_path_end`` is set (otherwise from the ego s).

    Args:
        ego: Ego state of this cycle
        detections: Sensor-fusion detections of this cycle
        ego_lane: Lane the ego is driving in (or changing to)
        lane_model: Lane partition of the road
        max_s: Track wrap-around distance [m]
        safety_distance: Leader gap below which the ego lane is too close [m]
        merge_gap_ahead: Minimum leader gap in an adjacent lane [m]
        merge_gap_behind: Minimum follower gap in an adjacent lane [m]
        look_ahead: Window ahead of the reference in which leaders count [m]
        look_behind: Window behind the reference in which followers count [m]
        prediction_time: Constant-velocity extrapolation time [s]
        use_path_end: Measure gaps from ego.end_path_s instead of ego.s

    Returns:
        Traffic state of this cycle
    """
    reference_s = ego.end_path_s if use_path_end else ego.s

    per_lane: Dict[int, List[tuple]] = {lane: [] for lane in range(lane_model.lane_count)}
    dropped = 0
    for det in detections:
        lane = lane_model.lane_of(det.d)
        if lane is None:
            dropped += 1
            continue
        predicted_s = det.s + prediction_time * det.speed
        per_lane[lane].append((signed_gap(reference_s, predicted_s, max_s), det))

    if dropped:
        logger.debug(f"Ignored {dropped} detections outside the drivable band")

    lanes = tuple(
        _lane_traffic(lane, per_lane[lane], look_ahead, look_behind)
        for lane in range(lane_model.lane_count)
    )

    own = lanes[ego_lane]
    too_close = own.has_leader and own.leader_gap < safety_distance
    closing_speed = ego.speed - own.leader_speed if own.has_leader else None

    feasible = {}
    for lane in lane_model.adjacent_lanes(ego_lane):
        traffic = lanes[lane]
        ahead_ok = not traffic.has_leader or traffic.leader_gap >= merge_gap_ahead
        behind_ok = not traffic.has_follower or traffic.follower_gap >= merge_gap_behind
        feasible[lane] = ahead_ok and behind_ok

    return TrafficState(
        ego_lane=ego_lane,
        lanes=lanes,
        too_close=bool(too_close),
        feasible=feasible,
        reference_s=reference_s,
        closing_speed=closing_speed,
    )
