"""Tests for the per-cycle traffic model."""

import pytest

from highway_planner.core.data_structures import Detection, EgoState
from highway_planner.core.lanes import LaneModel
from highway_planner.core.traffic import build_traffic_state, signed_gap

MAX_S = 1000.0


def make_ego(s=100.0, d=6.0, speed=20.0, end_path_s=0.0):
    return EgoState(x=0.0, y=0.0, yaw=0.0, speed=speed, s=s, d=d, end_path_s=end_path_s)


def make_det(vehicle_id, s, d, speed=10.0):
    return Detection(id=vehicle_id, x=0.0, y=0.0, vx=speed, vy=0.0, s=s, d=d)


def build(ego, detections, ego_lane=1, **kwargs):
    return build_traffic_state(ego, detections, ego_lane, LaneModel(), MAX_S, **kwargs)


def test_signed_gap_wraps():
    assert signed_gap(100.0, 120.0, MAX_S) == pytest.approx(20.0)
    assert signed_gap(120.0, 100.0, MAX_S) == pytest.approx(-20.0)
    assert signed_gap(990.0, 10.0, MAX_S) == pytest.approx(20.0)
    assert signed_gap(10.0, 990.0, MAX_S) == pytest.approx(-20.0)


def test_empty_road():
    traffic = build(make_ego(), [])
    assert not traffic.too_close
    assert traffic.closing_speed is None
    assert traffic.feasible == {0: True, 2: True}
    assert all(not lane.has_leader and not lane.has_follower for lane in traffic.lanes)


def test_leader_too_close():
    traffic = build(make_ego(), [make_det(1, 120.0, 6.0, speed=10.0)])
    own = traffic.lane(1)
    assert traffic.too_close
    assert own.leader_id == 1
    assert own.leader_gap == pytest.approx(20.0)
    assert traffic.closing_speed == pytest.approx(10.0)


def test_leader_beyond_safety_distance():
    traffic = build(make_ego(), [make_det(1, 140.0, 6.0)])
    assert traffic.lane(1).has_leader
    assert not traffic.too_close


def test_nearest_leader_and_follower_are_kept():
    detections = [
        make_det(1, 180.0, 6.5),
        make_det(2, 150.0, 5.0),
        make_det(3, 80.0, 4.5),
        make_det(4, 60.0, 7.0),
    ]
    own = build(make_ego(), detections).lane(1)
    assert own.leader_id == 2
    assert own.leader_gap == pytest.approx(50.0)
    assert own.follower_id == 3
    assert own.follower_gap == pytest.approx(20.0)


def test_detections_off_road_are_ignored():
    detections = [make_det(1, 110.0, -2.0), make_det(2, 110.0, 12.5)]
    traffic = build(make_ego(), detections)
    assert not traffic.too_close
    assert all(not lane.has_leader for lane in traffic.lanes)


def test_merge_feasibility():
    detections = [
        make_det(1, 90.0, 2.0),    # 10m behind in lane 0
        make_det(2, 160.0, 10.0),  # 60m ahead in lane 2
    ]
    traffic = build(make_ego(), detections)
    assert traffic.feasible == {0: False, 2: True}


def test_merge_blocked_by_close_leader():
    traffic = build(make_ego(), [make_det(1, 115.0, 2.0)])
    assert traffic.feasible[0] is False
    assert traffic.feasible[2] is True


def test_edge_lane_has_single_neighbour():
    traffic = build(make_ego(d=2.0), [], ego_lane=0)
    assert set(traffic.feasible) == {1}


def test_gap_across_wrap_around():
    ego = make_ego(s=MAX_S - 10.0)
    traffic = build(ego, [make_det(1, 10.0, 6.0)])
    assert traffic.lane(1).leader_gap == pytest.approx(20.0)
    assert traffic.too_close


def test_constant_velocity_projection():
    # 10m ahead now, 20m ahead after one second at 10 m/s relative to a parked reference
    traffic = build(make_ego(speed=0.0), [make_det(1, 110.0, 6.0, speed=10.0)], prediction_time=1.0)
    assert traffic.lane(1).leader_gap == pytest.approx(20.0)


def test_gaps_from_path_end():
    ego = make_ego(end_path_s=125.0)
    detections = [make_det(1, 110.0, 6.0, speed=10.0)]

    traffic = build(ego, detections, prediction_time=1.0, use_path_end=True)
    own = traffic.lane(1)
    assert traffic.reference_s == pytest.approx(125.0)
    assert not own.has_leader
    assert own.follower_gap == pytest.approx(5.0)
    assert not traffic.too_close
