"""Tests for the planning cycle and the message surface."""

import json

import pytest

from highway_planner.core.data_structures import Maneuver
from highway_planner.simulation.path_planner import MANUAL_MESSAGE, HighwayPathPlanner, extract_payload


@pytest.fixture
def planner(ring_track, config):
    return HighwayPathPlanner(ring_track, config)


def test_first_cycle(planner, make_telemetry, config):
    trajectory = planner.plan(make_telemetry(100.0, 6.0, speed=10.0))
    assert trajectory is not None
    assert len(trajectory) == config.horizon
    assert planner.context.lane == 1
    assert planner.context.cycle == 1
    assert planner.context.target_speed == pytest.approx(10.0 + config.speed_step)
    assert len(planner.history) == 1
    assert planner.history[0].cycle == 0


def test_initial_lane_from_ego_d(planner, make_telemetry):
    planner.plan(make_telemetry(100.0, 2.0))
    assert planner.context.lane == 0


def test_initial_lane_off_road(planner, make_telemetry, config):
    planner.plan(make_telemetry(100.0, -1.0))
    assert planner.context.lane == config.starting_lane


def test_malformed_telemetry_is_rejected(planner, make_telemetry):
    record = make_telemetry(100.0, 6.0)
    del record['yaw']
    assert planner.plan(record) is None
    assert planner.rejected_cycles == 1
    assert planner.context is None
    assert len(planner.history) == 0


def test_rejection_keeps_previous_context(planner, make_telemetry):
    planner.plan(make_telemetry(100.0, 6.0, speed=10.0))
    context = planner.context

    record = make_telemetry(101.0, 6.0, speed=10.0)
    record['previous_path_x'] = [1.0, 2.0]
    record['previous_path_y'] = [1.0]
    assert planner.plan(record) is None
    assert planner.context is context
    assert len(planner.history) == 1

    record = make_telemetry(101.0, 6.0, speed=10.0)
    record['sensor_fusion'] = [[1, 2.0, 3.0]]
    assert planner.plan(record) is None
    assert planner.rejected_cycles == 2


def test_slow_leader_triggers_left_change(planner, make_telemetry, make_vehicle):
    record = make_telemetry(100.0, 6.0, speed=15.0, sensor_fusion=[make_vehicle(7, 120.0, 6.0, 10.0)])
    planner.plan(record)
    decision = planner.history[-1].decision
    assert decision.maneuver is Maneuver.CHANGE_LEFT
    assert decision.target_lane == 0
    assert planner.history[-1].traffic.too_close


def test_blocked_on_both_sides_slows_down(planner, make_telemetry, make_vehicle, config):
    sensor_fusion = [
        make_vehicle(1, 120.0, 6.0, 10.0),
        make_vehicle(2, 100.0, 2.0, 15.0),
        make_vehicle(3, 100.0, 10.0, 15.0),
    ]
    planner.plan(make_telemetry(100.0, 6.0, speed=15.0, sensor_fusion=sensor_fusion))
    decision = planner.history[-1].decision
    assert decision.maneuver is Maneuver.KEEP_LANE
    assert decision.target_lane == 1
    assert decision.target_speed == pytest.approx(15.0 - config.decel_step)


def test_handle_message_returns_control(planner, make_telemetry, config):
    raw = '42' + json.dumps(['telemetry', make_telemetry(100.0, 6.0, speed=5.0)])
    reply = planner.handle_message(raw)
    assert reply.startswith('42["control"')

    event, payload = json.loads(reply[2:])
    assert event == 'control'
    assert len(payload['next_x']) == config.horizon
    assert len(payload['next_y']) == config.horizon


def test_handle_message_null_payload(planner):
    assert planner.handle_message('42["telemetry",null]') == MANUAL_MESSAGE


@pytest.mark.parametrize("raw", [
    '',
    '2',
    '0{"sid":"abc"}',
    '42["other",{}]',
    '42[not json]',
])
def test_handle_message_ignored(planner, raw):
    assert planner.handle_message(raw) is None


def test_handle_message_rejected_cycle(planner):
    assert planner.handle_message('42["telemetry",{"x": 1}]') is None
    assert planner.rejected_cycles == 1


def test_extract_payload():
    assert extract_payload('["telemetry",{"a":[1,2]}]') == '["telemetry",{"a":[1,2]}]'
    assert extract_payload('["telemetry",null]') is None
    assert extract_payload('no brackets') is None
