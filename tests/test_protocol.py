"""
Tests for simulator message framing.
"""

import json

import numpy as np
import pytest

from mpc_drive.controller import STATUS_OK, ControlCommand
from mpc_drive.errors import MalformedTelemetry
from mpc_drive.model import Actuation
from mpc_drive.protocol import (
    MANUAL_EVENT,
    STEER_EVENT,
    TELEMETRY_EVENT,
    decode_frame,
    encode_manual,
    encode_steer,
    parse_telemetry,
)


def telemetry_payload(**overrides):
    payload = {
        "ptsx": [1.0, 2.0, 3.0, 4.0],
        "ptsy": [0.0, 0.5, 1.0, 1.5],
        "x": 1.5,
        "y": -2.0,
        "psi": 0.3,
        "speed": 12,
        "steering_angle": -0.05,
        "throttle": 0.4,
    }
    payload.update(overrides)
    return payload


def frame_for(payload) -> str:
    return "42" + json.dumps([TELEMETRY_EVENT, payload])


def test_decode_telemetry_frame():
    event = decode_frame(frame_for(telemetry_payload()))

    assert event is not None
    assert event.name == TELEMETRY_EVENT
    assert event.payload["x"] == 1.5


def test_decode_accepts_bytes():
    event = decode_frame(frame_for(telemetry_payload()).encode("utf-8"))
    assert event.name == TELEMETRY_EVENT


@pytest.mark.parametrize("frame", ["", "2", "40", "3probe", "hello", "42"])
def test_non_event_frames_are_ignored(frame):
    assert decode_frame(frame) is None


@pytest.mark.parametrize("frame", ['42["telemetry",null]', '42["telemetry",{}]', '42["telemetry"]'])
def test_manual_mode_has_no_payload(frame):
    event = decode_frame(frame)
    assert event.name == TELEMETRY_EVENT
    assert event.payload is None


@pytest.mark.parametrize("frame", ['42["telemetry",', "42[]", "42[1,2]", '42["telemetry",[1,2]]'])
def test_malformed_event_bodies(frame):
    with pytest.raises(MalformedTelemetry):
        decode_frame(frame)


def test_parse_telemetry():
    telemetry = parse_telemetry(telemetry_payload())

    np.testing.assert_allclose(telemetry.ptsx, [1.0, 2.0, 3.0, 4.0])
    assert telemetry.pose.x == 1.5
    assert telemetry.pose.y == -2.0
    assert telemetry.pose.psi == 0.3
    assert telemetry.speed == 12.0
    assert isinstance(telemetry.speed, float)
    assert telemetry.steering_angle == -0.05
    assert telemetry.throttle == 0.4


def test_parse_reports_missing_fields():
    payload = telemetry_payload()
    del payload["speed"]
    del payload["ptsy"]

    with pytest.raises(MalformedTelemetry, match="ptsy.*speed"):
        parse_telemetry(payload)


@pytest.mark.parametrize(
    "overrides",
    [
        {"x": "1.0"},
        {"speed": True},
        {"psi": None},
        {"ptsx": "1,2,3"},
        {"ptsx": [1.0, "2", 3.0, 4.0]},
        {"ptsy": [0.0, 1.0]},
        {"x": float("nan")},
        {"ptsy": [0.0, float("inf"), 1.0, 2.0]},
    ],
)
def test_parse_rejects_invalid_values(overrides):
    with pytest.raises(MalformedTelemetry):
        parse_telemetry(telemetry_payload(**overrides))


def test_encode_steer():
    command = ControlCommand(
        steering=0.25,
        throttle=-0.1,
        actuation=Actuation(0.1, -0.1),
        status=STATUS_OK,
        mpc_x=[0.0, 1.0],
        mpc_y=[0.0, 0.1],
        next_x=[0.0, 2.5],
        next_y=[0.0, 0.2],
    )
    frame = encode_steer(command)

    assert frame.startswith('42["steer",')
    assert " " not in frame
    name, payload = json.loads(frame[2:])
    assert name == STEER_EVENT
    assert payload == {
        "steering_angle": 0.25,
        "throttle": -0.1,
        "mpc_x": [0.0, 1.0],
        "mpc_y": [0.0, 0.1],
        "next_x": [0.0, 2.5],
        "next_y": [0.0, 0.2],
    }


def test_encode_manual():
    assert encode_manual() == '42["manual",{}]'
    assert decode_frame(encode_manual()).name == MANUAL_EVENT
