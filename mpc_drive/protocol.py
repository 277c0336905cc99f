"""
Simulator message framing.

The simulator speaks a small event protocol over websocket text frames. A
frame that begins with ``42`` carries a JSON array ``[event, payload]``:

    42["telemetry",{"ptsx":[...],"ptsy":[...],"x":..,"y":..,"psi":..,
                    "speed":..,"steering_angle":..,"throttle":..}]

Replies use the same framing with the ``steer`` event, or ``manual`` when the
simulator is in manual mode (telemetry payload is null).
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import numpy as np

from .controller import ControlCommand
from .errors import MalformedTelemetry
from .model import Pose, Telemetry

EVENT_PREFIX = "42"
TELEMETRY_EVENT = "telemetry"
STEER_EVENT = "steer"
MANUAL_EVENT = "manual"

_SCALAR_FIELDS = ("x", "y", "psi", "speed", "steering_angle", "throttle")


@dataclass(frozen=True)
class Event:
    """One decoded event frame. payload is None in manual mode."""

    name: str
    payload: Optional[Dict[str, Any]]


def decode_frame(frame: Union[str, bytes]) -> Optional[Event]:
    """Decode a raw websocket frame.

    Args:
        frame: Raw text (or UTF-8 bytes) frame.

    Returns:
        The event, or None if the frame is not an event frame.

    Raises:
        MalformedTelemetry: If the frame claims to be an event but its body
            is not a JSON ``[name, payload]`` array.
    """
    if isinstance(frame, bytes):
        frame = frame.decode("utf-8", errors="replace")

    frame = frame.strip()
    if len(frame) <= len(EVENT_PREFIX) or not frame.startswith(EVENT_PREFIX):
        return None

    body = frame[len(EVENT_PREFIX):]
    # Socket.IO-style pings and acks carry no array body
    if not body.startswith("["):
        return None

    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise MalformedTelemetry(f"Event body is not valid JSON: {e}") from e

    if not isinstance(data, list) or not data or not isinstance(data[0], str):
        raise MalformedTelemetry("Event body must be a [name, payload] array")

    payload = data[1] if len(data) > 1 else None
    if payload is not None and not isinstance(payload, dict):
        raise MalformedTelemetry(f"Event payload must be an object, got {type(payload).__name__}")
    return Event(name=data[0], payload=payload or None)


def _number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedTelemetry(f"Field '{key}' must be a number, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value):
        raise MalformedTelemetry(f"Field '{key}' is not finite")
    return value


def _number_array(payload: Dict[str, Any], key: str) -> np.ndarray:
    values = payload[key]
    if not isinstance(values, list):
        raise MalformedTelemetry(f"Field '{key}' must be an array, got {type(values).__name__}")
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedTelemetry(f"Field '{key}' must contain only numbers")
    array = np.asarray(values, dtype=np.float64)
    if not np.all(np.isfinite(array)):
        raise MalformedTelemetry(f"Field '{key}' contains non-finite values")
    return array


def parse_telemetry(payload: Dict[str, Any]) -> Telemetry:
    """Validate a telemetry payload and convert it to a Telemetry record.

    Raises:
        MalformedTelemetry: On missing fields, wrong types, non-finite values
            or waypoint arrays of different lengths.
    """
    if not isinstance(payload, dict):
        raise MalformedTelemetry(f"Telemetry payload must be an object, got {type(payload).__name__}")

    missing = [key for key in ("ptsx", "ptsy") + _SCALAR_FIELDS if key not in payload]
    if missing:
        raise MalformedTelemetry(f"Telemetry is missing fields: {', '.join(missing)}")

    ptsx = _number_array(payload, "ptsx")
    ptsy = _number_array(payload, "ptsy")
    if ptsx.size != ptsy.size:
        raise MalformedTelemetry(f"Waypoint arrays differ in length: {ptsx.size} != {ptsy.size}")

    x, y, psi, speed, steering_angle, throttle = (_number(payload, key) for key in _SCALAR_FIELDS)
    return Telemetry(
        ptsx=ptsx,
        ptsy=ptsy,
        pose=Pose(x=x, y=y, psi=psi),
        speed=speed,
        steering_angle=steering_angle,
        throttle=throttle,
    )


def _encode(event: str, payload: Dict[str, Any]) -> str:
    return EVENT_PREFIX + json.dumps([event, payload], separators=(",", ":"))


def encode_steer(command: ControlCommand) -> str:
    """Frame a control command as a ``steer`` event."""
    return _encode(
        STEER_EVENT,
        {
            "steering_angle": command.steering,
            "throttle": command.throttle,
            "mpc_x": command.mpc_x,
            "mpc_y": command.mpc_y,
            "next_x": command.next_x,
            "next_y": command.next_y,
        },
    )


def encode_manual() -> str:
    """Frame the manual-mode acknowledgement."""
    return _encode(MANUAL_EVENT, {})
