#!/usr/bin/env python3
"""
Command payload builders for the Landroid JSON dialect.

Each builder reads only the fields of its category from a DeviceState and
returns compact JSON text. No builder mutates state or touches the transport.
"""

from __future__ import annotations

import json
from typing import Any

from device_state import DeviceState
from errors import OutOfRange, PreconditionFailed
from models import ActionCode, DayOfWeek, ScheduledDay

POLL_PAYLOAD = "{}"

_CAPABILITY_ACTIONS = {ActionCode.LOCK, ActionCode.UNLOCK}


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"))


def format_start_time(hour: int, minute: int) -> str:
    """Device start time: hour unpadded, minute zero-padded ("9:05")."""
    return f"{hour}:{minute:02d}"


def schedule_entry(scheduled: ScheduledDay) -> list[Any]:
    """One ["H:MM", duration, edgecut] triple; a disabled day mows 0 minutes."""
    duration = scheduled.duration if scheduled.enable else 0
    return [
        format_start_time(scheduled.hour, scheduled.minute),
        duration,
        1 if scheduled.edgecut else 0,
    ]


def encode_schedule(state: DeviceState) -> str:
    with state.lock:
        time_extension = state.time_extension
        days = state.get_scheduled_days()
    return _dumps({
        "sc": {
            "p": time_extension,
            "d": [schedule_entry(days[day]) for day in DayOfWeek],
        }
    })


def encode_zone_meters(state: DeviceState) -> str:
    if not state.multizone_supported:
        raise PreconditionFailed("multizone not supported by device")
    return _dumps({"mz": state.get_zone_meters()})


def encode_allocations(state: DeviceState) -> str:
    if not state.multizone_supported:
        raise PreconditionFailed("multizone not supported by device")
    return _dumps({"mzv": state.get_allocations()})


def resolve_action(value: Any) -> ActionCode:
    """Map an action name ("START", "home") or code (1, "3") to ActionCode."""
    if isinstance(value, ActionCode):
        return value
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        try:
            return ActionCode(int(text))
        except ValueError as e:
            raise OutOfRange(f"unknown action code {text}") from e
    try:
        return ActionCode[text.upper()]
    except KeyError as e:
        raise OutOfRange(f"unknown action {value!r}") from e


def encode_action(action: ActionCode, state: DeviceState | None = None) -> str:
    """{"cmd": N}; lock/unlock need a state proving lock support."""
    if action in _CAPABILITY_ACTIONS and (state is None or not state.lock_supported):
        raise PreconditionFailed("lock not supported by device")
    return _dumps({"cmd": int(action)})


def encode_lock(state: DeviceState, locked: bool) -> str:
    return encode_action(ActionCode.LOCK if locked else ActionCode.UNLOCK, state)


def encode_rain_delay(state: DeviceState) -> str:
    if not state.rain_delay_supported:
        raise PreconditionFailed("rain delay not supported by device")
    return _dumps({"rd": state.rain_delay})


def encode_poll() -> str:
    """Empty command; the device answers with a full status push."""
    return POLL_PAYLOAD
