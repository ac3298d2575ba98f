#!/usr/bin/env python3
"""
Data models for the Landroid bridge.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, NamedTuple


# ============================================================================
# Calendar
# ============================================================================

class DayOfWeek(IntEnum):
    """Day of week; the value is the position in the sc.d array."""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


@dataclass
class ScheduledDay:
    """Mowing window of one day."""
    hour: int = 0
    minute: int = 0
    duration: int = 0
    edgecut: bool = False
    enable: bool = False


# ============================================================================
# Status / error codes
# ============================================================================

class StatusCode(IntEnum):
    """Mower status reported in dat.ls."""
    UNKNOWN = -1
    IDLE = 0
    HOME = 1
    START_SEQUENCE = 2
    LEAVING_HOME = 3
    FOLLOW_WIRE = 4
    SEARCHING_HOME = 5
    SEARCHING_WIRE = 6
    MOWING = 7
    LIFTED = 8
    TRAPPED = 9
    BLADE_BLOCKED = 10
    DEBUG = 11
    REMOTE_CONTROL = 12
    GOING_HOME = 30
    ZONE_TRAINING = 31
    BORDER_CUT = 32
    SEARCHING_ZONE = 33
    PAUSE = 34


class ErrorCode(IntEnum):
    """Mower error reported in dat.le."""
    UNKNOWN = -1
    NO_ERROR = 0
    TRAPPED = 1
    LIFTED = 2
    WIRE_MISSING = 3
    OUTSIDE_WIRE = 4
    RAINING = 5
    CLOSE_DOOR_TO_MOW = 6
    CLOSE_DOOR_TO_GO_HOME = 7
    BLADE_MOTOR_BLOCKED = 8
    WHEEL_MOTOR_BLOCKED = 9
    TRAPPED_TIMEOUT = 10
    UPSIDE_DOWN = 11
    BATTERY_LOW = 12
    REVERSE_WIRE = 13
    CHARGE_ERROR = 14
    TIMEOUT_FINDING_HOME = 15
    MOWER_LOCKED = 16
    BATTERY_OVER_TEMPERATURE = 17


def _describe(name: str) -> str:
    return name.replace("_", " ").capitalize()


@dataclass(frozen=True)
class MowerStatus:
    """Status category plus the raw code it was decoded from."""
    code: StatusCode
    raw: int

    @classmethod
    def from_raw(cls, raw: int) -> "MowerStatus":
        try:
            return cls(StatusCode(raw), raw)
        except ValueError:
            return cls(StatusCode.UNKNOWN, raw)

    @property
    def is_unknown(self) -> bool:
        return self.code is StatusCode.UNKNOWN

    @property
    def description(self) -> str:
        return _describe(self.code.name)


@dataclass(frozen=True)
class MowerError:
    """Error category plus the raw code it was decoded from."""
    code: ErrorCode
    raw: int

    @classmethod
    def from_raw(cls, raw: int) -> "MowerError":
        try:
            return cls(ErrorCode(raw), raw)
        except ValueError:
            return cls(ErrorCode.UNKNOWN, raw)

    @property
    def is_unknown(self) -> bool:
        return self.code is ErrorCode.UNKNOWN

    @property
    def description(self) -> str:
        return _describe(self.code.name)


# Statuses during which a zone override stays in place
ZONE_OVERRIDE_TRANSIENT = frozenset({
    StatusCode.HOME,
    StatusCode.START_SEQUENCE,
    StatusCode.LEAVING_HOME,
    StatusCode.SEARCHING_ZONE,
})


# ============================================================================
# Actions
# ============================================================================

class ActionCode(IntEnum):
    """Codes sent in {"cmd": N}."""
    START = 1
    STOP = 2
    PAUSE = 2
    HOME = 3
    ZONE_TRAINING = 4
    LOCK = 5
    UNLOCK = 6
    RESTART = 7


# ============================================================================
# Registry / notifications
# ============================================================================

@dataclass
class DeviceCapabilities:
    """Bootstrap data served by the device registry."""
    lock: bool = False
    rain_delay: bool = False
    multi_zone: bool = False
    online: bool = False
    command_in: str = ""
    command_out: str = ""
    properties: dict[str, Any] = field(default_factory=dict)


class StateChange(NamedTuple):
    """One field update produced by decoding or dispatching."""
    field: str
    value: Any


@dataclass
class ZoneRestoreOverlay:
    """Temporary zone-meter override used to run a single zone."""
    active: bool = False
    saved_zone_meters: list[int] = field(default_factory=list)
