"""CommandDispatcher – routes user intents to state updates and device commands.

An intent is an identifier plus a value, e.g. ``("zones/meter/2", 35)`` or
``("schedule/monday/start_hour", "9")``. Each recognized intent mutates the
DeviceState where it applies, encodes the command of its category and
publishes it. Unknown intents are logged and ignored.
"""

# pylint: disable=too-many-return-statements,too-many-branches

from __future__ import annotations

import logging
import re
from typing import Any, Callable

from command_encoder import (
    encode_action,
    encode_allocations,
    encode_lock,
    encode_poll,
    encode_rain_delay,
    encode_schedule,
    encode_zone_meters,
    resolve_action,
)
from device_state import DeviceState
from errors import OutOfRange
from models import DayOfWeek
from zone_restore import ZoneRestoreMachine

logger = logging.getLogger(__name__)

INTENT_REFRESH = "refresh"
INTENT_POLL = "poll"
INTENT_ACTION = "action"
INTENT_LOCK = "lock"
INTENT_RAIN_DELAY = "rain_delay"
INTENT_ENABLE = "schedule/enable"
INTENT_TIME_EXTENSION = "schedule/time_extension"
INTENT_MULTIZONE_ENABLE = "zones/multizone_enable"
INTENT_ZONE_START = "zones/start"

_ZONE_METER_RE = re.compile(r"^zones/meter/(\d+)$")
_ALLOCATION_RE = re.compile(r"^zones/allocation/(\d+)$")
_SCHEDULE_DAY_RE = re.compile(r"^schedule/([a-z]+)/([a-z_]+)$")

_TRUE_WORDS = {"on", "true", "1", "yes"}
_FALSE_WORDS = {"off", "false", "0", "no"}


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise OutOfRange(f"expected on/off, got {value!r}")


def coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        raise OutOfRange(f"expected integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    text = str(value).strip()
    if re.fullmatch(r"-?\d+", text):
        return int(text)
    if re.fullmatch(r"-?\d+\.0*", text):
        return int(float(text))
    raise OutOfRange(f"expected integer, got {value!r}")


# Schedule day field -> (ScheduledDay attribute, coercion)
SCHEDULE_DAY_FIELDS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "enable": ("enable", coerce_bool),
    "start_hour": ("hour", coerce_int),
    "start_minute": ("minute", coerce_int),
    "duration": ("duration", coerce_int),
    "edgecut": ("edgecut", coerce_bool),
}


class CommandDispatcher:
    """Maps (intent, value) to exactly one handling path."""

    def __init__(
        self,
        state: DeviceState,
        publish: Callable[[str], None],
        zone_restore: ZoneRestoreMachine,
    ) -> None:
        self._state = state
        self._publish = publish
        self._zone_restore = zone_restore

    def _send(self, payload: str) -> str:
        logger.debug(f"Dispatch {self._state.serial_number}: → {payload}")
        self._publish(payload)
        return payload

    async def dispatch(self, intent: str, value: Any = None) -> str | None:
        """Handle one intent.

        Returns the last payload published, or None for no-op and unknown
        intents. Raises OutOfRange / PreconditionFailed before any mutation
        when the intent is rejected; TransportFailure propagates from publish.
        """
        state = self._state
        intent = str(intent).strip()

        if intent == INTENT_REFRESH:
            return None

        if intent == INTENT_POLL:
            return self._send(encode_poll())

        if intent == INTENT_ACTION:
            return self._send(encode_action(resolve_action(value), state))

        if intent == INTENT_LOCK:
            return self._send(encode_lock(state, coerce_bool(value)))

        if intent == INTENT_RAIN_DELAY:
            state.set_rain_delay(coerce_int(value))
            return self._send(encode_rain_delay(state))

        if intent == INTENT_MULTIZONE_ENABLE:
            state.set_multizone_enable(coerce_bool(value))
            return self._send(encode_zone_meters(state))

        if intent == INTENT_ZONE_START:
            return await self._zone_restore.start_zone(coerce_int(value))

        if intent == INTENT_ENABLE:
            state.set_enable(coerce_bool(value))
            return self._send(encode_schedule(state))

        if intent == INTENT_TIME_EXTENSION:
            state.set_time_extension(coerce_int(value))
            return self._send(encode_schedule(state))

        match = _ZONE_METER_RE.match(intent)
        if match:
            with state.lock:
                state.set_zone_meter(int(match.group(1)), coerce_int(value))
                state.recompute_multizone_enable()
                payload = encode_zone_meters(state)
            return self._send(payload)

        match = _ALLOCATION_RE.match(intent)
        if match:
            with state.lock:
                state.set_allocation(int(match.group(1)), coerce_int(value))
                payload = encode_allocations(state)
            return self._send(payload)

        match = _SCHEDULE_DAY_RE.match(intent)
        if match:
            return self._dispatch_schedule_day(match.group(1), match.group(2), value)

        logger.debug(f"Dispatch {state.serial_number}: intent {intent!r} not supported, ignored")
        return None

    def _dispatch_schedule_day(self, day_name: str, field_name: str, value: Any) -> str:
        try:
            day = DayOfWeek[day_name.upper()]
        except KeyError as e:
            raise OutOfRange(f"unknown day {day_name!r}") from e
        if field_name not in SCHEDULE_DAY_FIELDS:
            raise OutOfRange(f"unknown schedule field {field_name!r}")
        attribute, coerce = SCHEDULE_DAY_FIELDS[field_name]
        fields = {attribute: coerce(value)}
        if attribute == "duration":
            # No per-day flag on the wire; a duration implies enable
            fields["enable"] = fields["duration"] > 0
        with self._state.lock:
            self._state.update_scheduled_day(day, **fields)
            payload = encode_schedule(self._state)
        return self._send(payload)
