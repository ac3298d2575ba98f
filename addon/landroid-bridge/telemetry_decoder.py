#!/usr/bin/env python3
"""
Telemetry decoder for the Landroid JSON dialect.

Merges one pushed message ({"cfg": {...}, "dat": {...}}) into a DeviceState.
Every field is decoded on its own: a missing field is skipped, a malformed
field is reported and skipped, and the rest of the message is still applied.
"""

# pylint: disable=too-many-branches,broad-exception-caught

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import TIME_ZONE
from device_state import ALLOCATION_COUNT, ZONE_COUNT, DeviceState
from errors import MalformedField, OutOfRange, PreconditionFailed
from models import DayOfWeek, MowerError, MowerStatus, ScheduledDay, StateChange

logger = logging.getLogger(__name__)

DEVICE_DATETIME_FORMAT = "%d/%m/%Y %H:%M:%S"
ORIENTATION_FIELDS = ("pitch", "roll", "yaw")

_DECODE_ERRORS = (
    TypeError, ValueError, OverflowError, KeyError, IndexError, AttributeError,
    OutOfRange,
)


@dataclass
class DecodeResult:
    """Outcome of decoding one message."""
    changes: list[StateChange] = field(default_factory=list)
    errors: list[MalformedField] = field(default_factory=list)
    status: MowerStatus | None = None

    def value_of(self, name: str) -> Any:
        for change in reversed(self.changes):
            if change.field == name:
                return change.value
        raise KeyError(name)


def resolve_tzinfo(name: str = TIME_ZONE) -> tzinfo:
    """Zone used for cfg.dt/cfg.tm; falls back to the host zone."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown TIME_ZONE {name!r}, using host zone")
    return datetime.now().astimezone().tzinfo


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or value is None:
        raise MalformedField(name, f"expected number, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            return int(float(text))
    raise MalformedField(name, f"expected number, got {value!r}")


def _as_float(name: str, value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise MalformedField(name, f"expected number, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise MalformedField(name, f"expected number, got {value!r}")


def _as_flag(name: str, value: Any) -> bool:
    return _as_int(name, value) == 1


def _as_object(name: str, value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise MalformedField(name, f"expected object, got {type(value).__name__}")
    return value


def _as_array(name: str, value: Any, size: int | None = None) -> list[Any]:
    if not isinstance(value, list):
        raise MalformedField(name, f"expected array, got {type(value).__name__}")
    if size is not None and len(value) != size:
        raise MalformedField(name, f"expected {size} items, got {len(value)}")
    return value


def schedule_field_name(day: DayOfWeek, name: str) -> str:
    return f"schedule.{day.name.lower()}.{name}"


class TelemetryDecoder:
    """Decoder for telemetry pushed by the mower."""

    def __init__(self, tz: tzinfo | None = None) -> None:
        self._tz = tz or resolve_tzinfo()

    @staticmethod
    def parse(text: str | bytes) -> dict[str, Any]:
        """Parse raw JSON text into a message dict."""
        try:
            message = json.loads(text)
        except (TypeError, ValueError) as e:
            raise MalformedField("message", f"invalid JSON: {e}") from e
        if not isinstance(message, dict):
            raise MalformedField("message", "top level is not an object")
        return message

    def decode(self, state: DeviceState, message: dict[str, Any]) -> DecodeResult:
        """Apply a parsed message to ``state``.

        Returns:
            DecodeResult with one StateChange per written field, the soft
            errors of skipped fields and the decoded status (if dat.ls was
            present).
        """
        result = DecodeResult()
        with state.lock:
            cfg = message.get("cfg")
            if cfg is not None:
                if isinstance(cfg, dict):
                    self._decode_cfg(state, cfg, result)
                else:
                    self._report(state, result, MalformedField("cfg", "not an object"))

            dat = message.get("dat")
            if dat is not None:
                if isinstance(dat, dict):
                    self._decode_dat(state, dat, result)
                else:
                    self._report(state, result, MalformedField("dat", "not an object"))
        return result

    # ------------------------------------------------------------------
    # Field plumbing
    # ------------------------------------------------------------------

    @staticmethod
    def _report(state: DeviceState, result: DecodeResult, error: MalformedField) -> None:
        result.errors.append(error)
        logger.warning(
            f"Telemetry {state.serial_number}: skipping malformed {error.field} ({error.reason})"
        )

    def _field(
        self,
        state: DeviceState,
        result: DecodeResult,
        name: str,
        decode: Callable[[], list[StateChange]],
    ) -> None:
        try:
            result.changes.extend(decode())
        except MalformedField as e:
            self._report(state, result, e)
        except PreconditionFailed as e:
            logger.debug(f"Telemetry {state.serial_number}: {name} skipped ({e})")
        except _DECODE_ERRORS as e:
            self._report(state, result, MalformedField(name, str(e) or type(e).__name__))

    @staticmethod
    def _set(state: DeviceState, name: str, value: Any) -> list[StateChange]:
        state.set_telemetry(name, value)
        return [StateChange(name, value)]

    # ------------------------------------------------------------------
    # cfg
    # ------------------------------------------------------------------

    def _decode_cfg(self, state: DeviceState, cfg: dict[str, Any], result: DecodeResult) -> None:
        if "id" in cfg:
            self._field(state, result, "cfg.id", lambda: self._set(
                state, "config_id", _as_int("cfg.id", cfg["id"])))
        if "lg" in cfg:
            self._field(state, result, "cfg.lg", lambda: self._set(
                state, "language", str(cfg["lg"])))

        if "dt" in cfg and "tm" in cfg:
            self._field(state, result, "cfg.dt", lambda: self._set(
                state, "device_datetime", self._parse_datetime(cfg["dt"], cfg["tm"])))
        elif "dt" in cfg or "tm" in cfg:
            logger.debug(f"Telemetry {state.serial_number}: cfg.dt/cfg.tm incomplete, skipped")

        if "sc" in cfg:
            self._field(state, result, "cfg.sc", lambda: self._decode_schedule(
                state, cfg["sc"], result))

        if "cmd" in cfg:
            self._field(state, result, "cfg.cmd", lambda: self._set(
                state, "last_command", _as_int("cfg.cmd", cfg["cmd"])))

        if state.multizone_supported:
            if "mz" in cfg:
                self._field(state, result, "cfg.mz", lambda: self._decode_zone_meters(
                    state, cfg["mz"]))
            if "mzv" in cfg:
                self._field(state, result, "cfg.mzv", lambda: self._decode_allocations(
                    state, cfg["mzv"]))

        if state.rain_delay_supported and "rd" in cfg:
            self._field(state, result, "cfg.rd", lambda: self._decode_rain_delay(
                state, cfg["rd"]))

        if "sn" in cfg:
            self._field(state, result, "cfg.sn", lambda: self._set(
                state, "reported_serial", str(cfg["sn"])))

    def _parse_datetime(self, date_text: Any, time_text: Any) -> datetime:
        raw = f"{date_text} {time_text}"
        try:
            parsed = datetime.strptime(raw, DEVICE_DATETIME_FORMAT)
        except ValueError as e:
            raise MalformedField("cfg.dt", f"unparsable date/time {raw!r}") from e
        return parsed.replace(tzinfo=self._tz)

    def _decode_schedule(
        self, state: DeviceState, raw_sc: Any, result: DecodeResult
    ) -> list[StateChange]:
        sc = _as_object("cfg.sc", raw_sc)
        # p and d are independent fields
        if "p" in sc:
            self._field(state, result, "cfg.sc.p", lambda: self._decode_time_extension(
                state, sc["p"]))
        if "d" in sc:
            self._field(state, result, "cfg.sc.d", lambda: self._decode_days(
                state, sc["d"]))
        return []

    @staticmethod
    def _decode_time_extension(state: DeviceState, raw: Any) -> list[StateChange]:
        state.set_time_extension(_as_int("cfg.sc.p", raw))
        return [
            StateChange("time_extension", state.time_extension),
            StateChange("enable", state.enable),
        ]

    @staticmethod
    def _parse_day(day: DayOfWeek, raw: Any) -> ScheduledDay:
        name = f"cfg.sc.d[{int(day)}]"
        triple = _as_array(name, raw)
        if len(triple) < 3:
            raise MalformedField(name, f"expected 3 items, got {len(triple)}")
        start, raw_duration, raw_edgecut = triple[0], triple[1], triple[2]
        hour_text, sep, minute_text = str(start).partition(":")
        if not sep:
            raise MalformedField(name, f"start time {start!r} is not H:MM")
        try:
            hour, minute = int(hour_text), int(minute_text)
        except ValueError as e:
            raise MalformedField(name, f"start time {start!r} is not H:MM") from e
        duration = _as_int(name, raw_duration)
        return ScheduledDay(
            hour=hour,
            minute=minute,
            duration=duration,
            edgecut=_as_flag(name, raw_edgecut),
            enable=duration > 0,
        )

    def _decode_days(self, state: DeviceState, raw: Any) -> list[StateChange]:
        entries = _as_array("cfg.sc.d", raw, len(DayOfWeek))
        days = {day: self._parse_day(day, entries[int(day)]) for day in DayOfWeek}
        state.set_scheduled_days(days)

        changes: list[StateChange] = []
        for day, scheduled in days.items():
            changes.extend([
                StateChange(schedule_field_name(day, "start_hour"), scheduled.hour),
                StateChange(schedule_field_name(day, "start_minute"), scheduled.minute),
                StateChange(schedule_field_name(day, "duration"), scheduled.duration),
                StateChange(schedule_field_name(day, "enable"), scheduled.enable),
                StateChange(schedule_field_name(day, "edgecut"), scheduled.edgecut),
            ])
        return changes

    @staticmethod
    def _decode_zone_meters(state: DeviceState, raw: Any) -> list[StateChange]:
        entries = _as_array("cfg.mz", raw, ZONE_COUNT)
        meters = [_as_int("cfg.mz", value) for value in entries]
        if state.overlay_active:
            # Device echoes the override; the saved meters stay authoritative
            logger.debug(
                f"Telemetry {state.serial_number}: cfg.mz {meters} ignored during zone override"
            )
            return []
        state.set_zone_meters(meters)
        return [
            StateChange("zone_meters", state.get_zone_meters()),
            StateChange("multizone_enable", state.recompute_multizone_enable()),
        ]

    @staticmethod
    def _decode_allocations(state: DeviceState, raw: Any) -> list[StateChange]:
        entries = _as_array("cfg.mzv", raw, ALLOCATION_COUNT)
        state.set_allocations([_as_int("cfg.mzv", value) for value in entries])
        return [StateChange("zone_allocations", state.get_allocations())]

    @staticmethod
    def _decode_rain_delay(state: DeviceState, raw: Any) -> list[StateChange]:
        state.set_rain_delay(_as_int("cfg.rd", raw))
        return [StateChange("rain_delay", state.rain_delay)]

    # ------------------------------------------------------------------
    # dat
    # ------------------------------------------------------------------

    def _decode_dat(self, state: DeviceState, dat: dict[str, Any], result: DecodeResult) -> None:
        if "mac" in dat:
            self._field(state, result, "dat.mac", lambda: self._set(
                state, "mac_address", str(dat["mac"])))
        if "fw" in dat:
            self._field(state, result, "dat.fw", lambda: self._set(
                state, "firmware", _as_float("dat.fw", dat["fw"])))

        if "bt" in dat:
            self._field(state, result, "dat.bt", lambda: self._decode_battery(
                state, dat["bt"], result))
        if "dmp" in dat:
            self._field(state, result, "dat.dmp", lambda: self._decode_orientation(
                state, dat["dmp"], result))
        if "st" in dat:
            self._field(state, result, "dat.st", lambda: self._decode_statistics(
                state, dat["st"], result))

        if "ls" in dat:
            self._field(state, result, "dat.ls", lambda: self._decode_status(
                state, dat["ls"], result))
        if "le" in dat:
            self._field(state, result, "dat.le", lambda: self._decode_error(
                state, dat["le"]))
        if "lz" in dat:
            self._field(state, result, "dat.lz", lambda: self._decode_last_zone(
                state, dat["lz"]))
        if "rsi" in dat:
            self._field(state, result, "dat.rsi", lambda: self._set(
                state, "wifi_quality", _as_int("dat.rsi", dat["rsi"])))

        if state.lock_supported and "lk" in dat:
            self._field(state, result, "dat.lk", lambda: self._decode_lock(
                state, dat["lk"]))

    def _decode_battery(
        self, state: DeviceState, raw: Any, result: DecodeResult
    ) -> list[StateChange]:
        bt = _as_object("dat.bt", raw)
        readers: dict[str, tuple[str, Callable[[str, Any], Any]]] = {
            "t": ("battery_temperature", _as_float),
            "v": ("battery_voltage", _as_float),
            "p": ("battery_level", _as_int),
            "nr": ("battery_charge_cycles", _as_int),
            "c": ("battery_charging", _as_flag),
        }
        for key, (target, reader) in readers.items():
            if key not in bt:
                continue
            name = f"dat.bt.{key}"
            self._field(state, result, name, lambda t=target, r=reader, n=name, k=key:
                        self._set(state, t, r(n, bt[k])))
        return []

    def _decode_orientation(
        self, state: DeviceState, raw: Any, result: DecodeResult
    ) -> list[StateChange]:
        dmp = _as_array("dat.dmp", raw)
        for index, target in enumerate(ORIENTATION_FIELDS):
            # Short arrays just lack the trailing axes
            if index >= len(dmp) or dmp[index] is None:
                continue
            name = f"dat.dmp[{index}]"
            self._field(state, result, name, lambda t=target, n=name, i=index:
                        self._set(state, t, _as_float(n, dmp[i])))
        return []

    def _decode_statistics(
        self, state: DeviceState, raw: Any, result: DecodeResult
    ) -> list[StateChange]:
        st = _as_object("dat.st", raw)
        for key, target in (("b", "total_blade_time"), ("d", "total_distance"), ("wt", "total_time")):
            if key not in st:
                continue
            name = f"dat.st.{key}"
            self._field(state, result, name, lambda t=target, n=name, k=key:
                        self._set(state, t, _as_int(n, st[k])))
        return []

    @staticmethod
    def _decode_status(state: DeviceState, raw: Any, result: DecodeResult) -> list[StateChange]:
        status = MowerStatus.from_raw(_as_int("dat.ls", raw))
        state.set_status(status)
        result.status = status
        if status.is_unknown:
            logger.info(f"Telemetry {state.serial_number}: unknown status code {status.raw}")
        return [StateChange("status", status)]

    @staticmethod
    def _decode_error(state: DeviceState, raw: Any) -> list[StateChange]:
        error = MowerError.from_raw(_as_int("dat.le", raw))
        state.set_error(error)
        if error.is_unknown:
            logger.info(f"Telemetry {state.serial_number}: unknown error code {error.raw}")
        return [StateChange("error", error)]

    @staticmethod
    def _decode_last_zone(state: DeviceState, raw: Any) -> list[StateChange]:
        index = _as_int("dat.lz", raw)
        try:
            zone = state.get_allocation(index)
        except OutOfRange as e:
            raise MalformedField("dat.lz", str(e)) from e
        state.set_telemetry("last_zone", zone)
        return [StateChange("last_zone", zone)]

    @staticmethod
    def _decode_lock(state: DeviceState, raw: Any) -> list[StateChange]:
        state.set_locked(_as_flag("dat.lk", raw))
        return [StateChange("locked", state.locked)]
