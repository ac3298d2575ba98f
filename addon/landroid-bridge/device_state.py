"""DeviceState – single source of truth for one mower.

Owns the last known configuration and telemetry of a device. Every field is
read and written through the accessors below; each accessor takes the
per-device lock, and callers that need several updates to land atomically
hold ``state.lock`` around them (the lock is re-entrant).
"""

# pylint: disable=too-many-instance-attributes,too-many-public-methods

from __future__ import annotations

import copy
import threading
from datetime import datetime
from typing import Any

from errors import OutOfRange, PreconditionFailed
from models import (
    DayOfWeek,
    DeviceCapabilities,
    MowerError,
    MowerStatus,
    ScheduledDay,
    ZoneRestoreOverlay,
)

ZONE_COUNT = 4
ALLOCATION_COUNT = 10
SCHEDULE_DISABLED_EXTENSION = -100
TIME_EXTENSION_MIN = -100
TIME_EXTENSION_MAX = 100

# Plain telemetry values without cross-field rules
TELEMETRY_FIELDS = frozenset({
    "device_datetime",
    "battery_temperature",
    "battery_voltage",
    "battery_level",
    "battery_charge_cycles",
    "battery_charging",
    "pitch",
    "roll",
    "yaw",
    "total_blade_time",
    "total_distance",
    "total_time",
    "last_zone",
    "mac_address",
    "firmware",
    "wifi_quality",
    "language",
    "config_id",
    "last_command",
    "reported_serial",
})


def _check_index(name: str, index: int, size: int) -> int:
    if isinstance(index, bool) or not isinstance(index, int):
        raise OutOfRange(f"{name} index must be int, got {index!r}")
    if index < 0 or index >= size:
        raise OutOfRange(f"{name} index {index} outside 0..{size - 1}")
    return index


def _check_day(day: DayOfWeek | int) -> DayOfWeek:
    if isinstance(day, DayOfWeek):
        return day
    return DayOfWeek(_check_index("day", day, len(DayOfWeek)))


def _check_non_negative(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise OutOfRange(f"{name} must be a non-negative int, got {value!r}")
    return value


def _validate_day(day: ScheduledDay) -> None:
    if not 0 <= day.hour <= 23:
        raise OutOfRange(f"hour {day.hour} outside 0..23")
    if not 0 <= day.minute <= 59:
        raise OutOfRange(f"minute {day.minute} outside 0..59")
    _check_non_negative("duration", day.duration)


class DeviceState:
    """Thread-safe state of a single device, keyed by its serial number."""

    def __init__(self, serial_number: str) -> None:
        self.lock = threading.RLock()
        self._serial_number = serial_number

        # Liveness
        self._online = False
        self._last_online_check: datetime | None = None
        self._status = MowerStatus.from_raw(0)
        self._error = MowerError.from_raw(0)

        # Capabilities (fixed at bootstrap)
        self._lock_supported = False
        self._rain_delay_supported = False
        self._multizone_supported = False

        # Schedule
        self._time_extension = 0
        self._saved_time_extension = 0
        self._scheduled_days: dict[DayOfWeek, ScheduledDay] = {
            day: ScheduledDay() for day in DayOfWeek
        }

        # Zones
        self._zone_meters: list[int] = [0] * ZONE_COUNT
        self._zone_allocations: list[int] = [0] * ALLOCATION_COUNT
        self._multizone_enable = False
        self._multizone_saved_meters: list[int] | None = None
        self._overlay = ZoneRestoreOverlay()

        # Capability gated values
        self._locked = False
        self._rain_delay = 0

        self._telemetry: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Identity / liveness
    # ------------------------------------------------------------------

    @property
    def serial_number(self) -> str:
        return self._serial_number

    @property
    def online(self) -> bool:
        with self.lock:
            return self._online

    @property
    def last_online_check(self) -> datetime | None:
        with self.lock:
            return self._last_online_check

    def set_online(self, online: bool, checked_at: datetime | None = None) -> None:
        with self.lock:
            self._online = bool(online)
            if checked_at is not None:
                self._last_online_check = checked_at

    @property
    def status(self) -> MowerStatus:
        with self.lock:
            return self._status

    def set_status(self, status: MowerStatus) -> None:
        with self.lock:
            self._status = status

    @property
    def error(self) -> MowerError:
        with self.lock:
            return self._error

    def set_error(self, error: MowerError) -> None:
        with self.lock:
            self._error = error

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def apply_capabilities(self, capabilities: DeviceCapabilities) -> None:
        with self.lock:
            self._lock_supported = bool(capabilities.lock)
            self._rain_delay_supported = bool(capabilities.rain_delay)
            self._multizone_supported = bool(capabilities.multi_zone)

    @property
    def lock_supported(self) -> bool:
        with self.lock:
            return self._lock_supported

    @property
    def rain_delay_supported(self) -> bool:
        with self.lock:
            return self._rain_delay_supported

    @property
    def multizone_supported(self) -> bool:
        with self.lock:
            return self._multizone_supported

    def _require_multizone(self) -> None:
        if not self._multizone_supported:
            raise PreconditionFailed("multizone not supported by device")

    # ------------------------------------------------------------------
    # Schedule
    # ------------------------------------------------------------------

    @property
    def time_extension(self) -> int:
        with self.lock:
            return self._time_extension

    def set_time_extension(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise OutOfRange(f"time extension must be int, got {value!r}")
        if not TIME_EXTENSION_MIN <= value <= TIME_EXTENSION_MAX:
            raise OutOfRange(
                f"time extension {value} outside "
                f"{TIME_EXTENSION_MIN}..{TIME_EXTENSION_MAX}"
            )
        with self.lock:
            self._time_extension = value

    @property
    def enable(self) -> bool:
        """Mowing schedule enabled; a time extension of -100 disables it."""
        with self.lock:
            return self._time_extension != SCHEDULE_DISABLED_EXTENSION

    def set_enable(self, enable: bool) -> None:
        with self.lock:
            if enable:
                if self._time_extension == SCHEDULE_DISABLED_EXTENSION:
                    self._time_extension = self._saved_time_extension
            elif self._time_extension != SCHEDULE_DISABLED_EXTENSION:
                self._saved_time_extension = self._time_extension
                self._time_extension = SCHEDULE_DISABLED_EXTENSION

    def get_scheduled_day(self, day: DayOfWeek | int) -> ScheduledDay:
        key = _check_day(day)
        with self.lock:
            return copy.copy(self._scheduled_days[key])

    def get_scheduled_days(self) -> dict[DayOfWeek, ScheduledDay]:
        with self.lock:
            return {day: copy.copy(sd) for day, sd in self._scheduled_days.items()}

    def set_scheduled_day(self, day: DayOfWeek | int, scheduled: ScheduledDay) -> None:
        key = _check_day(day)
        _validate_day(scheduled)
        with self.lock:
            self._scheduled_days[key] = copy.copy(scheduled)

    def set_scheduled_days(self, days: dict[DayOfWeek, ScheduledDay]) -> None:
        """Replace all seven days at once; nothing is written if any day is invalid."""
        if set(days) != set(DayOfWeek):
            raise OutOfRange("schedule must contain exactly one entry per day")
        for scheduled in days.values():
            _validate_day(scheduled)
        with self.lock:
            for day, scheduled in days.items():
                self._scheduled_days[day] = copy.copy(scheduled)

    def update_scheduled_day(self, day: DayOfWeek | int, **fields: Any) -> ScheduledDay:
        key = _check_day(day)
        with self.lock:
            updated = copy.copy(self._scheduled_days[key])
            for name, value in fields.items():
                if not hasattr(updated, name):
                    raise OutOfRange(f"unknown schedule field {name!r}")
                setattr(updated, name, value)
            _validate_day(updated)
            self._scheduled_days[key] = updated
            return copy.copy(updated)

    # ------------------------------------------------------------------
    # Zones
    # ------------------------------------------------------------------

    def get_zone_meter(self, index: int) -> int:
        _check_index("zone", index, ZONE_COUNT)
        with self.lock:
            return self._zone_meters[index]

    def get_zone_meters(self) -> list[int]:
        with self.lock:
            return list(self._zone_meters)

    def set_zone_meter(self, index: int, meters: int, *, override: bool = False) -> None:
        _check_index("zone", index, ZONE_COUNT)
        _check_non_negative("zone meter", meters)
        with self.lock:
            self._require_multizone()
            self._require_meters_writable(override)
            self._zone_meters[index] = meters
            if not override:
                self._forget_parked_meters()

    def set_zone_meters(self, values: list[int], *, override: bool = False) -> None:
        if len(values) != ZONE_COUNT:
            raise OutOfRange(f"expected {ZONE_COUNT} zone meters, got {len(values)}")
        for value in values:
            _check_non_negative("zone meter", value)
        with self.lock:
            self._require_multizone()
            self._require_meters_writable(override)
            self._zone_meters = list(values)
            if not override:
                self._forget_parked_meters()

    def _require_meters_writable(self, override: bool) -> None:
        if self._overlay.active and not override:
            raise PreconditionFailed("zone meters are held by an active zone override")

    def _forget_parked_meters(self) -> None:
        # Parked meters only survive while the live meters stay zeroed
        if any(self._zone_meters):
            self._multizone_saved_meters = None

    @property
    def multizone_enable(self) -> bool:
        with self.lock:
            return self._multizone_enable

    def recompute_multizone_enable(self) -> bool:
        """Multizone counts as enabled once the meters are not all equal."""
        with self.lock:
            self._multizone_enable = len(set(self._zone_meters)) > 1
            return self._multizone_enable

    def set_multizone_enable(self, enable: bool) -> None:
        """Disabling parks the meters at zero; enabling brings them back."""
        with self.lock:
            self._require_multizone()
            self._require_meters_writable(False)
            if enable:
                if self._multizone_saved_meters is not None:
                    self._zone_meters = self._multizone_saved_meters
                    self._multizone_saved_meters = None
            elif any(self._zone_meters):
                self._multizone_saved_meters = list(self._zone_meters)
                self._zone_meters = [0] * ZONE_COUNT
            self._multizone_enable = bool(enable)

    # ------------------------------------------------------------------
    # Zone-restore overlay storage (driven by zone_restore)
    # ------------------------------------------------------------------

    @property
    def overlay(self) -> ZoneRestoreOverlay:
        with self.lock:
            return ZoneRestoreOverlay(
                self._overlay.active, list(self._overlay.saved_zone_meters)
            )

    @property
    def overlay_active(self) -> bool:
        with self.lock:
            return self._overlay.active

    def open_overlay(self, saved_zone_meters: list[int]) -> None:
        if len(saved_zone_meters) != ZONE_COUNT:
            raise OutOfRange("overlay snapshot must hold 4 zone meters")
        with self.lock:
            self._overlay = ZoneRestoreOverlay(True, list(saved_zone_meters))

    def close_overlay(self) -> list[int]:
        with self.lock:
            saved = list(self._overlay.saved_zone_meters)
            self._overlay = ZoneRestoreOverlay()
            return saved

    # ------------------------------------------------------------------
    # Allocations
    # ------------------------------------------------------------------

    def get_allocation(self, index: int) -> int:
        _check_index("allocation", index, ALLOCATION_COUNT)
        with self.lock:
            return self._zone_allocations[index]

    def get_allocations(self) -> list[int]:
        with self.lock:
            return list(self._zone_allocations)

    def set_allocation(self, index: int, zone: int) -> None:
        _check_index("allocation", index, ALLOCATION_COUNT)
        _check_index("zone", zone, ZONE_COUNT)
        with self.lock:
            self._require_multizone()
            self._zone_allocations[index] = zone

    def set_allocations(self, zones: list[int]) -> None:
        if len(zones) != ALLOCATION_COUNT:
            raise OutOfRange(
                f"expected {ALLOCATION_COUNT} allocations, got {len(zones)}"
            )
        for zone in zones:
            _check_index("zone", zone, ZONE_COUNT)
        with self.lock:
            self._require_multizone()
            self._zone_allocations = list(zones)

    # ------------------------------------------------------------------
    # Capability gated values
    # ------------------------------------------------------------------

    @property
    def locked(self) -> bool:
        with self.lock:
            return self._locked

    def set_locked(self, locked: bool) -> None:
        with self.lock:
            if not self._lock_supported:
                raise PreconditionFailed("lock not supported by device")
            self._locked = bool(locked)

    @property
    def rain_delay(self) -> int:
        with self.lock:
            return self._rain_delay

    def set_rain_delay(self, minutes: int) -> None:
        _check_non_negative("rain delay", minutes)
        with self.lock:
            if not self._rain_delay_supported:
                raise PreconditionFailed("rain delay not supported by device")
            self._rain_delay = minutes

    # ------------------------------------------------------------------
    # Plain telemetry
    # ------------------------------------------------------------------

    def get_telemetry(self, name: str, default: Any = None) -> Any:
        with self.lock:
            return self._telemetry.get(name, default)

    def set_telemetry(self, name: str, value: Any) -> None:
        if name not in TELEMETRY_FIELDS:
            raise KeyError(f"unknown telemetry field {name!r}")
        with self.lock:
            self._telemetry[name] = value

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Consistent deep copy of every field."""
        with self.lock:
            data: dict[str, Any] = {
                "serial_number": self._serial_number,
                "online": self._online,
                "last_online_check": self._last_online_check,
                "status": self._status,
                "error": self._error,
                "lock_supported": self._lock_supported,
                "rain_delay_supported": self._rain_delay_supported,
                "multizone_supported": self._multizone_supported,
                "enable": self._time_extension != SCHEDULE_DISABLED_EXTENSION,
                "time_extension": self._time_extension,
                "scheduled_days": self._scheduled_days,
                "zone_meters": self._zone_meters,
                "zone_allocations": self._zone_allocations,
                "multizone_enable": self._multizone_enable,
                "overlay": self._overlay,
                "locked": self._locked,
                "rain_delay": self._rain_delay,
            }
            data.update(self._telemetry)
            return copy.deepcopy(data)
