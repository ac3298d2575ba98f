"""Device registry collaborator.

The registry is the cloud catalog that knows which mowers exist, what they
support and whether they are online. The bridge only consumes it through
``DeviceRegistry``; ``StaticDeviceRegistry`` serves everything from the
addon configuration for setups without catalog access.
"""

from __future__ import annotations

import abc
from typing import Any

from config import (
    MOWER_COMMAND_IN_TOPIC,
    MOWER_COMMAND_OUT_TOPIC,
    MOWER_LOCK_SUPPORTED,
    MOWER_MULTI_ZONE_SUPPORTED,
    MOWER_RAIN_DELAY_SUPPORTED,
)
from errors import RegistryFailure
from models import DeviceCapabilities


class DeviceRegistry(abc.ABC):
    """Read-only access to the device catalog. Failures raise RegistryFailure."""

    @abc.abstractmethod
    async def fetch_capabilities(self, serial_number: str) -> DeviceCapabilities:
        ...

    @abc.abstractmethod
    async def fetch_online_status(self, serial_number: str) -> bool:
        ...

    @abc.abstractmethod
    async def fetch_last_known_status(self, serial_number: str) -> dict[str, Any]:
        """Last status message in the telemetry dialect ({"cfg":..., "dat":...})."""


class StaticDeviceRegistry(DeviceRegistry):
    """Registry backed by configuration; every known mower is reported online."""

    def __init__(
        self,
        serial_numbers: list[str],
        *,
        lock: bool = MOWER_LOCK_SUPPORTED,
        rain_delay: bool = MOWER_RAIN_DELAY_SUPPORTED,
        multi_zone: bool = MOWER_MULTI_ZONE_SUPPORTED,
        command_in_topic: str = MOWER_COMMAND_IN_TOPIC,
        command_out_topic: str = MOWER_COMMAND_OUT_TOPIC,
    ) -> None:
        self.serial_numbers = list(serial_numbers)
        self._lock = lock
        self._rain_delay = rain_delay
        self._multi_zone = multi_zone
        self._command_in_topic = command_in_topic
        self._command_out_topic = command_out_topic

    def _require_known(self, serial_number: str) -> None:
        if serial_number not in self.serial_numbers:
            raise RegistryFailure(f"unknown mower {serial_number}")

    async def fetch_capabilities(self, serial_number: str) -> DeviceCapabilities:
        self._require_known(serial_number)
        return DeviceCapabilities(
            lock=self._lock,
            rain_delay=self._rain_delay,
            multi_zone=self._multi_zone,
            online=True,
            command_in=self._command_in_topic.format(serial=serial_number),
            command_out=self._command_out_topic.format(serial=serial_number),
            properties={"serial_number": serial_number, "source": "config"},
        )

    async def fetch_online_status(self, serial_number: str) -> bool:
        self._require_known(serial_number)
        return True

    async def fetch_last_known_status(self, serial_number: str) -> dict[str, Any]:
        self._require_known(serial_number)
        return {}
