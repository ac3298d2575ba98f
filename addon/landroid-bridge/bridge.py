"""MowerBridge – one transport and registry shared by several mowers."""

from __future__ import annotations

import logging
from typing import Any

from errors import PreconditionFailed
from mower_handler import MowerHandler
from mqtt_transport import MQTTTransport
from registry import DeviceRegistry

logger = logging.getLogger(__name__)


class MowerBridge:
    """Keeps a MowerHandler per serial number."""

    def __init__(
        self,
        registry: DeviceRegistry,
        transport: MQTTTransport,
        **handler_options: Any,
    ) -> None:
        self.registry = registry
        self.transport = transport
        self._handler_options = handler_options
        self._handlers: dict[str, MowerHandler] = {}

    @property
    def serial_numbers(self) -> list[str]:
        return list(self._handlers)

    def handler(self, serial_number: str) -> MowerHandler:
        try:
            return self._handlers[serial_number]
        except KeyError as e:
            raise PreconditionFailed(f"mower {serial_number} is not started") from e

    async def start(self, serial_number: str) -> MowerHandler:
        """Attach a mower; a second start of the same serial is a no-op."""
        existing = self._handlers.get(serial_number)
        if existing is not None:
            return existing
        handler = MowerHandler(
            serial_number, self.registry, self.transport, **self._handler_options,
        )
        await handler.start()
        self._handlers[serial_number] = handler
        return handler

    async def stop(self, serial_number: str) -> None:
        handler = self._handlers.pop(serial_number, None)
        if handler is None:
            logger.debug(f"Bridge: {serial_number} not started, nothing to stop")
            return
        await handler.stop()

    async def stop_all(self) -> None:
        for serial_number in list(self._handlers):
            await self.stop(serial_number)

    def set_transport_offline(self) -> None:
        for handler in self._handlers.values():
            handler.set_transport_offline()

    async def on_user_intent(self, serial_number: str, intent: str, value: Any = None) -> str | None:
        return await self.handler(serial_number).on_user_intent(intent, value)
