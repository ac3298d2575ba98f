#!/usr/bin/env python3
"""
MowerHandler – orchestrates one mower.

Owns the DeviceState, decoder, dispatcher, zone-restore machine and
scheduler of a single device and wires them to the registry and the MQTT
transport.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from command_dispatcher import INTENT_REFRESH, CommandDispatcher
from command_encoder import encode_poll
from config import (
    POLLING_INTERVAL,
    POLLING_OFFSET,
    REFRESH_STATUS_INTERVAL,
    REFRESH_STATUS_OFFSET,
    ZONE_START_DELAY_S,
)
from device_scheduler import DeviceScheduler
from device_state import DeviceState
from errors import MalformedField, PreconditionFailed, TransportFailure
from mqtt_transport import MQTTTransport
from registry import DeviceRegistry
from telemetry_decoder import DecodeResult, TelemetryDecoder
from zone_restore import ZoneRestoreMachine

logger = logging.getLogger(__name__)


class MowerHandler:
    """Per-device lifecycle: bootstrap, telemetry ingest, intents, timers."""

    def __init__(
        self,
        serial_number: str,
        registry: DeviceRegistry,
        transport: MQTTTransport,
        *,
        decoder: TelemetryDecoder | None = None,
        liveness_interval_s: float = REFRESH_STATUS_INTERVAL,
        liveness_offset_s: float = REFRESH_STATUS_OFFSET,
        poll_interval_s: float = POLLING_INTERVAL,
        poll_offset_s: float = POLLING_OFFSET,
        zone_start_delay_s: float = ZONE_START_DELAY_S,
    ) -> None:
        self.serial_number = serial_number
        self.registry = registry
        self.transport = transport
        self.decoder = decoder or TelemetryDecoder()
        self.state = DeviceState(serial_number)

        self.command_in_topic: str | None = None
        self.command_out_topic: str | None = None
        self.attached = False
        self._loop: asyncio.AbstractEventLoop | None = None

        self.zone_restore = ZoneRestoreMachine(
            self.state,
            self._publish,
            is_attached=lambda: self.attached,
            start_delay_s=zone_start_delay_s,
        )
        self.dispatcher = CommandDispatcher(self.state, self._publish, self.zone_restore)
        self.scheduler = DeviceScheduler(
            serial_number,
            liveness_job=self._refresh_liveness,
            poll_job=self._poll,
            liveness_interval_s=liveness_interval_s,
            liveness_offset_s=liveness_offset_s,
            poll_interval_s=poll_interval_s,
            poll_offset_s=poll_offset_s,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bootstrap from the registry, subscribe, poll once, start timers.

        RegistryFailure and TransportFailure propagate; the handler stays
        detached in that case.
        """
        if self.attached:
            return
        self._loop = asyncio.get_running_loop()

        capabilities = await self.registry.fetch_capabilities(self.serial_number)
        self.state.apply_capabilities(capabilities)
        self.state.set_online(capabilities.online, datetime.now(timezone.utc))
        self.command_in_topic = capabilities.command_in
        self.command_out_topic = capabilities.command_out
        logger.info(
            f"Mower {self.serial_number}: lock={capabilities.lock} "
            f"rain_delay={capabilities.rain_delay} multi_zone={capabilities.multi_zone} "
            f"in={self.command_in_topic} out={self.command_out_topic}"
        )

        last_known = await self.registry.fetch_last_known_status(self.serial_number)
        if last_known:
            self._ingest(last_known)

        self.transport.subscribe(self.command_out_topic, self._on_transport_message)
        self.attached = True
        try:
            self._publish(encode_poll())
        except TransportFailure as e:
            logger.warning(f"Mower {self.serial_number}: initial poll failed: {e}")
        self.scheduler.start()
        logger.info(f"Mower {self.serial_number}: ✅ attached")

    async def stop(self) -> None:
        """Detach: no job, delayed action or publish runs after this returns."""
        self.attached = False
        await self.scheduler.stop()
        if self.command_out_topic:
            self.transport.unsubscribe(self.command_out_topic, self._on_transport_message)
        logger.info(f"Mower {self.serial_number}: detached")

    def set_transport_offline(self) -> None:
        self.state.set_online(False, datetime.now(timezone.utc))
        logger.warning(f"Mower {self.serial_number}: transport offline")

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def _on_transport_message(self, text: str) -> None:
        """Called on the MQTT network thread."""
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self.on_telemetry, text)
        else:
            self.on_telemetry(text)

    def on_telemetry(self, text: str | bytes) -> DecodeResult | None:
        """Decode one pushed message; returns None if it is not valid JSON."""
        try:
            message = self.decoder.parse(text)
        except MalformedField as e:
            logger.warning(f"Mower {self.serial_number}: dropping message: {e.reason}")
            return None
        return self._ingest(message)

    def _ingest(self, message: dict[str, Any]) -> DecodeResult:
        restore_payload = None
        with self.state.lock:
            result = self.decoder.decode(self.state, message)
            if result.status is not None:
                restore_payload = self.zone_restore.on_status(result.status)
        logger.debug(
            f"Mower {self.serial_number}: {len(result.changes)} fields updated, "
            f"{len(result.errors)} skipped"
        )
        if restore_payload is not None and self.attached:
            try:
                self._publish(restore_payload)
            except TransportFailure as e:
                logger.warning(
                    f"Mower {self.serial_number}: zone meter restore not sent: {e}"
                )
        return result

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def on_user_intent(self, intent: str, value: Any = None) -> str | None:
        """Route a user intent; returns the published payload, if any."""
        if intent == INTENT_REFRESH:
            return None
        if not self.attached:
            raise PreconditionFailed(f"mower {self.serial_number} is not attached")
        if not self.state.online:
            raise PreconditionFailed(f"mower {self.serial_number} is offline")
        return await self.dispatcher.dispatch(intent, value)

    def _publish(self, payload: str) -> None:
        if not self.command_in_topic:
            raise TransportFailure(f"mower {self.serial_number} has no command topic")
        self.transport.publish(self.command_in_topic, payload)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    async def _refresh_liveness(self) -> None:
        if not self.attached:
            return
        online = await self.registry.fetch_online_status(self.serial_number)
        if not self.attached:
            return
        was_online = self.state.online
        self.state.set_online(online, datetime.now(timezone.utc))
        if online != was_online:
            logger.info(
                f"Mower {self.serial_number}: {'online' if online else 'offline'}"
            )

    async def _poll(self) -> None:
        if not self.attached:
            return
        self._publish(encode_poll())
