"""ZoneRestoreMachine – single-zone start emulated with a zone-meter override.

The device has no "mow this zone once" command. Starting a zone therefore
overrides all four zone meters with the meter of the requested zone, starts
the mower, and puts the saved meters back as soon as telemetry reports a
status outside the start-up sequence.

States: IDLE (no override) and OVERRIDDEN (overlay active on the DeviceState).
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

from command_encoder import encode_action, encode_zone_meters
from config import ZONE_START_DELAY_S
from device_state import ZONE_COUNT, DeviceState
from errors import PreconditionFailed, TransportFailure
from models import ActionCode, MowerStatus, StatusCode, ZONE_OVERRIDE_TRANSIENT

logger = logging.getLogger(__name__)


class ZoneRestoreState(Enum):
    IDLE = "idle"
    OVERRIDDEN = "overridden"


class ZoneRestoreMachine:
    """Overlay driver for one device."""

    def __init__(
        self,
        state: DeviceState,
        publish: Callable[[str], None],
        *,
        is_attached: Callable[[], bool] = lambda: True,
        start_delay_s: float = ZONE_START_DELAY_S,
    ) -> None:
        self._state = state
        self._publish = publish
        self._is_attached = is_attached
        self.start_delay_s = float(start_delay_s)

    @property
    def current(self) -> ZoneRestoreState:
        if self._state.overlay_active:
            return ZoneRestoreState.OVERRIDDEN
        return ZoneRestoreState.IDLE

    # ------------------------------------------------------------------
    # IDLE -> OVERRIDDEN
    # ------------------------------------------------------------------

    def begin_override(self, zone: int) -> str:
        """Override every zone meter with the meter of ``zone``.

        Returns the zone-meter payload to publish. Raises PreconditionFailed
        unless the mower is at HOME; nothing is mutated in that case.
        """
        state = self._state
        with state.lock:
            if not state.multizone_supported:
                raise PreconditionFailed("multizone not supported by device")
            status = state.status
            if status.code is not StatusCode.HOME:
                raise PreconditionFailed(
                    f"zone start needs status HOME, mower is {status.description}"
                )
            meter = state.get_zone_meter(zone)
            if state.overlay_active:
                # A second start keeps the first snapshot
                meter = state.overlay.saved_zone_meters[zone]
            else:
                state.open_overlay(state.get_zone_meters())
            state.set_zone_meters([meter] * ZONE_COUNT, override=True)
            payload = encode_zone_meters(state)
        logger.info(
            f"Zone restore {state.serial_number}: zone {zone} override at {meter}m"
        )
        return payload

    async def start_zone(self, zone: int) -> str | None:
        """Override the meters, wait for the device to absorb them, then start.

        Returns the start payload, or None if the device was detached during
        the pause.
        """
        state = self._state
        with state.lock:
            was_active = state.overlay_active
            previous = state.get_zone_meters()
            payload = self.begin_override(zone)
        try:
            self._publish(payload)
        except TransportFailure:
            self._rollback(was_active, previous)
            raise
        await asyncio.sleep(self.start_delay_s)
        if not self._is_attached():
            logger.info(
                f"Zone restore {state.serial_number}: detached before start, start skipped"
            )
            return None
        payload = encode_action(ActionCode.START)
        self._publish(payload)
        return payload

    def _rollback(self, was_active: bool, previous: list[int]) -> None:
        """Undo an override the device never received."""
        state = self._state
        with state.lock:
            if was_active:
                state.set_zone_meters(previous, override=True)
            else:
                state.set_zone_meters(state.close_overlay())
                state.recompute_multizone_enable()
        logger.warning(
            f"Zone restore {state.serial_number}: override not sent, "
            f"meters back to {state.get_zone_meters()}"
        )

    # ------------------------------------------------------------------
    # OVERRIDDEN -> IDLE
    # ------------------------------------------------------------------

    def on_status(self, status: MowerStatus) -> str | None:
        """Evaluate a just-committed status.

        Returns the zone-meter payload restoring the saved meters when the
        override ends, otherwise None. Callers hold the state lock across
        decode and this call.
        """
        state = self._state
        with state.lock:
            if not state.overlay_active:
                return None
            if status.code in ZONE_OVERRIDE_TRANSIENT:
                return None
            saved = state.close_overlay()
            state.set_zone_meters(saved)
            state.recompute_multizone_enable()
            payload = encode_zone_meters(state)
        logger.info(
            f"Zone restore {state.serial_number}: status {status.description}, "
            f"meters restored to {saved}"
        )
        return payload
