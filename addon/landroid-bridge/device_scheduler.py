"""DeviceScheduler – liveness refresh and MQTT poll loops of one device."""

# pylint: disable=broad-exception-caught

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any, Awaitable, Callable

from config import (
    POLLING_INTERVAL,
    POLLING_OFFSET,
    REFRESH_STATUS_INTERVAL,
    REFRESH_STATUS_OFFSET,
)
from errors import RegistryFailure, TransportFailure

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


class DeviceScheduler:
    """Runs two fixed-delay jobs as asyncio tasks, started and stopped together."""

    def __init__(
        self,
        serial_number: str,
        *,
        liveness_job: Job,
        poll_job: Job,
        liveness_interval_s: float = REFRESH_STATUS_INTERVAL,
        liveness_offset_s: float = REFRESH_STATUS_OFFSET,
        poll_interval_s: float = POLLING_INTERVAL,
        poll_offset_s: float = POLLING_OFFSET,
    ) -> None:
        self.serial_number = serial_number
        self._liveness_job = liveness_job
        self._poll_job = poll_job
        self.liveness_interval_s = float(liveness_interval_s)
        self.liveness_offset_s = float(liveness_offset_s)
        self.poll_interval_s = float(poll_interval_s)
        self.poll_offset_s = float(poll_offset_s)

        self._running = False
        self._liveness_task: asyncio.Task[Any] | None = None
        self._poll_task: asyncio.Task[Any] | None = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Spawn both loops on the running event loop (idempotent)."""
        if self._running:
            return
        self._running = True
        self._liveness_task = asyncio.create_task(
            self._loop("liveness", self._liveness_job,
                       self.liveness_offset_s, self.liveness_interval_s),
            name=f"liveness-{self.serial_number}",
        )
        self._poll_task = asyncio.create_task(
            self._loop("poll", self._poll_job,
                       self.poll_offset_s, self.poll_interval_s),
            name=f"poll-{self.serial_number}",
        )
        logger.info(
            f"Scheduler {self.serial_number}: liveness every {self.liveness_interval_s}s "
            f"(first in {self.liveness_offset_s}s), poll every {self.poll_interval_s}s "
            f"(first in {self.poll_offset_s}s)"
        )

    async def stop(self) -> None:
        """Cancel both loops and wait until they are gone."""
        self._running = False
        tasks = [t for t in (self._liveness_task, self._poll_task) if t is not None]
        self._liveness_task = None
        self._poll_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        if tasks:
            logger.info(f"Scheduler {self.serial_number}: stopped")

    async def _loop(self, name: str, job: Job, offset_s: float, interval_s: float) -> None:
        await asyncio.sleep(offset_s)
        while self._running:
            try:
                await job()
            except RegistryFailure as e:
                logger.warning(f"Scheduler {self.serial_number}: {name} skipped, registry: {e}")
            except TransportFailure as e:
                logger.warning(f"Scheduler {self.serial_number}: {name} skipped, transport: {e}")
            except Exception as e:
                logger.error(
                    f"Scheduler {self.serial_number}: {name} failed: {e}",
                    exc_info=True,
                )
            await asyncio.sleep(interval_s)
