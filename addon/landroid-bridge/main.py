#!/usr/bin/env python3
"""
Landroid Bridge - application entry point.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from bridge import MowerBridge
from config import (
    LOG_LEVEL,
    MOWER_LOCK_SUPPORTED,
    MOWER_MULTI_ZONE_SUPPORTED,
    MOWER_RAIN_DELAY_SUPPORTED,
    MOWER_SERIALS,
    MQTT_HOST,
    MQTT_PORT,
    POLLING_INTERVAL,
    REFRESH_STATUS_INTERVAL,
    TIME_ZONE,
)
from errors import RegistryFailure, TransportFailure
from mqtt_transport import MQTTTransport
from registry import StaticDeviceRegistry

# Logging setup
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

logger = logging.getLogger(__name__)


def log_configuration() -> None:
    logger.info("📋 Configuration:")
    logger.info(f"   MQTT: {MQTT_HOST}:{MQTT_PORT}")
    logger.info(f"   Mowers: {', '.join(MOWER_SERIALS) or '-'}")
    logger.info(
        f"   Capabilities: lock={MOWER_LOCK_SUPPORTED} "
        f"rain_delay={MOWER_RAIN_DELAY_SUPPORTED} multi_zone={MOWER_MULTI_ZONE_SUPPORTED}"
    )
    logger.info(f"   Liveness every {REFRESH_STATUS_INTERVAL}s, poll every {POLLING_INTERVAL}s")
    logger.info(f"   Time zone: {TIME_ZONE or 'host'}")
    logger.info(f"   Log level: {LOG_LEVEL}")


async def main(stop_event: asyncio.Event | None = None) -> None:
    """Main function."""
    logger.info("=" * 60)
    logger.info("Landroid Bridge - mower state sync & command protocol")
    logger.info("=" * 60)
    log_configuration()

    if not MOWER_SERIALS:
        logger.error("❌ MOWER_SERIALS is empty, nothing to do")
        sys.exit(1)

    transport = MQTTTransport()
    if not await asyncio.to_thread(transport.connect):
        logger.warning("⚠️ MQTT not reachable yet, health check will retry")
    transport.start_health_check()

    registry = StaticDeviceRegistry(MOWER_SERIALS)
    bridge = MowerBridge(registry, transport)
    loop = asyncio.get_running_loop()
    transport.add_disconnect_listener(
        lambda: loop.call_soon_threadsafe(bridge.set_transport_offline)
    )

    for serial_number in MOWER_SERIALS:
        try:
            await bridge.start(serial_number)
        except (RegistryFailure, TransportFailure) as e:
            logger.error(f"❌ Mower {serial_number} not attached: {e}")

    try:
        await (stop_event or asyncio.Event()).wait()
    finally:
        await bridge.stop_all()
        await transport.stop_health_check()
        transport.disconnect()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error(f"❌ Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run()
