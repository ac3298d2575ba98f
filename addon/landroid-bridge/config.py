#!/usr/bin/env python3
"""
Landroid Bridge configuration - constants and environment variables.
"""

import os

# ============================================================================
# Helpers
# ============================================================================


def _get_int_env(name: str, default: int) -> int:
    """Return an int env variable with a safe fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = str(raw).strip()
    if raw == "" or raw.lower() == "null":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = str(raw).strip()
    if raw == "" or raw.lower() == "null":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _get_list_env(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


# ============================================================================
# MQTT Configuration
# ============================================================================
MQTT_HOST = os.getenv("MQTT_HOST", "localhost")
MQTT_PORT = _get_int_env("MQTT_PORT", 1883)
MQTT_USERNAME = os.getenv("MQTT_USERNAME", "")
MQTT_PASSWORD = os.getenv("MQTT_PASSWORD", "")
MQTT_CLIENT_ID = os.getenv("MQTT_CLIENT_ID", "landroid_bridge")
MQTT_QOS = _get_int_env("MQTT_QOS", 0)  # device dialect uses QoS 0
MQTT_KEEPALIVE = _get_int_env("MQTT_KEEPALIVE", 60)
MQTT_CONNECT_TIMEOUT = _get_int_env("MQTT_CONNECT_TIMEOUT", 10)
MQTT_HEALTH_CHECK_INTERVAL = _get_int_env("MQTT_HEALTH_CHECK_INTERVAL", 30)

# ============================================================================
# Mower Configuration
# ============================================================================
MOWER_SERIALS = _get_list_env("MOWER_SERIALS")
MOWER_COMMAND_IN_TOPIC = os.getenv(
    "MOWER_COMMAND_IN_TOPIC", "DB510/{serial}/commandIn"
)
MOWER_COMMAND_OUT_TOPIC = os.getenv(
    "MOWER_COMMAND_OUT_TOPIC", "DB510/{serial}/commandOut"
)

# Capabilities served by the static registry (no web API in this addon)
MOWER_LOCK_SUPPORTED = _get_bool_env("MOWER_LOCK_SUPPORTED", False)
MOWER_RAIN_DELAY_SUPPORTED = _get_bool_env("MOWER_RAIN_DELAY_SUPPORTED", False)
MOWER_MULTI_ZONE_SUPPORTED = _get_bool_env("MOWER_MULTI_ZONE_SUPPORTED", False)

# IANA zone name for cfg.dt/cfg.tm; empty = host zone
TIME_ZONE = os.getenv("TIME_ZONE", "")

# ============================================================================
# Scheduler Configuration
# ============================================================================
# Liveness refresh against the device registry
REFRESH_STATUS_INTERVAL = _get_int_env("REFRESH_STATUS_INTERVAL", 60)
REFRESH_STATUS_OFFSET = _get_int_env("REFRESH_STATUS_OFFSET", 30)
# Empty poll command provoking a fresh telemetry push
POLLING_INTERVAL = _get_int_env("POLLING_INTERVAL", 300)
POLLING_OFFSET = _get_int_env("POLLING_OFFSET", 60)

# Pause between the zone-meter override and the start action
ZONE_START_DELAY_S = _get_float_env("ZONE_START_DELAY_S", 2.0)

# ============================================================================
# Logging
# ============================================================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
