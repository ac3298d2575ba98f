#!/usr/bin/env python3
"""
MQTT transport for the Landroid bridge (paho-mqtt).

Publishes command payloads to the device command-in topic and delivers
command-out telemetry as text to subscribed callbacks. Callbacks run on the
paho network thread; consumers marshal onto their own loop.
"""

# pylint: disable=broad-exception-caught

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Callable

import paho.mqtt.client as mqtt

from config import (
    MQTT_CLIENT_ID,
    MQTT_CONNECT_TIMEOUT,
    MQTT_HEALTH_CHECK_INTERVAL,
    MQTT_HOST,
    MQTT_KEEPALIVE,
    MQTT_PASSWORD,
    MQTT_PORT,
    MQTT_QOS,
    MQTT_USERNAME,
)
from errors import TransportFailure

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str], None]


class MQTTTransport:
    """Thin paho client wrapper with re-subscribe and reconnect."""

    PUBLISH_LOG_EVERY = 100

    def __init__(
        self,
        *,
        host: str = MQTT_HOST,
        port: int = MQTT_PORT,
        client_id: str = MQTT_CLIENT_ID,
        username: str = MQTT_USERNAME,
        password: str = MQTT_PASSWORD,
        qos: int = MQTT_QOS,
    ) -> None:
        self.host = host
        self.port = port
        self.client_id = client_id
        self.username = username
        self.password = password
        self.qos = qos

        self.client: mqtt.Client | None = None
        self.connected = False
        self._handlers: dict[str, list[MessageCallback]] = {}
        self._handlers_lock = threading.Lock()
        self._disconnect_listeners: list[Callable[[], None]] = []

        # Stats
        self.publish_count = 0
        self.publish_failed = 0
        self.last_error_time: float = 0
        self.last_error_msg: str = ""
        self.reconnect_attempts = 0

        self.health_check_interval = MQTT_HEALTH_CHECK_INTERVAL
        self._health_check_task: asyncio.Task[Any] | None = None

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def _create_client(self) -> mqtt.Client:
        return mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
        )

    def connect(self, timeout: float | None = None) -> bool:
        """Connect to the broker and wait for CONNACK up to ``timeout`` seconds."""
        timeout = timeout or MQTT_CONNECT_TIMEOUT
        # A previous client would keep reconnecting with the same client id
        self._cleanup_client()
        try:
            self.client = self._create_client()
            if self.username:
                self.client.username_pw_set(self.username, self.password)
            self.client.on_connect = self._on_connect
            self.client.on_disconnect = self._on_disconnect
            self.client.on_message = self._on_message

            logger.info(f"MQTT: connecting to {self.host}:{self.port} (timeout {timeout}s)")
            self.client.connect(self.host, self.port, MQTT_KEEPALIVE)
            self.client.loop_start()

            start = time.time()
            while not self.connected and (time.time() - start) < timeout:
                time.sleep(0.1)

            if self.connected:
                logger.info(f"MQTT: ✅ connected to {self.host}:{self.port}")
                self.reconnect_attempts = 0
                return True
            logger.error(f"MQTT: ❌ connect timeout after {timeout}s")
            self._cleanup_client()
            return False
        except Exception as e:
            logger.error(f"MQTT: ❌ connect failed: {e}")
            self._cleanup_client()
            return False

    def _cleanup_client(self) -> None:
        if self.client:
            try:
                self.client.loop_stop()
                self.client.disconnect()
            except Exception as e:
                logger.debug(f"MQTT: cleanup: {e}")
            self.client = None
        self.connected = False

    def disconnect(self) -> None:
        self._cleanup_client()
        logger.info("MQTT: disconnected")

    def is_ready(self) -> bool:
        return self.client is not None and self.connected

    def _on_connect(
        self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None
    ) -> None:
        if reason_code == 0:
            logger.info(f"MQTT: connected (flags={flags})")
            self.connected = True
            self.reconnect_attempts = 0
            with self._handlers_lock:
                topics = list(self._handlers)
            for topic in topics:
                client.subscribe(topic, qos=self.qos)
                logger.debug(f"MQTT: re-subscribed {topic}")
        else:
            logger.error(f"MQTT: ❌ connection refused: {reason_code}")
            self.connected = False
            self.last_error_time = time.time()
            self.last_error_msg = str(reason_code)

    def _on_disconnect(
        self, client: Any, userdata: Any, flags: Any, reason_code: Any = 0, properties: Any = None
    ) -> None:
        self.connected = False
        if reason_code == 0:
            logger.info("MQTT: disconnected (clean)")
        else:
            logger.warning(f"MQTT: ⚠️ unexpected disconnect (rc={reason_code})")
            self.last_error_time = time.time()
            self.last_error_msg = f"Unexpected disconnect (rc={reason_code})"
            self._notify_disconnect()

    def add_disconnect_listener(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` on the paho thread after an unexpected disconnect."""
        self._disconnect_listeners.append(callback)

    def _notify_disconnect(self) -> None:
        for callback in list(self._disconnect_listeners):
            try:
                callback()
            except Exception as e:
                logger.error(f"MQTT: disconnect listener failed: {e}", exc_info=True)

    def _on_message(self, client: Any, userdata: Any, message: Any) -> None:
        try:
            text = message.payload.decode("utf-8", errors="strict")
        except UnicodeDecodeError:
            text = message.payload.decode("utf-8", errors="replace")
        with self._handlers_lock:
            matching = [
                callback
                for topic, callbacks in self._handlers.items()
                if mqtt.topic_matches_sub(topic, message.topic)
                for callback in callbacks
            ]
        for callback in matching:
            try:
                callback(text)
            except Exception as e:
                logger.error(f"MQTT: handler for {message.topic} failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Publish / subscribe
    # ------------------------------------------------------------------

    def publish(self, topic: str, payload: str) -> None:
        """Publish ``payload``; raises TransportFailure when it cannot be sent."""
        if not self.is_ready():
            self.publish_failed += 1
            raise TransportFailure(f"not connected, cannot publish to {topic}")
        self.publish_count += 1
        try:
            result = self.client.publish(topic, payload, qos=self.qos, retain=False)
        except Exception as e:
            self.publish_failed += 1
            self.last_error_time = time.time()
            self.last_error_msg = str(e)
            raise TransportFailure(f"publish to {topic} failed: {e}") from e
        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.publish_failed += 1
            raise TransportFailure(f"publish to {topic} failed rc={result.rc}")
        logger.debug(f"MQTT: → {topic} {payload}")
        if self.publish_count % self.PUBLISH_LOG_EVERY == 0:
            logger.info(
                f"MQTT: 📊 {self.publish_count} published, {self.publish_failed} failed"
            )

    def subscribe(self, topic: str, callback: MessageCallback) -> None:
        """Register ``callback`` for ``topic``; survives reconnects."""
        with self._handlers_lock:
            callbacks = self._handlers.setdefault(topic, [])
            first = not callbacks
            callbacks.append(callback)
        if first and self.is_ready():
            result, _mid = self.client.subscribe(topic, qos=self.qos)
            if result != mqtt.MQTT_ERR_SUCCESS:
                raise TransportFailure(f"subscribe to {topic} failed rc={result}")
        logger.info(f"MQTT: subscribed {topic}")

    def unsubscribe(self, topic: str, callback: MessageCallback | None = None) -> None:
        with self._handlers_lock:
            if topic not in self._handlers:
                return
            callbacks = self._handlers[topic]
            if callback is None:
                callbacks.clear()
            elif callback in callbacks:
                callbacks.remove(callback)
            empty = not callbacks
            if empty:
                del self._handlers[topic]
        if empty and self.is_ready():
            self.client.unsubscribe(topic)

    # ------------------------------------------------------------------
    # Health check
    # ------------------------------------------------------------------

    async def health_check_loop(self) -> None:
        """Reconnect periodically while the broker is unreachable."""
        logger.info(f"MQTT: health check every {self.health_check_interval}s")
        while True:
            await asyncio.sleep(self.health_check_interval)
            if self.connected:
                continue
            self.reconnect_attempts += 1
            logger.warning(f"MQTT: 🔄 reconnect attempt #{self.reconnect_attempts}")
            connected = await asyncio.to_thread(self.connect, MQTT_CONNECT_TIMEOUT)
            if connected:
                logger.info(f"MQTT: ✅ reconnected after {self.reconnect_attempts} attempts")
            else:
                logger.warning(
                    f"MQTT: ❌ reconnect failed, next attempt in {self.health_check_interval}s"
                )

    def start_health_check(self) -> None:
        if self._health_check_task is None or self._health_check_task.done():
            self._health_check_task = asyncio.create_task(self.health_check_loop())

    async def stop_health_check(self) -> None:
        task = self._health_check_task
        self._health_check_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
