"""Shared test helpers: fake transport/registry and state builders."""

from datetime import timezone

from device_state import DeviceState
from errors import RegistryFailure, TransportFailure
from models import DeviceCapabilities, MowerStatus, StatusCode
from registry import DeviceRegistry
from telemetry_decoder import TelemetryDecoder

SERIAL = "201923456789012345"
COMMAND_IN = f"DB510/{SERIAL}/commandIn"
COMMAND_OUT = f"DB510/{SERIAL}/commandOut"


class FakeTransport:
    """Records publishes and lets tests push messages to subscribers."""

    def __init__(self, *, fail_publish=False):
        self.published = []
        self.subscriptions = {}
        self.unsubscribed = []
        self.fail_publish = fail_publish

    def publish(self, topic, payload):
        if self.fail_publish:
            raise TransportFailure("broker down")
        self.published.append((topic, payload))

    def subscribe(self, topic, callback):
        self.subscriptions.setdefault(topic, []).append(callback)

    def unsubscribe(self, topic, callback=None):
        self.unsubscribed.append(topic)
        self.subscriptions.pop(topic, None)

    def deliver(self, topic, text):
        for callback in list(self.subscriptions.get(topic, [])):
            callback(text)

    def payloads(self):
        return [payload for _topic, payload in self.published]


class FakeRegistry(DeviceRegistry):
    """In-memory registry counting every call."""

    def __init__(self, capabilities=None, *, online=True, last_known=None, fail=False):
        self.capabilities = capabilities or make_capabilities()
        self.online = online
        self.last_known = last_known or {}
        self.fail = fail
        self.calls = []

    async def fetch_capabilities(self, serial_number):
        self.calls.append(("capabilities", serial_number))
        if self.fail:
            raise RegistryFailure("registry unreachable")
        return self.capabilities

    async def fetch_online_status(self, serial_number):
        self.calls.append(("online", serial_number))
        if self.fail:
            raise RegistryFailure("registry unreachable")
        return self.online

    async def fetch_last_known_status(self, serial_number):
        self.calls.append(("last_known", serial_number))
        if self.fail:
            raise RegistryFailure("registry unreachable")
        return self.last_known


def make_capabilities(*, lock=False, rain_delay=False, multi_zone=True, online=True):
    return DeviceCapabilities(
        lock=lock,
        rain_delay=rain_delay,
        multi_zone=multi_zone,
        online=online,
        command_in=COMMAND_IN,
        command_out=COMMAND_OUT,
    )


def make_state(*, lock=False, rain_delay=False, multi_zone=True, status=None):
    state = DeviceState(SERIAL)
    state.apply_capabilities(make_capabilities(
        lock=lock, rain_delay=rain_delay, multi_zone=multi_zone))
    if status is not None:
        state.set_status(MowerStatus.from_raw(int(status)))
    return state


def make_decoder():
    return TelemetryDecoder(tz=timezone.utc)


def home_state(meters=(10, 20, 30, 40)):
    state = make_state(status=StatusCode.HOME)
    state.set_zone_meters(list(meters))
    state.recompute_multizone_enable()
    return state
