# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring,protected-access
# pylint: disable=unused-argument,too-few-public-methods,no-member,use-implicit-booleaness-not-comparison,line-too-long
# pylint: disable=invalid-name,too-many-statements,too-many-instance-attributes,wrong-import-position,wrong-import-order
# pylint: disable=deprecated-module,too-many-locals,too-many-lines,attribute-defined-outside-init,unexpected-keyword-arg
# pylint: disable=duplicate-code
import pytest

from bridge import MowerBridge
from errors import PreconditionFailed, RegistryFailure
from registry import StaticDeviceRegistry
from helpers import FakeTransport, make_decoder

SERIALS = ["S1", "S2"]
HANDLER_OPTIONS = {
    "decoder": make_decoder(),
    "liveness_interval_s": 3600,
    "liveness_offset_s": 3600,
    "poll_interval_s": 3600,
    "poll_offset_s": 3600,
    "zone_start_delay_s": 0,
}


def make_bridge(transport=None, **registry_kwargs):
    registry = StaticDeviceRegistry(SERIALS, **registry_kwargs)
    return MowerBridge(registry, transport or FakeTransport(), **HANDLER_OPTIONS)


@pytest.mark.asyncio
async def test_start_routes_per_serial():
    transport = FakeTransport()
    bridge = make_bridge(transport, multi_zone=True, command_in_topic="mower/{serial}/in")
    await bridge.start("S1")
    await bridge.start("S2")
    try:
        assert bridge.serial_numbers == ["S1", "S2"]
        assert await bridge.on_user_intent("S2", "action", "start") == '{"cmd":1}'
        assert transport.published[-1] == ("mower/S2/in", '{"cmd":1}')
        assert bridge.handler("S1").state.multizone_supported is True
    finally:
        await bridge.stop_all()
    assert bridge.serial_numbers == []


@pytest.mark.asyncio
async def test_start_twice_returns_same_handler():
    bridge = make_bridge()
    first = await bridge.start("S1")
    assert await bridge.start("S1") is first
    await bridge.stop_all()


@pytest.mark.asyncio
async def test_unknown_serial():
    bridge = make_bridge()
    with pytest.raises(RegistryFailure):
        await bridge.start("NOPE")
    assert bridge.serial_numbers == []
    with pytest.raises(PreconditionFailed):
        await bridge.on_user_intent("NOPE", "poll")
    await bridge.stop("NOPE")


@pytest.mark.asyncio
async def test_transport_offline_blocks_intents():
    bridge = make_bridge()
    await bridge.start("S1")
    try:
        bridge.set_transport_offline()
        with pytest.raises(PreconditionFailed):
            await bridge.on_user_intent("S1", "poll")
    finally:
        await bridge.stop_all()


@pytest.mark.asyncio
async def test_static_registry():
    registry = StaticDeviceRegistry(
        ["S1"], lock=True, rain_delay=False, multi_zone=False,
        command_in_topic="DB510/{serial}/commandIn", command_out_topic="DB510/{serial}/commandOut",
    )
    caps = await registry.fetch_capabilities("S1")
    assert caps.lock is True
    assert caps.multi_zone is False
    assert caps.online is True
    assert caps.command_in == "DB510/S1/commandIn"
    assert caps.command_out == "DB510/S1/commandOut"
    assert await registry.fetch_online_status("S1") is True
    assert await registry.fetch_last_known_status("S1") == {}
    with pytest.raises(RegistryFailure):
        await registry.fetch_online_status("S9")
