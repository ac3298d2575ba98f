# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring,protected-access
# pylint: disable=unused-argument,too-few-public-methods,no-member,use-implicit-booleaness-not-comparison,line-too-long
# pylint: disable=invalid-name,too-many-statements,too-many-instance-attributes,wrong-import-position,wrong-import-order
# pylint: disable=deprecated-module,too-many-locals,too-many-lines,attribute-defined-outside-init,unexpected-keyword-arg
# pylint: disable=duplicate-code
import pytest

from device_state import ALLOCATION_COUNT, ZONE_COUNT, DeviceState
from errors import OutOfRange, PreconditionFailed
from models import DayOfWeek, ScheduledDay, StatusCode
from helpers import SERIAL, make_state


def test_defaults():
    state = DeviceState(SERIAL)
    assert state.serial_number == SERIAL
    assert state.online is False
    assert state.last_online_check is None
    assert state.status.code is StatusCode.IDLE
    assert state.get_zone_meters() == [0] * ZONE_COUNT
    assert state.get_allocations() == [0] * ALLOCATION_COUNT
    assert state.multizone_supported is False
    assert state.enable is True


@pytest.mark.parametrize("zone", range(ZONE_COUNT))
@pytest.mark.parametrize("index", range(ALLOCATION_COUNT))
def test_allocation_set_get(index, zone):
    state = make_state()
    state.set_allocation(index, zone)
    assert state.get_allocation(index) == zone


@pytest.mark.parametrize("index,zone", [(-1, 0), (10, 0), (0, -1), (0, 4), (3, 9)])
def test_allocation_out_of_range(index, zone):
    state = make_state()
    before = state.get_allocations()
    with pytest.raises(OutOfRange):
        state.set_allocation(index, zone)
    assert state.get_allocations() == before


def test_get_allocation_out_of_range():
    state = make_state()
    with pytest.raises(OutOfRange):
        state.get_allocation(ALLOCATION_COUNT)


def test_zone_meter_index_checked():
    state = make_state()
    with pytest.raises(OutOfRange):
        state.set_zone_meter(4, 10)
    with pytest.raises(OutOfRange):
        state.get_zone_meter(-1)
    with pytest.raises(OutOfRange):
        state.set_zone_meter(0, -5)


def test_zone_meters_need_multizone():
    state = make_state(multi_zone=False)
    with pytest.raises(PreconditionFailed):
        state.set_zone_meter(0, 10)
    with pytest.raises(PreconditionFailed):
        state.set_allocation(0, 1)
    assert state.get_zone_meters() == [0, 0, 0, 0]


def test_overlay_blocks_plain_meter_writes():
    state = make_state()
    state.set_zone_meters([10, 20, 30, 40])
    state.open_overlay(state.get_zone_meters())
    with pytest.raises(PreconditionFailed):
        state.set_zone_meter(1, 99)
    state.set_zone_meters([20, 20, 20, 20], override=True)
    assert state.get_zone_meters() == [20, 20, 20, 20]
    assert state.close_overlay() == [10, 20, 30, 40]
    assert state.overlay_active is False


def test_multizone_enable_recomputed_from_meters():
    state = make_state()
    state.set_zone_meters([5, 5, 5, 5])
    assert state.recompute_multizone_enable() is False
    state.set_zone_meter(2, 7)
    assert state.recompute_multizone_enable() is True


def test_multizone_toggle_parks_and_restores_meters():
    state = make_state()
    state.set_zone_meters([10, 20, 30, 40])
    state.set_multizone_enable(False)
    assert state.get_zone_meters() == [0, 0, 0, 0]
    assert state.multizone_enable is False
    state.set_multizone_enable(True)
    assert state.get_zone_meters() == [10, 20, 30, 40]
    assert state.multizone_enable is True


def test_meter_edit_while_parked_replaces_parked_meters():
    state = make_state()
    state.set_zone_meters([10, 20, 30, 40])
    state.set_multizone_enable(False)
    state.set_zone_meters([0, 0, 0, 0])
    state.set_zone_meter(2, 55)
    state.set_multizone_enable(True)
    assert state.get_zone_meters() == [0, 0, 55, 0]


def test_zeroed_meter_write_keeps_parked_meters():
    state = make_state()
    state.set_zone_meters([10, 20, 30, 40])
    state.set_multizone_enable(False)
    state.set_zone_meters([0, 0, 0, 0])
    state.set_multizone_enable(True)
    assert state.get_zone_meters() == [10, 20, 30, 40]


def test_time_extension_range():
    state = make_state()
    state.set_time_extension(50)
    assert state.time_extension == 50
    with pytest.raises(OutOfRange):
        state.set_time_extension(101)
    with pytest.raises(OutOfRange):
        state.set_time_extension(-101)
    assert state.time_extension == 50


def test_enable_toggle_keeps_time_extension():
    state = make_state()
    state.set_time_extension(30)
    state.set_enable(False)
    assert state.enable is False
    assert state.time_extension == -100
    state.set_enable(True)
    assert state.enable is True
    assert state.time_extension == 30


def test_scheduled_days_all_or_nothing():
    state = make_state()
    days = {day: ScheduledDay(9, 0, 60, False, True) for day in DayOfWeek}
    days[DayOfWeek.FRIDAY] = ScheduledDay(25, 0, 60, False, True)
    with pytest.raises(OutOfRange):
        state.set_scheduled_days(days)
    assert state.get_scheduled_day(DayOfWeek.MONDAY) == ScheduledDay()

    del days[DayOfWeek.FRIDAY]
    with pytest.raises(OutOfRange):
        state.set_scheduled_days(days)


def test_update_scheduled_day_validates():
    state = make_state()
    updated = state.update_scheduled_day(DayOfWeek.MONDAY, hour=9, minute=30)
    assert (updated.hour, updated.minute) == (9, 30)
    with pytest.raises(OutOfRange):
        state.update_scheduled_day(DayOfWeek.MONDAY, minute=60)
    assert state.get_scheduled_day(DayOfWeek.MONDAY).minute == 30
    with pytest.raises(OutOfRange):
        state.update_scheduled_day(7, hour=1)


def test_scheduled_day_returned_as_copy():
    state = make_state()
    day = state.get_scheduled_day(DayOfWeek.SUNDAY)
    day.hour = 12
    assert state.get_scheduled_day(DayOfWeek.SUNDAY).hour == 0


def test_gated_values():
    state = make_state(lock=False, rain_delay=False)
    with pytest.raises(PreconditionFailed):
        state.set_locked(True)
    with pytest.raises(PreconditionFailed):
        state.set_rain_delay(30)

    state = make_state(lock=True, rain_delay=True)
    state.set_locked(True)
    state.set_rain_delay(30)
    assert state.locked is True
    assert state.rain_delay == 30


def test_unknown_telemetry_field_rejected():
    state = make_state()
    with pytest.raises(KeyError):
        state.set_telemetry("nonsense", 1)


def test_snapshot_is_detached():
    state = make_state()
    state.set_telemetry("battery_level", 50)
    snap = state.snapshot()
    snap["zone_meters"][0] = 999
    assert state.get_zone_meters()[0] == 0
    assert snap["battery_level"] == 50
    assert "battery_voltage" not in snap
