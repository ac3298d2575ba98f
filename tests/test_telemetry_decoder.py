# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring,protected-access
# pylint: disable=unused-argument,too-few-public-methods,no-member,use-implicit-booleaness-not-comparison,line-too-long
# pylint: disable=invalid-name,too-many-statements,too-many-instance-attributes,wrong-import-position,wrong-import-order
# pylint: disable=deprecated-module,too-many-locals,too-many-lines,attribute-defined-outside-init,unexpected-keyword-arg
# pylint: disable=duplicate-code
import json
from datetime import datetime, timezone

import pytest

from command_encoder import encode_schedule
from errors import MalformedField
from models import DayOfWeek, ErrorCode, StatusCode
from telemetry_decoder import TelemetryDecoder
from helpers import make_decoder, make_state

SCHEDULE_DAYS = [
    ["0:00", 0, 0],
    ["9:05", 60, 1],
    ["10:30", 120, 0],
    ["8:00", 45, 1],
    ["14:15", 30, 0],
    ["7:00", 90, 1],
    ["0:00", 0, 0],
]


def test_parse_rejects_invalid_json():
    with pytest.raises(MalformedField):
        TelemetryDecoder.parse("{not json")
    with pytest.raises(MalformedField):
        TelemetryDecoder.parse("[1, 2]")
    assert TelemetryDecoder.parse(b'{"dat": {}}') == {"dat": {}}


def test_battery_level_only_changes_one_field():
    state = make_state(lock=True, rain_delay=True)
    before = state.snapshot()

    result = make_decoder().decode(state, {"dat": {"bt": {"p": 77}}})

    after = state.snapshot()
    assert result.changes == [("battery_level", 77)]
    assert result.errors == []
    assert after.pop("battery_level") == 77
    assert "battery_level" not in before
    assert after == before


def test_schedule_round_trip():
    state = make_state()
    result = make_decoder().decode(state, {"cfg": {"sc": {"p": 20, "d": SCHEDULE_DAYS}}})

    assert result.errors == []
    assert result.value_of("time_extension") == 20
    assert result.value_of("schedule.monday.start_minute") == 5
    assert result.value_of("schedule.sunday.enable") is False
    assert json.loads(encode_schedule(state)) == {"sc": {"p": 20, "d": SCHEDULE_DAYS}}
    assert '"9:05"' in encode_schedule(state)


def test_schedule_with_six_days_is_rejected_whole():
    state = make_state()
    result = make_decoder().decode(state, {"cfg": {"sc": {"d": SCHEDULE_DAYS[:6]}}})
    assert [e.field for e in result.errors] == ["cfg.sc.d"]
    assert state.get_scheduled_day(DayOfWeek.MONDAY).duration == 0


def test_schedule_bad_day_keeps_time_extension():
    state = make_state()
    days = list(SCHEDULE_DAYS)
    days[3] = ["25:00", 10, 0]
    result = make_decoder().decode(state, {"cfg": {"sc": {"p": -100, "d": days}}})
    assert [e.field for e in result.errors] == ["cfg.sc.d"]
    assert state.time_extension == -100
    assert state.enable is False
    assert state.get_scheduled_day(DayOfWeek.MONDAY).duration == 0


def test_unknown_status_does_not_break_siblings():
    state = make_state()
    result = make_decoder().decode(state, {"dat": {"ls": 255, "le": 0, "bt": {"p": 50}}})
    assert result.errors == []
    assert state.status.code is StatusCode.UNKNOWN
    assert state.status.raw == 255
    assert result.status == state.status
    assert state.error.code is ErrorCode.NO_ERROR
    assert state.get_telemetry("battery_level") == 50


def test_unknown_error_code():
    state = make_state()
    make_decoder().decode(state, {"dat": {"le": 99}})
    assert state.error.code is ErrorCode.UNKNOWN
    assert state.error.raw == 99


def test_capability_gate_scenario():
    state = make_state(lock=False, multi_zone=True)
    before = state.snapshot()

    result = make_decoder().decode(state, {"dat": {"lk": 1}, "cfg": {"mz": [10, 20, 30, 40]}})

    assert state.locked is before["locked"]
    assert state.get_zone_meters() == [10, 20, 30, 40]
    assert state.multizone_enable is True
    assert result.value_of("zone_meters") == [10, 20, 30, 40]
    assert result.value_of("multizone_enable") is True
    with pytest.raises(KeyError):
        result.value_of("locked")


def test_lock_decoded_when_supported():
    state = make_state(lock=True)
    make_decoder().decode(state, {"dat": {"lk": 1}})
    assert state.locked is True


def test_multizone_fields_skipped_without_capability():
    state = make_state(multi_zone=False)
    result = make_decoder().decode(state, {"cfg": {"mz": [1, 2, 3, 4], "mzv": [1] * 10}})
    assert result.changes == []
    assert result.errors == []
    assert state.get_zone_meters() == [0, 0, 0, 0]


def test_mz_ignored_while_overlay_active():
    state = make_state()
    state.set_zone_meters([10, 20, 30, 40])
    state.open_overlay([10, 20, 30, 40])
    state.set_zone_meters([30, 30, 30, 30], override=True)
    make_decoder().decode(state, {"cfg": {"mz": [30, 30, 30, 30]}})
    assert state.overlay.saved_zone_meters == [10, 20, 30, 40]


def test_malformed_fields_are_skipped_individually():
    state = make_state()
    result = make_decoder().decode(state, {
        "dat": {
            "bt": {"p": "abc", "v": 19.5, "t": None},
            "dmp": [1.5, "x", 3.0],
            "st": {"b": 100, "d": [1], "wt": 200},
        },
    })
    assert sorted(e.field for e in result.errors) == ["dat.bt.p", "dat.bt.t", "dat.dmp[1]", "dat.st.d"]
    assert state.get_telemetry("battery_voltage") == pytest.approx(19.5)
    assert state.get_telemetry("pitch") == pytest.approx(1.5)
    assert state.get_telemetry("roll") is None
    assert state.get_telemetry("yaw") == pytest.approx(3.0)
    assert state.get_telemetry("total_blade_time") == 100
    assert state.get_telemetry("total_time") == 200


def test_short_orientation_array():
    state = make_state()
    result = make_decoder().decode(state, {"dat": {"dmp": [2.0]}})
    assert result.errors == []
    assert state.get_telemetry("pitch") == pytest.approx(2.0)
    assert state.get_telemetry("roll") is None


def test_section_not_an_object():
    state = make_state()
    result = make_decoder().decode(state, {"cfg": "x", "dat": {"bt": {"p": 5}}})
    assert [e.field for e in result.errors] == ["cfg"]
    assert state.get_telemetry("battery_level") == 5


def test_device_datetime_needs_both_parts():
    state = make_state()
    decoder = make_decoder()
    decoder.decode(state, {"cfg": {"dt": "21/06/2024"}})
    assert state.get_telemetry("device_datetime") is None

    decoder.decode(state, {"cfg": {"dt": "21/06/2024", "tm": "14:03:22"}})
    assert state.get_telemetry("device_datetime") == datetime(2024, 6, 21, 14, 3, 22, tzinfo=timezone.utc)

    result = decoder.decode(state, {"cfg": {"dt": "2024-06-21", "tm": "14:03:22"}})
    assert [e.field for e in result.errors] == ["cfg.dt"]


def test_last_zone_resolved_through_allocation():
    state = make_state()
    state.set_allocations([0, 1, 2, 3, 3, 2, 1, 0, 0, 1])
    decoder = make_decoder()
    decoder.decode(state, {"dat": {"lz": 4}})
    assert state.get_telemetry("last_zone") == 3

    result = decoder.decode(state, {"dat": {"lz": 12}})
    assert [e.field for e in result.errors] == ["dat.lz"]
    assert state.get_telemetry("last_zone") == 3


def test_allocations_and_rain_delay():
    state = make_state(rain_delay=True)
    result = make_decoder().decode(state, {"cfg": {"mzv": [0, 0, 1, 1, 2, 2, 3, 3, 0, 1], "rd": 60}})
    assert state.get_allocations() == [0, 0, 1, 1, 2, 2, 3, 3, 0, 1]
    assert state.rain_delay == 60
    assert result.value_of("rain_delay") == 60

    result = make_decoder().decode(state, {"cfg": {"mzv": [0, 9, 1, 1, 2, 2, 3, 3, 0, 1]}})
    assert [e.field for e in result.errors] == ["cfg.mzv"]
    assert state.get_allocations()[1] == 0


def test_identity_fields():
    state = make_state()
    make_decoder().decode(state, {
        "cfg": {"id": 3, "lg": "it", "cmd": 1, "sn": "X1"},
        "dat": {"mac": "AA:BB", "fw": "3.5", "rsi": -60, "bt": {"c": 1, "nr": 120}},
    })
    assert state.get_telemetry("config_id") == 3
    assert state.get_telemetry("language") == "it"
    assert state.get_telemetry("last_command") == 1
    assert state.get_telemetry("reported_serial") == "X1"
    assert state.get_telemetry("mac_address") == "AA:BB"
    assert state.get_telemetry("firmware") == pytest.approx(3.5)
    assert state.get_telemetry("wifi_quality") == -60
    assert state.get_telemetry("battery_charging") is True
    assert state.get_telemetry("battery_charge_cycles") == 120
