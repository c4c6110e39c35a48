"""Tests for the state and record models."""

from __future__ import annotations

import dataclasses
import ipaddress

import pytest

from elgato_keylight.errors import MalformedResponse
from elgato_keylight.models import (
    Device,
    DeviceState,
    IpProtocol,
    Preset,
    PresetValues,
    ServiceRecord,
    TemperatureRange,
    host_url,
)


def test_from_api():
    obj = {"numberOfLights": 1, "lights": [{"on": 1, "brightness": 3, "temperature": 191}]}
    assert DeviceState.from_api(obj) == DeviceState(on=True, brightness=3, temperature=191, number_of_lights=1)


def test_from_api_ignores_unknown_fields():
    obj = {
        "numberOfLights": 1,
        "lights": [{"on": 0, "brightness": 20, "temperature": 300, "hue": 10}],
        "extra": True,
    }
    state = DeviceState.from_api(obj)
    assert state == DeviceState(on=False, brightness=20, temperature=300)
    assert state.to_api() == {
        "numberOfLights": 1,
        "lights": [{"on": 0, "brightness": 20, "temperature": 300}],
    }


def test_number_of_lights_defaults_to_list_length():
    light = {"on": 1, "brightness": 50, "temperature": 200}
    assert DeviceState.from_api({"lights": [light, light]}).number_of_lights == 2


@pytest.mark.parametrize(
    "obj",
    [
        [],
        {},
        {"lights": []},
        {"lights": ["x"]},
        {"lights": [{"on": 1, "brightness": 3}]},
        {"lights": [{"on": 1, "brightness": "3", "temperature": 200}]},
        {"lights": [{"on": 1, "brightness": True, "temperature": 200}]},
        {"lights": [{"on": 1, "brightness": -1, "temperature": 200}]},
        {"lights": [{"on": 1, "brightness": 50, "temperature": 360}]},
        {"numberOfLights": 0, "lights": [{"on": 1, "brightness": 50, "temperature": 200}]},
    ],
)
def test_from_api_rejects_unexpected_shapes(obj):
    with pytest.raises(MalformedResponse):
        DeviceState.from_api(obj)


def test_to_api_writes_every_light():
    payload = DeviceState(on=True, brightness=40, temperature=250, number_of_lights=2).to_api()
    assert payload["numberOfLights"] == 2
    assert payload["lights"] == [{"on": 1, "brightness": 40, "temperature": 250}] * 2


def test_clamped():
    state = DeviceState(on=True, brightness=130, temperature=100)
    assert state.clamped() == DeviceState(on=True, brightness=100, temperature=143)
    assert DeviceState(brightness=-5, temperature=400).clamped() == DeviceState(brightness=0, temperature=344)
    # input untouched
    assert state.brightness == 130


def test_temperature_range():
    assert TemperatureRange().step == 20
    assert TemperatureRange(150, 350).step == 20
    assert TemperatureRange(143, 148).step == 0
    assert 200 in TemperatureRange()
    assert 142 not in TemperatureRange()
    with pytest.raises(ValueError):
        TemperatureRange(300, 200)


def test_temperature_kelvin():
    assert DeviceState(temperature=200).temperature_kelvin == 5000
    assert DeviceState(temperature=344).temperature_kelvin == 2907


def test_host_url():
    assert host_url("192.168.0.92", 9123) == "http://192.168.0.92:9123"
    assert host_url("fe80::1%eth0", 9123) == "http://[fe80::1%25eth0]:9123"


def test_preset_overrides():
    p = Preset(brightness=55, temperature=215, per_light={"left": PresetValues(40, 230), "AA:BB": PresetValues(10, 300)})
    assert p.values_for("right") == PresetValues(55, 215)
    assert p.values_for("left") == PresetValues(40, 230)
    assert p.values_for("left", device_id="AA:BB") == PresetValues(10, 300)


def test_device_holds_only_the_address():
    record = ServiceRecord(
        interface_name="enp6s0",
        internet_protocol=IpProtocol.V4,
        hostname="Elgato Key Light 8D7C",
        service_type="_elg._tcp",
        domain="local",
        resolved_name="Elgato Key Light 8D7C._elg._tcp.local",
        target_host="elgato-key-light-8d7c.local",
        ip=ipaddress.ip_address("192.168.0.92"),
        port=9123,
        raw_txt=('"md=Elgato Key Light 20GAK9901" "id=FF:6A:9D:30:B1:6E"',),
    )
    device = Device.from_record(record)
    assert [f.name for f in dataclasses.fields(device)] == ["name", "ip", "port", "device_id", "model"]
    assert device == Device("Elgato Key Light 8D7C", record.ip, 9123, "FF:6A:9D:30:B1:6E", "Elgato Key Light 20GAK9901")
