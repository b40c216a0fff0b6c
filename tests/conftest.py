"""Shared fixtures for the injector test suite."""

import json

import pytest

from handset_injector.models import ReferenceData
from handset_injector.simulators import AccessPoint, Battery, Device

ENV_VARS = (
    "MQTT_BROKER_HOST",
    "MQTT_BROKER_PORT",
    "MQTT_USERNAME",
    "MQTT_PASSWORD",
    "MQTT_VENDOR",
    "API_BASE_URL",
    "API_TOKEN",
    "LOCATION_NAME",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of config defaults."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def reference_data():
    return ReferenceData(
        top_apps=[{"package_name": "com.spectralink.slnk.sip", "usage_pct": 40.0}],
        app_versions={
            95: {"com.spectralink.slnk.sip": "13.3.0.1576"},
            97: {"com.spectralink.amie.agent": "2.4.1.118"},
            92: {"com.spectralink.slnk.sip": "11.2.0.832"},
        },
    )


@pytest.fixture
def access_point():
    return AccessPoint(ap_ssid="ICU Unit", ap_bssid="5c:0e:8b:c9:1b:00", seed=1)


@pytest.fixture
def other_access_point():
    return AccessPoint(ap_ssid="Pharmacy", ap_bssid="5c:0e:8b:c9:3c:20", ap_rssi=-60, seed=2)


@pytest.fixture
def battery(reference_data):
    return Battery(battery_serial_num="VK22082416549", reference_data=reference_data, seed=3)


@pytest.fixture
def device(reference_data):
    return Device(device_serial_number="cnnc03bp5pf2169", reference_data=reference_data, seed=4)


@pytest.fixture
def connected_device(device, access_point, battery):
    """A device on an AP with a battery inserted."""
    device.connect_wifi(access_point)
    device.insert_battery(battery)
    return device


@pytest.fixture
def data_dir(tmp_path):
    """A definitions directory with two APs, two batteries and two devices."""
    aps = [
        {"ap_ssid": "X", "ap_bssid": "aa:aa:aa:aa:aa:01", "ap_rssi": -40},
        {"ap_ssid": "Y", "ap_bssid": "aa:aa:aa:aa:aa:02", "ap_rssi": -55},
    ]
    batteries = [
        {"battery_serial_num": "BAT-1", "level": 90},
        {"battery_serial_num": "BAT-2", "level": 45},
    ]
    devices = [
        {
            "device_serial_number": "DEV-1",
            "designated_model": "VERSITY_9740",
            "designated_ap": "X",
            "designated_battery": "BAT-1",
        },
        {
            "device_serial_number": "DEV-2",
            "designated_model": "ORION_9240",
            "designated_ap": "Y",
            "designated_battery": "BAT-2",
        },
    ]
    (tmp_path / "ap_defaults.json").write_text(json.dumps(aps))
    (tmp_path / "battery_defaults.json").write_text(json.dumps(batteries))
    (tmp_path / "device_defaults.json").write_text(json.dumps(devices))
    (tmp_path / "top_apps.json").write_text(json.dumps([{"package_name": "com.example", "usage_pct": 12.0}]))
    (tmp_path / "app_versions_x1.json").write_text(json.dumps({"com.example": "1.0"}))
    return tmp_path
