"""Tests for the entity registry and its JSON source."""

import json
import logging
import threading

import pytest

from handset_injector.registry import DEFAULT_DATA_DIR, EntityRegistry, JsonEntitySource
from handset_injector.simulators import AccessPoint


@pytest.fixture
def registry(data_dir):
    return EntityRegistry(JsonEntitySource(data_dir), seed=21)


def warnings_containing(caplog, text):
    return [r for r in caplog.records if r.levelno == logging.WARNING and text in r.getMessage()]


class TestJsonEntitySource:
    """Tests for reading definition files."""

    def test_defaults_to_packaged_data(self):
        """Test the packaged definitions are used by default."""
        source = JsonEntitySource()
        assert source.data_dir == DEFAULT_DATA_DIR
        assert len(source.read_devices()) >= 1

    def test_reads_records(self, data_dir):
        """Test definition arrays are returned as records."""
        source = JsonEntitySource(data_dir)
        assert [r["ap_ssid"] for r in source.read_access_points()] == ["X", "Y"]

    def test_rejects_non_array(self, tmp_path):
        """Test a definition file must hold an array."""
        (tmp_path / "ap_defaults.json").write_text('{"ap_ssid": "X"}')
        with pytest.raises(ValueError, match="JSON array"):
            JsonEntitySource(tmp_path).read_access_points()

    def test_reference_data(self, data_dir):
        """Test reference data is read from the same directory."""
        reference = JsonEntitySource(data_dir).read_reference_data()
        assert reference.top_apps == [{"package_name": "com.example", "usage_pct": 12.0}]
        assert reference.app_versions_for(97) == {"com.example": "1.0"}


class TestRegistryLoading:
    """Tests for loading collections."""

    def test_load_all(self, registry):
        """Test all collections load."""
        assert registry.load_all() is True
        assert registry.access_point_ids() == ["X", "Y"]
        assert registry.battery_ids() == ["BAT-1", "BAT-2"]
        assert registry.device_ids() == ["DEV-1", "DEV-2"]

    def test_load_packaged_defaults(self):
        """Test the packaged definitions load and wire cleanly."""
        registry = EntityRegistry(seed=1)
        assert registry.load_all() is True
        for device in registry.devices():
            assert device.current_ap is not None
            assert device.current_battery is not None

    def test_wiring(self, registry):
        """Test devices are wired to their designated AP and battery."""
        registry.load_all()
        device = registry.get_device("DEV-1")
        assert device.current_ap is registry.get_access_point("X")
        assert device.current_battery is registry.get_battery("BAT-1")
        assert registry.get_battery("BAT-1").housing_device is device

    def test_reference_data_reaches_entities(self, registry):
        """Test loaded reference data is handed to batteries and devices."""
        registry.load_all()
        assert registry.get_battery("BAT-1").top_apps == [{"package_name": "com.example", "usage_pct": 12.0}]
        assert registry.get_device("DEV-1").app_versions == {"com.example": "1.0"}

    def test_missing_ap_logs_one_warning(self, data_dir, caplog):
        """Test an absent designated AP leaves the device unattached with one warning."""
        devices = [{"device_serial_number": "LONELY", "designated_ap": "Z", "designated_battery": "BAT-1"}]
        (data_dir / "device_defaults.json").write_text(json.dumps(devices))
        registry = EntityRegistry(JsonEntitySource(data_dir))

        with caplog.at_level(logging.WARNING):
            registry.load_all()

        device = registry.get_device("LONELY")
        assert device.current_ap is None
        assert device.current_battery is not None
        assert len(warnings_containing(caplog, "No AP was available for device LONELY")) == 1
        assert not warnings_containing(caplog, "No battery was available")

    def test_missing_battery_logs_one_warning(self, data_dir, caplog):
        """Test an absent designated battery leaves the device without one."""
        devices = [{"device_serial_number": "NOBAT", "designated_ap": "X", "designated_battery": "BAT-9"}]
        (data_dir / "device_defaults.json").write_text(json.dumps(devices))
        registry = EntityRegistry(JsonEntitySource(data_dir))

        with caplog.at_level(logging.WARNING):
            registry.load_all()

        assert registry.get_device("NOBAT").current_battery is None
        assert len(warnings_containing(caplog, "No battery was available for device NOBAT")) == 1

    def test_bad_file_leaves_collection_intact(self, registry, data_dir, caplog):
        """Test a failed load keeps the previous collection."""
        registry.load_all()
        (data_dir / "ap_defaults.json").write_text("{ not json")

        with caplog.at_level(logging.ERROR):
            assert registry.load_access_points() is False
        assert registry.access_point_ids() == ["X", "Y"]
        assert "Could not load access points" in caplog.text

    def test_missing_identity_fails_whole_collection(self, registry, data_dir):
        """Test one record without an identity key rejects the file."""
        registry.load_all()
        batteries = [{"battery_serial_num": "BAT-3"}, {"level": 10}]
        (data_dir / "battery_defaults.json").write_text(json.dumps(batteries))

        assert registry.load_batteries() is False
        assert registry.battery_ids() == ["BAT-1", "BAT-2"]

    def test_missing_file(self, tmp_path):
        """Test a missing definitions file fails the load."""
        registry = EntityRegistry(JsonEntitySource(tmp_path))
        assert registry.load_devices() is False
        assert registry.device_ids() == []

    def test_unknown_key_still_loads(self, data_dir, caplog):
        """Test an unknown key is logged and the record still loads."""
        aps = [{"ap_ssid": "X", "ap_vendor": "acme"}]
        (data_dir / "ap_defaults.json").write_text(json.dumps(aps))
        registry = EntityRegistry(JsonEntitySource(data_dir))

        with caplog.at_level(logging.ERROR):
            assert registry.load_access_points() is True
        assert registry.access_point_ids() == ["X"]
        assert "Invalid key sent to AccessPoint: ap_vendor" in caplog.text

    def test_seeded_registries_match(self, data_dir):
        """Test the same seed gives the same generated values."""
        first = EntityRegistry(JsonEntitySource(data_dir), seed=5)
        second = EntityRegistry(JsonEntitySource(data_dir), seed=5)
        first.load_all()
        second.load_all()
        assert first.get_device("DEV-1").ip_address == second.get_device("DEV-1").ip_address
        assert first.get_device("DEV-2").mac_address == second.get_device("DEV-2").mac_address


class TestRegistryReload:
    """Tests for reloading a single device."""

    def test_reload_device(self, registry, data_dir):
        """Test one device is replaced and re-wired."""
        registry.load_all()
        untouched = registry.get_device("DEV-2")

        devices = json.loads((data_dir / "device_defaults.json").read_text())
        devices[0]["device_name"] = "Renamed"
        (data_dir / "device_defaults.json").write_text(json.dumps(devices))

        assert registry.reload_device("DEV-1") is True
        reloaded = registry.get_device("DEV-1")
        assert reloaded.device_name == "Renamed"
        assert reloaded.current_ap is registry.get_access_point("X")
        assert reloaded.current_battery is registry.get_battery("BAT-1")
        assert registry.get_device("DEV-2") is untouched

    def test_reload_unknown_serial(self, registry, caplog):
        """Test reloading a serial with no definition fails."""
        registry.load_all()
        with caplog.at_level(logging.ERROR):
            assert registry.reload_device("NOPE") is False
        assert "No device definition found" in caplog.text


class TestRegistryCollections:
    """Tests for lookups and edits."""

    def test_get_missing_entities(self, registry, caplog):
        """Test missing lookups log and return None."""
        with caplog.at_level(logging.ERROR):
            assert registry.get_device("missing") is None
            assert registry.get_battery("missing") is None
            assert registry.get_access_point("missing") is None
        assert "No phone present with the serial number missing" in caplog.text
        assert "No AP present with the SSID missing" in caplog.text

    def test_add_and_remove(self, registry):
        """Test entries can be added and removed."""
        ap = AccessPoint(ap_ssid="Temp")
        registry.add_access_point(ap)
        assert registry.get_access_point("Temp") is ap
        assert registry.remove_access_point("Temp") is ap
        assert registry.remove_access_point("Temp") is None

    def test_access_points_snapshot(self, registry):
        """Test the AP snapshot is independent of the registry."""
        registry.load_all()
        snapshot = registry.access_points()
        registry.remove_access_point("X")
        assert len(snapshot) == 2
        assert registry.access_point_ids() == ["Y"]

    def test_concurrent_loads(self, registry):
        """Test concurrent loads leave a complete collection."""
        registry.load_all()
        threads = [threading.Thread(target=registry.load_access_points) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert sorted(registry.access_point_ids()) == ["X", "Y"]


class TestTwoAccessPointScenario:
    """A device on one of two registered APs sees the other as a candidate."""

    def test_network_metrics_candidates(self, registry):
        """Test the device reports its own SSID and one candidate."""
        registry.load_all()
        device = registry.get_device("DEV-1")

        doc = device.network_metrics(registry.access_points())

        assert doc["ap_ssid"] == "X"
        assert doc["network_candidate_aps"] == [
            {"bssid": "aa:aa:aa:aa:aa:02", "rssi": -55, "ap_ssid": "Y"}
        ]
