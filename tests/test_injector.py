"""Tests for the metrics injector and runner."""

import logging
from unittest.mock import Mock

import pytest

from handset_injector.config import CallConfig
from handset_injector.injector import InjectionRunner, MetricsInjector, parse_selectors
from handset_injector.models import MetricsSelector
from handset_injector.registry import EntityRegistry, JsonEntitySource


@pytest.fixture
def registry(data_dir):
    registry = EntityRegistry(JsonEntitySource(data_dir), seed=11)
    registry.load_all()
    return registry


@pytest.fixture
def mock_transport():
    transport = Mock()
    transport.topic_for.side_effect = lambda serial: f"devices/spectralink/{serial}"
    transport.publish.return_value = True
    return transport


@pytest.fixture
def injector(registry, mock_transport):
    return MetricsInjector(registry, mock_transport)


@pytest.fixture
def device(registry):
    return registry.get_device("DEV-1")


def types_of(device):
    return [doc["type"] for doc in device.pending_metrics]


class TestParseSelectors:
    """Tests for selector parsing."""

    def test_all_expands(self):
        """Test ALL expands to the periodic selectors."""
        assert parse_selectors(["ALL"]) == [
            MetricsSelector.DEVICE,
            MetricsSelector.BATTERY,
            MetricsSelector.NETWORK,
            MetricsSelector.CALL,
        ]

    def test_names_are_case_insensitive(self):
        """Test lower-case names are accepted."""
        assert parse_selectors(["wifi_scan"]) == [MetricsSelector.WIFI_SCAN]

    def test_duplicates_removed(self):
        """Test repeated selectors are sampled once."""
        assert parse_selectors(["DEVICE", "ALL", MetricsSelector.DEVICE])[0] == MetricsSelector.DEVICE
        assert len(parse_selectors(["DEVICE", "ALL"])) == 4

    def test_unknown_selector(self):
        """Test unknown names are rejected."""
        with pytest.raises(ValueError, match="Unknown metrics selector"):
            parse_selectors(["TEMPERATURE"])


class TestMetricsInjectorSample:
    """Tests for buffering documents."""

    def test_all_without_call(self, injector, device):
        """Test ALL buffers device, battery and network documents."""
        assert injector.sample(device, timestamp=1000) == 3
        assert types_of(device) == ["DEVICE_METRICS", "BATTERY_METRICS", "NETWORK_METRICS"]
        assert {doc["timestamp"] for doc in device.pending_metrics} == {1000}

    def test_all_with_call(self, injector, device):
        """Test ALL adds call details while a call is active."""
        injector.start_call(device)
        device.clear_buffer()
        assert injector.sample(device) == 4
        assert types_of(device)[-1] == "CALL_METRICS"

    def test_explicit_call_without_call(self, injector, device):
        """Test an explicit CALL selector buffers nothing without a call."""
        assert injector.sample(device, ["CALL"]) == 0
        assert device.pending_metrics == []

    def test_ip_address(self, injector, device):
        """Test the IP address selector."""
        assert injector.sample(device, [MetricsSelector.IP_ADDRESS]) == 1
        assert "device_ip_address" in device.pending_metrics[0]

    def test_in_use(self, injector, device):
        """Test the in-use marker."""
        assert injector.sample(device, ["IN_USE"]) == 1
        assert device.pending_metrics[0]["device_is_in_use"] is True

    def test_wifi_scan(self, injector, device):
        """Test a Wi-Fi scan buffers start and completion."""
        assert injector.sample(device, ["WIFI_SCAN"]) == 2
        assert [doc["wifi_state"] for doc in device.pending_metrics] == ["scan_start", "scan_complete"]

    def test_bluetooth_scan(self, injector, device):
        """Test a Bluetooth scan buffers start and completion."""
        assert injector.sample(device, ["BLUETOOTH_SCAN"]) == 2

    def test_barcode_scan(self, injector, device):
        """Test a barcode scan buffers decode, result and idle."""
        assert injector.sample(device, ["BARCODE_SCAN"]) == 3
        docs = device.pending_metrics
        assert docs[0]["barcode_state"] == "BARCODE_STATE_DECODE"
        assert "barcode" in docs[1]
        assert docs[2]["barcode_state"] == "BARCODE_STATE_IDLE"

    def test_battery_events_need_battery(self, injector, device, caplog):
        """Test battery event selectors buffer nothing without a battery."""
        device.remove_battery()
        with caplog.at_level(logging.ERROR):
            assert injector.sample(device, ["WIFI_SCAN"]) == 0
        assert "No battery inserted" in caplog.text

    def test_network_needs_ap(self, injector, device):
        """Test a disconnected device skips the network document."""
        device.disconnect_wifi()
        assert injector.sample(device) == 2
        assert "NETWORK_METRICS" not in types_of(device)

    def test_unknown_selector(self, injector, device):
        """Test unknown selectors are rejected."""
        with pytest.raises(ValueError):
            injector.sample(device, ["NOPE"])


class TestMetricsInjectorCalls:
    """Tests for call control."""

    def test_start_call_buffers_setup(self, injector, device):
        """Test starting a call buffers the begin and answer events."""
        call = injector.start_call(device, "incoming", timestamp=5)
        assert call is device.current_call
        assert [doc["event"] for doc in device.pending_metrics] == [
            "CALL_STATE_INCOMING",
            "CALL_STATE_CONFIRMED",
        ]

    def test_start_call_uses_call_config(self, registry, mock_transport, device):
        """Test call sampling defaults come from the call config."""
        injector = MetricsInjector(registry, mock_transport, CallConfig(25, 2))
        call = injector.start_call(device)
        assert call.expected_packets == 50

    def test_start_call_without_ap(self, injector, device):
        """Test no events are buffered when the call cannot start."""
        device.disconnect_wifi()
        assert injector.start_call(device) is None
        assert device.pending_metrics == []

    def test_end_call(self, injector, device):
        """Test ending a call buffers the teardown event."""
        injector.start_call(device)
        assert injector.end_call(device) is True
        assert device.pending_metrics[-1]["event"] == "CALL_STATE_DISCONNECTED"
        assert device.current_call is None

    def test_end_call_without_call(self, injector, device):
        """Test ending without a call buffers nothing."""
        assert injector.end_call(device) is False

    def test_flush(self, injector, device, mock_transport):
        """Test flushing publishes the device's batch."""
        injector.sample(device)
        assert injector.flush(device) is True
        topic, payload = mock_transport.publish.call_args.args
        assert topic == "devices/spectralink/DEV-1"
        assert len(payload["data"]) == 3


class TestInjectionRunner:
    """Tests for InjectionRunner."""

    def test_creation(self, injector):
        """Test runner validates its selectors."""
        runner = InjectionRunner(injector, ["device", "battery"])
        assert runner.selectors == [MetricsSelector.DEVICE, MetricsSelector.BATTERY]
        with pytest.raises(ValueError):
            InjectionRunner(injector, ["bogus"])

    def test_run_once(self, injector, mock_transport):
        """Test a pass flushes every device."""
        runner = InjectionRunner(injector)
        results = runner.run_once()
        assert results == {"DEV-1": True, "DEV-2": True}
        assert mock_transport.publish.call_count == 2

    def test_run_once_reports_failures(self, injector, mock_transport, registry):
        """Test failed flushes are reported per device."""
        mock_transport.publish.return_value = False
        results = InjectionRunner(injector).run_once()
        assert results == {"DEV-1": False, "DEV-2": False}
        assert registry.get_device("DEV-1").pending_metrics

    def test_run_continuous_with_duration(self, injector, mock_transport):
        """Test a zero duration runs a single pass."""
        runner = InjectionRunner(injector)
        runner.run_continuous(interval_seconds=0, duration_seconds=0)
        assert mock_transport.publish.call_count == 2
        assert runner._running is False

    def test_stop(self, injector):
        """Test runner can be stopped."""
        runner = InjectionRunner(injector)
        runner._running = True
        runner.stop()
        assert runner._running is False
