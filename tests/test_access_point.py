"""Tests for the access point simulator."""

import logging

import pytest

from handset_injector.models import ConnectionState, WifiChannel
from handset_injector.simulators import AccessPoint, DriftMode
from handset_injector.simulators.access_point import UNKNOWN_SSID


class TestAccessPointCreation:
    """Tests for AccessPoint construction."""

    def test_defaults(self):
        """Test default AP settings."""
        ap = AccessPoint(seed=1)
        assert ap.ap_ssid == "ICU Unit"
        assert ap.wifi_channel == WifiChannel.CHANNEL40_50GHZ
        assert ap.band == 5200
        assert ap.channel == 40
        assert ap.rssi.current == -34
        assert ap.connection_state == ConnectionState.DISCONNECTED
        assert not ap.handoff_pending

    def test_from_dict(self):
        """Test creation from a definition record."""
        ap = AccessPoint.from_dict(
            {"ap_ssid": "Lab", "ap_channel": "CHANNEL6_24GHZ", "ap_rssi": -50, "ap_rssi_mode": "RANDOM"}
        )
        assert ap.ap_ssid == "Lab"
        assert ap.band == 2437
        assert ap.rssi.mode == DriftMode.RANDOM

    def test_from_dict_requires_ssid(self):
        """Test a record without an SSID is rejected."""
        with pytest.raises(ValueError, match="ap_ssid"):
            AccessPoint.from_dict({"ap_bssid": "aa:bb:cc:dd:ee:ff"})

    def test_from_dict_unknown_key_is_logged(self, caplog):
        """Test unknown keys are logged and skipped."""
        with caplog.at_level(logging.ERROR):
            ap = AccessPoint.from_dict({"ap_ssid": "Lab", "ap_colour": "blue"})
        assert ap.ap_ssid == "Lab"
        assert "Invalid key sent to AccessPoint: ap_colour" in caplog.text

    def test_ap_band_overrides_channel(self):
        """Test ap_band takes precedence over ap_channel."""
        ap = AccessPoint(ap_channel="CHANNEL40_50GHZ", ap_band="CHANNEL11_24GHZ")
        assert ap.channel == 11

    def test_unknown_channel_raises(self):
        """Test an unknown channel name is rejected."""
        with pytest.raises(ValueError, match="Unknown Wi-Fi channel"):
            AccessPoint(ap_channel="CHANNEL999_50GHZ")


class TestAccessPointRadio:
    """Tests for band/channel selection and RSSI."""

    def test_band_setter_selects_channel(self):
        """Test setting the band picks the matching channel."""
        ap = AccessPoint()
        ap.band = 2437
        assert ap.channel == 6
        assert ap.wifi_channel == WifiChannel.CHANNEL6_24GHZ

    def test_channel_setter_stays_in_family(self):
        """Test setting the channel keeps the current spectrum."""
        ap = AccessPoint(ap_channel="CHANNEL40_50GHZ")
        ap.channel = 149
        assert ap.band == 5745

    def test_stable_rssi(self):
        """Test stable RSSI never moves."""
        ap = AccessPoint(ap_rssi=-40)
        assert {ap.sample_rssi() for _ in range(10)} == {-40}

    def test_decreasing_rssi_clamps(self):
        """Test decreasing RSSI stops at -80 dBm."""
        ap = AccessPoint(ap_rssi=-70, ap_rssi_mode="DECREASING", ap_rssi_step=4)
        samples = [ap.sample_rssi() for _ in range(5)]
        assert samples == [-74, -78, -80, -80, -80]

    def test_random_rssi_in_window(self):
        """Test random RSSI stays within the random window."""
        ap = AccessPoint(ap_rssi=-50, ap_rssi_mode="RANDOM", seed=9)
        for _ in range(100):
            assert -75 <= ap.sample_rssi() <= -35


class TestAccessPointHandoff:
    """Tests for connection state and one-shot hand-offs."""

    def test_connect_marks_both_sides(self, access_point, device):
        """Test connect marks device and AP connected and arms a hand-off."""
        access_point.connect(device)
        assert device.connection_status == ConnectionState.CONNECTED
        assert access_point.connection_state == ConnectionState.CONNECTED
        assert access_point.handoff_pending

    def test_handoff_reported_once(self, access_point, device, other_access_point):
        """Test the roam fields appear only in the first sample after connect."""
        access_point.connect(device)
        candidates = [other_access_point.candidate_summary()]

        first = access_point.selected_ap(candidates, timestamp=1000)
        assert 0 <= first["roam_handoff_ms"] < 500
        assert first["network_type"] == "WIFI"
        assert first["connection_status"] == "connected"
        assert not access_point.handoff_pending

        second = access_point.selected_ap(candidates, timestamp=2000)
        assert "roam_handoff_ms" not in second
        assert "network_type" not in second
        assert "connection_status" not in second

    def test_reconnect_rearms_handoff(self, access_point, device):
        """Test a new connect reports a new hand-off."""
        access_point.connect(device)
        access_point.consume_handoff()
        access_point.connect(device)
        assert access_point.consume_handoff() is True
        assert access_point.consume_handoff() is False

    def test_selected_ap_document(self, access_point, other_access_point):
        """Test the network document fields."""
        doc = access_point.selected_ap([other_access_point.candidate_summary()], timestamp=1234)
        assert doc["ap_ssid"] == "ICU Unit"
        assert doc["ap_bssid"] == "5c:0e:8b:c9:1b:00"
        assert doc["ap_band"] == 5200
        assert doc["ap_channel"] == 40
        assert doc["ap_rssi"] == -34
        assert doc["timestamp"] == 1234
        assert doc["type"] == "NETWORK_METRICS"
        assert doc["network_candidate_aps"] == [
            {"bssid": "5c:0e:8b:c9:3c:20", "rssi": -60, "ap_ssid": "Pharmacy"}
        ]

    def test_no_candidates_reports_unknown_ssid(self, access_point):
        """Test an empty scan list reports the unknown SSID sentinel."""
        doc = access_point.selected_ap([])
        assert doc["ap_ssid"] == UNKNOWN_SSID
        assert doc["network_candidate_aps"] == []

    def test_disconnect(self, access_point, device):
        """Test disconnect clears the AP's connection state."""
        access_point.connect(device)
        access_point.disconnect()
        assert access_point.connection_state == ConnectionState.DISCONNECTED
