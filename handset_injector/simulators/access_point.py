"""Wi-Fi access point simulator with RSSI drift and roaming hand-offs."""

import logging
from typing import TYPE_CHECKING, Any, Optional, Union

from handset_injector.models import ConnectionState, MetricType, WifiChannel
from .base import BaseSimulator
from .drift import DriftLimits, DriftMode

if TYPE_CHECKING:
    from .device import Device

logger = logging.getLogger(__name__)

RSSI_LIMITS = DriftLimits(lower=-80, upper=-30, random_lower=-75, random_upper=-35)

UNKNOWN_SSID = "<unknown ssid>"


class AccessPoint(BaseSimulator):
    """
    Simulates a Wi-Fi access point.

    Models:
    - RSSI drift as seen by associated handsets
    - Band/channel selection from the Wi-Fi channel table
    - Connection state and one-shot roaming hand-off reporting
    """

    def __init__(
        self,
        ap_ssid: str = "ICU Unit",
        ap_bssid: str = "5c:0e:8b:c9:1b:00",
        ap_channel: Union[WifiChannel, str] = WifiChannel.CHANNEL40_50GHZ,
        ap_band: Union[WifiChannel, str, None] = None,
        ap_rssi: int = -34,
        ap_rssi_mode: Union[DriftMode, str] = DriftMode.STABLE,
        ap_rssi_step: int = 4,
        seed: Optional[int] = None,
    ):
        """
        Initialize access point simulator.

        Args:
            ap_ssid: Network name (registry key)
            ap_bssid: Radio MAC address
            ap_channel: Channel table entry (member or name)
            ap_band: Alternative spelling of ``ap_channel``; wins when given
            ap_rssi: Initial RSSI in dBm
            ap_rssi_mode: RSSI drift mode
            ap_rssi_step: RSSI change per sample for monotonic modes
            seed: Random seed for reproducibility
        """
        super().__init__(seed)
        self.ap_ssid = ap_ssid
        self.ap_bssid = ap_bssid
        self._wifi_channel = WifiChannel.parse(ap_band if ap_band is not None else ap_channel)
        self._rssi = self._drift(ap_rssi, ap_rssi_mode, ap_rssi_step, RSSI_LIMITS)

        self.connection_state = ConnectionState.DISCONNECTED
        self._handoff = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], seed: Optional[int] = None) -> "AccessPoint":
        """Create an access point from a definition record."""
        if "ap_ssid" not in data:
            raise ValueError("Access point definition is missing 'ap_ssid'")
        return cls(**cls._filter_settings(data), seed=seed)

    @property
    def wifi_channel(self) -> WifiChannel:
        return self._wifi_channel

    @wifi_channel.setter
    def wifi_channel(self, value: Union[WifiChannel, str]) -> None:
        self._wifi_channel = WifiChannel.parse(value)

    @property
    def band(self) -> int:
        """Centre frequency in MHz."""
        return self._wifi_channel.band

    @band.setter
    def band(self, value: int) -> None:
        self._wifi_channel = WifiChannel.from_band(value)

    @property
    def channel(self) -> int:
        return self._wifi_channel.channel

    @channel.setter
    def channel(self, value: int) -> None:
        self._wifi_channel = WifiChannel.from_channel(value, family=self._wifi_channel.family)

    @property
    def rssi(self):
        """The RSSI drift value (read without advancing it)."""
        return self._rssi

    @property
    def handoff_pending(self) -> bool:
        return self._handoff

    def sample_rssi(self) -> int:
        """Advance and return the RSSI."""
        return self._rssi.sample()

    def connect(self, device: "Device") -> None:
        """
        Record a device association.

        Marks both the device and this AP connected and arms a hand-off so
        the next network metrics sample reports a roam.
        """
        device.connection_status = ConnectionState.CONNECTED
        self.connection_state = ConnectionState.CONNECTED
        self._handoff = True
        logger.debug("AP '%s' accepted device %s", self.ap_ssid, device.device_serial_number)

    def disconnect(self) -> None:
        self.connection_state = ConnectionState.DISCONNECTED

    def consume_handoff(self) -> bool:
        """Return the pending hand-off flag and clear it."""
        pending = self._handoff
        self._handoff = False
        return pending

    def selected_ap(
        self, candidates: list[dict[str, Any]], timestamp: Optional[int] = None
    ) -> dict[str, Any]:
        """
        Build a network metrics document for a device associated to this AP.

        Consumes the pending hand-off: the roam duration, network type and
        connection status are reported at most once per ``connect``.

        Args:
            candidates: Candidate AP summaries seen in the device's scan
            timestamp: Epoch milliseconds; defaults to now

        Returns:
            NETWORK_METRICS document
        """
        handoff = self.consume_handoff()

        metrics: dict[str, Any] = {"network_candidate_aps": list(candidates)}
        if handoff:
            metrics["roam_handoff_ms"] = self._random.randrange(500)
        metrics["ap_band"] = self.band
        metrics["ap_channel"] = self.channel
        metrics["ap_bssid"] = self.ap_bssid
        metrics["ap_ssid"] = self.ap_ssid if candidates else UNKNOWN_SSID
        metrics["ap_rssi"] = self.sample_rssi()
        if handoff:
            metrics["network_type"] = "WIFI"
            metrics["connection_status"] = self.connection_state.value
        metrics["timestamp"] = self._timestamp(timestamp)
        metrics["type"] = MetricType.NETWORK.value
        return metrics

    def candidate_summary(self) -> dict[str, Any]:
        """Descriptor used when this AP shows up in another AP's scan list."""
        return {
            "bssid": self.ap_bssid,
            "rssi": self.sample_rssi(),
            "ap_ssid": self.ap_ssid,
        }

    def __repr__(self) -> str:
        return (
            f"AccessPoint(ssid={self.ap_ssid!r}, bssid={self.ap_bssid!r}, "
            f"channel={self._wifi_channel.name}, rssi={self._rssi.current}, "
            f"handoff={self._handoff})"
        )
