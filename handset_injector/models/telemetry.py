"""Value types and wire shapes for injected handset telemetry."""

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class MetricType(str, Enum):
    """Type tag carried by every metric document."""

    DEVICE = "DEVICE_METRICS"
    BATTERY = "BATTERY_METRICS"
    NETWORK = "NETWORK_METRICS"
    CALL = "CALL_METRICS"


class MetricsSelector(str, Enum):
    """Which documents a sampling pass should buffer."""

    ALL = "ALL"
    DEVICE = "DEVICE"
    BATTERY = "BATTERY"
    NETWORK = "NETWORK"
    CALL = "CALL"
    IN_USE = "IN_USE"
    WIFI_SCAN = "WIFI_SCAN"
    BLUETOOTH_SCAN = "BLUETOOTH_SCAN"
    IP_ADDRESS = "IP_ADDRESS"
    BARCODE_SCAN = "BARCODE_SCAN"


class ConnectionState(str, Enum):
    """Wi-Fi association state of a device or access point."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class CallDirection(Enum):
    """Call direction with its begin-event tag and reported direction."""

    OUTGOING = ("CALL_STATE_CALLING", "outgoing")
    INCOMING = ("CALL_STATE_INCOMING", "incoming")

    def __init__(self, event: str, direction: str) -> None:
        self.event = event
        self.direction = direction


class DeviceModel(Enum):
    """Supported handset models.

    The series number gates which fields a device or its battery report:
    series 92 (Orion) has no secondary cell, series 97 has no dummy
    interface, series 95 exposes the extra p2p/bond/wifi-aware interfaces.
    """

    VERSITY_9540 = ("Versity ", "9540", 95)
    VERSITY_9553 = ("Versity ", "9553", 95)
    VERSITY_9640 = ("Versity ", "9640", 95)
    VERSITY_9653 = ("Versity ", "9653", 95)
    VERSITY_9740 = ("Versity ", "9740", 97)
    VERSITY_9753 = ("Versity ", "9753", 97)
    ORION_9240 = ("VC", "9240", 92)
    ORION_9253 = ("VC", "9253", 92)

    def __init__(self, platform: str, model_code: str, series: int) -> None:
        self.platform = platform
        self.model_code = model_code
        self.series = series

    @property
    def full_model(self) -> str:
        return self.platform + self.model_code

    @property
    def reports_imei(self) -> bool:
        return self in (DeviceModel.VERSITY_9653, DeviceModel.VERSITY_9753)


class WifiChannel(Enum):
    """Wi-Fi channels with their centre frequency (MHz).

    Band and channel are one setting: picking either selects a member of
    this table and the other value follows from it.
    """

    CHANNEL1_24GHZ = (2412, 1)
    CHANNEL2_24GHZ = (2417, 2)
    CHANNEL3_24GHZ = (2422, 3)
    CHANNEL4_24GHZ = (2427, 4)
    CHANNEL5_24GHZ = (2432, 5)
    CHANNEL6_24GHZ = (2437, 6)
    CHANNEL7_24GHZ = (2442, 7)
    CHANNEL8_24GHZ = (2447, 8)
    CHANNEL9_24GHZ = (2452, 9)
    CHANNEL10_24GHZ = (2457, 10)
    CHANNEL11_24GHZ = (2462, 11)
    CHANNEL12_24GHZ = (2467, 12)
    CHANNEL13_24GHZ = (2472, 13)

    CHANNEL36_50GHZ = (5180, 36)
    CHANNEL40_50GHZ = (5200, 40)
    CHANNEL44_50GHZ = (5220, 44)
    CHANNEL48_50GHZ = (5240, 48)
    CHANNEL52_50GHZ = (5260, 52)
    CHANNEL56_50GHZ = (5280, 56)
    CHANNEL60_50GHZ = (5300, 60)
    CHANNEL64_50GHZ = (5320, 64)
    CHANNEL100_50GHZ = (5500, 100)
    CHANNEL104_50GHZ = (5520, 104)
    CHANNEL108_50GHZ = (5540, 108)
    CHANNEL112_50GHZ = (5560, 112)
    CHANNEL116_50GHZ = (5580, 116)
    CHANNEL120_50GHZ = (5600, 120)
    CHANNEL124_50GHZ = (5620, 124)
    CHANNEL128_50GHZ = (5640, 128)
    CHANNEL132_50GHZ = (5660, 132)
    CHANNEL136_50GHZ = (5680, 136)
    CHANNEL140_50GHZ = (5700, 140)
    CHANNEL144_50GHZ = (5720, 144)
    CHANNEL149_50GHZ = (5745, 149)
    CHANNEL153_50GHZ = (5765, 153)
    CHANNEL157_50GHZ = (5785, 157)
    CHANNEL161_50GHZ = (5805, 161)
    CHANNEL165_50GHZ = (5825, 165)

    CHANNEL1_60GHZ = (5955, 1)
    CHANNEL5_60GHZ = (5975, 5)
    CHANNEL9_60GHZ = (5995, 9)
    CHANNEL13_60GHZ = (6015, 13)
    CHANNEL17_60GHZ = (6035, 17)
    CHANNEL21_60GHZ = (6055, 21)
    CHANNEL25_60GHZ = (6075, 25)
    CHANNEL29_60GHZ = (6095, 29)
    CHANNEL33_60GHZ = (6115, 33)
    CHANNEL37_60GHZ = (6135, 37)
    CHANNEL41_60GHZ = (6155, 41)
    CHANNEL45_60GHZ = (6175, 45)
    CHANNEL49_60GHZ = (6195, 49)
    CHANNEL53_60GHZ = (6215, 53)
    CHANNEL57_60GHZ = (6235, 57)
    CHANNEL61_60GHZ = (6255, 61)
    CHANNEL65_60GHZ = (6275, 65)
    CHANNEL69_60GHZ = (6295, 69)
    CHANNEL73_60GHZ = (6315, 73)
    CHANNEL77_60GHZ = (6335, 77)
    CHANNEL81_60GHZ = (6355, 81)
    CHANNEL85_60GHZ = (6375, 85)
    CHANNEL89_60GHZ = (6395, 89)
    CHANNEL93_60GHZ = (6415, 93)
    CHANNEL97_60GHZ = (6435, 97)
    CHANNEL101_60GHZ = (6455, 101)
    CHANNEL105_60GHZ = (6475, 105)
    CHANNEL109_60GHZ = (6495, 109)
    CHANNEL113_60GHZ = (6515, 113)
    CHANNEL117_60GHZ = (6535, 117)
    CHANNEL121_60GHZ = (6555, 121)
    CHANNEL125_60GHZ = (6575, 125)
    CHANNEL129_60GHZ = (6595, 129)
    CHANNEL133_60GHZ = (6615, 133)
    CHANNEL137_60GHZ = (6635, 137)
    CHANNEL141_60GHZ = (6655, 141)
    CHANNEL145_60GHZ = (6675, 145)
    CHANNEL149_60GHZ = (6695, 149)
    CHANNEL153_60GHZ = (6715, 153)
    CHANNEL157_60GHZ = (6735, 157)
    CHANNEL161_60GHZ = (6755, 161)
    CHANNEL165_60GHZ = (6775, 165)
    CHANNEL169_60GHZ = (6795, 169)
    CHANNEL173_60GHZ = (6815, 173)
    CHANNEL177_60GHZ = (6835, 177)
    CHANNEL181_60GHZ = (6855, 181)
    CHANNEL185_60GHZ = (6875, 185)
    CHANNEL189_60GHZ = (6895, 189)
    CHANNEL193_60GHZ = (6915, 193)
    CHANNEL197_60GHZ = (6935, 197)
    CHANNEL201_60GHZ = (6955, 201)
    CHANNEL205_60GHZ = (6975, 205)
    CHANNEL209_60GHZ = (6995, 209)
    CHANNEL213_60GHZ = (7015, 213)
    CHANNEL217_60GHZ = (7035, 217)
    CHANNEL221_60GHZ = (7055, 221)
    CHANNEL225_60GHZ = (7075, 225)
    CHANNEL229_60GHZ = (7095, 229)
    CHANNEL233_60GHZ = (7115, 233)

    def __init__(self, band: int, channel: int) -> None:
        self.band = band
        self.channel = channel

    @property
    def family(self) -> str:
        """Spectrum the channel belongs to: 24GHZ, 50GHZ or 60GHZ."""
        return self.name.rsplit("_", 1)[1]

    @classmethod
    def from_band(cls, band: int) -> "WifiChannel":
        """Look up a channel by centre frequency (MHz)."""
        for member in cls:
            if member.band == band:
                return member
        raise ValueError(f"Unknown Wi-Fi band: {band}")

    @classmethod
    def from_channel(cls, channel: int, family: Optional[str] = None) -> "WifiChannel":
        """Look up a channel number, preferring ``family`` when it is ambiguous."""
        matches = [member for member in cls if member.channel == channel]
        if not matches:
            raise ValueError(f"Unknown Wi-Fi channel: {channel}")
        for member in matches:
            if member.family == family:
                return member
        return matches[0]

    @classmethod
    def parse(cls, value: Union["WifiChannel", str]) -> "WifiChannel":
        """Accept a member or its name, e.g. ``"CHANNEL40_50GHZ"``."""
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise ValueError(f"Unknown Wi-Fi channel: {value}") from None


@dataclass
class FlushBatch:
    """One outbound message: every buffered document of a single device."""

    serial: str
    data: list[dict[str, Any]]
    flushed_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {
            "serial": self.serial,
            "flushedAt": self.flushed_at,
            "data": list(self.data),
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict) -> "FlushBatch":
        """Create FlushBatch from a decoded payload."""
        return cls(
            serial=data["serial"],
            data=list(data["data"]),
            flushed_at=int(data["flushedAt"]),
        )
