"""Phone call simulator with packet loss, jitter and a call lifecycle."""

import logging
import uuid
from typing import TYPE_CHECKING, Any, Optional, Union

from handset_injector.models import CallDirection, MetricType
from .base import BaseSimulator
from .drift import DriftLimits, DriftMode

if TYPE_CHECKING:
    from .device import Device

logger = logging.getLogger(__name__)

MISSED_PACKETS_LIMITS = DriftLimits(lower=0, upper=80, random_lower=1, random_upper=50)
DROPPED_PACKETS_LIMITS = DriftLimits(lower=0, upper=150, random_lower=1, random_upper=50)
JITTER_LIMITS = DriftLimits(lower=1, upper=150, random_lower=1, random_upper=40)


class Call(BaseSimulator):
    """
    Simulates a voice call placed or received by a device.

    Lifecycle: begin -> confirmed -> details (repeatable) -> end. Phases are
    recorded but not enforced, so a call can be sampled in any order.

    Packet counters are session totals: every ``details`` sample adds the
    freshly drifted per-interval count to the running total, while the
    percentages describe only the latest interval.
    """

    def __init__(
        self,
        device: "Device",
        call_type: Union[CallDirection, str] = CallDirection.OUTGOING,
        packets_missed: int = 3,
        packets_missed_rate: int = 2,
        packets_missed_mode: Union[DriftMode, str] = DriftMode.STABLE,
        packets_missed_step: int = 5,
        packets_dropped: int = 1,
        packets_dropped_rate: int = 2,
        packets_dropped_mode: Union[DriftMode, str] = DriftMode.STABLE,
        packets_dropped_step: int = 5,
        jitter_ms: int = 6,
        jitter_ms_mode: Union[DriftMode, str] = DriftMode.STABLE,
        jitter_ms_step: int = 3,
        codec: str = "PCMU",
        burst_rate: int = 3,
        extension: str = "7152",
        expected_packets_per_second: int = 50,
        metrics_interval_seconds: int = 5,
        seed: Optional[int] = None,
    ):
        """
        Initialize call simulator.

        Args:
            device: Device that owns the call
            call_type: Call direction (member or name)
            packets_missed: Initial session total of missed packets
            packets_missed_rate: Initial missed packets per interval
            packets_dropped: Initial session total of dropped packets
            packets_dropped_rate: Initial dropped packets per interval
            jitter_ms: Initial jitter in milliseconds
            expected_packets_per_second: RTP packet rate used for percentages
            metrics_interval_seconds: Length of one sampling interval
            seed: Random seed for reproducibility
        """
        super().__init__(seed)
        if expected_packets_per_second <= 0 or metrics_interval_seconds <= 0:
            raise ValueError("expected_packets_per_second and metrics_interval_seconds must be positive")

        self.device = device
        if isinstance(call_type, str):
            call_type = CallDirection[call_type.upper()]
        self.call_type = call_type
        self.call_id = str(uuid.UUID(int=self._random.getrandbits(128), version=4))

        self.packets_missed = packets_missed
        self.packets_missed_pct = 0.0
        self._missed_rate = self._drift(
            packets_missed_rate, packets_missed_mode, packets_missed_step, MISSED_PACKETS_LIMITS
        )
        self.packets_dropped = packets_dropped
        self.packets_dropped_pct = 0.0
        self._dropped_rate = self._drift(
            packets_dropped_rate, packets_dropped_mode, packets_dropped_step, DROPPED_PACKETS_LIMITS
        )
        self.jitter_ms = self._drift(jitter_ms, jitter_ms_mode, jitter_ms_step, JITTER_LIMITS)

        self.codec = codec
        self.burst_rate = burst_rate
        self.extension = extension
        self.call_dropped = False
        self.expected_packets_per_second = expected_packets_per_second
        self.metrics_interval_seconds = metrics_interval_seconds
        self.phase = "created"

    @property
    def expected_packets(self) -> int:
        """Packets expected in one sampling interval."""
        return self.expected_packets_per_second * self.metrics_interval_seconds

    @property
    def missed_rate(self):
        return self._missed_rate

    @property
    def dropped_rate(self):
        return self._dropped_rate

    def _ap_rssi(self) -> Optional[int]:
        ap = self.device.current_ap
        if ap is None:
            logger.error(
                "Call %s on device %s has no AP to report RSSI from",
                self.call_id,
                self.device.device_serial_number,
            )
            return None
        return ap.sample_rssi()

    def _event(self, event: str, timestamp: Optional[int], **extra: Any) -> Optional[dict[str, Any]]:
        ap_rssi = self._ap_rssi()
        if ap_rssi is None:
            return None
        metrics: dict[str, Any] = {"call_id": self.call_id, "event": event}
        metrics.update(extra)
        metrics["timestamp"] = self._timestamp(timestamp)
        metrics["type"] = MetricType.CALL.value
        metrics["ap_rssi"] = ap_rssi
        return metrics

    def begin(self, timestamp: Optional[int] = None) -> Optional[dict[str, Any]]:
        """Call setup event: calling (outgoing) or incoming."""
        self.phase = "begin"
        return self._event(self.call_type.event, timestamp)

    def confirmed(self, timestamp: Optional[int] = None) -> Optional[dict[str, Any]]:
        """Call answered event."""
        self.phase = "confirmed"
        return self._event("CALL_STATE_CONFIRMED", timestamp)

    def details(self, timestamp: Optional[int] = None) -> Optional[dict[str, Any]]:
        """
        Sample one interval of call quality.

        Returns:
            CALL_METRICS document with session packet totals, the latest
            interval's loss percentages and jitter, or None without an AP
        """
        ap_rssi = self._ap_rssi()
        if ap_rssi is None:
            return None
        self.phase = "details"

        missed = self._missed_rate.sample()
        dropped = self._dropped_rate.sample()
        self.packets_missed += missed
        self.packets_dropped += dropped
        self.packets_missed_pct = missed / self.expected_packets
        self.packets_dropped_pct = dropped / self.expected_packets

        return {
            "call_id": self.call_id,
            "call_type": self.call_type.direction,
            "packets_missed": self.packets_missed,
            "packets_missed_pct": self.packets_missed_pct,
            "packets_dropped": self.packets_dropped,
            "packets_dropped_pct": self.packets_dropped_pct,
            "jitter_ms": self.jitter_ms.sample(),
            "codec": self.codec,
            "burst_rate": self.burst_rate,
            "extension": self.extension,
            "timestamp": self._timestamp(timestamp),
            "type": MetricType.CALL.value,
            "ap_rssi": ap_rssi,
        }

    def end(self, timestamp: Optional[int] = None) -> Optional[dict[str, Any]]:
        """Call teardown event, flagging whether the call was dropped."""
        self.phase = "end"
        return self._event("CALL_STATE_DISCONNECTED", timestamp, call_dropped=self.call_dropped)

    def __repr__(self) -> str:
        return (
            f"Call(call_id={self.call_id!r}, device={self.device.device_serial_number!r}, "
            f"direction={self.call_type.direction}, phase={self.phase})"
        )
