"""Handset simulator that assembles and buffers metric documents."""

import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from handset_injector.models import (
    CallDirection,
    ConnectionState,
    DeviceModel,
    FlushBatch,
    MetricType,
    ReferenceData,
)
from .access_point import AccessPoint
from .base import BaseSimulator
from .battery import Battery
from .call import Call
from .drift import DriftLimits, DriftMode

if TYPE_CHECKING:
    from handset_injector.transport import TelemetryTransport

logger = logging.getLogger(__name__)

CPU_LIMITS = DriftLimits(lower=0.1, upper=100.0)
RAM_LIMITS = DriftLimits(lower=20, upper=100)

VENDOR_MAC_PREFIX = "00:90:7A"


class Device(BaseSimulator):
    """
    Simulates a wireless handset.

    A device references one access point (shared with other devices), houses
    at most one battery and owns at most one active call. Metric documents
    are appended to a pending buffer and delivered together by ``flush``.
    """

    def __init__(
        self,
        device_serial_number: str = "cnnc03bp5pf2169",
        designated_model: Union[DeviceModel, str] = DeviceModel.VERSITY_9740,
        device_name: Optional[str] = None,
        device_os_revision: str = "13",
        device_sw_revision: str = "13.3.0.1576-user",
        device_info_1: Optional[str] = None,
        device_info_2: Optional[str] = None,
        device_info_3: Optional[str] = None,
        device_info_4: Optional[str] = None,
        app_versions: Optional[dict[str, str]] = None,
        imei: str = "03dcfeefcb581a3c",
        device_mac_addresses: Optional[list[dict[str, str]]] = None,
        cpu_utilization_pct: float = 0.5325,
        cpu_utilization_pct_mode: Union[DriftMode, str] = DriftMode.STABLE,
        cpu_utilization_pct_step: float = 4.0,
        cpu_utilization_pct_last_1: float = 0.55,
        cpu_utilization_pct_last_15: float = 0.51125,
        ram_utilization_pct: int = 41,
        ram_utilization_pct_mode: Union[DriftMode, str] = DriftMode.STABLE,
        ram_utilization_pct_step: int = 5,
        total_storage_bytes: int = 101824802816,
        used_storage_bytes: int = 7520411648,
        ip_address: Optional[str] = None,
        mac_address: Optional[str] = None,
        designated_ap: Optional[str] = None,
        designated_battery: Optional[str] = None,
        reference_data: Optional[ReferenceData] = None,
        seed: Optional[int] = None,
    ):
        """
        Initialize device simulator.

        Args:
            device_serial_number: Device serial number (registry key and topic)
            designated_model: Model (member or name); its series shapes the metrics
            device_name: Display name; defaults to "Spectralink <serial>"
            app_versions: Installed app versions; defaults to the series' set
            device_mac_addresses: Interface list; generated from the series if omitted
            ip_address: WLAN IP address; random 192.168.x.y if omitted
            mac_address: WLAN MAC address; random vendor-prefixed if omitted
            designated_ap: SSID of the AP to join at load time
            designated_battery: Serial of the battery to insert at load time
            reference_data: Shared reference data for default app versions
            seed: Random seed for reproducibility
        """
        super().__init__(seed)
        if isinstance(designated_model, str):
            designated_model = DeviceModel[designated_model.upper()]
        self.designated_model = designated_model
        self.device_serial_number = device_serial_number
        self.device_name = device_name or f"Spectralink {device_serial_number}"
        self.device_os_revision = device_os_revision
        self.device_sw_revision = device_sw_revision
        self.device_info_1 = device_info_1
        self.device_info_2 = device_info_2
        self.device_info_3 = device_info_3
        self.device_info_4 = device_info_4
        self.imei = imei

        if not app_versions and reference_data is not None:
            app_versions = reference_data.app_versions_for(designated_model.series)
        self.app_versions = dict(app_versions or {})

        self.cpu_utilization_pct = self._drift(
            cpu_utilization_pct, cpu_utilization_pct_mode, cpu_utilization_pct_step, CPU_LIMITS
        )
        self.cpu_utilization_pct_last_1 = cpu_utilization_pct_last_1
        self.cpu_utilization_pct_last_15 = cpu_utilization_pct_last_15
        self.ram_utilization_pct = self._drift(
            ram_utilization_pct, ram_utilization_pct_mode, ram_utilization_pct_step, RAM_LIMITS
        )
        self.total_storage_bytes = total_storage_bytes
        self.used_storage_bytes = used_storage_bytes

        self.ip_address = ip_address or self._random_ip_address()
        self.mac_address = mac_address or self._random_vendor_mac_address()
        self.device_mac_addresses = device_mac_addresses or self._interface_addresses()

        self.designated_ap = designated_ap
        self.designated_battery = designated_battery

        self.connection_status = ConnectionState.DISCONNECTED
        self.current_ap: Optional[AccessPoint] = None
        self.current_battery: Optional[Battery] = None
        self.current_call: Optional[Call] = None
        self._buffer: list[dict[str, Any]] = []

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        reference_data: Optional[ReferenceData] = None,
        seed: Optional[int] = None,
    ) -> "Device":
        """Create a device from a definition record."""
        if "device_serial_number" not in data:
            raise ValueError("Device definition is missing 'device_serial_number'")
        return cls(**cls._filter_settings(data), reference_data=reference_data, seed=seed)

    @property
    def device_model(self) -> str:
        return self.designated_model.full_model

    # Address generation

    def _random_ip_address(self) -> str:
        return f"192.168.{self._random.randrange(255)}.{self._random.randrange(255)}"

    def _random_mac_address(self) -> str:
        return ":".join(f"{self._random.randrange(255):02X}" for _ in range(6))

    def _random_vendor_mac_address(self) -> str:
        suffix = ":".join(f"{self._random.randrange(255):02X}" for _ in range(3))
        return f"{VENDOR_MAC_PREFIX}:{suffix}"

    def _interface_addresses(self) -> list[dict[str, str]]:
        """Build the network interface list reported for this model series."""
        series = self.designated_model.series
        interfaces = []
        if series != 97:
            interfaces.append({"interface": "dummy0", "address": self._random_mac_address()})
        if series == 95:
            for name in ("p2p0", "bond0", "wifi-aware0"):
                interfaces.append({"interface": name, "address": self._random_mac_address()})
        interfaces.append({"interface": "wlan0", "address": self.mac_address})
        return interfaces

    # Associations

    def connect_wifi(self, ap: Optional[AccessPoint]) -> bool:
        """Associate with an access point, arming its roam hand-off."""
        if ap is None:
            logger.error("No AP given to connect device %s", self.device_serial_number)
            return False
        self.current_ap = ap
        ap.connect(self)
        return True

    def disconnect_wifi(self) -> None:
        """Drop the current association."""
        if self.current_ap is not None:
            self.current_ap.disconnect()
        self.current_ap = None
        self.connection_status = ConnectionState.DISCONNECTED

    def insert_battery(self, battery: Optional[Battery]) -> bool:
        """
        Insert a battery, keeping both sides of the link consistent.

        A battery moved from another device is detached from it first, and a
        battery already in this device is released.
        """
        if battery is None:
            logger.error("No battery given to insert into device %s", self.device_serial_number)
            return False

        previous_holder = battery.housing_device
        if previous_holder is not None and previous_holder is not self:
            logger.info(
                "Moving battery %s from device %s to %s",
                battery.battery_serial_num,
                previous_holder.device_serial_number,
                self.device_serial_number,
            )
            if previous_holder.current_battery is battery:
                previous_holder.current_battery = None

        if self.current_battery is not None and self.current_battery is not battery:
            self.current_battery.housing_device = None

        battery.housing_device = self
        self.current_battery = battery
        return True

    def remove_battery(self) -> Optional[Battery]:
        battery = self.current_battery
        if battery is not None:
            battery.housing_device = None
        self.current_battery = None
        return battery

    def start_call(
        self, direction: Union[CallDirection, str] = CallDirection.OUTGOING, **call_settings: Any
    ) -> Optional[Call]:
        """
        Start a call on this device.

        Args:
            direction: Call direction
            **call_settings: Extra ``Call`` settings (drift modes, codec, ...)

        Returns:
            The new call, or None when no AP is connected
        """
        if self.current_ap is None:
            logger.error("Cannot start a call on %s without an AP connected", self.device_serial_number)
            return None
        call_settings.setdefault("seed", self._random.getrandbits(32))
        self.current_call = Call(self, call_type=direction, **call_settings)
        logger.debug("Device %s started call %s", self.device_serial_number, self.current_call.call_id)
        return self.current_call

    def end_call(self, timestamp: Optional[int] = None) -> Optional[dict[str, Any]]:
        """Hang up: return the call's teardown document and release the call."""
        if self.current_call is None:
            logger.error("No call in progress on device %s", self.device_serial_number)
            return None
        metrics = self.current_call.end(timestamp)
        self.current_call = None
        return metrics

    # Metric documents

    def device_metrics(self, timestamp: Optional[int] = None) -> dict[str, Any]:
        """Generate a DEVICE_METRICS document (identity, apps, CPU/RAM, storage)."""
        previous_cpu = self.cpu_utilization_pct.current
        cpu = self.cpu_utilization_pct.sample()
        if self.cpu_utilization_pct.mode != DriftMode.STABLE:
            self.cpu_utilization_pct_last_1 = previous_cpu

        metrics: dict[str, Any] = {
            "device_os_revision": self.device_os_revision,
            "device_name": self.device_name,
            "device_sw_revision": self.device_sw_revision,
            "device_info_1": self.device_info_1,
            "device_info_2": self.device_info_2,
            "device_info_3": self.device_info_3,
            "device_info_4": self.device_info_4,
            "device_model": self.device_model,
            "app_versions": dict(self.app_versions),
        }
        if self.designated_model.reports_imei:
            metrics["imei"] = self.imei
        metrics.update(
            {
                "device_mac_addresses": [dict(entry) for entry in self.device_mac_addresses],
                "device_serial_number": self.device_serial_number,
                "cpu_utilization_pct_last_1": self.cpu_utilization_pct_last_1,
                "cpu_utilization_pct": cpu,
                "cpu_utilization_pct_last_15": self.cpu_utilization_pct_last_15,
                "ram_utilization_pct": self.ram_utilization_pct.sample(),
                "total_storage_bytes": self.total_storage_bytes,
                "used_storage_bytes": self.used_storage_bytes,
                "timestamp": self._timestamp(timestamp),
                "type": MetricType.DEVICE.value,
            }
        )
        return metrics

    def network_metrics(
        self, access_points: Iterable[AccessPoint], timestamp: Optional[int] = None
    ) -> Optional[dict[str, Any]]:
        """
        Generate a NETWORK_METRICS document from the current AP.

        Every other AP in ``access_points`` is listed as a scan candidate.
        Consumes the current AP's pending hand-off.

        Returns:
            The document, or None when no AP is connected
        """
        ap = self.current_ap
        if ap is None:
            logger.error("No network connected to device %s", self.device_serial_number)
            return None

        candidates = []
        if self.connection_status == ConnectionState.CONNECTED:
            candidates = [
                other.candidate_summary()
                for other in access_points
                if other.ap_ssid != ap.ap_ssid
            ]
        return ap.selected_ap(candidates, timestamp)

    def ip_address_metrics(self, timestamp: Optional[int] = None) -> dict[str, Any]:
        return {
            "device_ip_address": self.ip_address,
            "timestamp": self._timestamp(timestamp),
            "type": MetricType.DEVICE.value,
        }

    def barcode_metrics(self, timestamp: Optional[int] = None) -> dict[str, Any]:
        """A successful UPC-A barcode decode."""
        return {
            "barcode": {"length": 12, "aim_code": "UPC-A", "decode_status": "success"},
            "type": MetricType.DEVICE.value,
            "timestamp": self._timestamp(timestamp),
        }

    def battery_metrics(self, timestamp: Optional[int] = None) -> Optional[dict[str, Any]]:
        if self.current_battery is None:
            logger.error("No battery inserted in device %s", self.device_serial_number)
            return None
        return self.current_battery.sample(timestamp)

    def call_metrics(self, timestamp: Optional[int] = None) -> Optional[dict[str, Any]]:
        if self.current_call is None:
            logger.error("No call in progress on device %s", self.device_serial_number)
            return None
        return self.current_call.details(timestamp)

    # Buffering and delivery

    @property
    def pending_metrics(self) -> list[dict[str, Any]]:
        """Copy of the buffered documents, oldest first."""
        return list(self._buffer)

    def buffer_metric(self, metrics: Optional[dict[str, Any]]) -> bool:
        """Append a document to the pending buffer; None is skipped."""
        if metrics is None:
            logger.warning("Skipping empty metrics document for device %s", self.device_serial_number)
            return False
        self._buffer.append(metrics)
        return True

    def clear_buffer(self) -> None:
        self._buffer = []

    def flush(self, transport: "TelemetryTransport") -> bool:
        """
        Publish every buffered document as one batch.

        The buffer is cleared only when the transport confirms delivery, so
        a failed publish can be retried by flushing again.

        Returns:
            True if a batch was published
        """
        if not self._buffer:
            logger.error("No events were in the buffer of %s - no metrics sent", self.device_serial_number)
            return False

        batch = FlushBatch(serial=self.device_serial_number, data=list(self._buffer))
        logger.debug("Sending %d updates to MQTT broker from buffer", len(batch.data))
        if transport.publish(transport.topic_for(self.device_serial_number), batch.to_dict()):
            self.clear_buffer()
            return True

        logger.error(
            "Failed to publish %d buffered metrics for %s; keeping them for retry",
            len(batch.data),
            self.device_serial_number,
        )
        return False

    def __repr__(self) -> str:
        return (
            f"Device(serial={self.device_serial_number!r}, model={self.designated_model.name}, "
            f"ap={self.current_ap.ap_ssid if self.current_ap else None!r}, "
            f"battery={self.current_battery.battery_serial_num if self.current_battery else None!r}, "
            f"status={self.connection_status.value})"
        )
