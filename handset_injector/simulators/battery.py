"""Handset battery simulator with charge, temperature and wear drift."""

import logging
import weakref
from typing import TYPE_CHECKING, Any, Optional, Union

from handset_injector.models import MetricType, ReferenceData
from .base import BaseSimulator
from .drift import DriftLimits, DriftMode

if TYPE_CHECKING:
    from .device import Device

logger = logging.getLogger(__name__)

LEVEL_LIMITS = DriftLimits(lower=1, upper=100)
DEGRADATION_LIMITS = DriftLimits(lower=2, upper=100)
FULL_CHARGE_LIMITS = DriftLimits(lower=400, upper=3000)
CYCLE_COUNT_LIMITS = DriftLimits(lower=0, upper=200)
TEMPERATURE_LIMITS = DriftLimits(lower=20.0, upper=35.0)

# Orion handsets carry a single cell and report no secondary battery fields
SINGLE_CELL_SERIES = 92


class Battery(BaseSimulator):
    """
    Simulates a handset battery.

    Models:
    - Charge level, full-charge capacity and degradation drift
    - Cycle counting and cell temperature drift
    - Secondary (backup) cell readings on multi-cell handsets
    - Discrete scan/barcode/usage event markers

    The housing device is a weak back-reference maintained by
    ``Device.insert_battery``; a battery is housed by at most one device.
    """

    def __init__(
        self,
        battery_serial_num: str = "VK22082416549",
        is_ac_powered: bool = True,
        is_usb_powered: bool = False,
        charge_state: str = "Charging",
        is_main_battery_present: bool = True,
        level: int = 98,
        level_mode: Union[DriftMode, str] = DriftMode.STABLE,
        level_step: int = 4,
        degradation_pct: int = 95,
        degradation_pct_mode: Union[DriftMode, str] = DriftMode.STABLE,
        degradation_pct_step: int = 1,
        full_charge: int = 2883,
        full_charge_mode: Union[DriftMode, str] = DriftMode.STABLE,
        full_charge_step: int = 240,
        cycle_counter: int = 18,
        cycle_counter_mode: Union[DriftMode, str] = DriftMode.STABLE,
        cycle_counter_step: int = 4,
        temperature_c: float = 25.0,
        temperature_c_mode: Union[DriftMode, str] = DriftMode.STABLE,
        temperature_c_step: float = 0.6,
        voltage: float = 4.394,
        current_ma: int = -173,
        technology: str = "Li-ion",
        health: str = "Good",
        remaining_capacity_mah: int = 2883,
        remaining_energy_nwh: int = 12667901952,
        revision_number: int = 1,
        sec_health: str = "Good",
        sec_level: int = 100,
        sec_cycle_counter: int = 5,
        sec_voltage: float = 4.172,
        sec_current_ma: int = 0,
        sec_full_charge: int = 95,
        sec_remaining_capacity_mah: int = 95,
        sec_remaining_energy_nwh: int = 396340000,
        top_apps: Optional[list[dict[str, Any]]] = None,
        reference_data: Optional[ReferenceData] = None,
        seed: Optional[int] = None,
    ):
        """
        Initialize battery simulator.

        Drifting fields take an initial value plus ``<field>_mode`` and
        ``<field>_step``; the remaining fields are reported as given.

        Args:
            battery_serial_num: Battery serial number (registry key)
            top_apps: Explicit top-apps list; falls back to ``reference_data``
            reference_data: Shared reference data supplying default top apps
            seed: Random seed for reproducibility
        """
        super().__init__(seed)
        self.battery_serial_num = battery_serial_num
        self.is_ac_powered = is_ac_powered
        self.is_usb_powered = is_usb_powered
        self.charge_state = charge_state
        self.is_main_battery_present = is_main_battery_present

        self.level = self._drift(level, level_mode, level_step, LEVEL_LIMITS)
        self.degradation_pct = self._drift(
            degradation_pct, degradation_pct_mode, degradation_pct_step, DEGRADATION_LIMITS
        )
        self.full_charge = self._drift(
            full_charge, full_charge_mode, full_charge_step, FULL_CHARGE_LIMITS
        )
        self.cycle_counter = self._drift(
            cycle_counter, cycle_counter_mode, cycle_counter_step, CYCLE_COUNT_LIMITS
        )
        self.temperature_c = self._drift(
            temperature_c, temperature_c_mode, temperature_c_step, TEMPERATURE_LIMITS
        )

        self.voltage = voltage
        self.current_ma = current_ma
        self.technology = technology
        self.health = health
        self.remaining_capacity_mah = remaining_capacity_mah
        self.remaining_energy_nwh = remaining_energy_nwh
        self.revision_number = revision_number

        self.sec_health = sec_health
        self.sec_level = sec_level
        self.sec_cycle_counter = sec_cycle_counter
        self.sec_voltage = sec_voltage
        self.sec_current_ma = sec_current_ma
        self.sec_full_charge = sec_full_charge
        self.sec_remaining_capacity_mah = sec_remaining_capacity_mah
        self.sec_remaining_energy_nwh = sec_remaining_energy_nwh

        if top_apps is None:
            top_apps = list(reference_data.top_apps) if reference_data else []
        self.top_apps = top_apps

        self._housing_ref: Optional[weakref.ref] = None

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        reference_data: Optional[ReferenceData] = None,
        seed: Optional[int] = None,
    ) -> "Battery":
        """Create a battery from a definition record."""
        if "battery_serial_num" not in data:
            raise ValueError("Battery definition is missing 'battery_serial_num'")
        return cls(**cls._filter_settings(data), reference_data=reference_data, seed=seed)

    @property
    def housing_device(self) -> Optional["Device"]:
        """The device this battery is inserted in, if any."""
        if self._housing_ref is None:
            return None
        return self._housing_ref()

    @housing_device.setter
    def housing_device(self, device: Optional["Device"]) -> None:
        self._housing_ref = weakref.ref(device) if device is not None else None

    def sample(self, timestamp: Optional[int] = None) -> Optional[dict[str, Any]]:
        """
        Generate a battery metrics document.

        Args:
            timestamp: Epoch milliseconds; defaults to now

        Returns:
            BATTERY_METRICS document, or None when no device houses the battery
        """
        device = self.housing_device
        if device is None:
            logger.error("No device was set when requesting battery %s info", self.battery_serial_num)
            return None

        metrics: dict[str, Any] = {
            "is_ac_powered": self.is_ac_powered,
            "is_usb_powered": self.is_usb_powered,
            "charge_state": self.charge_state,
            "is_main_battery_present": self.is_main_battery_present,
            "level": self.level.sample(),
            "degradation_pct": self.degradation_pct.sample(),
            "full_charge": self.full_charge.sample(),
            "battery_serial_num": self.battery_serial_num,
            "cycle_counter": self.cycle_counter.sample(),
            "temperature_c": round(self.temperature_c.sample(), 1),
            "voltage": self.voltage,
            "current_ma": self.current_ma,
            "technology": self.technology,
            "health": self.health,
            "remaining_capacity_mah": self.remaining_capacity_mah,
            "remaining_energy_nwh": self.remaining_energy_nwh,
        }

        if device.designated_model.series != SINGLE_CELL_SERIES:
            metrics.update(
                {
                    "sec_health": self.sec_health,
                    "sec_level": self.sec_level,
                    "sec_cycle_counter": self.sec_cycle_counter,
                    "sec_voltage": self.sec_voltage,
                    "sec_current_ma": self.sec_current_ma,
                    "sec_full_charge": self.sec_full_charge,
                    "sec_remaining_capacity_mah": self.sec_remaining_capacity_mah,
                    "sec_remaining_energy_nwh": self.sec_remaining_energy_nwh,
                }
            )

        metrics["top_apps"] = [dict(app) for app in self.top_apps]
        metrics["timestamp"] = self._timestamp(timestamp)
        metrics["type"] = MetricType.BATTERY.value
        return metrics

    # Discrete event markers sent between periodic samples

    def usage(self, in_use: bool, timestamp: Optional[int] = None) -> dict[str, Any]:
        return self._event("device_is_in_use", in_use, timestamp, MetricType.DEVICE)

    def wifi_scan(self, scanning: bool, timestamp: Optional[int] = None) -> dict[str, Any]:
        state = "scan_start" if scanning else "scan_complete"
        return self._event("wifi_state", state, timestamp)

    def bluetooth_scan(self, scanning: bool, timestamp: Optional[int] = None) -> dict[str, Any]:
        state = "scan_start" if scanning else "scan_complete"
        return self._event("bluetooth_state", state, timestamp)

    def barcode_idle(self, timestamp: Optional[int] = None) -> dict[str, Any]:
        return self._event("barcode_state", "BARCODE_STATE_IDLE", timestamp)

    def barcode_decode(self, timestamp: Optional[int] = None) -> dict[str, Any]:
        return self._event("barcode_state", "BARCODE_STATE_DECODE", timestamp)

    def _event(
        self,
        key: str,
        value: Any,
        timestamp: Optional[int],
        metric_type: MetricType = MetricType.BATTERY,
    ) -> dict[str, Any]:
        return {
            key: value,
            "timestamp": self._timestamp(timestamp),
            "type": metric_type.value,
        }

    def __repr__(self) -> str:
        device = self.housing_device
        housing = device.device_serial_number if device is not None else None
        return (
            f"Battery(serial={self.battery_serial_num!r}, housing={housing!r}, "
            f"level={self.level.current}, charge_state={self.charge_state!r})"
        )
