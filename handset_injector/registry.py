"""Registry of simulated access points, batteries and devices.

Definitions are read from JSON arrays (one object per entity) and turned
into simulator instances. Loading a collection is all-or-nothing: a file
that fails to read or parse leaves the current collection in place.

Each collection is guarded by its own lock, so a registry can be shared by
concurrent test workers.
"""

import json
import logging
import random
import threading
from pathlib import Path
from typing import Any, Optional, Union

from handset_injector.models import ReferenceData
from handset_injector.simulators import AccessPoint, Battery, Device

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent / "data"

# Definition errors: unreadable files, bad JSON, missing identity keys, bad values
LOAD_ERRORS = (OSError, ValueError, TypeError, KeyError, AttributeError)


class JsonEntitySource:
    """Reads entity definitions and reference data from a directory of JSON files."""

    ACCESS_POINTS_FILE = "ap_defaults.json"
    BATTERIES_FILE = "battery_defaults.json"
    DEVICES_FILE = "device_defaults.json"

    def __init__(self, data_dir: Union[str, Path, None] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else DEFAULT_DATA_DIR

    def read_access_points(self) -> list[dict[str, Any]]:
        return self._read_records(self.ACCESS_POINTS_FILE)

    def read_batteries(self) -> list[dict[str, Any]]:
        return self._read_records(self.BATTERIES_FILE)

    def read_devices(self) -> list[dict[str, Any]]:
        return self._read_records(self.DEVICES_FILE)

    def read_reference_data(self) -> ReferenceData:
        return ReferenceData.from_directory(self.data_dir)

    def _read_records(self, filename: str) -> list[dict[str, Any]]:
        """
        Read one definition file.

        Raises:
            OSError: If the file cannot be read
            ValueError: If it is not valid JSON or not an array
        """
        path = self.data_dir / filename
        with open(path) as f:
            records = json.load(f)
        if not isinstance(records, list):
            raise ValueError(f"Expected a JSON array of definitions in {path}")
        return records

    def __repr__(self) -> str:
        return f"JsonEntitySource({str(self.data_dir)!r})"


class EntityRegistry:
    """
    Holds the simulated environment: access points by SSID, batteries by
    serial number and devices by serial number.

    Devices are wired to their designated AP and battery when loaded, so
    access points and batteries should be loaded first (``load_all`` does
    this in order).
    """

    def __init__(
        self,
        source: Optional[JsonEntitySource] = None,
        reference_data: Optional[ReferenceData] = None,
        seed: Optional[int] = None,
    ):
        """
        Initialize an empty registry.

        Args:
            source: Where definitions are read from; defaults to the packaged data
            reference_data: Shared reference data; read from ``source`` if None
            seed: Seed for deriving a reproducible seed per entity
        """
        self.source = source or JsonEntitySource()
        self.reference_data = reference_data
        self._seed = seed
        self._seeds = random.Random(seed)

        self._access_points: dict[str, AccessPoint] = {}
        self._batteries: dict[str, Battery] = {}
        self._devices: dict[str, Device] = {}

        self._ap_lock = threading.RLock()
        self._battery_lock = threading.RLock()
        self._device_lock = threading.RLock()

    def _next_seed(self) -> Optional[int]:
        if self._seed is None:
            return None
        return self._seeds.getrandbits(32)

    # Loading

    def load_reference_data(self) -> bool:
        self.reference_data = self.source.read_reference_data()
        return bool(self.reference_data.top_apps or self.reference_data.app_versions)

    def load_access_points(self) -> bool:
        """Replace the access point collection from the source."""
        try:
            loaded = {}
            for record in self.source.read_access_points():
                ap = AccessPoint.from_dict(record, seed=self._next_seed())
                loaded[ap.ap_ssid] = ap
                logger.debug("Loaded AP '%s' into registry", ap.ap_ssid)
        except LOAD_ERRORS as e:
            logger.error("Could not load access points from %s: %s", self.source, e)
            return False

        with self._ap_lock:
            self._access_points = loaded
        logger.info("Loaded %d access points", len(loaded))
        return True

    def load_batteries(self) -> bool:
        """Replace the battery collection from the source."""
        try:
            loaded = {}
            for record in self.source.read_batteries():
                battery = Battery.from_dict(
                    record, reference_data=self.reference_data, seed=self._next_seed()
                )
                loaded[battery.battery_serial_num] = battery
                logger.debug("Loaded battery %s into registry", battery.battery_serial_num)
        except LOAD_ERRORS as e:
            logger.error("Could not load batteries from %s: %s", self.source, e)
            return False

        with self._battery_lock:
            self._batteries = loaded
        logger.info("Loaded %d batteries", len(loaded))
        return True

    def load_devices(self) -> bool:
        """
        Replace the device collection from the source and wire every device
        to its designated AP and battery.
        """
        try:
            loaded = {}
            for record in self.source.read_devices():
                device = self._build_device(record)
                loaded[device.device_serial_number] = device
        except LOAD_ERRORS as e:
            logger.error("Could not load devices from %s: %s", self.source, e)
            return False

        for device in loaded.values():
            self._wire(device)

        with self._device_lock:
            self._devices = loaded
        logger.info("Loaded %d devices", len(loaded))
        return True

    def reload_device(self, serial: str) -> bool:
        """
        Re-read one device definition and replace that entry only.

        Returns:
            True if the device was found and replaced
        """
        try:
            records = self.source.read_devices()
            record = next(
                (r for r in records if r.get("device_serial_number") == serial), None
            )
            if record is None:
                logger.error("No device definition found with the serial number %s", serial)
                return False
            device = self._build_device(record)
        except LOAD_ERRORS as e:
            logger.error("Could not reload device %s from %s: %s", serial, self.source, e)
            return False

        self._wire(device)
        with self._device_lock:
            self._devices[serial] = device
        logger.info("Reloaded device %s into registry", serial)
        return True

    def load_all(self) -> bool:
        """Load reference data, access points, batteries and devices, in that order."""
        if self.reference_data is None:
            self.load_reference_data()
        results = [self.load_access_points(), self.load_batteries(), self.load_devices()]
        return all(results)

    def _build_device(self, record: dict[str, Any]) -> Device:
        device = Device.from_dict(
            record, reference_data=self.reference_data, seed=self._next_seed()
        )
        logger.info("Loaded device %s into registry", device.device_serial_number)
        return device

    def _wire(self, device: Device) -> None:
        """Connect a device to its designated AP and insert its designated battery."""
        serial = device.device_serial_number

        with self._ap_lock:
            ap = self._access_points.get(device.designated_ap)
        if ap is not None:
            device.connect_wifi(ap)
            logger.debug("Connected %s to AP SSID '%s'", serial, ap.ap_ssid)
        else:
            logger.warning("No AP was available for device %s", serial)

        with self._battery_lock:
            battery = self._batteries.get(device.designated_battery)
        if battery is not None:
            device.insert_battery(battery)
            logger.debug("Inserted battery %s into %s", battery.battery_serial_num, serial)
        else:
            logger.warning("No battery was available for device %s", serial)

    # Access points

    def get_access_point(self, ssid: str) -> Optional[AccessPoint]:
        with self._ap_lock:
            ap = self._access_points.get(ssid)
        if ap is None:
            logger.error("No AP present with the SSID %s", ssid)
        return ap

    def access_point_ids(self) -> list[str]:
        with self._ap_lock:
            return list(self._access_points)

    def access_points(self) -> list[AccessPoint]:
        """Snapshot of every registered access point."""
        with self._ap_lock:
            return list(self._access_points.values())

    def add_access_point(self, ap: AccessPoint) -> None:
        with self._ap_lock:
            self._access_points[ap.ap_ssid] = ap

    def remove_access_point(self, ssid: str) -> Optional[AccessPoint]:
        with self._ap_lock:
            return self._access_points.pop(ssid, None)

    # Batteries

    def get_battery(self, serial: str) -> Optional[Battery]:
        with self._battery_lock:
            battery = self._batteries.get(serial)
        if battery is None:
            logger.error("No battery present with the serial number %s", serial)
        return battery

    def battery_ids(self) -> list[str]:
        with self._battery_lock:
            return list(self._batteries)

    def add_battery(self, battery: Battery) -> None:
        with self._battery_lock:
            self._batteries[battery.battery_serial_num] = battery

    def remove_battery(self, serial: str) -> Optional[Battery]:
        with self._battery_lock:
            return self._batteries.pop(serial, None)

    # Devices

    def get_device(self, serial: str) -> Optional[Device]:
        with self._device_lock:
            device = self._devices.get(serial)
        if device is None:
            logger.error("No phone present with the serial number %s", serial)
        return device

    def device_ids(self) -> list[str]:
        with self._device_lock:
            return list(self._devices)

    def devices(self) -> list[Device]:
        with self._device_lock:
            return list(self._devices.values())

    def add_device(self, device: Device) -> None:
        with self._device_lock:
            self._devices[device.device_serial_number] = device

    def remove_device(self, serial: str) -> Optional[Device]:
        with self._device_lock:
            return self._devices.pop(serial, None)

    def __repr__(self) -> str:
        return (
            f"EntityRegistry(access_points={len(self.access_point_ids())}, "
            f"batteries={len(self.battery_ids())}, devices={len(self.device_ids())})"
        )
