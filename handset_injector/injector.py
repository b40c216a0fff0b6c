"""
Metrics injector - samples simulated devices and flushes their metrics.

Supports single passes and continuous injection. All work runs in the
caller's thread.
"""

import logging
import time
from typing import Iterable, Optional, Union

from handset_injector.config import CallConfig
from handset_injector.models import CallDirection, MetricsSelector, now_ms
from handset_injector.registry import EntityRegistry
from handset_injector.simulators import Call, Device
from handset_injector.transport import TelemetryTransport

logger = logging.getLogger(__name__)

# What ALL expands to; CALL only contributes while a call is active
ALL_SELECTORS = (
    MetricsSelector.DEVICE,
    MetricsSelector.BATTERY,
    MetricsSelector.NETWORK,
    MetricsSelector.CALL,
)


def _to_selector(selector: Union[MetricsSelector, str]) -> MetricsSelector:
    if isinstance(selector, MetricsSelector):
        return selector
    try:
        return MetricsSelector(str(selector).upper())
    except ValueError:
        raise ValueError(f"Unknown metrics selector: {selector}") from None


def parse_selectors(selectors: Iterable[Union[MetricsSelector, str]]) -> list[MetricsSelector]:
    """
    Normalize selector names, expanding ALL.

    Raises:
        ValueError: If a name is not a known selector
    """
    parsed: list[MetricsSelector] = []
    for selector in map(_to_selector, selectors):
        expanded = ALL_SELECTORS if selector == MetricsSelector.ALL else (selector,)
        for item in expanded:
            if item not in parsed:
                parsed.append(item)
    return parsed


class MetricsInjector:
    """
    Builds metric documents for registered devices and flushes them.

    Documents are buffered on the device; ``flush`` publishes a device's
    buffer as one batch through the transport.
    """

    def __init__(
        self,
        registry: EntityRegistry,
        transport: TelemetryTransport,
        call_config: Optional[CallConfig] = None,
    ):
        self.registry = registry
        self.transport = transport
        self.call_config = call_config or CallConfig()

    def sample(
        self,
        device: Device,
        selectors: Iterable[Union[MetricsSelector, str]] = (MetricsSelector.ALL,),
        timestamp: Optional[int] = None,
    ) -> int:
        """
        Buffer the documents named by ``selectors`` on a device.

        Args:
            device: Device to sample
            selectors: Metric selectors; ALL means device, battery, network
                and (while a call is active) call details
            timestamp: Epoch milliseconds shared by every document; defaults to now

        Returns:
            Number of documents buffered
        """
        timestamp = now_ms() if timestamp is None else timestamp
        requested = [_to_selector(s) for s in selectors]
        wants_all = MetricsSelector.ALL in requested

        buffered = 0
        for selector in parse_selectors(requested):
            if selector == MetricsSelector.CALL and wants_all and device.current_call is None:
                continue
            for document in self._documents(device, selector, timestamp):
                buffered += device.buffer_metric(document)
        logger.debug("Buffered %d documents for %s", buffered, device.device_serial_number)
        return buffered

    def _documents(self, device: Device, selector: MetricsSelector, timestamp: int) -> list:
        if selector == MetricsSelector.DEVICE:
            return [device.device_metrics(timestamp)]
        if selector == MetricsSelector.BATTERY:
            return [device.battery_metrics(timestamp)]
        if selector == MetricsSelector.NETWORK:
            return [device.network_metrics(self.registry.access_points(), timestamp)]
        if selector == MetricsSelector.CALL:
            return [device.call_metrics(timestamp)]
        if selector == MetricsSelector.IP_ADDRESS:
            return [device.ip_address_metrics(timestamp)]

        # The remaining selectors are event markers reported through the battery
        battery = device.current_battery
        if battery is None:
            logger.error(
                "No battery inserted in device %s for %s events", device.device_serial_number, selector.value
            )
            return []
        if selector == MetricsSelector.IN_USE:
            return [battery.usage(True, timestamp)]
        if selector == MetricsSelector.WIFI_SCAN:
            return [battery.wifi_scan(True, timestamp), battery.wifi_scan(False, timestamp)]
        if selector == MetricsSelector.BLUETOOTH_SCAN:
            return [battery.bluetooth_scan(True, timestamp), battery.bluetooth_scan(False, timestamp)]
        if selector == MetricsSelector.BARCODE_SCAN:
            return [
                battery.barcode_decode(timestamp),
                device.barcode_metrics(timestamp),
                battery.barcode_idle(timestamp),
            ]
        return []

    def start_call(
        self,
        device: Device,
        direction: Union[CallDirection, str] = CallDirection.OUTGOING,
        timestamp: Optional[int] = None,
        **call_settings,
    ) -> Optional[Call]:
        """Start a call and buffer its setup and answer events."""
        call_settings.setdefault("expected_packets_per_second", self.call_config.expected_packets_per_second)
        call_settings.setdefault("metrics_interval_seconds", self.call_config.metrics_interval_seconds)
        call = device.start_call(direction, **call_settings)
        if call is None:
            return None
        device.buffer_metric(call.begin(timestamp))
        device.buffer_metric(call.confirmed(timestamp))
        return call

    def end_call(self, device: Device, timestamp: Optional[int] = None) -> bool:
        """Hang up the device's call and buffer the teardown event."""
        return device.buffer_metric(device.end_call(timestamp))

    def flush(self, device: Device) -> bool:
        return device.flush(self.transport)


class InjectionRunner:
    """
    Runner for single-pass or continuous injection across the registry.
    """

    def __init__(
        self,
        injector: MetricsInjector,
        selectors: Iterable[Union[MetricsSelector, str]] = (MetricsSelector.ALL,),
    ):
        """
        Initialize the runner.

        Args:
            injector: Injector used for sampling and flushing
            selectors: Metric selectors applied to every device each pass
        """
        self.injector = injector
        self.selectors = [_to_selector(s) for s in selectors]
        self._running = False

    def run_once(self) -> dict[str, bool]:
        """Sample and flush every registered device once."""
        timestamp = now_ms()
        results = {}
        for device in self.injector.registry.devices():
            self.injector.sample(device, self.selectors, timestamp)
            results[device.device_serial_number] = self.injector.flush(device)

        sent = sum(results.values())
        logger.info("Flushed metrics for %d of %d devices", sent, len(results))
        return results

    def run_continuous(
        self,
        interval_seconds: float = 5,
        duration_seconds: Optional[float] = None,
    ) -> None:
        """
        Run injection continuously.

        Args:
            interval_seconds: Seconds between passes
            duration_seconds: Optional total duration. None = run forever.
        """
        self._running = True
        start_time = time.time()

        logger.info("Starting continuous injection every %ss", interval_seconds)

        try:
            while self._running:
                self.run_once()

                if duration_seconds is not None:
                    elapsed = time.time() - start_time
                    if elapsed >= duration_seconds:
                        logger.info("Duration reached, stopping")
                        break

                time.sleep(interval_seconds)

        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            self._running = False

    def stop(self) -> None:
        """Stop the runner."""
        self._running = False
