"""Telemetry transport to the gateway broker."""

from .mqtt_client import TelemetryTransport

__all__ = ["TelemetryTransport"]
