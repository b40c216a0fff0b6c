"""Data models for injected handset telemetry."""

from .reference_data import ReferenceData
from .telemetry import (
    CallDirection,
    ConnectionState,
    DeviceModel,
    FlushBatch,
    MetricType,
    MetricsSelector,
    WifiChannel,
    now_ms,
)

__all__ = [
    "CallDirection",
    "ConnectionState",
    "DeviceModel",
    "FlushBatch",
    "MetricType",
    "MetricsSelector",
    "ReferenceData",
    "WifiChannel",
    "now_ms",
]
