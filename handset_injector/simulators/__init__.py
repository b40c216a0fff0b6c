"""Simulators for handsets and the radio environment around them."""

from .access_point import AccessPoint
from .battery import Battery
from .call import Call
from .device import Device
from .drift import DriftLimits, DriftMode, DriftValue

__all__ = [
    "AccessPoint",
    "Battery",
    "Call",
    "Device",
    "DriftLimits",
    "DriftMode",
    "DriftValue",
]
