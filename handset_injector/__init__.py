"""
Handset Injector - Synthetic device telemetry for device-management backends

This package provides realistic simulation of:
- Wireless handsets and their device metrics
- Batteries with charge, temperature and wear drift
- Wi-Fi access points with RSSI drift and roaming
- Phone calls with packet loss and jitter

Buffered metrics are delivered to the backend over MQTT.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
