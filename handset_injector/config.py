"""Configuration management for the telemetry injector."""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class TransportConfig:
    """MQTT broker connection configuration.

    Supports environment variable overrides:
    - MQTT_BROKER_HOST: Broker (gateway) host name or address
    - MQTT_BROKER_PORT: Broker port
    - MQTT_USERNAME / MQTT_PASSWORD: Broker credentials
    - MQTT_VENDOR: Vendor segment of the device topic

    Attributes:
        host: Broker host; empty means "resolve from the gateway lookup"
        port: Broker port
        vendor: Topic vendor segment, as in devices/<vendor>/<serial>
        connect_timeout_seconds: How long connect() waits for the broker
        keepalive_seconds: MQTT keep-alive interval
        publish_timeout_seconds: How long publish() waits for the broker ack
        qos: Delivery level for published batches
        reconnect_min_delay_seconds: First automatic reconnect delay
        reconnect_max_delay_seconds: Upper bound on the reconnect back-off
        dry_run: Log batches instead of sending them
    """

    host: str = ""
    port: int = 1883
    vendor: str = "spectralink"
    username: str = ""
    password: str = ""
    connect_timeout_seconds: float = 30
    keepalive_seconds: int = 60
    publish_timeout_seconds: float = 10
    qos: int = 2
    reconnect_min_delay_seconds: int = 1
    reconnect_max_delay_seconds: int = 120
    dry_run: bool = False

    def __post_init__(self) -> None:
        """Apply environment variable overrides only when values are at defaults.

        Precedence: explicit args > env vars > defaults
        """
        if self.host == "":
            self.host = os.environ.get("MQTT_BROKER_HOST", self.host)
        if self.port == 1883:
            self.port = int(os.environ.get("MQTT_BROKER_PORT", self.port))
        if self.username == "":
            self.username = os.environ.get("MQTT_USERNAME", self.username)
        if self.password == "":
            self.password = os.environ.get("MQTT_PASSWORD", self.password)
        if self.vendor == "spectralink":
            self.vendor = os.environ.get("MQTT_VENDOR", self.vendor)


@dataclass
class ApiConfig:
    """Management API used to look up gateways, organizations and locations.

    Supports environment variable overrides:
    - API_BASE_URL: API root, e.g. "https://amie.example.com"
    - API_TOKEN: Bearer token
    - LOCATION_NAME: Location (tenant) whose gateway hosts the broker
    """

    base_url: str = ""
    token: str = ""
    location_name: str = ""
    timeout_seconds: float = 10

    def __post_init__(self) -> None:
        if self.base_url == "":
            self.base_url = os.environ.get("API_BASE_URL", self.base_url)
        if self.token == "":
            self.token = os.environ.get("API_TOKEN", self.token)
        if self.location_name == "":
            self.location_name = os.environ.get("LOCATION_NAME", self.location_name)


@dataclass
class CallConfig:
    """Call quality sampling configuration."""

    expected_packets_per_second: int = 50
    metrics_interval_seconds: int = 5


@dataclass
class InjectorConfig:
    """Main injector configuration."""

    data_dir: Optional[str] = None  # None uses the packaged definitions
    interval_seconds: float = 5
    metrics: list[str] = field(default_factory=lambda: ["ALL"])
    seed: Optional[int] = None

    transport: TransportConfig = field(default_factory=TransportConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    call: CallConfig = field(default_factory=CallConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "InjectorConfig":
        """Create config from dictionary."""
        try:
            return cls(
                data_dir=data.get("data_dir"),
                interval_seconds=data.get("interval_seconds", 5),
                metrics=list(data.get("metrics", ["ALL"])),
                seed=data.get("seed"),
                transport=TransportConfig(**data.get("transport", {})),
                api=ApiConfig(**data.get("api", {})),
                call=CallConfig(**data.get("call", {})),
            )
        except TypeError as e:
            raise ValueError(f"Invalid configuration format: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> "InjectorConfig":
        """Load config from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
            return cls.from_dict(data)
        except FileNotFoundError as exc:
            raise FileNotFoundError(
                f"Configuration file not found: {path}",
            ) from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in configuration file {path}: {exc}") from exc
        except (OSError, ValueError) as exc:
            # OSError: read problems; ValueError: invalid configuration structure
            raise RuntimeError(
                f"Failed to load configuration from {path}: {exc}",
            ) from exc

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return asdict(self)

    def to_file(self, path: Path) -> None:
        """Save config to JSON file."""
        try:
            with open(path, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as exc:
            raise RuntimeError(
                f"Failed to save configuration to {path}: {exc}",
            ) from exc


# Default configuration template
DEFAULT_CONFIG = InjectorConfig()
