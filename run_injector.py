"""
Handset Telemetry Injector - Command Line Interface

Publishes synthetic handset metrics (device, battery, network and call)
to a gateway's MQTT broker, one topic per simulated device.

Usage:
    # Inject one batch per device
    python run_injector.py --once --broker-host 10.0.0.5

    # Inject continuously every 5 seconds for 10 minutes
    python run_injector.py --continuous --interval 5 --duration 600

    # Resolve the broker from the gateway serving a location
    API_BASE_URL=https://amie.example.com API_TOKEN=... LOCATION_NAME="ICU" \\
        python run_injector.py --once

    # Log batches instead of sending them
    python run_injector.py --once --dry-run --debug

    # Show the loaded environment
    python run_injector.py --list --data-dir ./my_devices
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
# Must happen before importing modules that use env vars
load_dotenv()

from handset_injector.config import InjectorConfig, DEFAULT_CONFIG  # noqa: E402
from handset_injector.context import ContextLookup  # noqa: E402
from handset_injector.injector import InjectionRunner, MetricsInjector  # noqa: E402
from handset_injector.registry import EntityRegistry, JsonEntitySource  # noqa: E402
from handset_injector.transport import TelemetryTransport  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def create_registry_from_config(config: InjectorConfig) -> EntityRegistry:
    """Create and load an EntityRegistry from configuration."""
    registry = EntityRegistry(
        source=JsonEntitySource(config.data_dir),
        seed=config.seed,
    )
    if not registry.load_all():
        logger.warning("Some definitions failed to load; continuing with what was loaded")
    return registry


def resolve_broker_host(config: InjectorConfig) -> bool:
    """Fill in the broker host from the gateway lookup when none is configured."""
    if config.transport.host or config.transport.dry_run:
        return True

    lookup = ContextLookup(config.api)
    try:
        address = lookup.gateway_address()
    finally:
        lookup.close()
    if not address:
        return False
    config.transport.host = address
    return True


def list_environment(registry: EntityRegistry) -> None:
    """Print the loaded access points, batteries and devices."""
    for ap in registry.access_points():
        print(ap)
    for serial in registry.battery_ids():
        print(registry.get_battery(serial))
    for device in registry.devices():
        print(device)


def run_injection(config: InjectorConfig, continuous: bool, duration: int | None = None, call: str | None = None) -> None:
    """Run one pass or continuous injection."""
    registry = create_registry_from_config(config)
    with TelemetryTransport(config.transport) as transport:
        injector = MetricsInjector(registry, transport, call_config=config.call)
        if call:
            for device in registry.devices():
                injector.start_call(device, call)

        runner = InjectionRunner(injector, selectors=config.metrics)
        if continuous:
            runner.run_continuous(
                interval_seconds=config.interval_seconds,
                duration_seconds=duration,
            )
        else:
            runner.run_once()

        if call:
            for device in registry.devices():
                if device.current_call is not None:
                    injector.end_call(device)
                    injector.flush(device)


def generate_sample_config(output_path: Path) -> None:
    """Generate a sample configuration file."""
    DEFAULT_CONFIG.to_file(output_path)
    logger.info("Sample config written to %s", output_path)


def main():
    parser = argparse.ArgumentParser(
        description="Handset Telemetry Injector - Publish synthetic handset metrics over MQTT",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Mode selection
    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument(
        "--once",
        action="store_true",
        help="Inject a single batch per device and exit",
    )
    mode_group.add_argument(
        "--continuous",
        action="store_true",
        help="Inject continuously at specified interval",
    )
    mode_group.add_argument(
        "--list",
        action="store_true",
        help="Load the definitions and print the simulated environment",
    )
    mode_group.add_argument(
        "--generate-config",
        action="store_true",
        help="Generate a sample configuration file",
    )

    # Configuration options
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration JSON file",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory holding ap/battery/device definition files (default: packaged data)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Interval in seconds between batches (default: 5)",
    )
    parser.add_argument(
        "--duration",
        type=int,
        help="Duration in seconds for continuous mode (default: run forever)",
    )
    parser.add_argument(
        "--metrics",
        nargs="+",
        default=None,
        help="Metric selectors to inject, e.g. DEVICE NETWORK WIFI_SCAN (default: ALL)",
    )
    parser.add_argument(
        "--call",
        choices=["outgoing", "incoming"],
        help="Place a call on every connected device for the run",
    )
    parser.add_argument(
        "--broker-host",
        type=str,
        default=None,
        help="MQTT broker host (default: MQTT_BROKER_HOST or gateway lookup)",
    )
    parser.add_argument(
        "--broker-port",
        type=int,
        default=None,
        help="MQTT broker port (default: 1883)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log batches instead of publishing them",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for reproducibility",
    )

    # Verbosity
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress log output",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.quiet:
        logging.getLogger().setLevel(logging.WARNING)
    elif args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    # Load or create configuration
    if args.config and not args.generate_config:
        if not args.config.exists():
            parser.error(f"Configuration file not found: {args.config}")
        config = InjectorConfig.from_file(args.config)
        logger.info("Loaded config from %s", args.config)
    else:
        config = InjectorConfig()

    # Apply command line overrides (only if explicitly provided)
    if args.data_dir is not None:
        config.data_dir = str(args.data_dir)
    if args.interval is not None:
        config.interval_seconds = args.interval
    if args.metrics is not None:
        config.metrics = args.metrics
    if args.broker_host is not None:
        config.transport.host = args.broker_host
    if args.broker_port is not None:
        config.transport.port = args.broker_port
    if args.dry_run:
        config.transport.dry_run = True
    if args.seed is not None:
        config.seed = args.seed

    # Execute selected mode
    if args.generate_config:
        output_path = args.config or Path("config.json")
        generate_sample_config(output_path)

    elif args.list:
        list_environment(create_registry_from_config(config))

    else:
        if not resolve_broker_host(config):
            parser.error("No broker host: pass --broker-host, set MQTT_BROKER_HOST or configure the gateway lookup")
        try:
            run_injection(config, continuous=args.continuous, duration=args.duration, call=args.call)
        except ValueError as e:
            parser.error(str(e))


if __name__ == "__main__":
    main()
