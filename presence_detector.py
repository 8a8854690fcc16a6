# presence_detector.py
import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from dynaconf import Dynaconf

from capture import get_capture
from data import PresenceStore
from device import Registry, load_registry
from exceptions import ConfigError, PresenceError
from presence import DEFAULT_TIMEOUT, query, render
from sweep import DEFAULT_BUDGET, SweepScheduler
from utils import get_vendor, update_vendor_db

DEFAULT_SETTINGS = "config/settings.toml"
DEFAULT_STORE_DIR = "/var/lib/netpresence"

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_VENDOR_DB = 6

logger = logging.getLogger(__name__)


def load_settings(settings_file: Path) -> Dynaconf:
    """Loads the settings file, with NETPRESENCE_* environment overrides."""
    if not settings_file.is_file():
        raise ConfigError("Settings file not found", {"path": settings_file})
    config = Dynaconf(
        settings_files=[str(settings_file)],
        envvar_prefix="NETPRESENCE",
    )
    try:
        general = config.get("general")
    except Exception as err:  # pylint: disable=broad-except
        raise ConfigError("Could not parse settings file", {"path": settings_file, "error": err}) from err
    if general is None:
        raise ConfigError("No [general] table in settings", {"path": settings_file})
    return config


def get_store(config: Dynaconf) -> PresenceStore:
    return PresenceStore(Path(config.general.get("store_dir", DEFAULT_STORE_DIR)))


def get_timeout(config: Dynaconf, override: Optional[int]) -> int:
    if override is not None:
        return override
    try:
        return int(config.general.get("timeout", DEFAULT_TIMEOUT))
    except (TypeError, ValueError) as err:
        raise ConfigError("general.timeout must be a number of seconds") from err


def get_budget(config: Dynaconf) -> float:
    try:
        budget = float(config.general.get("capture_budget", DEFAULT_BUDGET))
    except (TypeError, ValueError) as err:
        raise ConfigError("general.capture_budget must be a number of seconds") from err
    if budget <= 0:
        raise ConfigError("general.capture_budget must be positive")
    return budget


def run_continuous(config: Dynaconf, registry: Registry) -> int:
    """Runs the detector until SIGINT or SIGTERM."""
    stop_event = threading.Event()

    def _stop(signum, _frame):
        logger.info("Received signal %d, stopping after the current cycle", signum)
        stop_event.set()

    signal.signal(signal.SIGTERM, _stop)
    signal.signal(signal.SIGINT, _stop)

    scheduler = SweepScheduler(registry, get_capture(config), get_store(config), budget=get_budget(config))
    scheduler.run_forever(stop_event)
    return EXIT_OK


def run_once(config: Dynaconf, registry: Registry) -> int:
    """Runs a single sweep and prints the devices that were not seen."""
    scheduler = SweepScheduler(registry, get_capture(config), get_store(config), budget=get_budget(config))
    report = scheduler.run_once()
    for name in report.missing:
        print(name)
    return EXIT_OK


def run_query(config: Dynaconf, registry: Registry, name: str, timeout: int, on_off: bool) -> int:
    result = query(registry, get_store(config), name, timeout)
    logger.debug("%s: %s (last seen %s)", result.name, result.status.value, result.last_seen)
    output = render(result, on_off)
    if output:
        print(output)
    return EXIT_OK


def run_list(config: Dynaconf, registry: Registry, timeout: int) -> int:
    """Prints every configured device with its current status."""
    store = get_store(config)
    rows = [("NAME", "MAC", "STATUS", "AGE", "VENDOR")]
    for device in registry:
        result = query(registry, store, device.name, timeout)
        age = str(result.age) if result.present else "-"
        rows.append((device.name, device.mac, result.status.value, age, get_vendor(device.mac) or "-"))
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]) - 1)]
    for row in rows:
        print("  ".join(cell.ljust(width) for cell, width in zip(row, widths)) + "  " + row[-1])
    return EXIT_OK


def run_forget(config: Dynaconf, registry: Registry, name: str) -> int:
    device = registry.require(name)
    if get_store(config).remove(device.name):
        logger.info("Forgot last sighting of %s", device.name)
    else:
        logger.info("No sighting of %s was recorded", device.name)
    return EXIT_OK


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of seconds: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError("timeout cannot be negative")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netpresence",
        description="Passive network presence detector",
        epilog="Run only one detector per store directory.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--continuous", action="store_true", help="Listen forever, updating last-seen records")
    mode.add_argument("--once", action="store_true", help="Run one detection pass and print devices not seen")
    mode.add_argument("--query", metavar="NAME", help="Report whether a device is present")
    mode.add_argument("--list", action="store_true", help="Show the status of every configured device")
    mode.add_argument("--forget", metavar="NAME", help="Delete the last-seen record of a device")
    parser.add_argument("-c", "--config", type=Path, default=Path(DEFAULT_SETTINGS),
                        help=f"Settings file (default: {DEFAULT_SETTINGS})")
    parser.add_argument("-t", "--timeout", type=non_negative_int,
                        help="Seconds a sighting stays fresh (default: general.timeout or %d)" % DEFAULT_TIMEOUT)
    parser.add_argument("-b", "--on-off", action="store_true", help="Print On/Off instead of the age in seconds")
    parser.add_argument("--update-mac-db", action="store_true", help="Force update of the MAC vendor database")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    return parser


def run(args: argparse.Namespace) -> int:
    config = load_settings(args.config)
    registry = load_registry(config)

    if args.continuous:
        return run_continuous(config, registry)
    if args.once:
        return run_once(config, registry)

    timeout = get_timeout(config, args.timeout)
    if args.query is not None:
        return run_query(config, registry, args.query, timeout, args.on_off)
    if args.list:
        return run_list(config, registry, timeout)
    return run_forget(config, registry, args.forget)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    has_mode = args.continuous or args.once or args.list or args.query is not None or args.forget is not None
    if not has_mode and not args.update_mac_db:
        parser.error("one of --continuous, --once, --query, --list or --forget is required")

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    if args.update_mac_db:
        # Update the database if requested.
        try:
            update_vendor_db()
        except Exception as err:  # pylint: disable=broad-except
            logger.error("Could not update the MAC vendor database: %s", err)
            if not has_mode:
                return EXIT_VENDOR_DB
        if not has_mode:
            return EXIT_OK

    try:
        return run(args)
    except PresenceError as err:
        logger.error("%s", err)
        return err.exit_code


if __name__ == "__main__":
    sys.exit(main())
