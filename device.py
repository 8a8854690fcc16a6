# device.py
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional

from exceptions import ConfigError, UnknownDeviceError
from utils import format_mac, is_valid_mac

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Device:
    name: str
    mac: str  # Normalized: lowercase, colon separated


def is_valid_name(name: str) -> bool:
    """Device names double as record file names, so no separators or dot-only names."""
    if not name or name.strip() != name or name in (".", ".."):
        return False
    return not any(c in name for c in "/\\\0")


class Registry:
    """Read-only mapping of device name to Device for the lifetime of one run."""

    def __init__(self, devices: List[Device]):
        self._by_name: Dict[str, Device] = {}
        self._by_mac: Dict[str, Device] = {}
        for device in devices:
            if device.name in self._by_name:
                logger.warning("Duplicate device name %s, keeping the first entry", device.name)
                continue
            self._by_name[device.name] = device
            # First configured name wins the reverse lookup
            if device.mac in self._by_mac:
                logger.warning("MAC %s is shared by %s and %s; detections are recorded for %s",
                               device.mac, self._by_mac[device.mac].name, device.name,
                               self._by_mac[device.mac].name)
                continue
            self._by_mac[device.mac] = device

    def __len__(self) -> int:
        return len(self._by_name)

    def __iter__(self) -> Iterator[Device]:
        return iter(self._by_name.values())

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def addresses(self) -> FrozenSet[str]:
        return frozenset(self._by_mac)

    def lookup_by_name(self, name: str) -> Optional[Device]:
        return self._by_name.get(name)

    def lookup_by_address(self, address: str) -> Optional[Device]:
        return self._by_mac.get(format_mac(address))

    def require(self, name: str) -> Device:
        """Like lookup_by_name, but an unconfigured name is an error."""
        device = self.lookup_by_name(name)
        if device is None:
            raise UnknownDeviceError(name)
        return device

    @classmethod
    def from_mapping(cls, entries: Mapping[str, str]) -> "Registry":
        """Builds a registry from a name -> MAC table, skipping unusable entries."""
        devices = []
        for name, mac in entries.items():
            name = str(name)
            if not is_valid_name(name):
                logger.warning("Ignoring device with unusable name %r", name)
                continue
            if not isinstance(mac, str) or not is_valid_mac(mac):
                logger.warning("Ignoring device %s: invalid MAC address %r", name, mac)
                continue
            devices.append(Device(name=name, mac=format_mac(mac)))
        return cls(devices)


def load_registry(config) -> Registry:
    """Loads the [devices] table of the settings into a Registry.

    Args:
        config: Dynaconf settings (or any object with a dict-like ``get``).

    Raises:
        ConfigError: If the devices table is missing or is not a table.
    """
    try:
        entries = config.get("devices")
    except Exception as err:  # pylint: disable=broad-except
        raise ConfigError("Could not read device table", {"error": err}) from err

    if entries is None:
        raise ConfigError("No [devices] table in settings")
    if not isinstance(entries, Mapping):
        raise ConfigError("[devices] must be a table of name = \"mac\" entries")

    registry = Registry.from_mapping(entries)
    logger.debug("Loaded %d device(s): %s", len(registry), ", ".join(d.name for d in registry))
    return registry
