# utils.py
import re
import logging
from typing import Iterable, Optional

from mac_vendor_lookup import MacLookup

logger = logging.getLogger(__name__)

MAC_PATTERN = re.compile(r"^([0-9a-f]{2}:){5}[0-9a-f]{2}$")

_mac_lookup: Optional[MacLookup] = None


def format_mac(mac: str) -> str:
    """Formats a MAC address to lowercase with colons."""
    return mac.strip().lower().replace("-", ":")


def is_valid_mac(mac: str) -> bool:
    """Checks if a string is a MAC address in any of the accepted notations."""
    return bool(MAC_PATTERN.match(format_mac(mac)))


def build_capture_filter(addresses: Iterable[str]) -> str:
    """Builds a BPF expression matching frames sent from or to any of the addresses.

    Addresses are normalized and sorted so the same set always gives the same
    expression.
    """
    macs = sorted({format_mac(address) for address in addresses})
    if not macs:
        raise ValueError("Cannot build a capture filter for an empty address set")
    return " or ".join(f"ether host {mac}" for mac in macs)


def get_vendor(mac: str) -> Optional[str]:
    """Returns the vendor registered for the MAC prefix, or None if unknown."""
    global _mac_lookup
    try:
        if _mac_lookup is None:
            _mac_lookup = MacLookup()
        return _mac_lookup.lookup(mac)
    except Exception as e:  # pylint: disable=broad-except
        logger.debug("Could not determine vendor for MAC %s: %s", mac, e)
        return None


def update_vendor_db() -> None:
    """Downloads a fresh copy of the MAC vendor database."""
    MacLookup().update_vendors()
