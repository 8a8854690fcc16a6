# capture/__init__.py
from dynaconf import Dynaconf

from exceptions import ConfigError
from .base import BaseCapture
from .scapy_sniffer import ScapySniffer  # Import all concrete implementations


def get_capture(config: Dynaconf) -> BaseCapture:
    """Capture factory: returns an instance of the configured capture class."""

    general = config.get("general") or {}
    capture_method = general.get("capture_method", "scapy")

    if capture_method == "scapy":
        return ScapySniffer(general)  # Pass the [general] section
    # Add other capture methods here:
    # elif capture_method == "pcapy":
    #     return PcapySniffer(general)
    else:
        raise ConfigError(f"Unsupported capture method: {capture_method}")
