# exceptions.py
from typing import Any, Dict, Optional


class PresenceError(Exception):
    """Base class for all netpresence errors."""

    exit_code = 1

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details})"
        return self.message


class ConfigError(PresenceError):
    """Settings file or device table is missing or unusable."""

    exit_code = 3


class UnknownDeviceError(ConfigError):
    """A device name was requested that is not in the registry."""

    def __init__(self, name: str):
        super().__init__(f"Unknown device: {name}", {"name": name})
        self.name = name


class CaptureError(PresenceError):
    """The packet capture capability is unavailable (privileges, interface, libpcap)."""

    exit_code = 4


class StoreError(PresenceError):
    """A presence record could not be written."""

    exit_code = 5
