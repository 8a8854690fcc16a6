# presence.py
import enum
import time
from dataclasses import dataclass
from typing import Optional

from data import PresenceStore
from device import Registry

DEFAULT_TIMEOUT = 1800


class Status(enum.Enum):
    PRESENT = "present"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class QueryResult:
    name: str
    status: Status
    age: Optional[int] = None
    last_seen: Optional[int] = None

    @property
    def present(self) -> bool:
        return self.status is Status.PRESENT


def query(registry: Registry, store: PresenceStore, name: str,
          timeout: int = DEFAULT_TIMEOUT, now: Optional[float] = None) -> QueryResult:
    """Reports whether a device has been seen within the last `timeout` seconds.

    An age equal to the timeout still counts as present. Never writes.

    Raises:
        UnknownDeviceError: If the name is not configured.
    """
    device = registry.require(name)
    last_seen = store.read(device.name)
    if last_seen is None:
        return QueryResult(device.name, Status.UNKNOWN)

    now = int(time.time() if now is None else now)
    # A record from the future (clock stepped back) counts as just seen
    age = max(0, now - last_seen)
    if age > timeout:
        return QueryResult(device.name, Status.EXPIRED, last_seen=last_seen)
    return QueryResult(device.name, Status.PRESENT, age=age, last_seen=last_seen)


def render(result: QueryResult, on_off: bool = False) -> str:
    """Formats a result as "On"/"Off", or as the age in seconds (empty if not present)."""
    if on_off:
        return "On" if result.present else "Off"
    return str(result.age) if result.present else ""
