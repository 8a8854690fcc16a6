# sweep.py
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

from capture.base import BaseCapture
from data import PresenceStore
from device import Registry
from exceptions import ConfigError
from utils import format_mac, get_vendor

logger = logging.getLogger(__name__)

DEFAULT_BUDGET = 10


@dataclass
class SweepReport:
    """Outcome of a single-pass sweep."""
    detected: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    cycles: int = 0

    @property
    def complete(self) -> bool:
        return not self.missing


class SweepScheduler:
    """Drives capture cycles over the registry and records every sighting.

    The pending set holds the addresses not yet seen in the current sweep.
    Each cycle listens for the pending addresses only. A match is recorded and
    removed from the pending set; a cycle without a match either refills the
    pending set (continuous mode) or ends the sweep (single pass).

    Exactly one scheduler may write to a given store.
    """

    def __init__(self, registry: Registry, capture: BaseCapture, store: PresenceStore,
                 budget: float = DEFAULT_BUDGET, clock: Callable[[], float] = time.time):
        if len(registry) == 0:
            raise ConfigError("No devices configured, nothing to listen for")
        self.registry = registry
        self.capture = capture
        self.store = store
        self.budget = budget
        self.clock = clock
        self.pending: Set[str] = set()

    def refill(self) -> None:
        self.pending = set(self.registry.addresses)

    def cycle(self) -> Optional[str]:
        """Runs one listen over the pending set and records a match.

        Returns the matched address, or None when the budget ran out.
        """
        if not self.pending:
            raise RuntimeError("cycle() called with an empty pending set")

        address = self.capture.listen(frozenset(self.pending), self.budget)
        if address is None:
            return None
        address = format_mac(address)

        device = self.registry.lookup_by_address(address)
        if device is not None:
            now = int(self.clock())
            self.store.write(device.name, now)
            logger.info("Detected %s (%s, %s)", device.name, address, get_vendor(address) or "unknown vendor")
        else:
            logger.debug("Captured address %s is not configured", address)
        # Consumed for this sweep even when unknown, so the same traffic cannot busy-loop
        self.pending.discard(address)
        return address

    def run_once(self) -> SweepReport:
        """One sweep over the whole registry, ending early after a cycle with no match."""
        report = SweepReport()
        self.refill()
        while self.pending:
            report.cycles += 1
            address = self.cycle()
            if address is None:
                break
            device = self.registry.lookup_by_address(address)
            if device is not None:
                report.detected.append(device.name)

        report.missing = [d.name for d in self.registry if d.mac in self.pending]
        logger.info("Sweep finished after %d cycle(s): %d detected, %d not seen",
                    report.cycles, len(report.detected), len(report.missing))
        return report

    def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        """Listens until stop_event is set. Never returns on its own otherwise."""
        stop_event = stop_event or threading.Event()
        self.refill()
        logger.info("Listening for %d device(s), %ss per cycle", len(self.registry), self.budget)
        while not stop_event.is_set():
            if not self.pending:
                logger.debug("All devices seen this sweep, starting a new one")
                self.refill()
            if self.cycle() is None:
                # A quiet cycle restarts the sweep so nobody is left out of the next listen
                self.refill()
        logger.info("Detector stopped")
