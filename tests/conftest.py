"""Shared fixtures: a scripted capture, a fake clock and a recording store."""

import threading
from typing import List, Optional

import pytest

import utils
from capture.base import BaseCapture
from data import PresenceStore
from device import Registry

PHONE = "aa:bb:cc:dd:ee:ff"
LAPTOP = "00:11:22:33:44:55"
WATCH = "de:ad:be:ef:00:01"


class ScriptedCapture(BaseCapture):
    """Returns scripted results, one per listen() call, and records what was asked.

    Once the script runs out it sets ``stop_event`` (if given) and keeps
    returning None.
    """

    def __init__(self, script: List[Optional[str]], stop_event: Optional[threading.Event] = None):
        self.script = list(script)
        self.stop_event = stop_event
        self.calls: List[frozenset] = []
        self.budgets: List[float] = []

    def listen(self, addresses, budget):
        if not addresses:
            raise ValueError("listen() needs at least one address")
        self.calls.append(frozenset(addresses))
        self.budgets.append(budget)
        result = self.script.pop(0) if self.script else None
        if not self.script and self.stop_event is not None:
            self.stop_event.set()
        return result


class FakeClock:
    def __init__(self, start: float = 1000):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingStore(PresenceStore):
    def __init__(self, directory):
        super().__init__(directory)
        self.writes = []

    def write(self, name, timestamp):
        self.writes.append((name, timestamp))
        super().write(name, timestamp)


class _NoVendors:
    def lookup(self, mac):
        raise KeyError(mac)


@pytest.fixture(autouse=True)
def no_vendor_download(monkeypatch):
    """Keeps MAC vendor lookups offline."""
    monkeypatch.setattr(utils, "_mac_lookup", _NoVendors())


@pytest.fixture
def registry():
    return Registry.from_mapping({"phone": PHONE, "laptop": LAPTOP, "watch": WATCH})


@pytest.fixture
def store(tmp_path):
    return RecordingStore(tmp_path / "store")


@pytest.fixture
def clock():
    return FakeClock()
