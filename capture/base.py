# capture/base.py
from abc import ABC, abstractmethod
from typing import AbstractSet, Optional


class BaseCapture(ABC):
    """Abstract base class for passive link-layer listeners."""

    @abstractmethod
    def listen(self, addresses: AbstractSet[str], budget: float) -> Optional[str]:
        """Waits for one frame sent from or to any of the given addresses.

        Args:
            addresses: Normalized MAC addresses to listen for. Must not be empty.
            budget: Maximum number of seconds to wait.

        Returns:
            The matching address (one of ``addresses``), or None if the budget
            expired without a match.

        Raises:
            ValueError: If ``addresses`` is empty.
            CaptureError: If capturing is not possible at all.
        """
        pass
