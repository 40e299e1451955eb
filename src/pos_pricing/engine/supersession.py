"""
Last-call-wins gate for overlapping pricing requests.

The POS screen re-prices the cart after every edit. Results may come back
out of order; only the result of the most recently issued request is kept.
"""
import threading
from typing import Any, Optional


class LatestCallGate:
    """Hands out tickets and accepts only the newest ticket's result."""

    def __init__(self):
        self._lock = threading.Lock()
        self._issued = 0
        self._accepted: Optional[int] = None
        self._latest: Any = None

    def issue(self) -> int:
        """Start a new call and return its ticket."""
        with self._lock:
            self._issued += 1
            return self._issued

    def is_current(self, ticket: int) -> bool:
        with self._lock:
            return ticket == self._issued

    def accept(self, ticket: int, result: Any) -> bool:
        """
        Store `result` if `ticket` is the newest issued one.

        Returns False (and drops the result) for superseded tickets.
        """
        with self._lock:
            if ticket != self._issued:
                return False
            self._accepted = ticket
            self._latest = result
            return True

    @property
    def latest(self) -> Any:
        """Result of the newest accepted call, or None."""
        with self._lock:
            return self._latest

    @property
    def latest_ticket(self) -> Optional[int]:
        with self._lock:
            return self._accepted
