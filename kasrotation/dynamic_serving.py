"""Thread-safe holder for the hostnames a serving certificate must cover."""

from __future__ import annotations

import queue
import threading
from collections.abc import Iterable

DEFAULT_SIGNAL_CAPACITY = 10


class DynamicServingRotation:
    """Hostnames for a serving rotation that may change at runtime.

    Every real change of the hostname set puts a signal on
    ``hostnames_changed`` so that a waiting rotator regenerates its
    certificate.
    """

    def __init__(self, capacity: int = DEFAULT_SIGNAL_CAPACITY) -> None:
        self._lock = threading.RLock()
        self._hostnames: list[str] = []
        self.hostnames_changed: queue.Queue[None] = queue.Queue(maxsize=capacity)

    def set_hostnames(self, hostnames: Iterable[str]) -> None:
        """Replace the hostnames and signal a change, unless the set is unchanged."""
        new_hostnames = list(hostnames)
        if self.is_same(new_hostnames):
            return
        with self._lock:
            self._hostnames = new_hostnames
        # Blocks when the signal buffer is full, just like a bounded channel.
        self.hostnames_changed.put(None)

    def is_same(self, hostnames: Iterable[str]) -> bool:
        """Whether ``hostnames`` holds the same set of names as the current ones."""
        with self._lock:
            return set(self._hostnames) == set(hostnames)

    def get_hostnames(self) -> list[str]:
        """The current hostnames, in the order they were set."""
        with self._lock:
            return list(self._hostnames)