"""Short-lived duplicate filter for inbound events.

Discord can deliver the same gateway event more than once (reconnects,
resumed sessions). Each inbound message id is marked once, and any repeat
within the window is skipped.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable

DEFAULT_TTL_S = 30.0


class DedupFilter:
    """Set of recently seen ids with per-entry expiry.

    Expiry is checked lazily on access, and expired entries are swept
    whenever a new id is marked, so memory stays bounded by the event
    rate times the window.
    """

    def __init__(
        self,
        ttl_s: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        self._expires: dict[Hashable, float] = {}

    def mark(self, event_id: Hashable) -> None:
        now = self._clock()
        self._sweep(now)
        self._expires[event_id] = now + self.ttl_s

    def seen(self, event_id: Hashable) -> bool:
        deadline = self._expires.get(event_id)
        if deadline is None:
            return False
        if self._clock() >= deadline:
            del self._expires[event_id]
            return False
        return True

    def check_and_mark(self, event_id: Hashable) -> bool:
        """Return True if the id was already seen; mark it otherwise."""
        if self.seen(event_id):
            return True
        self.mark(event_id)
        return False

    def _sweep(self, now: float) -> None:
        expired = [key for key, deadline in self._expires.items() if now >= deadline]
        for key in expired:
            del self._expires[key]

    def __len__(self) -> int:
        return len(self._expires)
