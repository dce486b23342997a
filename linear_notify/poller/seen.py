"""Bounded memory of notification ids that were already dispatched."""

from __future__ import annotations

# Once the set grows past MAX_SEEN entries it is cut back to the newest PRUNE_TO
MAX_SEEN = 1000
PRUNE_TO = 500


class SeenSet:
    """Insertion-ordered set of ids, pruned by recency.

    Nothing is persisted: a restarted process starts empty and relies on the
    provider's first-fetch window to avoid replaying old history.
    """

    def __init__(self, max_size: int = MAX_SEEN, prune_to: int = PRUNE_TO):
        if not 0 < prune_to < max_size:
            raise ValueError("prune_to must be positive and smaller than max_size")
        self.max_size = max_size
        self.prune_to = prune_to
        # dict keys keep insertion order, which is all the recency we need
        self._ids: dict[str, None] = {}

    def has(self, notification_id: str) -> bool:
        return notification_id in self._ids

    __contains__ = has

    def add(self, notification_id: str) -> None:
        """Record an id; re-adding an id does not refresh its position."""
        self._ids.setdefault(notification_id, None)
        self.prune()

    def size(self) -> int:
        return len(self._ids)

    __len__ = size

    def prune(self) -> int:
        """Drop the oldest ids if over the ceiling. Returns how many were dropped."""
        if len(self._ids) <= self.max_size:
            return 0
        keep = list(self._ids)[-self.prune_to:]
        dropped = len(self._ids) - len(keep)
        self._ids = dict.fromkeys(keep)
        return dropped

    def clear(self) -> None:
        self._ids.clear()

    def __iter__(self):
        return iter(self._ids)
