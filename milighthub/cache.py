"""A small least-recently-used cache of group states."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterator

from milighthub.fields import BulbId
from milighthub.group_state import GroupState


class GroupStateCache:
    """Keeps at most ``max_size`` group states, most recently used first."""

    def __init__(self, max_size: int) -> None:
        if max_size < 0:
            raise ValueError(f"negative cache size: {max_size}")
        self.max_size = max_size
        self._entries: OrderedDict[BulbId, GroupState] = OrderedDict()

    def get(self, bulb_id: BulbId) -> GroupState | None:
        """Return the cached state for ``bulb_id`` and mark it most recently used."""
        state = self._entries.get(bulb_id)
        if state is not None:
            self._entries.move_to_end(bulb_id, last=False)
        return state

    def set(self, bulb_id: BulbId, state: GroupState) -> GroupState:
        """Store a copy of ``state`` and return the cached object.

        When the cache is full the least recently used entry is dropped
        first, even if ``bulb_id`` is already cached elsewhere.
        """
        if self.is_full() and self._entries:
            self._entries.popitem(last=True)

        cached = state.copy()
        self._entries[bulb_id] = cached
        self._entries.move_to_end(bulb_id, last=False)
        return cached

    def lru(self) -> BulbId:
        """The id of the least recently used entry."""
        if not self._entries:
            raise LookupError("cache is empty")
        return next(reversed(self._entries))

    def is_full(self) -> bool:
        return len(self._entries) >= self.max_size

    def __iter__(self) -> Iterator[tuple[BulbId, GroupState]]:
        """Entries as ``(bulb_id, state)`` pairs, most recently used first."""
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)