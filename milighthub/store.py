"""Cached, persisted group states with group 0 fan-out."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Mapping
from dataclasses import replace

from milighthub.cache import GroupStateCache
from milighthub.fields import BulbId, RemoteType
from milighthub.group_state import GroupState
from milighthub.persistence import GroupStatePersistence


class GroupStateStore:
    """Front for group states: an LRU cache backed by persistent storage.

    ``group_counts`` maps every supported remote type to its number of
    groups; states for other remote types are not available.
    """

    def __init__(
        self,
        max_size: int,
        flush_rate: int,
        persistence: GroupStatePersistence,
        group_counts: Mapping[RemoteType, int],
    ) -> None:
        self.cache = GroupStateCache(max_size)
        self.flush_rate = flush_rate
        self.persistence = persistence
        self.group_counts = {RemoteType(k): int(v) for k, v in group_counts.items()}
        self.evicted_ids: deque[BulbId] = deque()
        self.last_flush = 0

    def get(self, bulb_id: BulbId) -> GroupState | None:
        """The state for ``bulb_id``, loaded or defaulted when not cached.

        Returns None when the remote type is not supported.
        """
        state = self.cache.get(bulb_id)
        if state is None:
            self._track_eviction()
            loaded = GroupState.default_state(bulb_id.device_type)
            if bulb_id.device_type not in self.group_counts:
                return None
            self.persistence.get(bulb_id, loaded)
            state = self.cache.set(bulb_id, loaded)
        return state

    def set(self, bulb_id: BulbId, state: GroupState) -> GroupState:
        """Patch the stored state for ``bulb_id`` with the set fields of ``state``.

        Group 0 addresses every group of a device, so its changes are
        copied to each group; a change to one group makes the differing
        fields of group 0 unknown.
        """
        stored = self.get(bulb_id)
        if stored is None:
            raise KeyError(f"unsupported remote type: {bulb_id.device_type!r}")
        stored.patch(state)

        if bulb_id.group_id == 0:
            for group_id in range(1, self.group_counts[bulb_id.device_type] + 1):
                individual = self.get(replace(bulb_id, group_id=group_id))
                individual.patch(state)
        else:
            group0 = self.get(replace(bulb_id, group_id=0))
            group0.clear_non_matching_fields(state)

        return stored

    def clear(self, bulb_id: BulbId) -> None:
        """Reset the state for ``bulb_id`` to its remote type's default."""
        state = self.get(bulb_id)
        if state is not None:
            state.reset()
            state.patch(GroupState.default_state(bulb_id.device_type))

    def _track_eviction(self) -> None:
        if self.cache.is_full() and len(self.cache):
            self.evicted_ids.append(self.cache.lru())

    def flush(self) -> bool:
        """Do one unit of storage work; return True if anything was done.

        Writes the most recently used state if it is dirty, otherwise
        removes the stored state of one evicted id.
        """
        head = next(iter(self.cache), None)
        if head is not None:
            bulb_id, state = head
            if state.is_dirty():
                self.persistence.set(bulb_id, state)
                state.clear_dirty()
                return True

        if self.evicted_ids:
            self.persistence.clear(self.evicted_ids.popleft())
            return True
        return False

    def limited_flush(self, now: float | None = None) -> None:
        """Flush, at most once every ``flush_rate`` milliseconds."""
        if now is None:
            now = time.monotonic() * 1000
        if self.last_flush + self.flush_rate < now:
            if self.flush():
                self.last_flush = now