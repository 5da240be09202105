"""Storage of group states as small files, one per bulb group."""

from __future__ import annotations

import os
from pathlib import Path

from milighthub.fields import BulbId
from milighthub.group_state import DATA_LENGTH, GroupState

FILE_PREFIX = "group_states"


class GroupStatePersistence:
    """Reads and writes packed group states under a root directory."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)

    def path_for(self, bulb_id: BulbId) -> Path:
        """The file holding the state of ``bulb_id``."""
        return self.root / FILE_PREFIX / f"{bulb_id.compact_id():x}"

    def get(self, bulb_id: BulbId, state: GroupState) -> None:
        """Load the stored state into ``state``; leave it untouched if none is stored."""
        path = self.path_for(bulb_id)
        if path.exists():
            with path.open("rb") as f:
                state.load_bytes(f.read(DATA_LENGTH))

    def set(self, bulb_id: BulbId, state: GroupState) -> None:
        """Write the persistent part of ``state``."""
        path = self.path_for(bulb_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(state.to_bytes())

    def clear(self, bulb_id: BulbId) -> None:
        """Remove the stored state, if there is one."""
        path = self.path_for(bulb_id)
        if path.exists():
            path.unlink()