from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

HISTORY_LIMIT = 50

Snapshot = List[Dict[str, Any]]


class History:
    """
    Bounded undo/redo stack of option-list snapshots (plain JSON lists).

    `index` points at the snapshot matching the current tree. Pushing after an
    undo drops the redo tail; once the stack is over `limit` the oldest entry
    is discarded.
    """

    def __init__(self, entries: Optional[List[Snapshot]] = None, index: int = -1, limit: int = HISTORY_LIMIT):
        self.entries: List[Snapshot] = list(entries or [])
        self.index = index
        self.limit = limit

    def initialize(self, snapshot: Snapshot) -> None:
        self.entries = [copy.deepcopy(snapshot)]
        self.index = 0

    def clear(self) -> None:
        self.entries = []
        self.index = -1

    def push(self, snapshot: Snapshot) -> None:
        self.entries = self.entries[: self.index + 1]
        self.entries.append(copy.deepcopy(snapshot))
        if len(self.entries) > self.limit:
            self.entries.pop(0)
        else:
            self.index += 1

    @property
    def can_undo(self) -> bool:
        return self.index > 0

    @property
    def can_redo(self) -> bool:
        return self.index < len(self.entries) - 1

    def undo(self) -> Optional[Snapshot]:
        if not self.can_undo:
            return None
        self.index -= 1
        return copy.deepcopy(self.entries[self.index])

    def redo(self) -> Optional[Snapshot]:
        if not self.can_redo:
            return None
        self.index += 1
        return copy.deepcopy(self.entries[self.index])
