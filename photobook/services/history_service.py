"""
History Service - Linear undo log of whole-scene snapshots.
"""

import logging
from typing import List, Optional

from ..config import HISTORY_LIMIT

logger = logging.getLogger(__name__)


class HistoryStack:
    """
    Bounded undo history.

    The top of the undo list is always the current scene. Undo moves it to
    the redo list; any new snapshot clears the redo list, so once a fresh
    edit is made after an undo the undone states are gone for good.
    """

    def __init__(self, limit: int = HISTORY_LIMIT):
        if limit < 1:
            raise ValueError(f"History limit must be >= 1, got {limit}")
        self.limit = limit
        self._undo: List[str] = []
        self._redo: List[str] = []

    def __len__(self):
        return len(self._undo)

    @property
    def current(self) -> Optional[str]:
        return self._undo[-1] if self._undo else None

    def can_undo(self) -> bool:
        return len(self._undo) > 1

    def can_redo(self) -> bool:
        return bool(self._redo)

    def push(self, snapshot: str):
        """Record a committed mutation; evicts the oldest entry past the limit."""
        self._undo.append(snapshot)
        if len(self._undo) > self.limit:
            del self._undo[0]
        self._redo.clear()

    def undo(self) -> Optional[str]:
        """
        Step back one snapshot.

        Returns:
            The snapshot to restore, or None if there is nothing to undo
        """
        if not self.can_undo():
            return None
        self._redo.append(self._undo.pop())
        return self._undo[-1]

    def redo(self) -> Optional[str]:
        """
        Re-apply the most recently undone snapshot.

        Returns:
            The snapshot to restore, or None if nothing was undone since the last edit
        """
        if not self._redo:
            return None
        snapshot = self._redo.pop()
        self._undo.append(snapshot)
        return snapshot

    def reset(self, baseline: str):
        """Start a fresh history, e.g. after switching spreads."""
        self._undo = [baseline]
        self._redo = []
        logger.debug("History reset")
