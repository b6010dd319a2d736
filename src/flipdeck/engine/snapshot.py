from __future__ import annotations

import copy
from dataclasses import dataclass, field

from .game import GameState
from .types import Phase


@dataclass(frozen=True)
class Snapshot:
    """Independent copy of a game plus the phase to resume it at."""

    state: GameState
    phase: Phase

    @staticmethod
    def capture(state: GameState, phase: Phase) -> "Snapshot":
        return Snapshot(state=copy.deepcopy(state), phase=phase)


@dataclass
class SnapshotStore:
    """Linear undo/redo history.

    Recording a new snapshot drops the redo branch. Snapshots equal to the
    live state are skipped when stepping so an undo never looks like a no-op.
    """

    undo_stack: list[Snapshot] = field(default_factory=list)
    redo_stack: list[Snapshot] = field(default_factory=list)

    def record(self, state: GameState, phase: Phase) -> None:
        self.undo_stack.append(Snapshot.capture(state, phase))
        self.redo_stack.clear()

    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def undo(self, live: GameState, phase: Phase) -> Snapshot | None:
        return self._swap(self.undo_stack, self.redo_stack, live, phase)

    def redo(self, live: GameState, phase: Phase) -> Snapshot | None:
        return self._swap(self.redo_stack, self.undo_stack, live, phase)

    def discard_last(self) -> Snapshot | None:
        """Pop the most recent undo entry without touching the redo stack."""
        return self.undo_stack.pop() if self.undo_stack else None

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()

    @staticmethod
    def _swap(
        source: list[Snapshot], target: list[Snapshot], live: GameState, phase: Phase
    ) -> Snapshot | None:
        while source and source[-1].state == live:
            source.pop()
        if not source:
            return None
        target.append(Snapshot.capture(live, phase))
        return source.pop()
