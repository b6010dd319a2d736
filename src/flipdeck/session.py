from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Sequence

from flipdeck.engine.actions import (
    Action,
    ChooseColourAction,
    DrawCardAction,
    PlayCardAction,
    StartRoundAction,
)
from flipdeck.engine.ai import Strategy
from flipdeck.engine.cards import Card
from flipdeck.engine.errors import EmptyDeckError
from flipdeck.engine.events import Event, GameListener, NullListener
from flipdeck.engine.game import GameEngine, GameState, PlayerState, StepResult, new_game
from flipdeck.engine.snapshot import Snapshot, SnapshotStore
from flipdeck.engine.types import Colour, EngineConfig, PlayerKind
from flipdeck.services.saves import SaveError, SaveService
from flipdeck.services.telemetry import TelemetryService

logger = logging.getLogger(__name__)


@dataclass
class _Fanout:
    """Forwards engine events to the view listener and, if set, telemetry."""

    listener: GameListener
    telemetry: TelemetryService | None = None

    def notify(self, event: Event) -> None:
        self.listener.notify(event)
        if self.telemetry is not None:
            self.telemetry.record(event)

    def ask_new_game(self, state: GameState, winner: int) -> bool:
        return self.listener.ask_new_game(state, winner)


class GameSession:
    """Controller facade over one live engine: actions, undo/redo and saves.

    Every action is recorded in the snapshot store before it mutates anything.
    The engine is replaced wholesale on undo, redo and load, so nothing outside
    this class should hold on to `engine` or `state` across those calls.
    """

    def __init__(
        self,
        state: GameState,
        *,
        listener: GameListener | None = None,
        saves: SaveService | None = None,
        telemetry: TelemetryService | None = None,
        strategies: Mapping[str, Strategy] | None = None,
    ) -> None:
        self.store = SnapshotStore()
        self.saves = saves
        self._fanout = _Fanout(listener=listener or NullListener(), telemetry=telemetry)
        self._strategies = dict(strategies) if strategies else None
        self.engine = self._make_engine(state)

    @classmethod
    def new(
        cls,
        players: Sequence[PlayerState | tuple[str, PlayerKind] | str],
        seed: int = 0,
        config: EngineConfig | None = None,
        *,
        listener: GameListener | None = None,
        saves: SaveService | None = None,
        telemetry: TelemetryService | None = None,
        strategies: Mapping[str, Strategy] | None = None,
    ) -> "GameSession":
        state = new_game(players, seed=seed, config=config)
        return cls(state, listener=listener, saves=saves, telemetry=telemetry, strategies=strategies)

    def _make_engine(self, state: GameState) -> GameEngine:
        return GameEngine(
            state,
            listener=self._fanout,
            recorder=self.store.record,
            strategies=self._strategies,
        )

    # -------- Accessors --------
    @property
    def state(self) -> GameState:
        return self.engine.state

    def current_player(self) -> PlayerState:
        return self.engine.current_player()

    def top_of_discard(self) -> Card | None:
        return self.engine.top_of_discard()

    def round_winner(self) -> PlayerState | None:
        return self.engine.round_winner()

    def scores(self) -> dict[str, int]:
        return self.engine.scores()

    def can_undo(self) -> bool:
        return self.store.can_undo()

    def can_redo(self) -> bool:
        return self.store.can_redo()

    # -------- Actions --------
    def start_round(self) -> StepResult:
        return self._apply(StartRoundAction())

    def play_card(self, hand_index: int, colour: Colour | None = None) -> StepResult:
        return self._apply(PlayCardAction(self.state.current_player, hand_index, colour))

    def draw_card(self) -> StepResult:
        return self._apply(DrawCardAction(self.state.current_player))

    def choose_colour(self, colour: Colour) -> StepResult:
        return self._apply(ChooseColourAction(self.state.current_player, colour))

    def _apply(self, action: Action) -> StepResult:
        depth = len(self.store.undo_stack)
        redo = list(self.store.redo_stack)
        try:
            return self.engine.step(action)
        except EmptyDeckError as e:
            snap = self.store.discard_last() if len(self.store.undo_stack) > depth else None
            if snap is not None:
                self.store.redo_stack[:] = redo
                self.engine = self._make_engine(snap.state)
                self._fanout.notify({"type": "STATE_RESTORED", "reason": "rollback", "phase": snap.phase})
            logger.warning("Action %s rolled back: %s", type(action).__name__, e)
            return StepResult(ok=False, events=[], error=str(e))

    # -------- History --------
    def undo(self) -> bool:
        snap = self.store.undo(self.state, self.state.phase)
        if snap is None:
            return False
        logger.info("Undo to %s (round %d)", snap.phase, snap.state.round_no)
        self._restore(snap, "undo")
        return True

    def redo(self) -> bool:
        snap = self.store.redo(self.state, self.state.phase)
        if snap is None:
            return False
        logger.info("Redo to %s (round %d)", snap.phase, snap.state.round_no)
        self._restore(snap, "redo")
        return True

    def _restore(self, snap: Snapshot, reason: str) -> StepResult:
        self.engine = self._make_engine(snap.state)
        self._fanout.notify({"type": "STATE_RESTORED", "reason": reason, "phase": snap.phase})
        return self.engine.resume(snap.phase)

    # -------- Persistence --------
    def _require_saves(self) -> SaveService:
        if self.saves is None:
            raise SaveError("No save directory configured.")
        return self.saves

    def save(self, name: str) -> None:
        self._require_saves().save(name, Snapshot.capture(self.state, self.state.phase))

    def load(self, name: str) -> None:
        snap = self._require_saves().load(name)
        self.store.clear()
        logger.info("Resuming loaded game %r at %s", name, snap.phase)
        self._restore(snap, "load")
