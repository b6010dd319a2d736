"""Deterministic, headless turn engine for flipdeck.

IMPORTANT: This package must never touch files or a UI.
"""

from .actions import ChooseColourAction, DrawCardAction, PlayCardAction, StartRoundAction
from .cards import TOTAL_CARDS, Card, Deck, matches
from .errors import EmptyDeckError, EngineError, InvalidColourChoice, InvalidMoveError
from .game import GameEngine, GameState, PlayerState, StepResult, new_game, replay
from .snapshot import Snapshot, SnapshotStore
from .types import CardType, Colour, EngineConfig, Face, Phase

__all__ = [
    "Card",
    "CardType",
    "ChooseColourAction",
    "Colour",
    "Deck",
    "DrawCardAction",
    "EmptyDeckError",
    "EngineConfig",
    "EngineError",
    "Face",
    "GameEngine",
    "GameState",
    "InvalidColourChoice",
    "InvalidMoveError",
    "Phase",
    "PlayCardAction",
    "PlayerState",
    "Snapshot",
    "SnapshotStore",
    "StartRoundAction",
    "StepResult",
    "TOTAL_CARDS",
    "matches",
    "new_game",
    "replay",
]
