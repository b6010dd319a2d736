from __future__ import annotations

from dataclasses import dataclass

from .types import Colour


@dataclass(frozen=True)
class StartRoundAction:
    pass


@dataclass(frozen=True)
class PlayCardAction:
    player: int
    hand_index: int
    colour: Colour | None = None  # wild cards only; may also follow via ChooseColourAction


@dataclass(frozen=True)
class DrawCardAction:
    player: int


@dataclass(frozen=True)
class ChooseColourAction:
    player: int
    colour: Colour


Action = StartRoundAction | PlayCardAction | DrawCardAction | ChooseColourAction
