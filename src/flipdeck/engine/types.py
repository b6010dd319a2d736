from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping

Colour = Literal["RED", "BLUE", "GREEN", "YELLOW", "BROWN", "PURPLE", "TEAL", "ORANGE", "WILD"]
CardType = Literal[
    "NUMBER",
    "REVERSE",
    "SKIP",
    "DRAW_ONE",
    "DRAW_FIVE",
    "SKIP_EVERYONE",
    "FLIP",
    "WILD",
    "WILD_DRAW_TWO",
    "WILD_DRAW_COLOR",
]
Side = Literal["LIGHT", "DARK"]
Phase = Literal["NEW_ROUND", "HANDLE_INITIAL_HAND", "HANDLE_AFTER_DRAW"]
PlayerKind = Literal["human", "scripted"]
ColourTiebreak = Literal["hand_order", "palette_order"]

LIGHT_COLOURS: tuple[Colour, ...] = ("RED", "BLUE", "GREEN", "YELLOW")
DARK_COLOURS: tuple[Colour, ...] = ("BROWN", "PURPLE", "TEAL", "ORANGE")
ALL_COLOURS: tuple[Colour, ...] = LIGHT_COLOURS + ("WILD",) + DARK_COLOURS
ALL_CARD_TYPES: tuple[CardType, ...] = (
    "NUMBER",
    "REVERSE",
    "SKIP",
    "DRAW_ONE",
    "DRAW_FIVE",
    "SKIP_EVERYONE",
    "FLIP",
    "WILD",
    "WILD_DRAW_TWO",
    "WILD_DRAW_COLOR",
)
WILD_TYPES: frozenset[CardType] = frozenset({"WILD", "WILD_DRAW_TWO", "WILD_DRAW_COLOR"})
PHASES: tuple[Phase, ...] = ("NEW_ROUND", "HANDLE_INITIAL_HAND", "HANDLE_AFTER_DRAW")
PLAYER_KINDS: tuple[PlayerKind, ...] = ("human", "scripted")
COLOUR_TIEBREAKS: tuple[ColourTiebreak, ...] = ("hand_order", "palette_order")


def palette_for(side: Side) -> tuple[Colour, ...]:
    """Colours a wild card may be given while `side` is face up."""
    return LIGHT_COLOURS if side == "LIGHT" else DARK_COLOURS


@dataclass(frozen=True)
class Face:
    colour: Colour
    type: CardType
    value: int


@dataclass(frozen=True)
class EngineConfig:
    hand_size: int = 7
    target_score: int = 50
    min_players: int = 2
    max_players: int = 4
    # Policy points: the reference ruleset never recycles the discard pile and
    # breaks scripted colour ties by the first colour met in hand.
    recycle_discard: bool = False
    colour_tiebreak: ColourTiebreak = "hand_order"

    @staticmethod
    def from_dict(d: Mapping[str, object]) -> "EngineConfig":
        default = EngineConfig()
        tiebreak = d.get("colour_tiebreak", default.colour_tiebreak)
        if tiebreak not in COLOUR_TIEBREAKS:
            raise ValueError(f"Unknown colour tie-break policy: {tiebreak}")

        def int_field(key: str, fallback: int) -> int:
            v = d.get(key, fallback)
            if not isinstance(v, int) or isinstance(v, bool):
                raise ValueError(f"Expected int for {key}")
            return v

        return EngineConfig(
            hand_size=int_field("hand_size", default.hand_size),
            target_score=int_field("target_score", default.target_score),
            min_players=int_field("min_players", default.min_players),
            max_players=int_field("max_players", default.max_players),
            recycle_discard=bool(d.get("recycle_discard", default.recycle_discard)),
            colour_tiebreak=tiebreak,  # type: ignore[arg-type]
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "hand_size": self.hand_size,
            "target_score": self.target_score,
            "min_players": self.min_players,
            "max_players": self.max_players,
            "recycle_discard": self.recycle_discard,
            "colour_tiebreak": self.colour_tiebreak,
        }
