from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from .cards import Card, matches
from .types import Colour, ColourTiebreak


class Strategy(Protocol):
    """Decision capability attached to a player kind.

    The engine only asks automatic strategies for decisions; for the others
    it suspends and waits for an external action.
    """

    def is_automatic(self) -> bool: ...

    def select_play(self, hand: Sequence[Card], top: Card | None) -> int | None: ...

    def select_colour(self, hand: Sequence[Card], palette: Sequence[Colour]) -> Colour: ...


class HumanStrategy:
    def is_automatic(self) -> bool:
        return False

    def select_play(self, hand: Sequence[Card], top: Card | None) -> int | None:
        raise NotImplementedError("Human plays are supplied by an external action.")

    def select_colour(self, hand: Sequence[Card], palette: Sequence[Colour]) -> Colour:
        raise NotImplementedError("Human colours are supplied by an external action.")


@dataclass(frozen=True)
class ScriptedStrategy:
    """Greedy scripted player: dump the most expensive playable card first.

    tiebreak:
      hand_order    = colour met first in the hand wins a count tie
      palette_order = colour earliest in the palette wins a count tie
    """

    tiebreak: ColourTiebreak = "hand_order"

    def is_automatic(self) -> bool:
        return True

    def playable_indices(self, hand: Sequence[Card], top: Card | None) -> list[int]:
        return [i for i, card in enumerate(hand) if matches(card, top)]

    def select_play(self, hand: Sequence[Card], top: Card | None) -> int | None:
        best: int | None = None
        for idx in self.playable_indices(hand, top):
            # strict comparison keeps the earliest card on equal value
            if best is None or hand[idx].value > hand[best].value:
                best = idx
        return best

    def select_colour(self, hand: Sequence[Card], palette: Sequence[Colour]) -> Colour:
        counts: dict[Colour, int] = {}
        for card in hand:
            if card.colour == "WILD" or card.colour not in palette:
                continue
            counts[card.colour] = counts.get(card.colour, 0) + 1
        if not counts:
            return palette[0]

        if self.tiebreak == "palette_order":
            order = [c for c in palette if c in counts]
        else:
            order = list(counts)

        chosen = order[0]
        for colour in order[1:]:
            if counts[colour] > counts[chosen]:
                chosen = colour
        return chosen


def default_strategies(tiebreak: ColourTiebreak = "hand_order") -> dict[str, Strategy]:
    return {"human": HumanStrategy(), "scripted": ScriptedStrategy(tiebreak=tiebreak)}
