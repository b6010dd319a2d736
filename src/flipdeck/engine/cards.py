from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator

from .errors import EmptyDeckError
from .types import DARK_COLOURS, LIGHT_COLOURS, WILD_TYPES, CardType, Colour, Face, Side


@dataclass
class Card:
    light: Face
    dark: Face
    side: Side = "LIGHT"

    def face(self) -> Face:
        return self.light if self.side == "LIGHT" else self.dark

    @property
    def colour(self) -> Colour:
        return self.face().colour

    @property
    def type(self) -> CardType:
        return self.face().type

    @property
    def value(self) -> int:
        return self.face().value

    def is_wild(self) -> bool:
        return self.type in WILD_TYPES

    def flip(self) -> None:
        self.side = "DARK" if self.side == "LIGHT" else "LIGHT"

    def set_colour(self, colour: Colour) -> None:
        """Give the active face a colour (used when a wild card is played)."""
        if self.side == "LIGHT":
            self.light = replace(self.light, colour=colour)
        else:
            self.dark = replace(self.dark, colour=colour)

    def reset_wild_colours(self) -> None:
        if self.light.type in WILD_TYPES:
            self.light = replace(self.light, colour="WILD")
        if self.dark.type in WILD_TYPES:
            self.dark = replace(self.dark, colour="WILD")

    def label(self) -> str:
        if self.type == "NUMBER":
            return f"{self.colour} {self.value}"
        return f"{self.colour} {self.type}"

    def __str__(self) -> str:
        return self.label()


def matches(candidate: Card, top: Card | None) -> bool:
    """Whether `candidate` may be played on top of `top`.

    Rules are evaluated in order and the first one that applies decides:
    no discard yet, flip of the same colour, any wild, same colour, number
    against number (value decides), same type.
    """
    if top is None:
        return True
    if candidate.type == "FLIP" and candidate.colour == top.colour:
        return True
    if candidate.type in WILD_TYPES:
        return True
    if candidate.colour == top.colour:
        return True
    if candidate.type == "NUMBER" and top.type == "NUMBER":
        return candidate.value == top.value
    return candidate.type == top.type


# (light type, light value, dark type, dark value) for each coloured action card
_ACTION_PAIRS: tuple[tuple[CardType, int, CardType, int], ...] = (
    ("REVERSE", 20, "REVERSE", 20),
    ("SKIP", 20, "SKIP_EVERYONE", 30),
    ("DRAW_ONE", 10, "DRAW_FIVE", 20),
)
FLIP_VALUE = 20
WILD_COPIES = 4
FLIP_COPIES = 2


def compose_cards() -> list[Card]:
    """Build the full card set in its fixed construction order (unshuffled)."""
    cards: list[Card] = []
    for light, dark in zip(LIGHT_COLOURS, DARK_COLOURS):
        for n in range(10):
            cards.append(Card(Face(light, "NUMBER", n), Face(dark, "NUMBER", n)))
        for lt, lv, dt, dv in _ACTION_PAIRS:
            cards.append(Card(Face(light, lt, lv), Face(dark, dt, dv)))

    for _ in range(WILD_COPIES):
        cards.append(Card(Face("WILD", "WILD", 40), Face("WILD", "WILD", 40)))
        cards.append(Card(Face("WILD", "WILD_DRAW_TWO", 50), Face("WILD", "WILD_DRAW_COLOR", 60)))

    for _ in range(FLIP_COPIES):
        for light, dark in zip(LIGHT_COLOURS, DARK_COLOURS):
            cards.append(Card(Face(light, "FLIP", FLIP_VALUE), Face(dark, "FLIP", FLIP_VALUE)))
    return cards


TOTAL_CARDS = len(compose_cards())


@dataclass
class Deck:
    """LIFO draw pile; the end of `cards` is the top."""

    cards: list[Card] = field(default_factory=list)

    @staticmethod
    def standard(rng: random.Random) -> "Deck":
        deck = Deck(cards=compose_cards())
        deck.shuffle(rng)
        return deck

    def shuffle(self, rng: random.Random) -> None:
        rng.shuffle(self.cards)

    def draw(self) -> Card:
        if not self.cards:
            raise EmptyDeckError("The deck is empty.")
        return self.cards.pop()

    def peek(self) -> Card | None:
        return self.cards[-1] if self.cards else None

    def push(self, card: Card) -> None:
        self.cards.append(card)

    def extend(self, cards: Iterable[Card]) -> None:
        self.cards.extend(cards)

    def is_empty(self) -> bool:
        return not self.cards

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)
