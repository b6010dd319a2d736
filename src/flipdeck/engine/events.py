"""Notification contract between the engine and whatever presents it.

Events are plain dicts with a ``"type"`` key so they can be logged,
serialized to telemetry and asserted on in tests without extra plumbing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .game import GameState

Event = dict[str, object]


class GameListener(Protocol):
    def notify(self, event: Event) -> None: ...

    def ask_new_game(self, state: "GameState", winner: int) -> bool:
        """Called when `winner` reaches the target score.

        Returning True resets scores and starts a new game; False ends play.
        """
        ...


class NullListener:
    def notify(self, event: Event) -> None:
        return None

    def ask_new_game(self, state: "GameState", winner: int) -> bool:
        return False


@dataclass
class RecordingListener:
    """Collects every event; answers new-game prompts from `new_game_answers`."""

    new_game_answers: list[bool] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    prompts: int = 0

    def notify(self, event: Event) -> None:
        self.events.append(event)

    def ask_new_game(self, state: "GameState", winner: int) -> bool:
        self.prompts += 1
        if self.new_game_answers:
            return self.new_game_answers.pop(0)
        return False

    def of_type(self, event_type: str) -> list[Event]:
        return [e for e in self.events if e.get("type") == event_type]

    def clear(self) -> None:
        self.events.clear()
