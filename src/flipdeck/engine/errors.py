from __future__ import annotations


class EngineError(RuntimeError):
    pass


class InvalidMoveError(EngineError):
    """The selected card cannot be played on the current discard top."""


class InvalidColourChoice(EngineError):
    """A wild colour outside the palette of the card's active side."""


class EmptyDeckError(EngineError):
    """A draw was attempted on an exhausted deck."""
