from __future__ import annotations

import random
from typing import Mapping

from .cards import TOTAL_CARDS, Card, Deck, compose_cards
from .game import GameState, PlayerState
from .snapshot import Snapshot
from .types import (
    ALL_CARD_TYPES,
    ALL_COLOURS,
    PHASES,
    PLAYER_KINDS,
    WILD_TYPES,
    EngineConfig,
    Face,
)

SAVE_FORMAT = "flipdeck-save"
SAVE_VERSION = 1


class SnapshotFormatError(ValueError):
    pass


def _face_to_dict(f: Face) -> dict[str, object]:
    return {"colour": f.colour, "type": f.type, "value": f.value}


def card_to_dict(c: Card) -> dict[str, object]:
    return {"light": _face_to_dict(c.light), "dark": _face_to_dict(c.dark), "side": c.side}


def _player_to_dict(p: PlayerState) -> dict[str, object]:
    return {
        "name": p.name,
        "kind": p.kind,
        "score": p.score,
        "hand": [card_to_dict(c) for c in p.hand],
    }


def _rng_to_dict(rng: random.Random) -> dict[str, object]:
    version, internal, gauss_next = rng.getstate()
    return {"version": version, "internal": list(internal), "gauss_next": gauss_next}


def state_to_dict(state: GameState) -> dict[str, object]:
    """Return a JSON-serializable canonical dict of the whole game state."""
    return {
        "config": state.config.to_dict(),
        "seed": state.seed,
        "rng": _rng_to_dict(state.rng),
        "players": [_player_to_dict(p) for p in state.players],
        "deck": [card_to_dict(c) for c in state.deck.cards],
        "discard": [card_to_dict(c) for c in state.discard],
        "current_player": state.current_player,
        "direction": state.direction,
        "has_drawn": state.has_drawn,
        "colour_draw_active": state.colour_draw_active,
        "colour_draw_target": state.colour_draw_target,
        "pending_wild": state.pending_wild,
        "phase": state.phase,
        "round_no": state.round_no,
        "game_no": state.game_no,
        "round_winner": state.round_winner,
        "game_over": state.game_over,
    }


def snapshot_to_dict(snap: Snapshot) -> dict[str, object]:
    return {
        "format": SAVE_FORMAT,
        "version": SAVE_VERSION,
        "phase": snap.phase,
        "state": state_to_dict(snap.state),
    }


# -------- Parsing --------


def _require(obj: Mapping[str, object], key: str, kind: type) -> object:
    v = obj.get(key)
    # bool is an int subclass; never accept it where a number is expected
    if not isinstance(v, kind) or (kind is int and isinstance(v, bool)):
        raise SnapshotFormatError(f"Expected {kind.__name__} for {key}")
    return v


def _require_int(obj: Mapping[str, object], key: str) -> int:
    return _require(obj, key, int)  # type: ignore[return-value]


def _require_bool(obj: Mapping[str, object], key: str) -> bool:
    return _require(obj, key, bool)  # type: ignore[return-value]


def _require_str(obj: Mapping[str, object], key: str) -> str:
    return _require(obj, key, str)  # type: ignore[return-value]


def _require_dict(obj: Mapping[str, object], key: str) -> Mapping[str, object]:
    return _require(obj, key, dict)  # type: ignore[return-value]


def _require_list(obj: Mapping[str, object], key: str) -> list[object]:
    return _require(obj, key, list)  # type: ignore[return-value]


def _optional_int(obj: Mapping[str, object], key: str) -> int | None:
    if obj.get(key) is None:
        return None
    return _require_int(obj, key)


def _parse_face(raw: Mapping[str, object]) -> Face:
    colour = _require_str(raw, "colour")
    ctype = _require_str(raw, "type")
    if colour not in ALL_COLOURS:
        raise SnapshotFormatError(f"Unknown colour: {colour}")
    if ctype not in ALL_CARD_TYPES:
        raise SnapshotFormatError(f"Unknown card type: {ctype}")
    return Face(colour=colour, type=ctype, value=_require_int(raw, "value"))  # type: ignore[arg-type]


def card_from_dict(raw: object) -> Card:
    if not isinstance(raw, dict):
        raise SnapshotFormatError("Card must be an object")
    side = _require_str(raw, "side")
    if side not in ("LIGHT", "DARK"):
        raise SnapshotFormatError(f"Unknown side: {side}")
    return Card(
        light=_parse_face(_require_dict(raw, "light")),
        dark=_parse_face(_require_dict(raw, "dark")),
        side=side,  # type: ignore[arg-type]
    )


def _cards_from_list(raw: list[object]) -> list[Card]:
    return [card_from_dict(c) for c in raw]


def _player_from_dict(raw: object) -> PlayerState:
    if not isinstance(raw, dict):
        raise SnapshotFormatError("Player must be an object")
    kind = _require_str(raw, "kind")
    if kind not in PLAYER_KINDS:
        raise SnapshotFormatError(f"Unknown player kind: {kind}")
    score = _require_int(raw, "score")
    if score < 0:
        raise SnapshotFormatError("Scores cannot be negative")
    return PlayerState(
        name=_require_str(raw, "name"),
        kind=kind,  # type: ignore[arg-type]
        hand=_cards_from_list(_require_list(raw, "hand")),
        score=score,
    )


def _rng_from_dict(raw: Mapping[str, object]) -> random.Random:
    internal = _require_list(raw, "internal")
    if not all(isinstance(x, int) for x in internal):
        raise SnapshotFormatError("RNG state must be a list of ints")
    gauss = raw.get("gauss_next")
    if gauss is not None and not isinstance(gauss, (int, float)):
        raise SnapshotFormatError("Invalid gauss_next")
    rng = random.Random()
    try:
        rng.setstate((_require_int(raw, "version"), tuple(internal), gauss))
    except (TypeError, ValueError, OverflowError) as e:
        raise SnapshotFormatError(f"Invalid RNG state: {e}") from e
    return rng


def state_from_dict(raw: Mapping[str, object]) -> GameState:
    try:
        config = EngineConfig.from_dict(_require_dict(raw, "config"))
    except ValueError as e:
        raise SnapshotFormatError(str(e)) from e

    phase = _require_str(raw, "phase")
    if phase not in PHASES:
        raise SnapshotFormatError(f"Unknown phase: {phase}")
    target = raw.get("colour_draw_target")
    if target is not None and target not in ALL_COLOURS:
        raise SnapshotFormatError(f"Unknown colour: {target}")

    state = GameState(
        config=config,
        seed=_require_int(raw, "seed"),
        rng=_rng_from_dict(_require_dict(raw, "rng")),
        players=[_player_from_dict(p) for p in _require_list(raw, "players")],
        deck=Deck(cards=_cards_from_list(_require_list(raw, "deck"))),
        discard=_cards_from_list(_require_list(raw, "discard")),
        current_player=_require_int(raw, "current_player"),
        direction=_require_int(raw, "direction"),
        has_drawn=_require_bool(raw, "has_drawn"),
        colour_draw_active=_require_bool(raw, "colour_draw_active"),
        colour_draw_target=target,  # type: ignore[arg-type]
        pending_wild=_optional_int(raw, "pending_wild"),
        phase=phase,  # type: ignore[arg-type]
        round_no=_require_int(raw, "round_no"),
        game_no=_require_int(raw, "game_no"),
        round_winner=_optional_int(raw, "round_winner"),
        game_over=_require_bool(raw, "game_over"),
    )
    check_consistency(state)
    return state


def _face_key(f: Face) -> tuple[str, str, int]:
    # a wild keeps whatever colour it was given, so compare it uncoloured
    return ("WILD" if f.type in WILD_TYPES else f.colour, f.type, f.value)


def _identity(c: Card) -> tuple[tuple[str, str, int], tuple[str, str, int]]:
    return (_face_key(c.light), _face_key(c.dark))


_STANDARD_DECK = sorted(_identity(c) for c in compose_cards())


def check_consistency(state: GameState) -> None:
    """Reject states the engine could never have produced."""
    n = len(state.players)
    if not state.config.min_players <= n <= state.config.max_players:
        raise SnapshotFormatError(f"Invalid player count: {n}")
    if len({p.name for p in state.players}) != n:
        raise SnapshotFormatError("Duplicate player names")
    if not 0 <= state.current_player < n:
        raise SnapshotFormatError("Current player out of range")
    if state.direction not in (1, -1):
        raise SnapshotFormatError("Direction must be 1 or -1")
    if state.round_winner is not None and not 0 <= state.round_winner < n:
        raise SnapshotFormatError("Round winner out of range")
    if state.pending_wild is not None:
        hand = state.current().hand
        if not 0 <= state.pending_wild < len(hand) or not hand[state.pending_wild].is_wild():
            raise SnapshotFormatError("Pending wild does not point at a wild card")
    if state.colour_draw_active and state.colour_draw_target is None:
        raise SnapshotFormatError("Colour draw without a target colour")
    count = state.card_count()
    if count != TOTAL_CARDS:
        raise SnapshotFormatError(f"Expected {TOTAL_CARDS} cards in play, found {count}")
    if sorted(_identity(c) for c in state.all_cards()) != _STANDARD_DECK:
        raise SnapshotFormatError("Cards in play do not match the standard deck")


def snapshot_from_dict(raw: object) -> Snapshot:
    if not isinstance(raw, dict):
        raise SnapshotFormatError("Save must be an object")
    if raw.get("format") != SAVE_FORMAT:
        raise SnapshotFormatError("Not a flipdeck save")
    if raw.get("version") != SAVE_VERSION:
        raise SnapshotFormatError(f"Unsupported save version: {raw.get('version')}")
    phase = _require_str(raw, "phase")
    if phase not in PHASES:
        raise SnapshotFormatError(f"Unknown phase: {phase}")
    return Snapshot(state=state_from_dict(_require_dict(raw, "state")), phase=phase)  # type: ignore[arg-type]
