from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Iterator, Literal, Mapping, Sequence

from .actions import Action, ChooseColourAction, DrawCardAction, PlayCardAction, StartRoundAction
from .ai import Strategy, default_strategies
from .cards import Card, Deck, matches
from .errors import InvalidColourChoice, InvalidMoveError
from .events import Event, GameListener, NullListener
from .types import PHASES, PLAYER_KINDS, Colour, EngineConfig, Phase, PlayerKind, palette_for

logger = logging.getLogger(__name__)

# Phases plus the internal continuations that never suspend on their own.
Step = Literal["NEW_ROUND", "HANDLE_INITIAL_HAND", "HANDLE_AFTER_DRAW", "NEXT_TURN", "COLOUR_DRAW"]
Recorder = Callable[["GameState", Phase], None]


@dataclass
class PlayerState:
    name: str
    kind: PlayerKind = "scripted"
    hand: list[Card] = field(default_factory=list)
    score: int = 0

    def add_card(self, card: Card) -> None:
        self.hand.append(card)

    def draw_card(self, deck: Deck) -> Card:
        card = deck.draw()
        self.hand.append(card)
        return card

    def clear_hand(self) -> None:
        self.hand.clear()

    def hand_value(self) -> int:
        return sum(c.value for c in self.hand)

    def has_playable(self, top: Card | None) -> bool:
        return any(matches(c, top) for c in self.hand)


@dataclass
class StepResult:
    ok: bool
    events: list[Event]
    error: str | None = None


@dataclass
class GameState:
    config: EngineConfig
    seed: int
    rng: random.Random = field(compare=False, repr=False)
    players: list[PlayerState]
    deck: Deck
    discard: list[Card] = field(default_factory=list)
    current_player: int = 0
    direction: int = 1
    has_drawn: bool = False
    colour_draw_active: bool = False
    colour_draw_target: Colour | None = None
    pending_wild: int | None = None  # hand index of a wild waiting for a human colour
    phase: Phase = "NEW_ROUND"
    round_no: int = 0
    game_no: int = 1
    round_winner: int | None = None
    game_over: bool = False

    def current(self) -> PlayerState:
        return self.players[self.current_player]

    def top_of_discard(self) -> Card | None:
        return self.discard[-1] if self.discard else None

    def advance(self) -> None:
        n = len(self.players)
        self.current_player = (self.current_player + self.direction + n) % n

    def all_cards(self) -> Iterator[Card]:
        yield from self.deck.cards
        yield from self.discard
        for p in self.players:
            yield from p.hand

    def card_count(self) -> int:
        return sum(1 for _ in self.all_cards())


def _coerce_player(p: PlayerState | tuple[str, PlayerKind] | str) -> PlayerState:
    if isinstance(p, PlayerState):
        return p
    if isinstance(p, str):
        return PlayerState(name=p)
    name, kind = p
    return PlayerState(name=name, kind=kind)


def new_game(
    players: Sequence[PlayerState | tuple[str, PlayerKind] | str],
    seed: int = 0,
    config: EngineConfig | None = None,
) -> GameState:
    """Create a game that has not dealt its first round yet."""
    cfg = config or EngineConfig()
    seats = [_coerce_player(p) for p in players]
    if not cfg.min_players <= len(seats) <= cfg.max_players:
        raise ValueError(f"Games need {cfg.min_players}-{cfg.max_players} players, got {len(seats)}.")
    names = [p.name for p in seats]
    if len(set(names)) != len(names):
        raise ValueError("Player names must be unique.")
    for p in seats:
        if p.kind not in PLAYER_KINDS:
            raise ValueError(f"Unknown player kind: {p.kind}")

    rng = random.Random(seed)
    return GameState(config=cfg, seed=seed, rng=rng, players=seats, deck=Deck.standard(rng))


class GameEngine:
    """Phase-driven turn engine operating on a single owned `GameState`.

    External actions go through `step`. Everything a single action sets in
    motion (including any number of scripted turns) runs inside `_drive`,
    which stops at the first point where a human has to decide.
    """

    def __init__(
        self,
        state: GameState,
        listener: GameListener | None = None,
        recorder: Recorder | None = None,
        strategies: Mapping[str, Strategy] | None = None,
    ) -> None:
        self.state = state
        self.listener: GameListener = listener or NullListener()
        self.recorder = recorder
        self.strategies: dict[str, Strategy] = default_strategies(state.config.colour_tiebreak)
        if strategies:
            self.strategies.update(strategies)
        self._events: list[Event] = []

    # -------- Queries --------
    def current_player(self) -> PlayerState:
        return self.state.current()

    def top_of_discard(self) -> Card | None:
        return self.state.top_of_discard()

    def round_winner(self) -> PlayerState | None:
        if self.state.round_winner is None:
            return None
        return self.state.players[self.state.round_winner]

    def scores(self) -> dict[str, int]:
        return {p.name: p.score for p in self.state.players}

    def strategy_for(self, player: PlayerState) -> Strategy:
        return self.strategies[player.kind]

    def can_play(self) -> bool:
        return self.state.current().has_playable(self.state.top_of_discard())

    def round_in_progress(self) -> bool:
        return bool(self.state.discard)

    # -------- Entry points --------
    def step(self, action: Action) -> StepResult:
        self._events = []
        if self.state.game_over:
            return StepResult(ok=False, events=[], error="Game is over.")
        try:
            if isinstance(action, StartRoundAction):
                self._start_round()
            elif isinstance(action, PlayCardAction):
                self._play(action)
            elif isinstance(action, DrawCardAction):
                self._draw(action)
            elif isinstance(action, ChooseColourAction):
                self._choose_colour(action)
            else:
                return StepResult(ok=False, events=[], error="Unknown action.")
        except (InvalidMoveError, InvalidColourChoice) as e:
            self._emit({"type": "MOVE_REJECTED", "player": self.state.current_player, "reason": str(e)})
            return StepResult(ok=False, events=self._events, error=str(e))
        return StepResult(ok=True, events=self._events)

    def resume(self, phase: Phase) -> StepResult:
        """Continue execution at `phase`, e.g. after a snapshot was restored."""
        if phase not in PHASES:
            raise ValueError(f"Unknown phase: {phase}")
        self._events = []
        if phase == "NEW_ROUND" and not self.round_in_progress():
            # Nothing dealt yet; the caller starts the round explicitly.
            return StepResult(ok=True, events=[])
        self._drive(phase)
        return StepResult(ok=True, events=self._events)

    def _start_round(self) -> None:
        if self.round_in_progress():
            raise InvalidMoveError("A round is already in progress.")
        self._record("NEW_ROUND")
        self._drive("NEW_ROUND")

    def _play(self, action: PlayCardAction) -> None:
        st = self.state
        self._require_turn(action.player)
        self._require_no_pending()
        if st.colour_draw_active:
            raise InvalidMoveError("Keep drawing until the required colour turns up.")

        hand = st.current().hand
        if action.hand_index < 0 or action.hand_index >= len(hand):
            raise InvalidMoveError("Invalid hand index.")
        card = hand[action.hand_index]
        top = st.top_of_discard()
        if not matches(card, top):
            raise InvalidMoveError(f"{card.label()} cannot be played on {top}.")
        if card.is_wild() and action.colour is not None:
            self._check_colour(card, action.colour)

        self._record(st.phase)
        if card.is_wild() and action.colour is None and len(hand) > 1:
            st.pending_wild = action.hand_index
            self._ask_colour(card)
            return
        self._drive(self._resolve_play(action.hand_index, action.colour))

    def _choose_colour(self, action: ChooseColourAction) -> None:
        st = self.state
        self._require_turn(action.player)
        if st.pending_wild is None:
            raise InvalidMoveError("No wild card is waiting for a colour.")
        idx = st.pending_wild
        self._check_colour(st.current().hand[idx], action.colour)

        self._record(st.phase)
        st.pending_wild = None
        self._drive(self._resolve_play(idx, action.colour))

    def _draw(self, action: DrawCardAction) -> None:
        st = self.state
        self._require_turn(action.player)
        self._require_no_pending()

        if st.colour_draw_active:
            self._record(st.phase)
            card = self._draw_into(st.current_player)
            if card.colour == st.colour_draw_target:
                self._end_colour_draw()
                self._drive("HANDLE_AFTER_DRAW")
            else:
                self._emit({"type": "MUST_DRAW_COLOUR", "player": st.current_player, "colour": st.colour_draw_target})
            return

        if st.has_drawn:
            raise InvalidMoveError("You have already drawn this turn.")
        if self.can_play():
            raise InvalidMoveError("You have a playable card.")
        self._record(st.phase)
        self._draw_into(st.current_player)
        st.has_drawn = True
        self._drive("HANDLE_AFTER_DRAW")

    def _require_turn(self, player: int) -> None:
        if not self.round_in_progress():
            raise InvalidMoveError("Start the round first.")
        if player != self.state.current_player:
            raise InvalidMoveError("Not your turn.")
        if self.strategy_for(self.state.current()).is_automatic():
            raise InvalidMoveError("Not your turn.")

    def _require_no_pending(self) -> None:
        if self.state.pending_wild is not None:
            raise InvalidMoveError("Choose a colour for the wild card first.")

    def _check_colour(self, card: Card, colour: Colour) -> None:
        palette = palette_for(card.side)
        if colour not in palette:
            raise InvalidColourChoice(f"Choose one of {', '.join(palette)}.")

    def _ask_colour(self, card: Card) -> None:
        self._emit(
            {
                "type": "CHOOSE_COLOUR",
                "player": self.state.current_player,
                "card": card.label(),
                "options": list(palette_for(card.side)),
            }
        )

    # -------- Dispatch loop --------
    def _drive(self, step: Step | None) -> None:
        while step is not None and not self.state.game_over:
            logger.debug("step=%s player=%d", step, self.state.current_player)
            step = _STEP_HANDLERS[step](self)

    def _new_round(self) -> Step | None:
        st = self.state
        st.phase = "NEW_ROUND"
        st.deck = Deck.standard(st.rng)
        st.discard = []
        for p in st.players:
            p.clear_hand()
        st.pending_wild = None
        self._end_colour_draw()
        st.has_drawn = False

        for p in st.players:
            for _ in range(st.config.hand_size):
                p.draw_card(st.deck)

        starter = st.deck.draw()
        while starter.type != "NUMBER":
            st.deck.push(starter)
            st.deck.shuffle(st.rng)
            starter = st.deck.draw()
        st.discard.append(starter)

        self._emit(
            {"type": "ROUND_STARTED", "round": st.round_no + 1, "game": st.game_no, "starter": starter.label()}
        )
        logger.debug("round %d of game %d starts on %s", st.round_no + 1, st.game_no, starter.label())
        return "HANDLE_INITIAL_HAND"

    def _pending_decision(self) -> Step | None | Literal[False]:
        """Route resumptions that land in the middle of a wild resolution."""
        st = self.state
        if st.pending_wild is not None:
            self._ask_colour(st.current().hand[st.pending_wild])
            return None
        if st.colour_draw_active:
            return "COLOUR_DRAW"
        return False

    def _initial_hand(self) -> Step | None:
        pending = self._pending_decision()
        if pending is not False:
            return pending

        st = self.state
        st.phase = "HANDLE_INITIAL_HAND"
        player = st.current()
        strategy = self.strategy_for(player)
        self._emit({"type": "TURN_STARTED", "player": st.current_player, "name": player.name})

        if self.can_play():
            if strategy.is_automatic():
                return self._auto_play()
            return None

        if strategy.is_automatic():
            self._draw_into(st.current_player)
            st.has_drawn = True
            return "HANDLE_AFTER_DRAW"
        self._emit({"type": "MUST_DRAW", "player": st.current_player})
        return None

    def _after_draw(self) -> Step | None:
        pending = self._pending_decision()
        if pending is not False:
            return pending

        st = self.state
        st.phase = "HANDLE_AFTER_DRAW"
        if self.can_play():
            if self.strategy_for(st.current()).is_automatic():
                return self._auto_play()
            self._emit({"type": "CAN_PLAY", "player": st.current_player})
            return None

        self._emit({"type": "TURN_FORFEITED", "player": st.current_player})
        return "NEXT_TURN"

    def _next_turn(self) -> Step | None:
        self.state.advance()
        self.state.has_drawn = False
        return "HANDLE_INITIAL_HAND"

    def _colour_draw(self) -> Step | None:
        st = self.state
        st.phase = "HANDLE_INITIAL_HAND"
        if not self.strategy_for(st.current()).is_automatic():
            self._emit({"type": "MUST_DRAW_COLOUR", "player": st.current_player, "colour": st.colour_draw_target})
            return None

        while True:
            card = self._draw_into(st.current_player)
            if card.colour == st.colour_draw_target:
                break
        self._end_colour_draw()
        return "HANDLE_AFTER_DRAW"

    # -------- Play resolution --------
    def _auto_play(self) -> Step | None:
        st = self.state
        player = st.current()
        strategy = self.strategy_for(player)
        idx = strategy.select_play(player.hand, st.top_of_discard())
        if idx is None:
            raise RuntimeError(f"Strategy for {player.name} found no play despite a playable hand.")
        card = player.hand[idx]
        colour: Colour | None = None
        if card.is_wild():
            rest = [c for i, c in enumerate(player.hand) if i != idx]
            colour = strategy.select_colour(rest, palette_for(card.side))
        return self._resolve_play(idx, colour)

    def _resolve_play(self, idx: int, colour: Colour | None) -> Step | None:
        st = self.state
        card = st.current().hand.pop(idx)
        st.discard.append(card)
        if card.is_wild() and colour is not None:
            card.set_colour(colour)
            self._emit({"type": "COLOUR_CHOSEN", "player": st.current_player, "colour": colour})
        self._emit(
            {
                "type": "CARD_PLAYED",
                "player": st.current_player,
                "card": card.label(),
                "hand_size": len(st.current().hand),
            }
        )
        logger.debug("%s plays %s", st.current().name, card.label())

        if self._check_winner():
            return None if st.game_over else "NEW_ROUND"
        return self._apply_effect(card)

    def _apply_effect(self, card: Card) -> Step | None:
        st = self.state
        kind = card.type
        if kind == "FLIP":
            self._flip_all()
        elif kind == "REVERSE":
            st.direction = -st.direction
            self._emit({"type": "DIRECTION_REVERSED", "direction": st.direction})
        elif kind == "SKIP":
            self._skip(1)
        elif kind == "DRAW_ONE":
            self._skip(1)
            self._draw_into(st.current_player, 1)
        elif kind == "DRAW_FIVE":
            self._skip(1)
            self._draw_into(st.current_player, 5)
        elif kind == "SKIP_EVERYONE":
            self._skip(len(st.players) - 1)
        elif kind == "WILD_DRAW_TWO":
            self._skip(1)
            self._draw_into(st.current_player, 2)
        elif kind == "WILD_DRAW_COLOR":
            self._skip(1)
            st.colour_draw_active = True
            st.colour_draw_target = card.colour
            return "COLOUR_DRAW"
        return "NEXT_TURN"

    def _skip(self, count: int) -> None:
        st = self.state
        for _ in range(count):
            st.advance()
            st.has_drawn = False
            self._emit({"type": "PLAYER_SKIPPED", "player": st.current_player})

    def _flip_all(self) -> None:
        st = self.state
        for card in st.all_cards():
            card.flip()
        top = st.top_of_discard()
        self._emit({"type": "CARDS_FLIPPED", "side": top.side if top is not None else None})

    def _end_colour_draw(self) -> None:
        st = self.state
        if st.colour_draw_active:
            st.has_drawn = True
        st.colour_draw_active = False
        st.colour_draw_target = None

    def _draw_into(self, player: int, count: int = 1) -> Card:
        st = self.state
        drawn: list[Card] = []
        for _ in range(count):
            card = self._take_from_deck()
            st.players[player].add_card(card)
            drawn.append(card)
            self._emit({"type": "CARD_DRAWN", "player": player, "card": card.label()})
        return drawn[-1]

    def _take_from_deck(self) -> Card:
        st = self.state
        if st.deck.is_empty() and st.config.recycle_discard and len(st.discard) > 1:
            top = st.discard.pop()
            recycled = st.discard
            for c in recycled:
                c.reset_wild_colours()
            st.deck.extend(recycled)
            st.discard = [top]
            st.deck.shuffle(st.rng)
            self._emit({"type": "DECK_RECYCLED", "cards": len(st.deck)})
        return st.deck.draw()

    # -------- Round / game lifecycle --------
    def _check_winner(self) -> bool:
        st = self.state
        winner = next((i for i, p in enumerate(st.players) if not p.hand), None)
        if winner is None:
            return False

        st.round_no += 1
        points = sum(p.hand_value() for i, p in enumerate(st.players) if i != winner)
        champ = st.players[winner]
        champ.score += points
        st.round_winner = winner
        self._emit(
            {
                "type": "ROUND_OVER",
                "winner": winner,
                "name": champ.name,
                "points": points,
                "score": champ.score,
                "round": st.round_no,
            }
        )
        logger.info("%s wins round %d for %d points (total %d)", champ.name, st.round_no, points, champ.score)

        if champ.score >= st.config.target_score:
            if self.listener.ask_new_game(st, winner):
                for p in st.players:
                    p.score = 0
                st.game_no += 1
                st.round_no = 0
                self._emit({"type": "GAME_STARTED", "game": st.game_no})
            else:
                st.game_over = True
                self._emit(
                    {"type": "GAME_OVER", "winner": winner, "scores": [p.score for p in st.players]}
                )
        return True

    def _emit(self, event: Event) -> None:
        self._events.append(event)
        self.listener.notify(event)

    def _record(self, phase: Phase) -> None:
        if self.recorder is not None:
            self.recorder(self.state, phase)


_STEP_HANDLERS: dict[str, Callable[[GameEngine], Step | None]] = {
    "NEW_ROUND": GameEngine._new_round,
    "HANDLE_INITIAL_HAND": GameEngine._initial_hand,
    "HANDLE_AFTER_DRAW": GameEngine._after_draw,
    "NEXT_TURN": GameEngine._next_turn,
    "COLOUR_DRAW": GameEngine._colour_draw,
}


def replay(
    players: Sequence[PlayerState | tuple[str, PlayerKind] | str],
    seed: int,
    actions: Sequence[Action],
    config: EngineConfig | None = None,
    listener: GameListener | None = None,
) -> GameState:
    """Rebuild a game from its seed and the external actions applied to it."""
    state = new_game(players, seed=seed, config=config)
    engine = GameEngine(state, listener=listener)
    for action in actions:
        engine.step(action)
    return state
