from __future__ import annotations

import copy
from dataclasses import dataclass

import pytest

from flipdeck.engine.actions import ChooseColourAction, DrawCardAction, PlayCardAction, StartRoundAction
from flipdeck.engine.cards import TOTAL_CARDS, Card, Deck, compose_cards
from flipdeck.engine.errors import EmptyDeckError
from flipdeck.engine.events import Event, RecordingListener
from flipdeck.engine.game import GameEngine, GameState, new_game
from flipdeck.engine.types import EngineConfig


def _card(label: str, side: str = "LIGHT") -> Card:
    for card in compose_cards():
        if side == "DARK":
            card.flip()
        if card.label() == label:
            return card
    raise KeyError(label)


def _filler(n: int, side: str = "LIGHT") -> list[Card]:
    label = "YELLOW 9" if side == "LIGHT" else "ORANGE 9"
    return [_card(label, side) for _ in range(n)]


def _table(
    hands: list[list[Card]],
    top: Card,
    deck: list[Card] | None = None,
    kinds: list[str] | None = None,
    config: EngineConfig | None = None,
) -> GameState:
    kinds = kinds or ["human"] * len(hands)
    state = new_game([(f"p{i}", k) for i, k in enumerate(kinds)], seed=5, config=config)  # type: ignore[misc]
    for player, hand in zip(state.players, hands):
        player.hand = list(hand)
    state.deck = Deck(cards=list(deck) if deck is not None else _filler(10))
    state.discard = [top]
    state.phase = "HANDLE_INITIAL_HAND"
    return state


def _types(events: list[Event]) -> list[object]:
    return [e["type"] for e in events]


def _labels(cards: list[Card]) -> list[str]:
    return [c.label() for c in cards]


def test_start_round_deals_hands_and_number_starter() -> None:
    state = new_game([("ann", "human"), ("bob", "human")], seed=42)
    engine = GameEngine(state)
    res = engine.step(StartRoundAction())
    assert res.ok
    assert all(len(p.hand) == 7 for p in state.players)
    top = state.top_of_discard()
    assert top is not None and top.type == "NUMBER"
    assert state.card_count() == TOTAL_CARDS
    assert state.current_player == 0
    assert state.direction == 1
    assert _types(res.events)[:2] == ["ROUND_STARTED", "TURN_STARTED"]

    again = engine.step(StartRoundAction())
    assert not again.ok
    assert again.error == "A round is already in progress."


def test_actions_before_first_deal_are_rejected() -> None:
    state = new_game([("ann", "human"), ("bob", "human")], seed=1)
    before = copy.deepcopy(state)
    res = GameEngine(state).step(DrawCardAction(player=0))
    assert not res.ok
    assert res.error == "Start the round first."
    assert state == before


def test_number_play_passes_turn() -> None:
    state = _table(
        [[_card("RED 5"), _card("BLUE 3")], [_card("GREEN 2"), _card("GREEN 4")]],
        top=_card("RED 1"),
    )
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0))
    assert res.ok
    assert state.discard[-1].label() == "RED 5"
    assert state.current_player == 1
    assert _types(res.events) == ["CARD_PLAYED", "TURN_STARTED", "MUST_DRAW"]


def test_rejected_moves_leave_state_untouched() -> None:
    state = _table([[_card("GREEN 9"), _card("BLUE 3")], [_card("BLUE 7")]], top=_card("RED 5"))
    before = copy.deepcopy(state)
    engine = GameEngine(state)

    res = engine.step(PlayCardAction(player=0, hand_index=0))
    assert not res.ok
    assert res.error == "GREEN 9 cannot be played on RED 5."
    assert _types(res.events) == ["MOVE_REJECTED"]

    assert engine.step(PlayCardAction(player=1, hand_index=0)).error == "Not your turn."
    assert engine.step(PlayCardAction(player=0, hand_index=5)).error == "Invalid hand index."
    assert state == before


def test_scripted_seat_cannot_be_driven_externally() -> None:
    state = _table(
        [[_card("RED 5")], [_card("BLUE 7")]],
        top=_card("GREEN 5"),
        kinds=["scripted", "human"],
    )
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0))
    assert not res.ok
    assert res.error == "Not your turn."


def test_reverse_changes_direction() -> None:
    state = _table(
        [[_card("RED REVERSE"), _card("RED 2")], [_card("BLUE 7")], [_card("BLUE 8")]],
        top=_card("RED 1"),
    )
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0))
    assert res.ok
    assert state.direction == -1
    assert state.current_player == 2
    assert "DIRECTION_REVERSED" in _types(res.events)


def test_skip_passes_over_next_player() -> None:
    state = _table(
        [[_card("RED SKIP"), _card("RED 2")], [_card("BLUE 7")], [_card("BLUE 8")]],
        top=_card("RED 1"),
    )
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0))
    assert res.ok
    assert state.current_player == 2
    assert [e["player"] for e in res.events if e["type"] == "PLAYER_SKIPPED"] == [1]


def test_draw_one_victim_draws_and_is_skipped() -> None:
    deck = _filler(5) + [_card("GREEN 4")]
    state = _table(
        [[_card("RED DRAW_ONE"), _card("RED 2")], [_card("BLUE 7")], [_card("BLUE 8")]],
        top=_card("RED 1"),
        deck=deck,
    )
    GameEngine(state).step(PlayCardAction(player=0, hand_index=0))
    assert _labels(state.players[1].hand) == ["BLUE 7", "GREEN 4"]
    assert state.current_player == 2


def test_skip_everyone_returns_to_player() -> None:
    state = _table(
        [
            [_card("BROWN SKIP_EVERYONE", "DARK"), _card("BROWN 2", "DARK")],
            [_card("PURPLE 7", "DARK")],
            [_card("PURPLE 8", "DARK")],
        ],
        top=_card("BROWN 1", "DARK"),
        deck=_filler(5, "DARK"),
    )
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0))
    assert res.ok
    assert state.current_player == 0
    assert [e["player"] for e in res.events if e["type"] == "PLAYER_SKIPPED"] == [1, 2]


def test_draw_five_on_dark_side() -> None:
    state = _table(
        [[_card("BROWN DRAW_FIVE", "DARK"), _card("BROWN 2", "DARK")], [_card("PURPLE 7", "DARK")]],
        top=_card("BROWN 1", "DARK"),
        deck=_filler(10, "DARK"),
    )
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0))
    assert len(state.players[1].hand) == 6
    assert state.current_player == 0
    drawn = [e for e in res.events if e["type"] == "CARD_DRAWN"]
    assert [e["player"] for e in drawn] == [1] * 5


def test_wild_draw_two_with_colour() -> None:
    state = _table(
        [[_card("WILD WILD_DRAW_TWO"), _card("RED 3")], [_card("BLUE 7")]],
        top=_card("GREEN 1"),
    )
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0, colour="BLUE"))
    assert res.ok
    top = state.discard[-1]
    assert top.colour == "BLUE"
    assert top.type == "WILD_DRAW_TWO"
    assert len(state.players[1].hand) == 3
    assert state.current_player == 0
    chosen = [e for e in res.events if e["type"] == "COLOUR_CHOSEN"]
    assert chosen == [{"type": "COLOUR_CHOSEN", "player": 0, "colour": "BLUE"}]


def test_flip_toggles_every_card_once() -> None:
    state = _table(
        [[_card("RED FLIP"), _card("RED 3")], [_card("BLUE 7")]],
        top=_card("RED 1"),
        deck=_filler(5),
    )
    count = state.card_count()
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0))
    assert res.ok
    assert state.card_count() == count
    assert all(card.side == "DARK" for card in state.all_cards())
    assert state.discard[-1].label() == "BROWN FLIP"
    assert _labels(state.players[1].hand) == ["PURPLE 7"]
    flips = [e for e in res.events if e["type"] == "CARDS_FLIPPED"]
    assert flips == [{"type": "CARDS_FLIPPED", "side": "DARK"}]


def test_human_wild_waits_for_colour() -> None:
    state = _table([[_card("WILD WILD"), _card("RED 3")], [_card("BLUE 7")]], top=_card("GREEN 1"))
    engine = GameEngine(state)

    res = engine.step(PlayCardAction(player=0, hand_index=0))
    assert res.ok
    assert res.events[-1]["type"] == "CHOOSE_COLOUR"
    assert res.events[-1]["options"] == ["RED", "BLUE", "GREEN", "YELLOW"]
    assert state.pending_wild == 0
    assert len(state.players[0].hand) == 2
    assert state.discard[-1].label() == "GREEN 1"

    assert engine.step(DrawCardAction(player=0)).error == "Choose a colour for the wild card first."

    bad = engine.step(ChooseColourAction(player=0, colour="BROWN"))
    assert not bad.ok
    assert state.pending_wild == 0

    ok = engine.step(ChooseColourAction(player=0, colour="GREEN"))
    assert ok.ok
    assert state.pending_wild is None
    assert state.discard[-1].colour == "GREEN"
    assert _labels(state.players[0].hand) == ["RED 3"]
    assert state.current_player == 1


def test_wild_colour_must_come_from_active_palette() -> None:
    state = _table([[_card("WILD WILD"), _card("RED 3")], [_card("BLUE 7")]], top=_card("GREEN 1"))
    before = copy.deepcopy(state)
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0, colour="PURPLE"))
    assert not res.ok
    assert state == before


def test_last_card_wild_needs_no_colour() -> None:
    state = _table([[_card("WILD WILD")], [_card("BLUE 7")]], top=_card("GREEN 1"))
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0))
    assert res.ok
    over = [e for e in res.events if e["type"] == "ROUND_OVER"]
    assert over[0]["points"] == 7
    assert state.players[0].score == 7
    assert state.pending_wild is None


def test_human_colour_draw_loop() -> None:
    deck = [_card("ORANGE 5", "DARK"), _card("TEAL 7", "DARK"), _card("PURPLE 1", "DARK"), _card("ORANGE 2", "DARK")]
    state = _table(
        [[_card("WILD WILD_DRAW_COLOR", "DARK"), _card("BROWN 3", "DARK")], [_card("ORANGE 9", "DARK")]],
        top=_card("BROWN 1", "DARK"),
        deck=deck,
    )
    engine = GameEngine(state)

    res = engine.step(PlayCardAction(player=0, hand_index=0, colour="TEAL"))
    assert res.ok
    assert state.current_player == 1
    assert state.colour_draw_active
    assert state.colour_draw_target == "TEAL"
    assert res.events[-1] == {"type": "MUST_DRAW_COLOUR", "player": 1, "colour": "TEAL"}

    assert engine.step(PlayCardAction(player=1, hand_index=0)).error == "Keep drawing until the required colour turns up."

    assert engine.step(DrawCardAction(player=1)).ok
    assert engine.step(DrawCardAction(player=1)).ok
    assert state.colour_draw_active
    last = engine.step(DrawCardAction(player=1))
    assert last.ok
    assert not state.colour_draw_active
    assert state.colour_draw_target is None
    assert last.events[-1]["type"] == "CAN_PLAY"
    assert _labels(state.players[1].hand) == ["ORANGE 9", "ORANGE 2", "PURPLE 1", "TEAL 7"]

    assert engine.step(DrawCardAction(player=1)).error == "You have already drawn this turn."


def test_scripted_colour_draw_loop_keeps_drawn_cards() -> None:
    deck = [_card("ORANGE 5", "DARK"), _card("TEAL 7", "DARK"), _card("PURPLE 1", "DARK"), _card("ORANGE 2", "DARK")]
    state = _table(
        [[_card("WILD WILD_DRAW_COLOR", "DARK"), _card("BROWN 3", "DARK")], [_card("ORANGE 9", "DARK")]],
        top=_card("BROWN 1", "DARK"),
        deck=deck,
        kinds=["human", "scripted"],
    )
    res = GameEngine(state).step(PlayCardAction(player=0, hand_index=0, colour="TEAL"))
    assert res.ok
    assert _labels(state.players[1].hand) == ["ORANGE 9", "ORANGE 2", "PURPLE 1"]
    assert state.discard[-1].label() == "TEAL 7"
    assert state.current_player == 0
    assert _labels(state.deck.cards) == ["ORANGE 5"]


def test_draw_with_playable_card_is_a_no_op() -> None:
    state = _table([[_card("RED 3")], [_card("BLUE 7")]], top=_card("RED 1"))
    before = copy.deepcopy(state)
    res = GameEngine(state).step(DrawCardAction(player=0))
    assert not res.ok
    assert res.error == "You have a playable card."
    assert state == before


def test_unplayable_draw_forfeits_turn() -> None:
    state = _table(
        [[_card("GREEN 9")], [_card("BLUE 7")]],
        top=_card("RED 1"),
        deck=_filler(3) + [_card("YELLOW 4")],
    )
    res = GameEngine(state).step(DrawCardAction(player=0))
    assert res.ok
    assert "TURN_FORFEITED" in _types(res.events)
    assert _labels(state.players[0].hand) == ["GREEN 9", "YELLOW 4"]
    assert state.current_player == 1


def test_playable_draw_waits_for_play() -> None:
    state = _table(
        [[_card("GREEN 9")], [_card("BLUE 7")]],
        top=_card("RED 1"),
        deck=_filler(3) + [_card("RED 8")],
    )
    engine = GameEngine(state)
    res = engine.step(DrawCardAction(player=0))
    assert res.events[-1]["type"] == "CAN_PLAY"
    assert engine.step(DrawCardAction(player=0)).error == "You have already drawn this turn."
    assert engine.step(PlayCardAction(player=0, hand_index=1)).ok
    assert state.current_player == 1


def test_round_end_scoring() -> None:
    state = _table([[_card("RED 3")], [_card("GREEN 5"), _card("GREEN SKIP")]], top=_card("RED 1"))
    engine = GameEngine(state)
    res = engine.step(PlayCardAction(player=0, hand_index=0))
    assert res.ok
    over = [e for e in res.events if e["type"] == "ROUND_OVER"][0]
    assert over["points"] == 25
    assert engine.scores() == {"p0": 25, "p1": 0}
    assert state.round_no == 1
    winner = engine.round_winner()
    assert winner is not None and winner.name == "p0"
    # below the target score, so the next round was dealt straight away
    assert "ROUND_STARTED" in _types(res.events)
    assert all(len(p.hand) == 7 for p in state.players)
    assert state.card_count() == TOTAL_CARDS



def test_next_round_keeps_seat_and_direction() -> None:
    state = _table(
        [[_card("BLUE 7")], [_card("GREEN 5")], [_card("RED 3")]],
        top=_card("RED 1"),
    )
    state.current_player = 2
    state.direction = -1
    res = GameEngine(state).step(PlayCardAction(player=2, hand_index=0))
    assert res.ok
    assert state.round_no == 1
    assert "ROUND_STARTED" in _types(res.events)
    assert state.current_player == 2
    assert state.direction == -1
    turns = [e for e in res.events if e["type"] == "TURN_STARTED"]
    assert turns[-1] == {"type": "TURN_STARTED", "player": 2, "name": "p2"}


def test_target_score_asks_for_new_game() -> None:
    listener = RecordingListener(new_game_answers=[True])
    state = _table(
        [[_card("RED 3")], [_card("GREEN 5"), _card("GREEN SKIP")]],
        top=_card("RED 1"),
        config=EngineConfig(target_score=20),
    )
    GameEngine(state, listener=listener).step(PlayCardAction(player=0, hand_index=0))
    assert listener.prompts == 1
    assert [p.score for p in state.players] == [0, 0]
    assert state.game_no == 2
    assert state.round_no == 0
    assert not state.game_over
    assert listener.of_type("GAME_STARTED") == [{"type": "GAME_STARTED", "game": 2}]


def test_declining_new_game_ends_play() -> None:
    listener = RecordingListener()
    state = _table(
        [[_card("RED 3")], [_card("GREEN 5"), _card("GREEN SKIP")]],
        top=_card("RED 1"),
        config=EngineConfig(target_score=20),
    )
    engine = GameEngine(state, listener=listener)
    engine.step(PlayCardAction(player=0, hand_index=0))
    assert state.game_over
    assert listener.of_type("GAME_OVER")[0]["scores"] == [25, 0]
    assert engine.step(DrawCardAction(player=1)).error == "Game is over."


def test_empty_deck_propagates_without_recycling() -> None:
    state = _table([[_card("GREEN 9")], [_card("BLUE 7")]], top=_card("RED 1"), deck=[])
    with pytest.raises(EmptyDeckError):
        GameEngine(state).step(DrawCardAction(player=0))


def test_recycle_keeps_top_and_resets_wilds() -> None:
    wild = _card("WILD WILD")
    wild.set_colour("RED")
    state = _table(
        [[_card("GREEN 9")], [_card("BLUE 7")]],
        top=_card("RED 1"),
        deck=[],
        config=EngineConfig(recycle_discard=True),
    )
    state.discard = [wild, _card("RED 4"), _card("RED 1")]
    res = GameEngine(state).step(DrawCardAction(player=0))
    assert res.ok
    assert {"type": "DECK_RECYCLED", "cards": 2} in res.events
    assert _labels(state.discard) == ["RED 1"]
    assert len(state.deck) == 1
    assert len(state.players[0].hand) == 2
    assert wild.colour == "WILD"
    assert res.events[-1]["type"] == "CAN_PLAY"


@dataclass
class _InvariantListener:
    state: GameState

    checked: int = 0

    def notify(self, event: Event) -> None:
        st = self.state
        assert 0 <= st.current_player < len(st.players)
        assert st.card_count() == TOTAL_CARDS
        assert all(p.score >= 0 for p in st.players)
        self.checked += 1

    def ask_new_game(self, state: GameState, winner: int) -> bool:
        return False


def test_invariants_hold_through_scripted_games() -> None:
    for seed in range(4):
        state = new_game([f"bot{i}" for i in range(4)], seed=seed, config=EngineConfig(recycle_discard=True))
        listener = _InvariantListener(state)
        engine = GameEngine(state, listener=listener)
        try:
            engine.step(StartRoundAction())
        except EmptyDeckError:
            # every card ended up in hands; the table is stuck but still consistent
            assert state.card_count() == TOTAL_CARDS
            continue
        assert listener.checked > 0
        assert state.game_over
        assert max(p.score for p in state.players) >= state.config.target_score


def test_new_game_validates_seats() -> None:
    with pytest.raises(ValueError):
        new_game(["solo"])
    with pytest.raises(ValueError):
        new_game(["a", "b", "c", "d", "e"])
    with pytest.raises(ValueError):
        new_game(["a", "a"])
