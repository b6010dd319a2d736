from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field

from flipdeck.engine.events import Event
from flipdeck.engine.game import GameState
from flipdeck.engine.types import EngineConfig
from flipdeck.paths import get_paths
from flipdeck.services.telemetry import TelemetryService
from flipdeck.session import GameSession

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@dataclass
class _RoundCounter:
    """Listener for simulated games: counts rounds, never asks for a rematch."""

    rounds: int = 0
    recycles: int = 0
    flips: int = 0

    def notify(self, event: Event) -> None:
        kind = event.get("type")
        if kind == "ROUND_OVER":
            self.rounds += 1
        elif kind == "DECK_RECYCLED":
            self.recycles += 1
        elif kind == "CARDS_FLIPPED":
            self.flips += 1

    def ask_new_game(self, state: GameState, winner: int) -> bool:
        return False


@dataclass
class SimulationResult:
    seed: int
    finished: bool
    winner: str | None
    rounds: int
    scores: dict[str, int] = field(default_factory=dict)
    error: str | None = None


def simulate(
    seed: int,
    players: int,
    config: EngineConfig,
    telemetry: TelemetryService | None = None,
) -> SimulationResult:
    """Play one scripted-only game to completion (or until the deck runs dry)."""
    counter = _RoundCounter()
    names = [f"bot{i + 1}" for i in range(players)]
    session = GameSession.new(names, seed=seed, config=config, listener=counter, telemetry=telemetry)
    res = session.start_round()
    state = session.state
    winner = session.round_winner() if state.game_over else None
    logger.debug("seed %d: %d rounds, %d flips, %d recycles", seed, counter.rounds, counter.flips, counter.recycles)
    return SimulationResult(
        seed=seed,
        finished=state.game_over,
        winner=winner.name if winner is not None else None,
        rounds=counter.rounds,
        scores=session.scores(),
        error=res.error,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="flipdeck-sim", description="Run scripted flipdeck games.")
    parser.add_argument("--players", type=int, default=4)
    parser.add_argument("--games", type=int, default=10)
    parser.add_argument("--seed", type=int, default=0, help="seed of the first game; later games count up")
    parser.add_argument("--target", type=int, default=EngineConfig.target_score)
    parser.add_argument("--recycle", action="store_true", help="shuffle the discard pile back when the deck runs out")
    parser.add_argument("--palette-tiebreak", action="store_true", help="break colour ties by palette order")
    parser.add_argument("--telemetry", action="store_true", help="append events to the user data telemetry log")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    setup_logging(args.debug)
    if args.target < 1:
        parser.error("--target must be positive")
    config = EngineConfig(
        target_score=args.target,
        recycle_discard=args.recycle,
        colour_tiebreak="palette_order" if args.palette_tiebreak else "hand_order",
    )

    telemetry = None
    if args.telemetry:
        telemetry = TelemetryService(get_paths().userdata_dir / "telemetry.jsonl")

    wins: Counter[str] = Counter()
    stalled = 0
    total_rounds = 0
    for i in range(args.games):
        try:
            result = simulate(args.seed + i, args.players, config, telemetry)
        except ValueError as e:
            parser.error(str(e))
        total_rounds += result.rounds
        if result.finished and result.winner is not None:
            wins[result.winner] += 1
            print(f"game {i + 1} (seed {result.seed}): {result.winner} wins after {result.rounds} rounds {result.scores}")
        else:
            stalled += 1
            print(f"game {i + 1} (seed {result.seed}): stopped after {result.rounds} rounds: {result.error}")

    print(f"played {args.games} games, {total_rounds} rounds, {stalled} stopped early")
    for name, n in sorted(wins.items()):
        print(f"  {name}: {n} wins")
    return 0 if stalled == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
