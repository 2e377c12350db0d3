"""
Monte Carlo driver.

Runs independent games and aggregates per-turn statistics. Iterations run
one after another with no shared mutable state; each builds and discards
its own GameState.
"""

import logging
import math
import random
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .deck import ParsedDeck, build_complete_deck, key_card_names, resolve_key_cards
from .errors import ConfigurationError
from .game import GameResult, TurnSnapshot, simulate_game
from .mana import burst_sources_in_deck
from .mulligan import MulliganStrategy, get_strategy
from .types import MANA_TYPES, CardRecord, SimulationConfig, SimulationResults

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 250
"""Iterations between progress callbacks."""

ProgressCallback = Callable[[int, int], None]


class RunningStat:
    """Per-turn running sums and sums of squares."""

    def __init__(self, turns: int):
        self.sums = [0.0] * turns
        self.squares = [0.0] * turns
        self.count = 0

    def add(self, values: Sequence[float]) -> None:
        for i, value in enumerate(values):
            self.sums[i] += value
            self.squares[i] += value * value
        self.count += 1

    def means(self) -> List[float]:
        if not self.count:
            return [0.0] * len(self.sums)
        return [s / self.count for s in self.sums]

    def std_devs(self) -> List[float]:
        """Population standard deviation per turn."""
        if not self.count:
            return [0.0] * len(self.sums)
        result = []
        for s, sq in zip(self.sums, self.squares):
            mean = s / self.count
            result.append(math.sqrt(max(0.0, sq / self.count - mean * mean)))
        return result


def _first_turn(flags: Sequence[bool]) -> Optional[int]:
    for index, flag in enumerate(flags):
        if flag:
            return index + 1
    return None


def is_flooded(snapshots: Sequence[TurnSnapshot], config: SimulationConfig) -> bool:
    """At least ``flood_n_lands`` lands on ``flood_turn``."""
    if config.flood_turn > len(snapshots):
        return False
    return snapshots[config.flood_turn - 1].lands >= config.flood_n_lands


def is_screwed(snapshots: Sequence[TurnSnapshot], config: SimulationConfig) -> bool:
    """At most ``screw_n_lands`` lands on ``screw_turn``."""
    if config.screw_turn > len(snapshots):
        return False
    return snapshots[config.screw_turn - 1].lands <= config.screw_n_lands


def _sequence(game: GameResult, turn: int) -> List[dict]:
    return [log.to_dict() for log in game.state.turn_log[:turn]]


class SequenceRecorder:
    """Keeps up to ``limit`` example games per key card and first-castable turn."""

    def __init__(self, limit: int):
        self.limit = limit
        self.sequences: Dict[str, Dict[int, List[dict]]] = {}
        self.burst_sequences: Dict[str, Dict[int, List[dict]]] = {}

    def _slot(self, store, name: str, turn: int) -> Optional[List[dict]]:
        slot = store.setdefault(name, {}).setdefault(turn, [])
        return slot if len(slot) < self.limit else None

    def record(
        self,
        name: str,
        game: GameResult,
        turn: Optional[int],
        burst_turn: Optional[int],
    ) -> None:
        if turn is not None:
            slot = self._slot(self.sequences, name, turn)
            if slot is not None:
                snapshot = game.snapshots[turn - 1]
                slot.append(
                    {
                        "turn": turn,
                        "mana_available": snapshot.total_mana,
                        "opening_hand": list(game.state.opening_hand),
                        "sequence": _sequence(game, turn),
                    }
                )

        if burst_turn is not None and (turn is None or burst_turn < turn):
            slot = self._slot(self.burst_sequences, name, burst_turn)
            if slot is not None:
                snapshot = game.snapshots[burst_turn - 1]
                slot.append(
                    {
                        "turn": burst_turn,
                        "mana_available": snapshot.total_mana,
                        "mana_with_burst": snapshot.burst_mana,
                        "burst_cards": list(snapshot.burst_sources),
                        "opening_hand": list(game.state.opening_hand),
                        "sequence": _sequence(game, burst_turn),
                    }
                )


def run_simulation(
    deck: Sequence[CardRecord],
    config: SimulationConfig,
    key_cards: Optional[Mapping[str, CardRecord]] = None,
    progress: Optional[ProgressCallback] = None,
    mulligan_strategy: Optional[MulliganStrategy] = None,
) -> SimulationResults:
    """
    Run ``config.iterations`` games over a complete deck.

    Args:
        deck: One record per card copy
        config: Simulation configuration
        key_cards: Tracked cards by name
        progress: Called with (completed, total) every PROGRESS_INTERVAL iterations
            and once at the end
        mulligan_strategy: Strategy to use (defaults to the one named in config)

    Returns:
        Aggregated SimulationResults

    Raises:
        ConfigurationError: for an empty deck or invalid config, before any game is played
    """
    config.validate()
    if not deck:
        raise ConfigurationError("Cannot simulate an empty deck")

    key_cards = dict(key_cards or {})
    strategy = mulligan_strategy or get_strategy(config)
    rng = random.Random(config.seed)
    turns = config.turns

    logger.info(
        f"Running {config.iterations} iterations, {turns} turns, "
        f"{len(deck)} cards, {len(key_cards)} key cards"
    )

    stats = {
        name: RunningStat(turns)
        for name in (
            "lands",
            "untapped_lands",
            "total_mana",
            "life_loss",
            "cards_drawn",
            "treasures",
        )
    }
    colors = {c: RunningStat(turns) for c in MANA_TYPES}
    castable = {name: [0] * turns for name in key_cards}
    castable_burst = {name: [0] * turns for name in key_cards}
    recorder = SequenceRecorder(config.max_sequences)

    mulligans = 0
    flooded = 0
    screwed = 0

    for iteration in range(config.iterations):
        game = simulate_game(deck, config, rng, key_cards, strategy)
        snapshots = game.snapshots
        mulligans += game.mulligans

        stats["lands"].add([s.lands for s in snapshots])
        stats["untapped_lands"].add([s.untapped_lands for s in snapshots])
        stats["total_mana"].add([s.total_mana for s in snapshots])
        stats["life_loss"].add([s.life_loss for s in snapshots])
        stats["cards_drawn"].add([s.cards_drawn for s in snapshots])
        stats["treasures"].add([s.treasures for s in snapshots])
        for color, stat in colors.items():
            stat.add([s.mana_by_color[color] for s in snapshots])

        for name in key_cards:
            first = _first_turn([s.key_castable[name] for s in snapshots])
            first_burst = _first_turn([s.key_castable_burst[name] for s in snapshots])
            for counts, turn in ((castable[name], first), (castable_burst[name], first_burst)):
                if turn is not None:
                    for t in range(turn - 1, turns):
                        counts[t] += 1
            recorder.record(name, game, first, first_burst)

        if is_flooded(snapshots, config):
            flooded += 1
        if is_screwed(snapshots, config):
            screwed += 1

        completed = iteration + 1
        if progress is not None and completed % PROGRESS_INTERVAL == 0:
            progress(completed, config.iterations)

    if progress is not None and config.iterations % PROGRESS_INTERVAL != 0:
        progress(config.iterations, config.iterations)

    n = config.iterations
    color_means = {c: stat.means() for c, stat in colors.items()}
    results = SimulationResults(
        iterations=n,
        turns=turns,
        lands_per_turn=stats["lands"].means(),
        lands_per_turn_std_dev=stats["lands"].std_devs(),
        untapped_lands_per_turn=stats["untapped_lands"].means(),
        untapped_lands_per_turn_std_dev=stats["untapped_lands"].std_devs(),
        total_mana_per_turn=stats["total_mana"].means(),
        total_mana_per_turn_std_dev=stats["total_mana"].std_devs(),
        life_loss_per_turn=stats["life_loss"].means(),
        life_loss_per_turn_std_dev=stats["life_loss"].std_devs(),
        cards_drawn_per_turn=stats["cards_drawn"].means(),
        cards_drawn_per_turn_std_dev=stats["cards_drawn"].std_devs(),
        treasure_per_turn=stats["treasures"].means(),
        treasure_per_turn_std_dev=stats["treasures"].std_devs(),
        colors_by_turn=[
            {c: color_means[c][t] for c in MANA_TYPES} for t in range(turns)
        ],
        key_card_playability={
            name: [100.0 * c / n for c in counts] for name, counts in castable.items()
        },
        key_card_playability_burst={
            name: [100.0 * c / n for c in counts]
            for name, counts in castable_burst.items()
        },
        has_burst_cards=burst_sources_in_deck(deck),
        fastest_play_sequences=recorder.sequences,
        fastest_play_sequences_burst=recorder.burst_sequences,
        mulligans=mulligans,
        hands_kept=n,
        flood_rate=100.0 * flooded / n,
        screw_rate=100.0 * screwed / n,
    )

    logger.info(
        f"Finished {n} iterations: {mulligans} mulligans, "
        f"flood {results.flood_rate:.1f}%, screw {results.screw_rate:.1f}%"
    )
    return results


def monte_carlo(
    parsed_deck: Union[ParsedDeck, Mapping[str, Any]],
    config: Union[SimulationConfig, Mapping[str, Any], None] = None,
    progress: Optional[ProgressCallback] = None,
) -> SimulationResults:
    """
    Assemble the deck, resolve key cards and run the simulation.

    ``config`` may be a SimulationConfig or a plain dict with camelCase or
    snake_case keys.
    """
    if config is None:
        config = SimulationConfig()
    elif not isinstance(config, SimulationConfig):
        config = SimulationConfig.from_dict(config)
    if not isinstance(parsed_deck, ParsedDeck):
        parsed_deck = ParsedDeck.from_dict(parsed_deck)

    deck = build_complete_deck(parsed_deck, config)
    key_cards = resolve_key_cards(key_card_names(config), deck + parsed_deck.cards)
    return run_simulation(deck, config, key_cards, progress)
