#!/usr/bin/env python3
"""
Command-line entry point.

Loads a parsed-deck JSON file (per-category card lists), runs the Monte
Carlo simulation and prints per-turn tables.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .errors import ManasimError
from .logging_config import setup_logging
from .settings import (
    get_default_hand_size,
    get_default_iterations,
    get_default_seed,
    get_default_turns,
)
from .simulation import monte_carlo
from .types import (
    COLORS,
    MULLIGAN_RULES,
    MULLIGAN_STRATEGIES,
    SimulationConfig,
    SimulationResults,
)

logger = logging.getLogger(__name__)


def load_deck(path: Path) -> dict:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def print_table(results: SimulationResults) -> None:
    """Print per-turn averages and key card playability."""
    turns = results.turns
    width = 14 + 9 * turns

    print(f"\n{'=' * width}")
    print(f"RESULTS ({results.iterations:,} games, {turns} turns)")
    print(f"{'=' * width}\n")

    header = "Turn         |"
    for turn in range(1, turns + 1):
        header += f" {turn:^6} |"
    print(header)
    print("-" * width)

    rows = [
        ("Lands", results.lands_per_turn),
        ("Untapped", results.untapped_lands_per_turn),
        ("Total mana", results.total_mana_per_turn),
        ("Life lost", results.life_loss_per_turn),
        ("Cards drawn", results.cards_drawn_per_turn),
        ("Treasures", results.treasure_per_turn),
    ]
    rows += [
        (f"Mana {color}", [turn[color] for turn in results.colors_by_turn])
        for color in COLORS
    ]
    for label, values in rows:
        row = f"{label:<12} |"
        for value in values:
            row += f" {value:^6.2f} |"
        print(row)

    if results.key_card_playability:
        print("\nKey card playability (% castable by turn):")
        print("-" * width)
        for name, values in results.key_card_playability.items():
            row = f"{name[:12]:<12} |"
            for value in values:
                row += f" {value:^6.1f} |"
            print(row)
            if results.has_burst_cards:
                row = f"{'  +burst':<12} |"
                for value in results.key_card_playability_burst[name]:
                    row += f" {value:^6.1f} |"
                print(row)

    print(
        f"\nMulligans: {results.mulligans}  "
        f"Flood: {results.flood_rate:.1f}%  Screw: {results.screw_rate:.1f}%"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Monte Carlo mana consistency simulation for a deck"
    )
    parser.add_argument(
        "--deck",
        type=Path,
        required=True,
        help="Parsed deck JSON file (lists: lands, artifacts, creatures, ...)",
    )
    parser.add_argument("--iterations", type=int, help="Number of simulated games")
    parser.add_argument("--turns", type=int, help="Turns per game")
    parser.add_argument("--hand-size", type=int, help="Starting hand size")
    parser.add_argument(
        "--key-card",
        action="append",
        default=[],
        help="Track playability of this card (repeatable)",
    )
    parser.add_argument(
        "--commander",
        metavar="NAME",
        nargs="?",
        const="",
        help="Commander mode, optionally tracking the named commander",
    )
    parser.add_argument(
        "--mulligans", action="store_true", help="Enable mulligan decisions"
    )
    parser.add_argument("--mulligan-rule", choices=MULLIGAN_RULES, default="london")
    parser.add_argument(
        "--mulligan-strategy", choices=MULLIGAN_STRATEGIES, default="balanced"
    )
    parser.add_argument("--seed", type=int, help="Random seed for reproducible runs")
    parser.add_argument(
        "--json", action="store_true", help="Print results as JSON instead of tables"
    )
    return parser


def _or_default(value, default):
    return value if value is not None else default()


def config_from_args(args: argparse.Namespace) -> SimulationConfig:
    seed = args.seed if args.seed is not None else get_default_seed()
    return SimulationConfig(
        iterations=_or_default(args.iterations, get_default_iterations),
        turns=_or_default(args.turns, get_default_turns),
        hand_size=_or_default(args.hand_size, get_default_hand_size),
        seed=seed,
        selected_key_cards=frozenset(args.key_card),
        commander_mode=args.commander is not None,
        commander_name=args.commander or "",
        enable_mulligans=args.mulligans,
        mulligan_rule=args.mulligan_rule,
        mulligan_strategy=args.mulligan_strategy,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        config = config_from_args(args)
        deck = load_deck(args.deck)
        results = monte_carlo(deck, config)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read deck {args.deck}: {e}")
        return 1
    except ManasimError as e:
        logger.error(str(e))
        return 2

    if args.json:
        print(json.dumps(results.to_dict(), indent=2))
    else:
        print_table(results)
    return 0


if __name__ == "__main__":
    sys.exit(main())
