"""
Mana consistency simulation package.

Monte Carlo simulation of a deck's opening turns: lands, mana by color,
life paid, cards drawn and key card playability.
"""

from .errors import BoundaryError, ConfigurationError, ManasimError
from .types import (
    CardCategory,
    CardRecord,
    MulliganRules,
    SimulationConfig,
    SimulationResults,
)
from .deck import ParsedDeck, build_complete_deck, card_from_dict
from .mana import calculate_mana_availability, parse_mana_cost
from .mulligan import (
    MulliganStrategy,
    ConservativeMulligan,
    BalancedMulligan,
    AggressiveMulligan,
    CustomMulligan,
)
from .game import simulate_game
from .simulation import run_simulation, monte_carlo
from .worker import SimulationWorker, run_comparison

__all__ = [
    # Errors
    "ManasimError",
    "ConfigurationError",
    "BoundaryError",
    # Types
    "CardCategory",
    "CardRecord",
    "MulliganRules",
    "SimulationConfig",
    "SimulationResults",
    # Deck
    "ParsedDeck",
    "build_complete_deck",
    "card_from_dict",
    # Mana
    "calculate_mana_availability",
    "parse_mana_cost",
    # Mulligan
    "MulliganStrategy",
    "ConservativeMulligan",
    "BalancedMulligan",
    "AggressiveMulligan",
    "CustomMulligan",
    # Simulation
    "simulate_game",
    "run_simulation",
    "monte_carlo",
    "SimulationWorker",
    "run_comparison",
]
