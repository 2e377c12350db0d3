"""
Shared pytest fixtures and record factories for manasim tests.

Factories return immutable card records with sensible defaults; pass
keyword arguments to override any field.
"""

import random
from typing import Dict, List, Optional, Sequence

import pytest

from manasim.types import (
    ArtifactRecord,
    CardRecord,
    CostReducerRecord,
    CreatureRecord,
    DrawRecord,
    ExplorationRecord,
    LandRecord,
    RampSpellRecord,
    RitualRecord,
    SimulationConfig,
    SpellRecord,
    TreasureRecord,
)
from manasim.zones import CardInstance, GameState


# =============================================================================
# Record factories
# =============================================================================


def forest(name: str = "Forest", **kwargs) -> LandRecord:
    defaults = dict(
        produces=("G",), is_basic=True, land_subtypes=("Forest",)
    )
    defaults.update(kwargs)
    return LandRecord(name=name, **defaults)


def island(name: str = "Island", **kwargs) -> LandRecord:
    defaults = dict(produces=("U",), is_basic=True, land_subtypes=("Island",))
    defaults.update(kwargs)
    return LandRecord(name=name, **defaults)


def land(name: str = "Wastes", **kwargs) -> LandRecord:
    return LandRecord(name=name, **kwargs)


def artifact(name: str = "Sol Ring", **kwargs) -> ArtifactRecord:
    defaults = dict(mana_cost="{1}", cmc=1, produces=("C",), mana_amount=2)
    defaults.update(kwargs)
    return ArtifactRecord(name=name, **defaults)


def creature(name: str = "Llanowar Elves", **kwargs) -> CreatureRecord:
    defaults = dict(mana_cost="{G}", cmc=1, produces=("G",), type_line="Creature")
    defaults.update(kwargs)
    return CreatureRecord(name=name, **defaults)


def ramp(name: str = "Cultivate", **kwargs) -> RampSpellRecord:
    defaults = dict(mana_cost="{2}{G}", cmc=3, lands_to_add=1, lands_to_hand=1)
    defaults.update(kwargs)
    return RampSpellRecord(name=name, **defaults)


def ritual(name: str = "Dark Ritual", **kwargs) -> RitualRecord:
    defaults = dict(
        mana_cost="{B}", cmc=1, mana_produced=3, net_gain=2, ritual_colors=("B",)
    )
    defaults.update(kwargs)
    return RitualRecord(name=name, **defaults)


def cost_reducer(name: str = "Emerald Medallion", **kwargs) -> CostReducerRecord:
    defaults = dict(mana_cost="{2}", cmc=2, reduces_color="G", reduces_amount=1)
    defaults.update(kwargs)
    return CostReducerRecord(name=name, **defaults)


def draw_spell(name: str = "Divination", **kwargs) -> DrawRecord:
    defaults = dict(mana_cost="{2}{U}", cmc=3, net_cards_drawn=2)
    defaults.update(kwargs)
    return DrawRecord(name=name, **defaults)


def treasure(name: str = "Seize the Spoils", **kwargs) -> TreasureRecord:
    defaults = dict(mana_cost="{2}{R}", cmc=3, treasures_produced=1)
    defaults.update(kwargs)
    return TreasureRecord(name=name, **defaults)


def exploration(name: str = "Exploration", **kwargs) -> ExplorationRecord:
    defaults = dict(mana_cost="{G}", cmc=1, lands_per_turn=2)
    defaults.update(kwargs)
    return ExplorationRecord(name=name, **defaults)


def spell(name: str = "Counterspell", **kwargs) -> SpellRecord:
    defaults = dict(mana_cost="{U}{U}", cmc=2)
    defaults.update(kwargs)
    return SpellRecord(name=name, **defaults)


# =============================================================================
# Game state helpers
# =============================================================================


def make_state(
    library: Sequence[CardRecord] = (),
    hand: Sequence[CardRecord] = (),
    battlefield: Sequence[CardRecord] = (),
    turn: int = 1,
    config: Optional[SimulationConfig] = None,
    key_cards: Optional[Dict[str, CardRecord]] = None,
    seed: int = 0,
) -> GameState:
    """
    GameState positioned at the start of ``turn`` (after begin_turn).

    Battlefield cards entered on turn 0, so they are not summoning sick.
    """
    state = GameState(
        config=config or SimulationConfig(),
        rng=random.Random(seed),
        library=[CardInstance(r) for r in library],
        key_cards=key_cards or {},
    )
    state.hand = [CardInstance(r) for r in hand]
    for record in battlefield:
        card = CardInstance(record)
        card.enter_battlefield(0)
        state.battlefield.append(card)
    state.turn = turn - 1
    state.begin_turn()
    return state


def names(cards: List[CardInstance]) -> List[str]:
    return [c.name for c in cards]


@pytest.fixture
def config() -> SimulationConfig:
    return SimulationConfig(iterations=50, turns=5, seed=1234)


@pytest.fixture
def mono_green_deck() -> List[CardRecord]:
    """40 basic Forests, one record per copy."""
    return [forest(f"Forest {i + 1}") for i in range(40)]
