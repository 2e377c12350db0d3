"""
Turn engine: plays one game and records a snapshot per turn.

Turn sequence:

    untap -> upkeep -> draw -> land drop -> casting phases
    -> extra land drops -> fetch activations -> life loss -> hand size
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .casting import cast_spells
from .lands import fetch_activation_pass, play_lands
from .mana import (
    ManaPool,
    add_burst_mana,
    calculate_mana_availability,
    can_cast,
    count_untapped_lands,
    remaining_mana,
)
from .mulligan import MulliganStrategy, draw_opening_hand
from .types import (
    MANA_TYPES,
    CardRecord,
    DrawRecord,
    ManaPermanentRecord,
    SimulationConfig,
    TreasureRecord,
)
from .zones import CardInstance, GameState

logger = logging.getLogger(__name__)


@dataclass
class TurnSnapshot:
    """End-of-turn measurements used by the statistics driver."""

    turn: int
    lands: int
    untapped_lands: int
    total_mana: int
    mana_by_color: Dict[str, int]
    life_loss: int
    cards_drawn: int
    treasures: int
    key_castable: Dict[str, bool] = field(default_factory=dict)
    key_castable_burst: Dict[str, bool] = field(default_factory=dict)
    burst_mana: int = 0
    burst_sources: List[str] = field(default_factory=list)


@dataclass
class GameResult:
    state: GameState
    mulligans: int
    snapshots: List[TurnSnapshot]


def _bernoulli_count(rng: random.Random, average: float) -> int:
    """Whole part of ``average`` plus one more with probability of the fraction."""
    whole = int(average)
    fraction = average - whole
    if fraction > 0 and rng.random() < fraction:
        whole += 1
    return whole


# =============================================================================
# Turn steps
# =============================================================================


def untap_step(state: GameState) -> None:
    """
    Sources that do not untap are locked from the turn after they enter.

    Payments are tracked per turn, not per source, so a locked source is
    assumed to have been tapped whether or not its mana was spent. This is a
    modeling approximation: mean available mana can drop from one turn to the
    next when such a source sat unused.
    """
    for card in state.battlefield:
        record = card.record
        if isinstance(record, ManaPermanentRecord) and record.does_not_untap:
            if card.turns_in_play(state.turn) > 0:
                card.tapped_locked = True


def upkeep_step(state: GameState) -> None:
    """Upkeep damage, per-turn draws, recurring treasures, paid untaps."""
    for card in list(state.battlefield):
        record = card.record
        if card.turns_in_play(state.turn) <= 0:
            continue

        if isinstance(record, ManaPermanentRecord) and record.life_per_turn:
            if record.life_chance >= 1.0 or state.rng.random() < record.life_chance:
                damage = record.life_per_turn + record.upkeep_damage_growth * (
                    card.turns_in_play(state.turn) - 1
                )
                state.lose_life(damage)
                if damage > 0:
                    state.log(f"{card.name}: lost {damage} life")

        elif isinstance(record, DrawRecord) and not record.is_one_time_draw:
            if record.draw_scaling is not None:
                count = record.draw_scaling.amount(card.turns_in_play(state.turn))
            else:
                count = _bernoulli_count(state.rng, record.avg_cards_per_turn)
            for drawn in state.draw(count):
                state.cards_drawn += 1
                state.log(f"Drew: {drawn.name} ({card.name})")

        elif isinstance(record, TreasureRecord) and record.stays_on_battlefield:
            created = _bernoulli_count(state.rng, record.avg_treasures_per_turn)
            if created > 0:
                state.treasures += created
                state.treasures_created += created
                plural = "s" if created != 1 else ""
                state.log(f"{card.name}: created {created} treasure{plural}")

    for card in state.battlefield:
        record = card.record
        if not card.tapped_locked or record.untap_cost <= 0:
            continue
        if remaining_mana(state).total >= record.untap_cost:
            state.record_payment({}, record.untap_cost)
            card.tapped_locked = False
            state.log(f"Paid {record.untap_cost} to untap {card.name}")


def draw_step(state: GameState) -> None:
    if state.turn == 1 and not state.config.commander_mode:
        return
    for card in state.draw(1):
        state.cards_drawn += 1
        state.log(f"Drew: {card.name}")


def life_loss_step(state: GameState) -> None:
    """Damage from lands that hurt their controller every turn."""
    for card in state.lands():
        if card.record.life_per_turn:
            state.lose_life(card.record.life_per_turn)


def _discard_choice(state: GameState) -> CardInstance:
    lands_in_play = len(state.lands())
    lands = [c for c in state.hand if c.is_land]
    spells = [c for c in state.hand if not c.is_land]
    if lands and (lands_in_play >= state.config.flood_n_lands or not spells):
        return lands[-1]
    return max(
        spells,
        key=lambda c: (not state.is_key_card(c.record), c.record.cmc, state.hand.index(c)),
    )


def cleanup_step(state: GameState) -> None:
    """Discard down to the maximum hand size."""
    while len(state.hand) > state.config.max_hand_size:
        card = _discard_choice(state)
        state.hand.remove(card)
        state.graveyard.append(card)
        state.log(f"Discarded: {card.name} (hand size)")


# =============================================================================
# Key cards
# =============================================================================


@dataclass
class Castability:
    """Key card checks against the battlefield and hand at one point in the turn."""

    castable: Dict[str, bool]
    castable_burst: Dict[str, bool]
    burst_mana: int
    burst_sources: List[str]


def key_castability(state: GameState, pool: ManaPool) -> Dict[str, bool]:
    return {
        name: can_cast(record, pool, state.battlefield)
        for name, record in state.key_cards.items()
    }


def measure_castability(state: GameState) -> Castability:
    """
    Which key cards the mana left right now could pay for.

    Cost reducers only count while they are on the battlefield at the time
    of the check, so mana that paid for a reducer never also gets its discount.
    """
    pool = remaining_mana(state)
    burst, used = add_burst_mana(pool, state.hand, state.battlefield, state.treasures)
    return Castability(
        castable=key_castability(state, pool),
        castable_burst=key_castability(state, burst),
        burst_mana=burst.total,
        burst_sources=used,
    )


def take_snapshot(
    state: GameState, early: Optional[Castability] = None
) -> TurnSnapshot:
    """
    End-of-turn snapshot. A key card is castable if either ``early`` (taken
    after the land drop) or the end-of-turn check can pay for it.
    """
    checks = [measure_castability(state)]
    if early is not None:
        checks.insert(0, early)
    available = calculate_mana_availability(state.battlefield, state.turn)

    burst_sources: List[str] = []
    for check in checks:
        if len(check.burst_sources) > len(burst_sources):
            burst_sources = check.burst_sources

    return TurnSnapshot(
        turn=state.turn,
        lands=len(state.lands()),
        untapped_lands=count_untapped_lands(state.battlefield, state.turn),
        total_mana=available.total,
        mana_by_color={c: available.by_color.get(c, 0) for c in MANA_TYPES},
        life_loss=state.life_loss,
        cards_drawn=state.cards_drawn,
        treasures=state.treasures_created,
        key_castable={
            name: any(c.castable[name] for c in checks) for name in state.key_cards
        },
        key_castable_burst={
            name: any(c.castable_burst[name] for c in checks) for name in state.key_cards
        },
        burst_mana=max(c.burst_mana for c in checks),
        burst_sources=burst_sources,
    )


def play_turn(state: GameState) -> TurnSnapshot:
    """Play one full turn and return its end-of-turn snapshot."""
    state.begin_turn()
    untap_step(state)
    upkeep_step(state)
    draw_step(state)
    play_lands(state)

    early = measure_castability(state)

    cast_spells(state)
    if play_lands(state):
        cast_spells(state)
    fetch_activation_pass(state)

    snapshot = take_snapshot(state, early)
    life_loss_step(state)
    cleanup_step(state)

    snapshot.life_loss = state.life_loss
    return snapshot


# =============================================================================
# Game setup
# =============================================================================


def new_game(
    deck: Sequence[CardRecord],
    config: SimulationConfig,
    rng: random.Random,
    key_cards: Optional[Mapping[str, CardRecord]] = None,
) -> GameState:
    """Fresh game state with a shuffled library built from ``deck``."""
    library = [CardInstance(record) for record in deck]
    rng.shuffle(library)
    return GameState(
        config=config,
        rng=rng,
        library=library,
        key_cards=dict(key_cards or {}),
    )


def simulate_game(
    deck: Sequence[CardRecord],
    config: SimulationConfig,
    rng: random.Random,
    key_cards: Optional[Mapping[str, CardRecord]] = None,
    strategy: Optional[MulliganStrategy] = None,
) -> GameResult:
    """
    Simulate one game: opening hand with mulligans, then ``config.turns`` turns.

    Args:
        deck: One record per card copy
        config: Simulation configuration
        rng: Random generator owned by the caller
        key_cards: Tracked cards by name
        strategy: Mulligan strategy (defaults to the one named in config)

    Returns:
        GameResult with the final state and one snapshot per turn
    """
    state = new_game(deck, config, rng, key_cards)
    mulligans = draw_opening_hand(state, strategy)
    snapshots = [play_turn(state) for _ in range(config.turns)]
    return GameResult(state=state, mulligans=mulligans, snapshots=snapshots)
