"""
Per-turn spell casting scheduler.

Five phases, in order:

    0. cost reducers
    1. mana artifacts and creatures
    2. ramp spells and exploration effects
    3. draw spells and draw permanents
    4. treasure makers

Within a phase the cheapest affordable card is cast, then the phase is
re-scanned. The phases repeat until a whole pass casts nothing. Rituals are
never cast here; they only count as burst mana.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from .lands import (
    choose_land_to_sacrifice,
    land_filter,
    library_lands,
    sacrifice_land,
    search_library,
)
from .mana import can_cast, effective_cost, pay_from_state, remaining_mana
from .types import (
    CardCategory,
    CostReducerRecord,
    DrawRecord,
    EtbCost,
    ManaPermanentRecord,
    RampSpellRecord,
    TreasureRecord,
)
from .zones import CardInstance, GameState

logger = logging.getLogger(__name__)

PHASES: Tuple[Tuple[CardCategory, ...], ...] = (
    (CardCategory.COST_REDUCER,),
    (CardCategory.ARTIFACT, CardCategory.CREATURE),
    (CardCategory.RAMP_SPELL, CardCategory.EXPLORATION),
    (CardCategory.DRAW_SPELL,),
    (CardCategory.TREASURE_CARD,),
)


# =============================================================================
# ETB choices
# =============================================================================


def _choice_key(state: GameState, card: CardInstance) -> Tuple[bool, int, int]:
    """Non-key cards first, then cheapest, then hand order."""
    return (state.is_key_card(card.record), card.record.cmc, state.hand.index(card))


def choose_from_hand(
    state: GameState, predicate: Callable[[CardInstance], bool]
) -> Optional[CardInstance]:
    candidates = [c for c in state.hand if predicate(c)]
    if not candidates:
        return None
    return min(candidates, key=lambda c: _choice_key(state, c))


_ETB_CHOICES: Dict[EtbCost, Callable[[CardInstance], bool]] = {
    EtbCost.DISCARD: lambda c: True,
    EtbCost.DISCARD_LAND: lambda c: c.is_land,
    EtbCost.IMPRINT: lambda c: not c.is_land,
}


def etb_cost_payable(state: GameState, card: CardInstance) -> bool:
    """Whether the enters-the-battlefield cost of ``card`` (still in hand) can be met."""
    etb = getattr(card.record, "etb_cost", None)
    if etb is None:
        return True
    others = [c for c in state.hand if c is not card]
    if etb is EtbCost.SACRIFICE_LAND:
        return bool(state.lands())
    if etb is EtbCost.DISCARD_HAND:
        return not any(state.is_key_card(c.record) for c in others)
    return any(_ETB_CHOICES[etb](c) for c in others)


def resolve_etb_cost(state: GameState, card: CardInstance) -> str:
    """Pay the ETB cost of a permanent that has just left the hand. Returns a log suffix."""
    etb = card.record.etb_cost
    if etb is None:
        return ""

    if etb is EtbCost.SACRIFICE_LAND:
        land = choose_land_to_sacrifice(state)
        sacrifice_land(state, land)
        return f", sacrificed {land.name}"

    if etb is EtbCost.DISCARD_HAND:
        names = [c.name for c in state.hand]
        state.graveyard.extend(state.hand)
        state.hand.clear()
        for name in names:
            state.log(f"Discarded: {name} ({card.name})")
        return f", discarded hand ({len(names)} cards)"

    chosen = choose_from_hand(state, _ETB_CHOICES[etb])
    state.hand.remove(chosen)
    if etb is EtbCost.IMPRINT:
        state.exile.append(chosen)
        card.imprinted = chosen.record
        return f", imprinted {chosen.name}"
    state.graveyard.append(chosen)
    state.log(f"Discarded: {chosen.name} ({card.name})")
    return f", discarded {chosen.name}"


# =============================================================================
# Preconditions
# =============================================================================


def _ramp_filter(record: RampSpellRecord):
    return land_filter(record.fetch_filter, record.fetch_subtypes)


def can_resolve(state: GameState, card: CardInstance) -> bool:
    """Card-specific conditions beyond paying the mana cost."""
    record = card.record
    if isinstance(record, RampSpellRecord):
        if not library_lands(state, _ramp_filter(record)):
            return False
        if record.sacrifice_land and not state.lands():
            return False
        return True
    if isinstance(record, ManaPermanentRecord):
        return etb_cost_payable(state, card)
    return True


# =============================================================================
# Resolution, one handler per category
# =============================================================================


def _enter(state: GameState, card: CardInstance, tapped: bool = False) -> None:
    card.enter_battlefield(state.turn, tapped=tapped)
    state.battlefield.append(card)


def cast_cost_reducer(state: GameState, card: CardInstance) -> str:
    record: CostReducerRecord = card.record
    _enter(state, card, tapped=record.enters_tapped)
    return f"Cast cost reducer: {card.name}"


def cast_mana_permanent(state: GameState, card: CardInstance) -> str:
    record: ManaPermanentRecord = card.record
    suffix = resolve_etb_cost(state, card)
    _enter(state, card, tapped=record.enters_tapped)
    kind = "creature" if record.category is CardCategory.CREATURE else "artifact"
    return f"Cast {kind}: {card.name}{suffix}"


def cast_ramp_spell(state: GameState, card: CardInstance) -> str:
    record: RampSpellRecord = card.record
    parts = [f"Cast ramp spell: {card.name}"]

    if record.sacrifice_land:
        land = choose_land_to_sacrifice(state)
        sacrifice_land(state, land)
        parts.append(f", sac'd {land.name}")

    matches = _ramp_filter(record)
    to_play = search_library(
        state, matches, record.lands_to_add, to_battlefield=True, tapped=record.lands_tapped
    )
    to_hand = search_library(state, matches, record.lands_to_hand, to_battlefield=False)

    if record.stays_on_battlefield:
        _enter(state, card)
    else:
        state.graveyard.append(card)

    if not to_play and not to_hand:
        parts.append(" → no land found")
        return "".join(parts)
    results = []
    if to_play:
        results.append(", ".join(to_play) + (" (tapped)" if record.lands_tapped else ""))
    if to_hand:
        results.append(", ".join(to_hand) + " to hand")
    parts.append(" → " + "; ".join(results))
    return "".join(parts)


def cast_exploration(state: GameState, card: CardInstance) -> str:
    _enter(state, card)
    return f"Cast permanent: {card.name}"


def cards_to_draw(record: DrawRecord, turn: int) -> int:
    if record.draw_scaling is not None:
        return record.draw_scaling.amount(turn)
    return max(0, record.net_cards_drawn)


def cast_draw(state: GameState, card: CardInstance) -> str:
    record: DrawRecord = card.record
    if not record.is_one_time_draw:
        _enter(state, card)
        return f"Cast draw permanent: {card.name} → draws each turn"

    drawn = state.draw(cards_to_draw(record, state.turn))
    state.cards_drawn += len(drawn)
    if record.stays_on_battlefield:
        _enter(state, card)
    else:
        state.graveyard.append(card)
    names = ", ".join(c.name for c in drawn)
    return f"Cast draw spell: {card.name} → drew {len(drawn)} cards: {names}"


def cast_treasure_maker(state: GameState, card: CardInstance) -> str:
    record: TreasureRecord = card.record
    kind = "treasure permanent" if record.stays_on_battlefield else "treasure spell"
    message = f"Cast {kind}: {card.name}"

    if record.is_one_treasure or not record.stays_on_battlefield:
        created = record.treasures_produced
        state.treasures += created
        state.treasures_created += created
        message += f" → created {created} treasure" + ("s" if created != 1 else "")

    if record.stays_on_battlefield:
        _enter(state, card)
    else:
        state.graveyard.append(card)
    return message


CAST_HANDLERS: Dict[CardCategory, Callable[[GameState, CardInstance], str]] = {
    CardCategory.COST_REDUCER: cast_cost_reducer,
    CardCategory.ARTIFACT: cast_mana_permanent,
    CardCategory.CREATURE: cast_mana_permanent,
    CardCategory.RAMP_SPELL: cast_ramp_spell,
    CardCategory.EXPLORATION: cast_exploration,
    CardCategory.DRAW_SPELL: cast_draw,
    CardCategory.TREASURE_CARD: cast_treasure_maker,
}


# =============================================================================
# Scheduler
# =============================================================================


def castable_cards(state: GameState, categories: Tuple[CardCategory, ...]) -> List[CardInstance]:
    """Cards of ``categories`` in hand that can be paid for and resolved now, cheapest first."""
    pool = remaining_mana(state)
    candidates = [
        c
        for c in state.hand
        if c.category in categories
        and can_cast(c.record, pool, state.battlefield)
        and can_resolve(state, c)
    ]
    candidates.sort(
        key=lambda c: (effective_cost(c.record, state.battlefield), state.hand.index(c))
    )
    return candidates


def cast_card(state: GameState, card: CardInstance) -> None:
    pay_from_state(state, card.record)
    state.hand.remove(card)
    state.log(CAST_HANDLERS[card.category](state, card))


def run_phase(state: GameState, categories: Tuple[CardCategory, ...]) -> int:
    """Cast the cheapest castable card of the phase until none is left. Returns the count."""
    cast = 0
    while True:
        candidates = castable_cards(state, categories)
        if not candidates:
            return cast
        cast_card(state, candidates[0])
        cast += 1


def cast_spells(state: GameState) -> int:
    """Run all phases until a full pass casts nothing. Returns the number of cards cast."""
    total = 0
    while True:
        cast = sum(run_phase(state, phase) for phase in PHASES)
        if cast == 0:
            if total == 0:
                logger.debug(f"Turn {state.turn}: nothing affordable to cast")
            return total
        total += cast
