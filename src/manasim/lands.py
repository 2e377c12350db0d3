"""
Land drops and land searches.

Whether a land enters tapped is decided when it is put onto the
battlefield, from the battlefield as it is at that moment.
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from .mana import (
    colors_needed,
    refund_tapped_source,
    remaining_mana,
    supplied_colors,
)
from .types import BASIC_LAND_TYPES, CardCategory, FetchType, LandRecord
from .zones import CardInstance, GameState

logger = logging.getLogger(__name__)

SHOCK_LIFE = 2

LandFilter = Callable[[LandRecord], bool]


def enters_tapped(state: GameState, record: LandRecord) -> Tuple[bool, int]:
    """
    Return ``(tapped, life_paid)`` for putting ``record`` onto the battlefield now.

    Shock lands are paid for while the turn is within
    ``config.shock_pay_until_turn``; the other conditional cycles check the
    current battlefield.
    """
    lands = state.lands()

    if record.enters_tapped_always or record.is_bounce:
        return True, 0
    if record.is_fetch and record.fetch_type in (FetchType.SLOW, FetchType.FREE_SLOW):
        return True, 0
    if record.is_shock:
        if state.turn <= state.config.shock_pay_until_turn:
            return False, SHOCK_LIFE
        return True, 0
    if record.is_check:
        wanted = {t for t, c in BASIC_LAND_TYPES.items() if c in record.colors}
        has_match = any(wanted.intersection(l.record.land_subtypes) for l in lands)
        return not has_match, 0
    if record.is_fast:
        return len(lands) > 2, 0
    if record.is_battle:
        basics = sum(1 for l in lands if l.record.is_basic)
        return basics < 2, 0
    if record.is_crowd:
        return not state.config.commander_mode, 0
    return False, 0


def describe_entry(tapped: bool, life_paid: int) -> str:
    if life_paid:
        return f"untapped, paid {life_paid} life"
    return "tapped" if tapped else "untapped"


def put_land_onto_battlefield(
    state: GameState, card: CardInstance, force_tapped: bool = False
) -> str:
    """Place a land, applying its entry rule. Returns the entry description for the log."""
    tapped, life_paid = enters_tapped(state, card.record)
    if force_tapped and not tapped:
        tapped, life_paid = True, 0
    state.lose_life(life_paid)
    card.enter_battlefield(state.turn, tapped=tapped)
    state.battlefield.append(card)
    return describe_entry(tapped, life_paid)


# =============================================================================
# Searching the library
# =============================================================================


def land_filter(filter_name: str, subtypes: Sequence[str] = ()) -> LandFilter:
    """Predicate for search restrictions ``any`` / ``basic`` / ``subtype`` / ``snow``."""
    wanted = set(subtypes)

    def matches(record: LandRecord) -> bool:
        if record.is_fetch:
            return False
        if filter_name == "basic":
            return record.is_basic
        if filter_name == "subtype":
            return bool(wanted.intersection(record.land_subtypes))
        if filter_name == "snow":
            return record.is_snow
        return True

    return matches


def library_lands(state: GameState, matches: LandFilter) -> List[CardInstance]:
    return [
        c
        for c in state.library
        if isinstance(c.record, LandRecord) and matches(c.record)
    ]


def missing_colors(state: GameState) -> List[str]:
    """Colors the tracked key cards need (or the hand, with no key cards) that no source supplies."""
    demand = list(state.key_cards.values())
    if not demand:
        demand = [c.record for c in state.hand if not c.is_land]
    supplied = set(supplied_colors(state.battlefield))
    return [c for c in colors_needed(demand) if c not in supplied]


def score_fetch_target(state: GameState, record: LandRecord, missing: Sequence[str]) -> int:
    weights = state.config.fetch_scoring
    score = 0
    covered = [c for c in record.colors if c in missing]
    if covered:
        score += weights.missing_color
        score += weights.extra_missing_color * (len(covered) - 1)
    if record.is_dual and state.turn <= weights.early_dual_until_turn:
        score += weights.early_dual
    if len(record.colors) >= 2:
        score += weights.multicolor
    if record.is_shock and state.turn >= weights.late_shock_from_turn:
        score += weights.late_shock
    return score


def choose_fetch_target(state: GameState, matches: LandFilter) -> Optional[CardInstance]:
    """Best library land for a search, ties broken by library order."""
    candidates = library_lands(state, matches)
    if not candidates:
        return None
    missing = missing_colors(state)
    best = candidates[0]
    best_score = score_fetch_target(state, best.record, missing)
    for card in candidates[1:]:
        score = score_fetch_target(state, card.record, missing)
        if score > best_score:
            best, best_score = card, score
    return best


def search_library(
    state: GameState,
    matches: LandFilter,
    count: int,
    to_battlefield: bool,
    tapped: bool = False,
) -> List[str]:
    """
    Take up to ``count`` lands from the library, one at a time so each pick
    sees the board left by the previous one. Shuffles afterwards.
    """
    found = []
    for _ in range(count):
        target = choose_fetch_target(state, matches)
        if target is None:
            break
        state.library.remove(target)
        if to_battlefield:
            put_land_onto_battlefield(state, target, force_tapped=tapped)
        else:
            state.hand.append(target)
        found.append(target.name)
    state.rng.shuffle(state.library)
    return found


# =============================================================================
# Fetch lands
# =============================================================================


def fetch_filter_for(record: LandRecord) -> LandFilter:
    return land_filter(record.fetch_filter, record.fetch_subtypes)


def can_activate_fetch(state: GameState, card: CardInstance) -> bool:
    record = card.record
    if not library_lands(state, fetch_filter_for(record)):
        return False
    if record.fetch_type in (FetchType.SLOW, FetchType.FREE_SLOW):
        return card.entered_on_turn is None or card.entered_on_turn < state.turn
    if record.fetch_type is FetchType.MANA_COST:
        return remaining_mana(state).total >= record.fetch_mana_cost
    return True


def activate_fetch(state: GameState, card: CardInstance) -> Optional[str]:
    """
    Sacrifice a fetch land and put the chosen land onto the battlefield.

    The fetch leaves play before the target is scored, so the choice is made
    against the post-sacrifice board. Returns a log fragment, or None if the
    fetch cannot be used right now.
    """
    record = card.record
    if not can_activate_fetch(state, card):
        return None

    if card in state.battlefield:
        state.leave_battlefield(card, state.graveyard)
    else:
        state.graveyard.append(card)

    if record.fetch_type is FetchType.CLASSIC:
        state.lose_life(record.fetch_life_cost)
    elif record.fetch_type is FetchType.MANA_COST:
        state.record_payment({}, record.fetch_mana_cost)

    target = choose_fetch_target(state, fetch_filter_for(record))
    state.library.remove(target)
    entry = put_land_onto_battlefield(
        state, target, force_tapped=record.fetched_enters_tapped
    )
    state.rng.shuffle(state.library)
    return f"{target.name} ({entry})"


def fetch_activation_pass(state: GameState) -> None:
    """Crack every fetch land still in play that can be used this turn."""
    for card in [c for c in state.battlefield if c.is_land and c.record.is_fetch]:
        fetched = activate_fetch(state, card)
        if fetched is None:
            logger.debug(f"Turn {state.turn}: {card.name} has no usable fetch yet")
            continue
        state.log(f"Sacrificed {card.name} (fetched {fetched})")


# =============================================================================
# Land drop
# =============================================================================


def _has_bounce_target(state: GameState) -> bool:
    return any(not c.record.is_bounce for c in state.lands())


def choose_land_to_play(state: GameState) -> Optional[CardInstance]:
    """
    Pick the land to play from hand:

    1. a fetch land whose activation can be paid now
    2. a non-bounce land that would enter untapped
    3. a bounce land, if there is a non-bounce land in play to return
    4. any other non-bounce land

    Ties go to hand order.
    """
    lands = [c for c in state.hand if c.is_land]
    if not lands:
        return None

    for card in lands:
        if card.record.is_fetch and card.record.fetch_type in (
            FetchType.CLASSIC,
            FetchType.MANA_COST,
        ):
            if can_activate_fetch(state, card):
                return card

    for card in lands:
        if not card.record.is_bounce and not enters_tapped(state, card.record)[0]:
            return card

    if _has_bounce_target(state):
        for card in lands:
            if card.record.is_bounce:
                return card

    for card in lands:
        if not card.record.is_bounce:
            return card
    return None


def choose_land_to_return(state: GameState) -> Optional[CardInstance]:
    """Land a bounce land picks up: basics first, then the earliest to enter."""
    candidates = [c for c in state.lands() if not c.record.is_bounce]
    if not candidates:
        return None
    candidates.sort(key=lambda c: (not c.record.is_basic, c.entered_on_turn or 0))
    return candidates[0]


def choose_land_to_sacrifice(state: GameState) -> Optional[CardInstance]:
    """Sacrifice preference: basics, then non-bounce lands, then bounce lands."""
    lands = state.lands()
    for tier in (
        lambda r: r.is_basic,
        lambda r: not r.is_bounce,
        lambda r: True,
    ):
        for card in lands:
            if tier(card.record):
                return card
    return None


def sacrifice_land(state: GameState, card: CardInstance) -> None:
    refund_tapped_source(state, card)
    state.leave_battlefield(card, state.graveyard)


def play_land(state: GameState, card: CardInstance) -> None:
    record = card.record
    state.hand.remove(card)
    state.land_drops_made += 1

    if record.is_fetch and record.fetch_type in (FetchType.CLASSIC, FetchType.MANA_COST):
        card.enter_battlefield(state.turn)
        state.battlefield.append(card)
        fetched = activate_fetch(state, card)
        if fetched is not None:
            state.log(f"Played {card.name}, sacrificed it to fetch {fetched}")
            return
        state.log(f"Played {card.name} (no land to fetch)")
        return

    entry = put_land_onto_battlefield(state, card)
    if record.is_bounce:
        returned = choose_land_to_return(state)
        if returned is not None:
            refund_tapped_source(state, returned)
            state.leave_battlefield(returned, state.hand)
            state.log(f"Played {card.name} ({entry}), bounced {returned.name} (to hand)")
            return
    state.log(f"Played {card.name} ({entry})")


def land_drops_allowed(state: GameState) -> int:
    """One land per turn, or more with an exploration effect in play."""
    extra = [
        getattr(c.record, "lands_per_turn", 1)
        for c in state.battlefield
        if c.category is CardCategory.EXPLORATION
    ]
    return max([1] + extra)


def play_lands(state: GameState) -> int:
    """Use the remaining land drops for this turn. Returns how many lands were played."""
    played = 0
    while state.land_drops_made < land_drops_allowed(state):
        card = choose_land_to_play(state)
        if card is None:
            bounce = next((c for c in state.hand if c.is_land), None)
            if bounce is not None:
                state.log(f"Cannot play {bounce.name} (no land to return)")
            break
        play_land(state, card)
        played += 1
    return played
