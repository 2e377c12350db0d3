"""
Mana costs, mana pools and the mana availability calculator.

Colored pips are always paid in full before any discount applies; discounts
only touch the generic part. This is a simplification of real mana payment
(a known modeling approximation, not a bug).
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Iterable, List, Mapping, Tuple

from .types import (
    COLORS,
    MANA_TYPES,
    CardCategory,
    CardRecord,
    CostReducerRecord,
    EtbCost,
    LandRecord,
    ManaPermanentRecord,
    RitualRecord,
)
from .zones import CardInstance, GameState

_SYMBOL_RE = re.compile(r"\{([^}]+)\}")


@dataclass(frozen=True)
class ManaCost:
    """Parsed mana cost: generic amount plus colored pip counts."""

    generic: int = 0
    pips: Tuple[Tuple[str, int], ...] = ()

    @property
    def pip_counts(self) -> Dict[str, int]:
        return dict(self.pips)

    @property
    def pip_total(self) -> int:
        return sum(n for _, n in self.pips)

    @property
    def colors(self) -> Tuple[str, ...]:
        return tuple(c for c, _ in self.pips)


@lru_cache(maxsize=None)
def parse_mana_cost(cost: str) -> ManaCost:
    """
    Parse a cost string such as ``"{2}{G}{G}"``.

    Examples:
        "{2}{G}{G}" -> ManaCost(generic=2, pips=(("G", 2),))
        "{0}"       -> ManaCost()
        "{X}{R}"    -> ManaCost(generic=0, pips=(("R", 1),))

    Hybrid and Phyrexian symbols count as one generic mana; X counts as 0.
    """
    generic = 0
    counts: Dict[str, int] = {}
    for symbol in _SYMBOL_RE.findall(cost or ""):
        symbol = symbol.upper()
        if symbol.isdigit():
            generic += int(symbol)
        elif symbol in MANA_TYPES:
            counts[symbol] = counts.get(symbol, 0) + 1
        elif symbol in ("X", "Y", "Z"):
            continue
        else:
            generic += 1
    ordered = tuple((c, counts[c]) for c in MANA_TYPES if c in counts)
    return ManaCost(generic=generic, pips=ordered)


@dataclass
class ManaPool:
    """Total mana plus, for each mana type, how much of the total can be that type."""

    total: int = 0
    by_color: Dict[str, int] = field(
        default_factory=lambda: {c: 0 for c in MANA_TYPES}
    )

    def copy(self) -> "ManaPool":
        return ManaPool(self.total, dict(self.by_color))

    def add(self, amount: int, colors: Iterable[str]) -> None:
        self.total += amount
        for color in colors:
            self.by_color[color] = self.by_color.get(color, 0) + amount

    def can_pay(self, pips: Mapping[str, int], amount: int) -> bool:
        if self.total < amount:
            return False
        return all(self.by_color.get(color, 0) >= n for color, n in pips.items())

    def spend(self, pips: Mapping[str, int], amount: int) -> None:
        """Remove a payment. Each color is clamped to what is left in total."""
        self.total = max(0, self.total - amount)
        for color, n in pips.items():
            self.by_color[color] = self.by_color.get(color, 0) - n
        for color in self.by_color:
            self.by_color[color] = max(0, min(self.by_color[color], self.total))


def _basic_colors_of(record: CardRecord) -> Tuple[str, ...]:
    return tuple(c for c in parse_mana_cost(record.mana_cost).colors if c in COLORS)


def produces_mana_now(card: CardInstance, turn: int) -> bool:
    """True if a permanent can tap for mana on ``turn`` (summoning sickness, tapped entry)."""
    record = card.record
    entered = card.entered_on_turn
    if entered is None:
        return False
    if card.entered_tapped and entered == turn:
        return False
    if isinstance(record, LandRecord):
        return True
    if isinstance(record, ManaPermanentRecord):
        if card.tapped_locked:
            return False
        if entered < turn:
            return True
        if record.category is CardCategory.CREATURE:
            return record.has_haste
        return not record.enters_tapped
    return False


def source_amount(card: CardInstance, turn: int) -> int:
    record = card.record
    if isinstance(record, ManaPermanentRecord) and record.mana_scaling is not None:
        return record.mana_scaling.amount(card.turns_in_play(turn))
    return getattr(record, "mana_amount", 0)


def source_colors(card: CardInstance) -> Tuple[str, ...]:
    record = card.record
    if isinstance(record, ManaPermanentRecord) and record.etb_cost is EtbCost.IMPRINT:
        if card.imprinted is None:
            return ()
        return _basic_colors_of(card.imprinted)
    return tuple(getattr(record, "produces", ()))


def calculate_mana_availability(
    battlefield: Iterable[CardInstance], turn: int
) -> ManaPool:
    """
    Total and per-color mana the battlefield can produce on ``turn``.

    Filter lands are resolved in a second pass: they only produce when some
    other source already supplies one of their colors, and produce nothing
    otherwise.
    """
    pool = ManaPool()
    filters: List[Tuple[CardInstance, int]] = []

    for card in battlefield:
        if not produces_mana_now(card, turn):
            continue
        colors = source_colors(card)
        amount = source_amount(card, turn)
        if amount <= 0 or not colors:
            continue
        if isinstance(card.record, LandRecord) and card.record.is_filter:
            filters.append((card, amount))
            continue
        pool.add(amount, colors)

    for card, amount in filters:
        colors = source_colors(card)
        if any(pool.by_color.get(c, 0) > 0 for c in colors if c != "C"):
            pool.add(amount, colors)

    return pool


def count_untapped_lands(battlefield: Iterable[CardInstance], turn: int) -> int:
    return sum(
        1
        for card in battlefield
        if card.is_land and not (card.entered_tapped and card.entered_on_turn == turn)
    )


def _reducer_applies(reducer: CostReducerRecord, record: CardRecord) -> bool:
    if record.is_land:
        return False
    if reducer.reduces_color is not None:
        if reducer.reduces_color not in parse_mana_cost(record.mana_cost).pip_counts:
            return False
    if reducer.reduces_type == "instant_or_sorcery":
        return "Instant" in record.type_line or "Sorcery" in record.type_line
    if reducer.reduces_type == "creature":
        return (
            record.category is CardCategory.CREATURE or "Creature" in record.type_line
        )
    return True


def cost_discount(record: CardRecord, battlefield: Iterable[CardInstance]) -> int:
    """Sum of reductions from cost reducers in play that match ``record``."""
    return sum(
        card.record.reduces_amount
        for card in battlefield
        if isinstance(card.record, CostReducerRecord)
        and _reducer_applies(card.record, record)
    )


def effective_cost(record: CardRecord, battlefield: Iterable[CardInstance]) -> int:
    cost = parse_mana_cost(record.mana_cost)
    mana_value = max(record.cmc, cost.generic + cost.pip_total)
    discounted = max(0, mana_value - cost_discount(record, battlefield))
    return max(cost.pip_total, discounted)


def can_cast(
    record: CardRecord,
    pool: ManaPool,
    battlefield: Iterable[CardInstance],
) -> bool:
    """Each pip requirement is met independently and total mana covers the effective cost."""
    pips = parse_mana_cost(record.mana_cost).pip_counts
    return pool.can_pay(pips, effective_cost(record, battlefield))


def pay_for(
    record: CardRecord, pool: ManaPool, battlefield: Iterable[CardInstance]
) -> int:
    """Spend the effective cost of ``record`` from ``pool``; returns the amount paid."""
    amount = effective_cost(record, battlefield)
    pool.spend(parse_mana_cost(record.mana_cost).pip_counts, amount)
    return amount


def add_burst_mana(
    pool: ManaPool,
    hand: Iterable[CardInstance],
    battlefield: List[CardInstance],
    treasures: int,
) -> Tuple[ManaPool, List[str]]:
    """
    Pool including one-shot mana: castable rituals in hand and treasure tokens.

    Rituals are chained cheapest first, each paid from the pool built so far.
    Returns the new pool and the names of the burst sources used.
    """
    burst = pool.copy()
    used: List[str] = []
    rituals = sorted(
        (c for c in hand if isinstance(c.record, RitualRecord)),
        key=lambda c: c.record.cmc,
    )
    for card in rituals:
        record = card.record
        if not can_cast(record, burst, battlefield):
            continue
        pay_for(record, burst, battlefield)
        burst.add(record.mana_produced, record.ritual_colors or ("C",))
        used.append(record.name)
    if treasures > 0:
        burst.add(treasures, MANA_TYPES)
        used.append(f"{treasures} Treasure" + ("s" if treasures != 1 else ""))
    return burst, used


def burst_sources_in_deck(records: Iterable[CardRecord]) -> bool:
    return any(
        r.category in (CardCategory.RITUAL, CardCategory.TREASURE_CARD)
        for r in records
    )


def colors_needed(records: Iterable[CardRecord]) -> List[str]:
    """Colors demanded by the pips of ``records``, in WUBRG order."""
    needed = set()
    for record in records:
        needed.update(c for c in parse_mana_cost(record.mana_cost).colors if c in COLORS)
    return [c for c in COLORS if c in needed]


def supplied_colors(battlefield: Iterable[CardInstance]) -> List[str]:
    """Colors produced by any mana source in play, whether or not it is untapped."""
    supplied = set()
    for card in battlefield:
        supplied.update(c for c in source_colors(card) if c in COLORS)
    return [c for c in COLORS if c in supplied]


def remaining_mana(state: GameState) -> ManaPool:
    """What the battlefield can still produce this turn after the payments made so far."""
    pool = calculate_mana_availability(state.battlefield, state.turn)
    pool.spend(state.pips_spent, state.mana_spent)
    return pool


def pay_from_state(state: GameState, record: CardRecord) -> int:
    """Charge the effective cost of ``record`` to the current turn."""
    amount = effective_cost(record, state.battlefield)
    state.record_payment(parse_mana_cost(record.mana_cost).pip_counts, amount)
    return amount


def refund_tapped_source(state: GameState, card: CardInstance) -> None:
    """
    A source that leaves play after being tapped this turn took its mana
    with it; treat it as one of the sources already spent.
    """
    if state.mana_spent <= 0 or not produces_mana_now(card, state.turn):
        return
    state.mana_spent -= min(source_amount(card, state.turn), state.mana_spent)
