"""
Mulligan strategies and the pre-game keep/mulligan loop.

Two rules are supported:

- London: always draw a full hand, then put one card on the bottom of the
  library for each mulligan taken.
- Vancouver: each mulligan draws one card fewer.

In commander mode the first mulligan is free under both rules.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from .mana import ManaPool, can_cast, source_amount
from .types import CardRecord, LandRecord, MulliganRules, SimulationConfig
from .zones import CardInstance, GameState

logger = logging.getLogger(__name__)

EARLY_PLAY_TURN = 2


def count_lands(hand: Sequence[CardRecord]) -> int:
    return sum(1 for card in hand if card.is_land)


def has_early_play(hand: Sequence[CardRecord], by_turn: int = EARLY_PLAY_TURN) -> bool:
    """
    True if some nonland card in ``hand`` could be cast by ``by_turn`` using
    only the lands in the same hand (one land per turn).
    """
    lands = [card for card in hand if isinstance(card, LandRecord)][:by_turn]
    pool = ManaPool()
    for land in lands:
        pool.add(land.mana_amount, land.produces)
    return any(not card.is_land and can_cast(card, pool, ()) for card in hand)


class MulliganStrategy(ABC):
    """Abstract base class for mulligan decisions."""

    @abstractmethod
    def should_keep(
        self, hand: List[CardRecord], hand_size: int, lands_in_hand: int
    ) -> bool:
        """
        Decide whether to keep this hand.

        Args:
            hand: Cards in the freshly drawn hand
            hand_size: Number of cards that will be kept
            lands_in_hand: Number of lands in hand

        Returns:
            True if should keep, False if should mulligan
        """
        pass

    @abstractmethod
    def land_bounds(self, hand_size: int) -> Tuple[int, int]:
        """(minimum, maximum) lands wanted in a kept hand of ``hand_size`` cards."""
        pass


class ConservativeMulligan(MulliganStrategy):
    """Only mulligan hands with no lands or nothing but lands."""

    def should_keep(
        self, hand: List[CardRecord], hand_size: int, lands_in_hand: int
    ) -> bool:
        return 0 < lands_in_hand < len(hand)

    def land_bounds(self, hand_size: int) -> Tuple[int, int]:
        return 1, max(1, hand_size - 1)


class BalancedMulligan(MulliganStrategy):
    """
    Land-count keep table by kept hand size.

    Based on teryror's Rust implementation:
    https://gist.github.com/teryror/57a3099a6566d1ab75bd3fd515ab0380

    - 7 cards: keep if 2-5 lands
    - 6 cards: keep if 2-4 lands
    - 5 cards: keep if 1-4 lands
    - 4 cards: always keep
    """

    KEEP_TABLE: Dict[int, Tuple[int, int]] = {
        7: (2, 5),
        6: (2, 4),
        5: (1, 4),
    }

    def land_bounds(self, hand_size: int) -> Tuple[int, int]:
        if hand_size >= 7:
            return self.KEEP_TABLE[7]
        return self.KEEP_TABLE.get(hand_size, (0, hand_size))

    def should_keep(
        self, hand: List[CardRecord], hand_size: int, lands_in_hand: int
    ) -> bool:
        low, high = self.land_bounds(hand_size)
        return low <= lands_in_hand <= high


class AggressiveMulligan(MulliganStrategy):
    """Keep only 2-4 land hands that can cast something by turn 2."""

    def land_bounds(self, hand_size: int) -> Tuple[int, int]:
        return 2, 4

    def should_keep(
        self, hand: List[CardRecord], hand_size: int, lands_in_hand: int
    ) -> bool:
        low, high = self.land_bounds(hand_size)
        if not low <= lands_in_hand <= high:
            return False
        return has_early_play(hand)


class CustomMulligan(MulliganStrategy):
    """User-defined thresholds, see ``MulliganRules``."""

    def __init__(self, rules: MulliganRules):
        self.rules = rules

    def land_bounds(self, hand_size: int) -> Tuple[int, int]:
        rules = self.rules
        low = rules.min_lands_threshold if rules.mulligan_min_lands else 0
        if rules.mulligan_0_lands:
            low = max(low, 1)
        high = rules.max_lands_threshold if rules.mulligan_max_lands else hand_size
        if rules.mulligan_7_lands:
            high = min(high, hand_size - 1)
        return low, max(low, high)

    def should_keep(
        self, hand: List[CardRecord], hand_size: int, lands_in_hand: int
    ) -> bool:
        rules = self.rules
        if rules.mulligan_0_lands and lands_in_hand == 0:
            return False
        if rules.mulligan_7_lands and lands_in_hand == len(hand):
            return False
        if rules.mulligan_min_lands and lands_in_hand < rules.min_lands_threshold:
            return False
        if rules.mulligan_max_lands and lands_in_hand > rules.max_lands_threshold:
            return False
        if rules.mulligan_no_plays_by_turn and not has_early_play(
            hand, rules.no_plays_turn_threshold
        ):
            return False
        return True


def get_strategy(config: SimulationConfig) -> MulliganStrategy:
    """Strategy instance for ``config.mulligan_strategy``."""
    if config.mulligan_strategy == "conservative":
        return ConservativeMulligan()
    if config.mulligan_strategy == "aggressive":
        return AggressiveMulligan()
    if config.mulligan_strategy == "custom":
        return CustomMulligan(config.custom_mulligan_rules)
    return BalancedMulligan()


# =============================================================================
# Bottoming and the mulligan loop
# =============================================================================


def choose_cards_to_bottom(
    state: GameState,
    strategy: MulliganStrategy,
    hand_size: int,
    num_to_bottom: int,
) -> List[CardInstance]:
    """
    Choose which cards to put on the bottom of the library.

    One card at a time: bottom a spell while the hand is under the strategy's
    land minimum, a land while it is over the maximum, otherwise the spell
    with the highest mana value. Lands that produce fewer colors go first;
    key cards are bottomed last.
    """
    hand = list(state.hand)
    low, high = strategy.land_bounds(hand_size)
    chosen = []

    for _ in range(num_to_bottom):
        lands = [c for c in hand if c.is_land]
        spells = [c for c in hand if not c.is_land]

        bottom_land = len(lands) > high or not spells
        if len(lands) < low and spells:
            bottom_land = False

        if bottom_land:
            card = min(
                lands,
                key=lambda c: (len(c.record.colors), source_amount(c, 0), -hand.index(c)),
            )
        else:
            card = max(
                spells,
                key=lambda c: (not state.is_key_card(c.record), c.record.cmc, hand.index(c)),
            )
        hand.remove(card)
        chosen.append(card)

    return chosen


def _return_hand(state: GameState) -> None:
    state.library.extend(state.hand)
    state.hand.clear()
    state.rng.shuffle(state.library)


def draw_opening_hand(
    state: GameState, strategy: Optional[MulliganStrategy] = None
) -> int:
    """
    Draw the opening hand, taking mulligans as the strategy asks.

    The hand is always kept once the next mulligan would leave fewer than one
    card to keep. Returns the number of mulligans taken.
    """
    config = state.config
    if strategy is None:
        strategy = get_strategy(config)
    free = 1 if config.commander_mode else 0
    mulligans = 0

    while True:
        penalty = max(0, mulligans - free)
        kept_size = config.hand_size - penalty
        draw_size = config.hand_size if config.mulligan_rule == "london" else kept_size
        state.draw(draw_size)

        hand = [c.record for c in state.hand]
        forced = penalty >= config.hand_size - 1
        if (
            not config.enable_mulligans
            or forced
            or strategy.should_keep(hand, kept_size, count_lands(hand))
        ):
            break

        mulligans += 1
        _return_hand(state)

    if config.mulligan_rule == "london" and penalty > 0:
        # a short library can leave fewer cards in hand than hand_size
        to_bottom = min(penalty, len(state.hand) - 1)
        for card in choose_cards_to_bottom(state, strategy, kept_size, to_bottom):
            state.hand.remove(card)
            state.library.append(card)

    state.opening_hand = [c.name for c in state.hand]
    if mulligans:
        logger.debug(f"Kept {len(state.hand)} cards after {mulligans} mulligan(s)")
    return mulligans
