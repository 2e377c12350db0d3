"""
Per-game card instances and game state.

A ``CardInstance`` is the mutable, game-owned copy of an immutable
``CardRecord``. A card that leaves the battlefield becomes a new instance,
so ``entered_on_turn`` is written at most once per instance.
"""

import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .types import CardCategory, CardRecord, SimulationConfig


@dataclass(eq=False)
class CardInstance:
    record: CardRecord
    entered_tapped: bool = False
    tapped_locked: bool = False
    """Set for sources that did not untap this turn."""
    imprinted: Optional[CardRecord] = None
    _entered_on_turn: Optional[int] = None

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def category(self) -> CardCategory:
        return self.record.category

    @property
    def is_land(self) -> bool:
        return self.record.category is CardCategory.LAND

    @property
    def entered_on_turn(self) -> Optional[int]:
        return self._entered_on_turn

    def enter_battlefield(self, turn: int, tapped: bool = False) -> None:
        """Record the turn this instance entered play. Raises if already set."""
        if self._entered_on_turn is not None:
            raise RuntimeError(
                f"{self.name} already entered on turn {self._entered_on_turn}"
            )
        self._entered_on_turn = turn
        self.entered_tapped = tapped

    def turns_in_play(self, turn: int) -> int:
        """Turns since entering play; 0 on the entry turn or when not in play."""
        if self._entered_on_turn is None:
            return 0
        return turn - self._entered_on_turn

    def fresh_copy(self) -> "CardInstance":
        """New instance of the same card, e.g. when it returns to hand."""
        return CardInstance(self.record)


@dataclass
class TurnLog:
    """Diagnostic record of one turn."""

    turn: int
    actions: List[str] = field(default_factory=list)
    life_loss: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {"turn": self.turn, "actions": list(self.actions), "life_loss": self.life_loss}


@dataclass
class GameState:
    """
    Everything one simulated game owns.

    The library is ordered (index 0 is the top). Hand, battlefield and
    graveyard are plain lists whose order only serves as a deterministic
    tie-break.
    """

    config: SimulationConfig
    rng: random.Random
    library: List[CardInstance]
    key_cards: Mapping[str, CardRecord] = field(default_factory=dict)

    hand: List[CardInstance] = field(default_factory=list)
    battlefield: List[CardInstance] = field(default_factory=list)
    graveyard: List[CardInstance] = field(default_factory=list)
    exile: List[CardInstance] = field(default_factory=list)

    turn: int = 0
    life_loss: int = 0
    treasures: int = 0
    opening_hand: List[str] = field(default_factory=list)
    turn_log: List[TurnLog] = field(default_factory=list)

    # Per-turn counters, reset by begin_turn()
    land_drops_made: int = 0
    mana_spent: int = 0
    pips_spent: Dict[str, int] = field(default_factory=dict)
    cards_drawn: int = 0
    treasures_created: int = 0

    @property
    def current_log(self) -> TurnLog:
        return self.turn_log[-1]

    def log(self, action: str) -> None:
        if self.turn_log:
            self.current_log.actions.append(action)

    def begin_turn(self) -> None:
        self.turn += 1
        self.turn_log.append(TurnLog(self.turn))
        self.land_drops_made = 0
        self.mana_spent = 0
        self.pips_spent = {}
        self.cards_drawn = 0
        self.treasures_created = 0

    def draw(self, count: int = 1) -> List[CardInstance]:
        """Draw up to ``count`` cards from the top; an empty library draws nothing."""
        drawn = []
        for _ in range(count):
            if not self.library:
                break
            card = self.library.pop(0)
            self.hand.append(card)
            drawn.append(card)
        return drawn

    def lose_life(self, amount: int) -> None:
        if amount <= 0:
            return
        self.life_loss += amount
        if self.turn_log:
            self.current_log.life_loss += amount

    def record_payment(self, pips: Mapping[str, int], amount: int) -> None:
        self.mana_spent += amount
        for color, n in pips.items():
            self.pips_spent[color] = self.pips_spent.get(color, 0) + n

    def lands(self) -> List[CardInstance]:
        return [c for c in self.battlefield if c.is_land]

    def leave_battlefield(self, card: CardInstance, to: List[CardInstance]) -> CardInstance:
        """Move a permanent to another zone as a new instance."""
        self.battlefield.remove(card)
        copy = card.fresh_copy()
        to.append(copy)
        return copy

    def is_key_card(self, record: CardRecord) -> bool:
        return record.name in self.key_cards
