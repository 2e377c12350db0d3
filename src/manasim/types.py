"""
Types and configuration for deck simulation.

Card records are immutable templates built by the (external) card
classification step. Each card category has its own record variant that
carries only the fields relevant to it; ``CardRecord.category`` is the tag
the scheduler dispatches on.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .errors import ConfigurationError


COLORS: Tuple[str, ...] = ("W", "U", "B", "R", "G")
"""The five colors, in the order results are reported."""

MANA_TYPES: Tuple[str, ...] = COLORS + ("C",)
"""Colors plus colorless."""

BASIC_LAND_TYPES: Dict[str, str] = {
    "Plains": "W",
    "Island": "U",
    "Swamp": "B",
    "Mountain": "R",
    "Forest": "G",
}


class CardCategory(Enum):
    """Card categories understood by the simulator."""

    LAND = "land"
    ARTIFACT = "artifact"
    CREATURE = "creature"
    RAMP_SPELL = "rampSpell"
    RITUAL = "ritual"
    COST_REDUCER = "costReducer"
    DRAW_SPELL = "drawSpell"
    TREASURE_CARD = "treasureCard"
    EXPLORATION = "exploration"
    SPELL = "spell"


class FetchType(Enum):
    """How a fetch land is activated."""

    CLASSIC = "classic"
    """Pay life, crack immediately."""
    SLOW = "slow"
    """Enters tapped, cracked on a later turn."""
    MANA_COST = "mana_cost"
    """Pay mana to crack."""
    FREE_SLOW = "free_slow"
    """Enters tapped, no life cost, cracked on a later turn."""


class EtbCost(Enum):
    """Costs paid automatically when a mana permanent enters."""

    DISCARD = "discard"
    DISCARD_LAND = "discard_land"
    IMPRINT = "imprint"
    SACRIFICE_LAND = "sacrifice_land"
    DISCARD_HAND = "discard_hand"


@dataclass(frozen=True)
class ManaScaling:
    """Mana that grows with time on the battlefield: base + growth * turns."""

    base: int = 1
    growth: int = 0

    def amount(self, turns_in_play: int) -> int:
        return self.base + self.growth * max(0, turns_in_play)


# =============================================================================
# Card record variants
# =============================================================================


@dataclass(frozen=True)
class CardRecord:
    """Fields common to every card."""

    category: ClassVar[CardCategory] = CardCategory.SPELL

    name: str
    mana_cost: str = ""
    cmc: int = 0
    type_line: str = ""
    quantity: int = 1

    @property
    def is_land(self) -> bool:
        return self.category is CardCategory.LAND


@dataclass(frozen=True)
class LandRecord(CardRecord):
    category: ClassVar[CardCategory] = CardCategory.LAND

    produces: Tuple[str, ...] = ()
    mana_amount: int = 1
    is_basic: bool = False
    land_subtypes: Tuple[str, ...] = ()
    enters_tapped_always: bool = False

    is_fetch: bool = False
    fetch_type: FetchType = FetchType.CLASSIC
    fetch_filter: str = "any"
    fetch_subtypes: Tuple[str, ...] = ()
    fetch_mana_cost: int = 0
    fetch_life_cost: int = 1
    fetched_enters_tapped: bool = False

    is_bounce: bool = False
    is_shock: bool = False
    is_fast: bool = False
    is_battle: bool = False
    is_check: bool = False
    is_crowd: bool = False
    is_filter: bool = False
    is_snow: bool = False

    life_per_turn: int = 0
    """Damage dealt to its controller each turn it is in play (pain lands)."""

    @property
    def is_dual(self) -> bool:
        return len(self.land_subtypes) >= 2

    @property
    def colors(self) -> FrozenSet[str]:
        return frozenset(c for c in self.produces if c in COLORS)


@dataclass(frozen=True)
class ManaPermanentRecord(CardRecord):
    """Nonland permanent that taps for mana."""

    produces: Tuple[str, ...] = ("C",)
    mana_amount: int = 1
    mana_scaling: Optional[ManaScaling] = None
    enters_tapped: bool = False
    has_haste: bool = False
    etb_cost: Optional[EtbCost] = None

    does_not_untap: bool = False
    untap_cost: int = 0
    """Mana paid during upkeep to untap a source that does not untap normally."""

    life_per_turn: int = 0
    life_chance: float = 1.0
    """Probability that ``life_per_turn`` damage is dealt in a given upkeep."""
    upkeep_damage_growth: int = 0
    """Extra upkeep damage for each turn the permanent has been in play."""


@dataclass(frozen=True)
class ArtifactRecord(ManaPermanentRecord):
    category: ClassVar[CardCategory] = CardCategory.ARTIFACT


@dataclass(frozen=True)
class CreatureRecord(ManaPermanentRecord):
    category: ClassVar[CardCategory] = CardCategory.CREATURE


@dataclass(frozen=True)
class RampSpellRecord(CardRecord):
    category: ClassVar[CardCategory] = CardCategory.RAMP_SPELL

    lands_to_add: int = 1
    lands_tapped: bool = True
    lands_to_hand: int = 0
    sacrifice_land: bool = False
    fetch_filter: str = "basic"
    fetch_subtypes: Tuple[str, ...] = ()
    stays_on_battlefield: bool = False


@dataclass(frozen=True)
class RitualRecord(CardRecord):
    category: ClassVar[CardCategory] = CardCategory.RITUAL

    mana_produced: int = 1
    net_gain: int = 0
    ritual_colors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CostReducerRecord(CardRecord):
    category: ClassVar[CardCategory] = CardCategory.COST_REDUCER

    reduces_color: Optional[str] = None
    reduces_amount: int = 1
    reduces_type: Optional[str] = None
    enters_tapped: bool = False
    is_creature: bool = False


@dataclass(frozen=True)
class DrawRecord(CardRecord):
    category: ClassVar[CardCategory] = CardCategory.DRAW_SPELL

    is_one_time_draw: bool = True
    net_cards_drawn: int = 1
    avg_cards_per_turn: float = 0.0
    draw_scaling: Optional[ManaScaling] = None
    """Scaling card count (base + growth * turn), replacing the fixed amount."""
    stays_on_battlefield: bool = False


@dataclass(frozen=True)
class TreasureRecord(CardRecord):
    category: ClassVar[CardCategory] = CardCategory.TREASURE_CARD

    stays_on_battlefield: bool = False
    is_one_treasure: bool = True
    treasures_produced: int = 1
    avg_treasures_per_turn: float = 0.0


@dataclass(frozen=True)
class ExplorationRecord(CardRecord):
    category: ClassVar[CardCategory] = CardCategory.EXPLORATION

    lands_per_turn: int = 2
    is_creature: bool = False
    is_artifact: bool = False


@dataclass(frozen=True)
class SpellRecord(CardRecord):
    category: ClassVar[CardCategory] = CardCategory.SPELL


# =============================================================================
# Configuration
# =============================================================================


MULLIGAN_RULES = ("london", "vancouver")
MULLIGAN_STRATEGIES = ("conservative", "balanced", "aggressive", "custom")


@dataclass(frozen=True)
class MulliganRules:
    """Thresholds for the ``custom`` mulligan strategy."""

    mulligan_0_lands: bool = True
    mulligan_7_lands: bool = True
    mulligan_no_plays_by_turn: bool = False
    no_plays_turn_threshold: int = 2
    mulligan_min_lands: bool = False
    min_lands_threshold: int = 1
    mulligan_max_lands: bool = False
    max_lands_threshold: int = 5


@dataclass(frozen=True)
class FetchScoring:
    """
    Weights used to rank fetch targets.

    The values are tuned by hand; they are kept here so callers can
    experiment with other scoring functions.
    """

    missing_color: int = 300
    early_dual: int = 1000
    early_dual_until_turn: int = 2
    multicolor: int = 100
    extra_missing_color: int = 250
    late_shock: int = -100
    late_shock_from_turn: int = 6


# camelCase keys sent by the browser front end
_CONFIG_ALIASES = {
    "handSize": "hand_size",
    "maxHandSize": "max_hand_size",
    "commanderMode": "commander_mode",
    "commanderName": "commander_name",
    "selectedKeyCards": "selected_key_cards",
    "enableMulligans": "enable_mulligans",
    "mulliganRule": "mulligan_rule",
    "mulliganStrategy": "mulligan_strategy",
    "customMulliganRules": "custom_mulligan_rules",
    "floodNLands": "flood_n_lands",
    "floodTurn": "flood_turn",
    "screwNLands": "screw_n_lands",
    "screwTurn": "screw_turn",
    "maxSequences": "max_sequences",
    "shockPayUntilTurn": "shock_pay_until_turn",
    "includeExploration": "include_exploration",
    "disabledExploration": "disabled_exploration",
    "includeRampSpells": "include_ramp_spells",
    "disabledRampSpells": "disabled_ramp_spells",
    "includeArtifacts": "include_artifacts",
    "disabledArtifacts": "disabled_artifacts",
    "includeCreatures": "include_creatures",
    "disabledCreatures": "disabled_creatures",
    "includeRituals": "include_rituals",
    "disabledRituals": "disabled_rituals",
    "includeCostReducers": "include_cost_reducers",
    "disabledCostReducers": "disabled_cost_reducers",
    "includeDrawSpells": "include_draw_spells",
    "disabledDrawSpells": "disabled_draw_spells",
    "includeTreasures": "include_treasures",
    "disabledTreasures": "disabled_treasures",
    "manaOverrides": "mana_overrides",
    "drawOverrides": "draw_overrides",
    "treasureOverrides": "treasure_overrides",
    "ritualOverrides": "ritual_overrides",
}

_CUSTOM_RULE_ALIASES = {
    "mulligan0Lands": "mulligan_0_lands",
    "mulligan7Lands": "mulligan_7_lands",
    "mulliganNoPlaysByTurn": "mulligan_no_plays_by_turn",
    "noPlaysTurnThreshold": "no_plays_turn_threshold",
    "mulliganMinLands": "mulligan_min_lands",
    "minLandsThreshold": "min_lands_threshold",
    "mulliganMaxLands": "mulligan_max_lands",
    "maxLandsThreshold": "max_lands_threshold",
}

SET_FIELDS = (
    "selected_key_cards",
    "disabled_exploration",
    "disabled_ramp_spells",
    "disabled_artifacts",
    "disabled_creatures",
    "disabled_rituals",
    "disabled_cost_reducers",
    "disabled_draw_spells",
    "disabled_treasures",
)
"""Config fields holding name sets; they travel as lists across the worker boundary."""


@dataclass(frozen=True)
class SimulationConfig:
    """Configuration for a Monte Carlo run."""

    iterations: int = 10_000
    """Number of simulated games"""

    turns: int = 7
    """Turns simulated per game"""

    hand_size: int = 7
    """Starting hand size"""

    max_hand_size: int = 7
    """Hand size enforced at end of turn"""

    commander_mode: bool = False
    """Draw on turn 1, free first mulligan, crowd lands enter untapped"""

    commander_name: str = ""

    seed: Optional[int] = None
    """Seed for the random generator; None draws from system entropy"""

    selected_key_cards: FrozenSet[str] = frozenset()

    enable_mulligans: bool = False
    mulligan_rule: str = "london"
    mulligan_strategy: str = "balanced"
    custom_mulligan_rules: MulliganRules = field(default_factory=MulliganRules)

    flood_n_lands: int = 5
    flood_turn: int = 5
    screw_n_lands: int = 2
    screw_turn: int = 3

    max_sequences: int = 1
    """Example play sequences kept per key card and turn"""

    shock_pay_until_turn: int = 6
    """Shock lands are paid for (2 life) up to and including this turn"""

    fetch_scoring: FetchScoring = field(default_factory=FetchScoring)

    include_exploration: bool = True
    disabled_exploration: FrozenSet[str] = frozenset()
    include_ramp_spells: bool = True
    disabled_ramp_spells: FrozenSet[str] = frozenset()
    include_artifacts: bool = True
    disabled_artifacts: FrozenSet[str] = frozenset()
    include_creatures: bool = True
    disabled_creatures: FrozenSet[str] = frozenset()
    include_rituals: bool = True
    disabled_rituals: FrozenSet[str] = frozenset()
    include_cost_reducers: bool = True
    disabled_cost_reducers: FrozenSet[str] = frozenset()
    include_draw_spells: bool = True
    disabled_draw_spells: FrozenSet[str] = frozenset()
    include_treasures: bool = True
    disabled_treasures: FrozenSet[str] = frozenset()

    mana_overrides: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    draw_overrides: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    treasure_overrides: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    ritual_overrides: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def validate(self) -> None:
        """Raise ConfigurationError for settings that would give degenerate statistics."""
        if self.iterations <= 0:
            raise ConfigurationError(
                f"iterations must be positive, got {self.iterations}"
            )
        if self.turns <= 0:
            raise ConfigurationError(f"turns must be positive, got {self.turns}")
        if self.hand_size <= 0:
            raise ConfigurationError(
                f"hand_size must be positive, got {self.hand_size}"
            )
        if self.mulligan_rule not in MULLIGAN_RULES:
            raise ConfigurationError(
                f"Unknown mulligan rule {self.mulligan_rule!r}. "
                f"Valid rules: {list(MULLIGAN_RULES)}"
            )
        if self.mulligan_strategy not in MULLIGAN_STRATEGIES:
            raise ConfigurationError(
                f"Unknown mulligan strategy {self.mulligan_strategy!r}. "
                f"Valid strategies: {list(MULLIGAN_STRATEGIES)}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimulationConfig":
        """Build a config from a plain dict (snake_case or camelCase keys).

        Name sets may be given as any iterable, e.g. lists decoded from JSON.
        Unknown keys are ignored.
        """
        known = set(cls.__dataclass_fields__)
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            key = _CONFIG_ALIASES.get(key, key)
            if key not in known or value is None:
                continue
            kwargs[key] = value

        for name in SET_FIELDS:
            if name in kwargs:
                kwargs[name] = frozenset(kwargs[name])

        rules = kwargs.get("custom_mulligan_rules")
        if isinstance(rules, Mapping):
            kwargs["custom_mulligan_rules"] = MulliganRules(
                **{
                    _CUSTOM_RULE_ALIASES.get(k, k): v
                    for k, v in rules.items()
                    if _CUSTOM_RULE_ALIASES.get(k, k)
                    in MulliganRules.__dataclass_fields__
                }
            )

        scoring = kwargs.get("fetch_scoring")
        if isinstance(scoring, Mapping):
            kwargs["fetch_scoring"] = FetchScoring(**scoring)

        return cls(**kwargs)


# =============================================================================
# Results
# =============================================================================


@dataclass
class SimulationResults:
    """Aggregated statistics of a Monte Carlo run. Per-turn lists are indexed by turn - 1."""

    iterations: int
    turns: int

    lands_per_turn: List[float] = field(default_factory=list)
    lands_per_turn_std_dev: List[float] = field(default_factory=list)
    untapped_lands_per_turn: List[float] = field(default_factory=list)
    untapped_lands_per_turn_std_dev: List[float] = field(default_factory=list)
    total_mana_per_turn: List[float] = field(default_factory=list)
    total_mana_per_turn_std_dev: List[float] = field(default_factory=list)
    life_loss_per_turn: List[float] = field(default_factory=list)
    life_loss_per_turn_std_dev: List[float] = field(default_factory=list)
    cards_drawn_per_turn: List[float] = field(default_factory=list)
    cards_drawn_per_turn_std_dev: List[float] = field(default_factory=list)
    treasure_per_turn: List[float] = field(default_factory=list)
    treasure_per_turn_std_dev: List[float] = field(default_factory=list)
    colors_by_turn: List[Dict[str, float]] = field(default_factory=list)

    key_card_playability: Dict[str, List[float]] = field(default_factory=dict)
    key_card_playability_burst: Dict[str, List[float]] = field(default_factory=dict)
    has_burst_cards: bool = False
    fastest_play_sequences: Dict[str, Dict[int, List[dict]]] = field(
        default_factory=dict
    )
    fastest_play_sequences_burst: Dict[str, Dict[int, List[dict]]] = field(
        default_factory=dict
    )

    mulligans: int = 0
    hands_kept: int = 0
    flood_rate: float = 0.0
    screw_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation (turn keys become strings)."""
        data = dict(self.__dict__)
        for key in ("fastest_play_sequences", "fastest_play_sequences_burst"):
            data[key] = {
                name: {str(turn): seqs for turn, seqs in by_turn.items()}
                for name, by_turn in data[key].items()
            }
        return data
