"""
Deck assembly.

A parsed deck is a set of per-category card lists (as produced by the card
classification step). ``build_complete_deck`` turns it into the flat list the
simulator plays with, one record per copy, through a fixed pipeline of pure
transforms:

    category filter -> mana overrides -> draw overrides
    -> treasure overrides -> ritual overrides -> quantity expansion
"""

import dataclasses
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Type

from .errors import ConfigurationError
from .types import (
    ArtifactRecord,
    CardCategory,
    CardRecord,
    CostReducerRecord,
    CreatureRecord,
    DrawRecord,
    EtbCost,
    ExplorationRecord,
    FetchType,
    LandRecord,
    ManaPermanentRecord,
    ManaScaling,
    RampSpellRecord,
    RitualRecord,
    SimulationConfig,
    SpellRecord,
    TreasureRecord,
)

logger = logging.getLogger(__name__)

RECORD_TYPES: Dict[CardCategory, Type[CardRecord]] = {
    CardCategory.LAND: LandRecord,
    CardCategory.ARTIFACT: ArtifactRecord,
    CardCategory.CREATURE: CreatureRecord,
    CardCategory.RAMP_SPELL: RampSpellRecord,
    CardCategory.RITUAL: RitualRecord,
    CardCategory.COST_REDUCER: CostReducerRecord,
    CardCategory.DRAW_SPELL: DrawRecord,
    CardCategory.TREASURE_CARD: TreasureRecord,
    CardCategory.EXPLORATION: ExplorationRecord,
    CardCategory.SPELL: SpellRecord,
}

# Parsed-deck list name -> category of the cards in it
DECK_SECTIONS: Dict[str, CardCategory] = {
    "lands": CardCategory.LAND,
    "artifacts": CardCategory.ARTIFACT,
    "creatures": CardCategory.CREATURE,
    "exploration": CardCategory.EXPLORATION,
    "rampSpells": CardCategory.RAMP_SPELL,
    "rituals": CardCategory.RITUAL,
    "costReducers": CardCategory.COST_REDUCER,
    "drawSpells": CardCategory.DRAW_SPELL,
    "treasures": CardCategory.TREASURE_CARD,
    "spells": CardCategory.SPELL,
}

# Category -> (include flag, disabled-names field) on SimulationConfig
CATEGORY_SWITCHES: Dict[CardCategory, Tuple[str, str]] = {
    CardCategory.EXPLORATION: ("include_exploration", "disabled_exploration"),
    CardCategory.RAMP_SPELL: ("include_ramp_spells", "disabled_ramp_spells"),
    CardCategory.ARTIFACT: ("include_artifacts", "disabled_artifacts"),
    CardCategory.CREATURE: ("include_creatures", "disabled_creatures"),
    CardCategory.RITUAL: ("include_rituals", "disabled_rituals"),
    CardCategory.COST_REDUCER: ("include_cost_reducers", "disabled_cost_reducers"),
    CardCategory.DRAW_SPELL: ("include_draw_spells", "disabled_draw_spells"),
    CardCategory.TREASURE_CARD: ("include_treasures", "disabled_treasures"),
}

# Front-end keys whose snake_case form differs from the record field
_FIELD_ALIASES = {
    "isShockLand": "is_shock",
    "isBattleLand": "is_battle",
    "isFastLand": "is_fast",
    "isCheckLand": "is_check",
    "isCrowdLand": "is_crowd",
    "isFilterLand": "is_filter",
    "isSnowLand": "is_snow",
    "isBounceLand": "is_bounce",
    "isFetchLand": "is_fetch",
    "entersTappedAlways": "enters_tapped_always",
    "manaValue": "cmc",
    "typeLine": "type_line",
}

# Discriminator keys used instead of "type" by some producers
_CATEGORY_FLAGS = {
    "isManaArtifact": CardCategory.ARTIFACT,
    "isManaCreature": CardCategory.CREATURE,
    "isRampSpell": CardCategory.RAMP_SPELL,
    "isRitual": CardCategory.RITUAL,
    "isCostReducer": CardCategory.COST_REDUCER,
    "isDrawSpell": CardCategory.DRAW_SPELL,
    "isTreasure": CardCategory.TREASURE_CARD,
    "isExploration": CardCategory.EXPLORATION,
}

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z0-9])")


def snake_case(key: str) -> str:
    """``landsToAdd`` -> ``lands_to_add``; snake_case keys pass through."""
    if key in _FIELD_ALIASES:
        return _FIELD_ALIASES[key]
    return _CAMEL_RE.sub("_", key).lower()


def _category_of(data: Mapping[str, Any], default: Optional[CardCategory]) -> CardCategory:
    if data.get("isLand"):
        return CardCategory.LAND
    raw = data.get("category") or data.get("type")
    if isinstance(raw, CardCategory):
        return raw
    if raw:
        normalized = str(raw).replace("_", "").lower()
        for category in CardCategory:
            if category.value.lower() == normalized:
                return category
    for flag, category in _CATEGORY_FLAGS.items():
        if data.get(flag):
            return category
    return default or CardCategory.SPELL


def _scaling(value: Any) -> Optional[ManaScaling]:
    if value is None or isinstance(value, ManaScaling):
        return value
    return ManaScaling(base=int(value.get("base", 1)), growth=int(value.get("growth", 0)))


def card_from_dict(
    data: Mapping[str, Any], default_category: Optional[CardCategory] = None
) -> CardRecord:
    """
    Build a card record from a plain dict with camelCase or snake_case keys.

    Keys that do not belong to the record variant are ignored.

    Raises:
        ConfigurationError: if the card has no name or a field has an invalid value
    """
    name = data.get("name")
    if not name:
        raise ConfigurationError(f"Card without a name: {dict(data)!r}")

    record_type = RECORD_TYPES[_category_of(data, default_category)]
    known = {f.name for f in dataclasses.fields(record_type)}
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        key = snake_case(key)
        if key in known and value is not None:
            kwargs[key] = value

    try:
        for key in ("produces", "land_subtypes", "fetch_subtypes", "ritual_colors"):
            if key in kwargs:
                kwargs[key] = tuple(kwargs[key])
        for key in ("mana_scaling", "draw_scaling"):
            if key in kwargs:
                kwargs[key] = _scaling(kwargs[key])
        if "fetch_type" in kwargs:
            kwargs["fetch_type"] = FetchType(kwargs["fetch_type"])
        if "etb_cost" in kwargs:
            kwargs["etb_cost"] = EtbCost(kwargs["etb_cost"])
        return record_type(**kwargs)
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigurationError(f"Invalid card data for {name!r}: {e}") from e


def record_to_dict(record: CardRecord) -> Dict[str, Any]:
    """Plain-dict form of a record (snake_case keys), loadable by ``card_from_dict``."""
    data: Dict[str, Any] = {"category": record.category.value}
    for f in dataclasses.fields(record):
        value = getattr(record, f.name)
        if isinstance(value, (FetchType, EtbCost)):
            value = value.value
        elif isinstance(value, ManaScaling):
            value = {"base": value.base, "growth": value.growth}
        elif isinstance(value, tuple):
            value = list(value)
        data[f.name] = value
    return data


@dataclass
class ParsedDeck:
    """Card records grouped by category, before filtering and expansion."""

    cards: List[CardRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ParsedDeck":
        """Load the per-category lists of a parsed deck. Missing lists are fine."""
        cards: List[CardRecord] = []
        for section, category in DECK_SECTIONS.items():
            for entry in (data or {}).get(section) or []:
                cards.append(card_from_dict(entry, category))
        # Flat list of records that carry their own category
        for entry in (data or {}).get("cards") or []:
            cards.append(card_from_dict(entry))
        return cls(cards)

    def to_dict(self) -> Dict[str, Any]:
        return {"cards": [record_to_dict(card) for card in self.cards]}

    def __len__(self) -> int:
        return sum(card.quantity for card in self.cards)


# =============================================================================
# Pipeline transforms
# =============================================================================

DeckTransform = Callable[[List[CardRecord], SimulationConfig], List[CardRecord]]


def filter_categories(
    cards: List[CardRecord], config: SimulationConfig
) -> List[CardRecord]:
    """Drop cards of switched-off categories or disabled by name. Lands and spells always stay."""
    kept = []
    for card in cards:
        switch = CATEGORY_SWITCHES.get(card.category)
        if switch is not None:
            include, disabled = switch
            if not getattr(config, include) or card.name in getattr(config, disabled):
                continue
        kept.append(card)
    return kept


def _override_for(card: CardRecord, overrides: Mapping[str, Mapping[str, Any]]):
    """Override entry for ``card``; names match case-insensitively."""
    name = card.name.lower()
    for key, value in overrides.items():
        if key.lower() == name:
            return value
    return None


def apply_mana_overrides(
    cards: List[CardRecord], config: SimulationConfig
) -> List[CardRecord]:
    """
    Mana amount overrides for artifacts and creatures.

    ``{"mode": "fixed", "fixed": n}`` sets the amount (at least 1);
    ``{"mode": "scaling", "base": b, "growth": g}`` makes it grow each turn
    (base at least 1, growth at least 0). Other modes leave the card alone.
    """
    result = []
    for card in cards:
        override = _override_for(card, config.mana_overrides)
        if override and isinstance(card, ManaPermanentRecord):
            mode = override.get("mode")
            if mode == "fixed":
                card = dataclasses.replace(
                    card,
                    mana_amount=max(1, int(override.get("fixed", 1))),
                    mana_scaling=None,
                )
            elif mode == "scaling":
                scaling = ManaScaling(
                    base=max(1, int(override.get("base", 1))),
                    growth=max(0, int(override.get("growth", 0))),
                )
                card = dataclasses.replace(
                    card, mana_amount=scaling.base, mana_scaling=scaling
                )
        result.append(card)
    return result


def apply_draw_overrides(
    cards: List[CardRecord], config: SimulationConfig
) -> List[CardRecord]:
    """Draw overrides: ``onetime``, ``perturn``, ``scaling-onetime``, ``scaling-perturn``."""
    result = []
    for card in cards:
        override = _override_for(card, config.draw_overrides)
        if override and isinstance(card, DrawRecord):
            mode = override.get("mode")
            amount = override.get("amount", 1)
            scaling = ManaScaling(
                base=max(0, int(override.get("base", 1))),
                growth=max(0, int(override.get("growth", 0))),
            )
            if mode == "onetime":
                card = dataclasses.replace(
                    card,
                    is_one_time_draw=True,
                    net_cards_drawn=max(0, int(amount)),
                    draw_scaling=None,
                )
            elif mode == "perturn":
                card = dataclasses.replace(
                    card,
                    is_one_time_draw=False,
                    avg_cards_per_turn=max(0.0, float(amount)),
                    draw_scaling=None,
                    stays_on_battlefield=True,
                )
            elif mode == "scaling-onetime":
                card = dataclasses.replace(
                    card, is_one_time_draw=True, draw_scaling=scaling
                )
            elif mode == "scaling-perturn":
                card = dataclasses.replace(
                    card,
                    is_one_time_draw=False,
                    draw_scaling=scaling,
                    stays_on_battlefield=True,
                )
        result.append(card)
    return result


def apply_treasure_overrides(
    cards: List[CardRecord], config: SimulationConfig
) -> List[CardRecord]:
    result = []
    for card in cards:
        override = _override_for(card, config.treasure_overrides)
        if override and isinstance(card, TreasureRecord) and "amount" in override:
            amount = max(0.0, float(override["amount"]))
            if card.stays_on_battlefield and not card.is_one_treasure:
                card = dataclasses.replace(card, avg_treasures_per_turn=amount)
            else:
                card = dataclasses.replace(card, treasures_produced=int(amount))
        result.append(card)
    return result


def apply_ritual_overrides(
    cards: List[CardRecord], config: SimulationConfig
) -> List[CardRecord]:
    result = []
    for card in cards:
        override = _override_for(card, config.ritual_overrides)
        if override and isinstance(card, RitualRecord):
            produced = override.get("manaProduced", override.get("mana_produced"))
            if produced is not None:
                produced = max(0, int(produced))
                card = dataclasses.replace(
                    card, mana_produced=produced, net_gain=produced - card.cmc
                )
        result.append(card)
    return result


def expand_quantities(
    cards: List[CardRecord], config: SimulationConfig
) -> List[CardRecord]:
    """One entry per copy. Records are immutable, so copies can share one object."""
    return [card for card in cards for _ in range(max(0, card.quantity))]


DECK_PIPELINE: List[DeckTransform] = [
    filter_categories,
    apply_mana_overrides,
    apply_draw_overrides,
    apply_treasure_overrides,
    apply_ritual_overrides,
    expand_quantities,
]


def build_complete_deck(
    parsed_deck: Optional[Any], config: Optional[SimulationConfig] = None
) -> List[CardRecord]:
    """
    Flat deck list for simulation.

    Args:
        parsed_deck: ParsedDeck, parsed-deck dict, or None
        config: Simulation configuration (defaults apply when None)

    Returns:
        One record per card copy, with overrides applied
    """
    if parsed_deck is None:
        return []
    if not isinstance(parsed_deck, ParsedDeck):
        parsed_deck = ParsedDeck.from_dict(parsed_deck)
    config = config or SimulationConfig()

    cards = list(parsed_deck.cards)
    for transform in DECK_PIPELINE:
        cards = transform(cards, config)
    return cards


def key_card_names(config: SimulationConfig) -> List[str]:
    """Tracked cards: the selected key cards, plus the commander in commander mode."""
    names = sorted(config.selected_key_cards)
    if config.commander_mode and config.commander_name and config.commander_name not in names:
        names.append(config.commander_name)
    return names


def resolve_key_cards(
    names: Iterable[str], cards: Iterable[CardRecord]
) -> Dict[str, CardRecord]:
    """
    Look up tracked cards by name.

    A name missing from ``cards`` (e.g. a commander outside the library) gets
    a zero-cost stub so results still report it.
    """
    by_name: Dict[str, CardRecord] = {}
    for card in cards:
        by_name.setdefault(card.name, card)

    resolved = {}
    for name in names:
        if name in by_name:
            resolved[name] = by_name[name]
        else:
            logger.warning(f"Key card {name!r} not found in deck, using a zero-cost stub")
            resolved[name] = SpellRecord(name=name, mana_cost="{0}", cmc=0)
    return resolved
