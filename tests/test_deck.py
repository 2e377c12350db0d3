"""
Tests for parsed-deck loading and the deck assembly pipeline.
"""

import pytest
from conftest import artifact, draw_spell, forest, ritual, treasure

from manasim.deck import (
    ParsedDeck,
    build_complete_deck,
    card_from_dict,
    key_card_names,
    record_to_dict,
    resolve_key_cards,
    snake_case,
)
from manasim.errors import ConfigurationError
from manasim.types import (
    ArtifactRecord,
    CardCategory,
    EtbCost,
    FetchType,
    LandRecord,
    ManaScaling,
    SimulationConfig,
    SpellRecord,
)


SAMPLE_DECK = {
    "lands": [
        {"name": "Forest", "quantity": 10, "produces": ["G"], "isBasic": True},
        {
            "name": "Misty Rainforest",
            "isFetch": True,
            "fetchType": "classic",
            "fetchFilter": "subtype",
            "fetchSubtypes": ["Forest", "Island"],
        },
    ],
    "artifacts": [
        {"name": "Sol Ring", "manaCost": "{1}", "cmc": 1, "produces": ["C"], "manaAmount": 2}
    ],
    "creatures": [{"name": "Llanowar Elves", "manaCost": "{G}", "cmc": 1, "produces": ["G"]}],
    "rituals": [{"name": "Dark Ritual", "manaCost": "{B}", "cmc": 1, "manaProduced": 3}],
    "spells": [{"name": "Counterspell", "manaCost": "{U}{U}", "cmc": 2, "quantity": 2}],
}


class TestCardLoading:
    def test_snake_case(self):
        assert snake_case("landsToAdd") == "lands_to_add"
        assert snake_case("lands_to_add") == "lands_to_add"
        assert snake_case("isShockLand") == "is_shock"

    def test_land_from_camel_case(self):
        record = card_from_dict(SAMPLE_DECK["lands"][1], CardCategory.LAND)
        assert isinstance(record, LandRecord)
        assert record.is_fetch
        assert record.fetch_type is FetchType.CLASSIC
        assert record.fetch_subtypes == ("Forest", "Island")

    def test_category_from_type_field(self):
        record = card_from_dict({"name": "Sol Ring", "type": "artifact", "manaAmount": 2})
        assert isinstance(record, ArtifactRecord)

    def test_unknown_keys_are_ignored(self):
        record = card_from_dict({"name": "Opt", "manaCost": "{U}", "oracleText": "Scry 1"})
        assert record == SpellRecord(name="Opt", mana_cost="{U}")

    def test_missing_name(self):
        with pytest.raises(ConfigurationError):
            card_from_dict({"manaCost": "{1}"})

    def test_invalid_enum_value(self):
        with pytest.raises(ConfigurationError):
            card_from_dict(
                {"name": "Chrome Mox", "etbCost": "exile_everything"}, CardCategory.ARTIFACT
            )

    def test_record_round_trip_keeps_enums_and_scaling(self):
        record = artifact(
            "Chrome Mox", etb_cost=EtbCost.IMPRINT, mana_scaling=ManaScaling(1, 1)
        )
        data = record_to_dict(record)
        assert data["etb_cost"] == "imprint"
        assert data["mana_scaling"] == {"base": 1, "growth": 1}
        assert card_from_dict(data) == record


class TestParsedDeck:
    def test_sections(self):
        parsed = ParsedDeck.from_dict(SAMPLE_DECK)
        assert len(parsed.cards) == 6
        assert len(parsed) == 16
        assert [c.category for c in parsed.cards][:2] == [CardCategory.LAND] * 2

    def test_flat_card_list(self):
        parsed = ParsedDeck.from_dict(ParsedDeck.from_dict(SAMPLE_DECK).to_dict())
        assert parsed == ParsedDeck.from_dict(SAMPLE_DECK)

    def test_missing_sections(self):
        assert ParsedDeck.from_dict({}).cards == []
        assert ParsedDeck.from_dict(None).cards == []


class TestBuildCompleteDeck:
    def test_none_gives_empty_deck(self):
        assert build_complete_deck(None) == []

    def test_quantities_expand(self):
        deck = build_complete_deck(SAMPLE_DECK)
        assert len(deck) == 16
        assert sum(1 for c in deck if c.name == "Forest") == 10
        assert sum(1 for c in deck if c.name == "Counterspell") == 2

    def test_zero_quantity_is_dropped(self):
        deck = build_complete_deck(ParsedDeck([forest(quantity=0), forest("Island")]))
        assert [c.name for c in deck] == ["Island"]

    def test_category_switch_removes_cards(self):
        config = SimulationConfig(include_artifacts=False)
        names = {c.name for c in build_complete_deck(SAMPLE_DECK, config)}
        assert "Sol Ring" not in names
        assert "Llanowar Elves" in names

    def test_disabled_by_name(self):
        config = SimulationConfig(disabled_creatures=frozenset({"Llanowar Elves"}))
        names = {c.name for c in build_complete_deck(SAMPLE_DECK, config)}
        assert "Llanowar Elves" not in names
        assert "Sol Ring" in names

    def test_lands_and_spells_cannot_be_switched_off(self):
        config = SimulationConfig(
            include_artifacts=False,
            include_creatures=False,
            include_rituals=False,
        )
        deck = build_complete_deck(SAMPLE_DECK, config)
        assert len(deck) == 13

    def test_fixed_mana_override_is_case_insensitive(self):
        config = SimulationConfig(mana_overrides={"SOL RING": {"mode": "fixed", "fixed": 3}})
        deck = build_complete_deck(ParsedDeck([artifact()]), config)
        assert deck[0].mana_amount == 3

    def test_mana_override_clamps(self):
        config = SimulationConfig(
            mana_overrides={"sol ring": {"mode": "scaling", "base": 0, "growth": -2}}
        )
        deck = build_complete_deck(ParsedDeck([artifact()]), config)
        assert deck[0].mana_scaling == ManaScaling(base=1, growth=0)

    def test_override_does_not_touch_source_records(self):
        original = artifact()
        parsed = ParsedDeck([original])
        config = SimulationConfig(mana_overrides={"sol ring": {"mode": "fixed", "fixed": 5}})
        build_complete_deck(parsed, config)
        assert parsed.cards[0] is original
        assert original.mana_amount == 2

    def test_draw_override_per_turn(self):
        config = SimulationConfig(
            draw_overrides={"divination": {"mode": "perturn", "amount": 0.5}}
        )
        deck = build_complete_deck(ParsedDeck([draw_spell()]), config)
        card = deck[0]
        assert not card.is_one_time_draw
        assert card.avg_cards_per_turn == 0.5
        assert card.stays_on_battlefield

    def test_draw_override_scaling(self):
        config = SimulationConfig(
            draw_overrides={"divination": {"mode": "scaling-onetime", "base": 1, "growth": 1}}
        )
        card = build_complete_deck(ParsedDeck([draw_spell()]), config)[0]
        assert card.is_one_time_draw
        assert card.draw_scaling == ManaScaling(base=1, growth=1)

    def test_treasure_override(self):
        config = SimulationConfig(treasure_overrides={"seize the spoils": {"amount": 2}})
        card = build_complete_deck(ParsedDeck([treasure()]), config)[0]
        assert card.treasures_produced == 2

    def test_ritual_override_recomputes_net_gain(self):
        config = SimulationConfig(ritual_overrides={"dark ritual": {"manaProduced": 4}})
        card = build_complete_deck(ParsedDeck([ritual()]), config)[0]
        assert card.mana_produced == 4
        assert card.net_gain == 3


class TestKeyCards:
    def test_commander_is_tracked(self):
        config = SimulationConfig(
            selected_key_cards=frozenset({"Sol Ring"}),
            commander_mode=True,
            commander_name="Golos, Tireless Pilgrim",
        )
        assert key_card_names(config) == ["Sol Ring", "Golos, Tireless Pilgrim"]

    def test_commander_ignored_outside_commander_mode(self):
        config = SimulationConfig(commander_name="Golos, Tireless Pilgrim")
        assert key_card_names(config) == []

    def test_missing_key_card_gets_stub(self):
        resolved = resolve_key_cards(["Sol Ring", "Golos"], [artifact()])
        assert resolved["Sol Ring"] == artifact()
        assert resolved["Golos"] == SpellRecord(name="Golos", mana_cost="{0}", cmc=0)
