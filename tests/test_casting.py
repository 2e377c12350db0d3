"""
Tests for the per-turn casting scheduler and ETB costs.
"""

from conftest import (
    artifact,
    cost_reducer,
    creature,
    draw_spell,
    exploration,
    forest,
    island,
    land,
    make_state,
    names,
    ramp,
    ritual,
    spell,
    treasure,
)

from manasim.casting import cast_spells, castable_cards, etb_cost_payable
from manasim.types import CardCategory, EtbCost


def mountain():
    return land("Mountain", produces=("R",), is_basic=True, land_subtypes=("Mountain",))


def swamp():
    return land("Swamp", produces=("B",), is_basic=True, land_subtypes=("Swamp",))


class TestPhaseOrder:
    def test_cost_reducer_is_cast_before_cheaper_rock(self):
        state = make_state(hand=[artifact(), cost_reducer()], battlefield=[forest()] * 2)
        assert cast_spells(state) == 1
        assert state.current_log.actions == ["Cast cost reducer: Emerald Medallion"]
        assert names(state.hand) == ["Sol Ring"]

    def test_reducer_pays_for_itself_in_same_turn(self):
        state = make_state(
            library=[forest(), forest()],
            hand=[ramp(), cost_reducer()],
            battlefield=[forest()] * 4,
        )
        assert cast_spells(state) == 2
        assert state.current_log.actions == [
            "Cast cost reducer: Emerald Medallion",
            "Cast ramp spell: Cultivate → Forest (tapped); Forest to hand",
        ]
        assert state.mana_spent == 4
        assert names(state.graveyard) == ["Cultivate"]
        assert names(state.hand) == ["Forest"]

    def test_rocks_chain_off_each_other(self):
        mind_stone = artifact("Mind Stone", mana_cost="{2}", cmc=2, mana_amount=1)
        state = make_state(hand=[mind_stone, artifact()], battlefield=[forest()])
        assert cast_spells(state) == 2
        assert state.current_log.actions == [
            "Cast artifact: Sol Ring",
            "Cast artifact: Mind Stone",
        ]

    def test_cheapest_card_first_within_phase(self):
        mind_stone = artifact("Mind Stone", mana_cost="{2}", cmc=2)
        state = make_state(hand=[mind_stone, creature()], battlefield=[forest()] * 2)
        castable = castable_cards(state, (CardCategory.ARTIFACT, CardCategory.CREATURE))
        assert names(castable) == ["Llanowar Elves", "Mind Stone"]

    def test_rituals_are_never_cast(self):
        state = make_state(hand=[ritual()], battlefield=[swamp()])
        assert cast_spells(state) == 0
        assert names(state.hand) == ["Dark Ritual"]

    def test_plain_spells_are_never_cast(self):
        state = make_state(hand=[spell()], battlefield=[island()] * 2)
        assert cast_spells(state) == 0

    def test_summoning_sick_creature_adds_nothing(self):
        state = make_state(hand=[creature(), artifact()], battlefield=[forest()])
        assert cast_spells(state) == 1
        assert state.current_log.actions == ["Cast creature: Llanowar Elves"]

    def test_exploration_is_cast(self):
        state = make_state(hand=[exploration()], battlefield=[forest()])
        assert cast_spells(state) == 1
        assert state.current_log.actions == ["Cast permanent: Exploration"]
        assert names(state.battlefield) == ["Forest", "Exploration"]


class TestEtbCosts:
    def test_discard_land(self):
        mox = artifact(
            "Mox Diamond",
            mana_cost="{0}",
            cmc=0,
            produces=("W", "U", "B", "R", "G"),
            mana_amount=1,
            etb_cost=EtbCost.DISCARD_LAND,
        )
        state = make_state(hand=[mox, forest()])
        assert cast_spells(state) == 1
        assert state.current_log.actions == [
            "Discarded: Forest (Mox Diamond)",
            "Cast artifact: Mox Diamond, discarded Forest",
        ]
        assert names(state.graveyard) == ["Forest"]

    def test_discard_land_needs_a_land(self):
        mox = artifact("Mox Diamond", mana_cost="{0}", cmc=0, etb_cost=EtbCost.DISCARD_LAND)
        state = make_state(hand=[mox, spell()])
        assert cast_spells(state) == 0

    def test_imprint_prefers_non_key_card(self):
        chrome = artifact(
            "Chrome Mox", mana_cost="{0}", cmc=0, produces=(), etb_cost=EtbCost.IMPRINT
        )
        counterspell = spell()
        state = make_state(
            hand=[chrome, counterspell, draw_spell()],
            key_cards={counterspell.name: counterspell},
        )
        cast_spells(state)
        mox = state.battlefield[0]
        assert mox.imprinted.name == "Divination"
        assert names(state.exile) == ["Divination"]
        assert names(state.hand) == ["Counterspell"]

    def test_discard_hand_blocked_by_key_card(self):
        lions_eye = artifact(
            "Lion's Eye Diamond", mana_cost="{0}", cmc=0, etb_cost=EtbCost.DISCARD_HAND
        )
        counterspell = spell()
        state = make_state(
            hand=[lions_eye, counterspell], key_cards={counterspell.name: counterspell}
        )
        assert not etb_cost_payable(state, state.hand[0])

        free = make_state(hand=[lions_eye, spell(), forest()])
        assert etb_cost_payable(free, free.hand[0])
        cast_spells(free)
        assert free.hand == []
        assert names(free.graveyard) == ["Counterspell", "Forest"]

    def test_sacrifice_land(self):
        petal = artifact(
            "Crop Rotation Rock",
            mana_cost="{0}",
            cmc=0,
            produces=("G",),
            etb_cost=EtbCost.SACRIFICE_LAND,
        )
        no_lands = make_state(hand=[petal])
        assert not etb_cost_payable(no_lands, no_lands.hand[0])

        state = make_state(hand=[petal], battlefield=[forest()])
        cast_spells(state)
        assert state.current_log.actions == [
            "Cast artifact: Crop Rotation Rock, sacrificed Forest"
        ]
        assert names(state.graveyard) == ["Forest"]


class TestRamp:
    def test_no_land_in_library_blocks_ramp(self):
        state = make_state(library=[spell()], hand=[ramp()], battlefield=[forest()] * 3)
        assert cast_spells(state) == 0

    def test_ramp_with_sacrifice(self):
        harrow = ramp(
            "Harrow",
            lands_to_add=2,
            lands_to_hand=0,
            lands_tapped=False,
            sacrifice_land=True,
        )
        state = make_state(
            library=[forest("Forest A"), forest("Forest B")],
            hand=[harrow],
            battlefield=[forest()] * 3,
        )
        assert cast_spells(state) == 1
        assert state.current_log.actions == [
            "Cast ramp spell: Harrow, sac'd Forest → Forest A, Forest B"
        ]
        assert len(state.lands()) == 4


class TestDrawAndTreasure:
    def test_one_time_draw(self):
        state = make_state(
            library=[forest("Forest A"), forest("Forest B"), forest("Forest C")],
            hand=[draw_spell()],
            battlefield=[island()] * 3,
        )
        assert cast_spells(state) == 1
        assert state.current_log.actions == [
            "Cast draw spell: Divination → drew 2 cards: Forest A, Forest B"
        ]
        assert state.cards_drawn == 2
        assert names(state.graveyard) == ["Divination"]

    def test_draw_permanent_stays(self):
        phyrexian_arena = draw_spell(
            "Phyrexian Arena", is_one_time_draw=False, avg_cards_per_turn=1.0
        )
        state = make_state(hand=[phyrexian_arena], battlefield=[island()] * 3)
        cast_spells(state)
        assert state.current_log.actions == [
            "Cast draw permanent: Phyrexian Arena → draws each turn"
        ]
        assert state.cards_drawn == 0

    def test_one_shot_treasure(self):
        state = make_state(hand=[treasure()], battlefield=[mountain()] * 3)
        assert cast_spells(state) == 1
        assert state.current_log.actions == [
            "Cast treasure spell: Seize the Spoils → created 1 treasure"
        ]
        assert state.treasures == 1
        assert state.treasures_created == 1
