from itertools import chain, repeat

import pytest

from caseforge.domain.cases import CaseDefinition, ItemDefinition, Variation, default_cases
from caseforge.domain.exceptions import NotFound
from caseforge.domain.roller import RewardRoller, roll_case, select_index
from caseforge.testing import ScriptedRandom


def draws(*values: float):
    source = chain(values, repeat(0.0))
    return lambda: next(source)


@pytest.fixture()
def basic_case() -> CaseDefinition:
    return default_cases()[0]


@pytest.fixture()
def skin_case() -> CaseDefinition:
    return CaseDefinition(
        case_id="skins",
        name="Skins",
        price=250,
        items=(
            ItemDefinition(
                item_id="knife",
                name="Knife",
                rarity="gold",
                base_value=1000,
                drop_weight=50,
                variations=(
                    Variation(name="Fade", drop_weight=70, price=4000, image="fade.png"),
                    Variation(name="Doppler", drop_weight=30, price=0),
                ),
                image="knife.png",
            ),
            ItemDefinition(item_id="pistol", name="Pistol", rarity="blue", base_value=20, drop_weight=50),
        ),
    )


def test_first_draw_selects_first_item(basic_case):
    won = roll_case(basic_case, draws(0.0))
    assert won.item_id == "blue_1"
    assert won.value == 50
    assert won.variation is None


def test_top_of_range_selects_last_item(basic_case):
    won = roll_case(basic_case, draws(99.99))
    assert won.item_id == "gold_2"


def test_drifted_weights_fall_back_to_last_item():
    assert select_index([33.3, 33.3, 33.3], 99.95) == 2
    assert select_index([10.0, 20.0], 150.0) == 1


def test_boundary_draw_belongs_to_next_item(basic_case):
    assert roll_case(basic_case, draws(10.0)).item_id == "blue_2"
    assert roll_case(basic_case, draws(9.999)).item_id == "blue_1"


def test_variation_gate_closed_keeps_base_item(skin_case):
    won = roll_case(skin_case, draws(10.0, 10.0, 0.0))
    assert won.item_id == "knife"
    assert won.name == "Knife"
    assert won.value == 1000
    assert won.image == "knife.png"
    assert won.variation is None


def test_variation_gate_open_overrides_name_value_and_image(skin_case):
    won = roll_case(skin_case, draws(10.0, 9.99, 0.0))
    assert won.name == "Knife (Fade)"
    assert won.value == 4000
    assert won.image == "fade.png"
    assert won.variation is not None
    assert won.variation.name == "Fade"


def test_zero_priced_variation_keeps_base_value(skin_case):
    won = roll_case(skin_case, draws(10.0, 0.0, 85.0))
    assert won.name == "Knife (Doppler)"
    assert won.value == 1000
    assert won.image == "knife.png"


def test_items_without_variations_consume_one_draw(skin_case):
    consumed = []

    def draw() -> float:
        consumed.append(1)
        return 75.0

    won = roll_case(skin_case, draw)
    assert won.item_id == "pistol"
    assert len(consumed) == 1


def test_custom_variation_chance(skin_case):
    always = roll_case(skin_case, draws(10.0, 99.0, 0.0), variation_chance=100.0)
    never = roll_case(skin_case, draws(10.0, 0.0, 0.0), variation_chance=0.0)
    assert always.variation is not None
    assert never.variation is None


def test_empty_case_is_rejected():
    with pytest.raises(NotFound):
        roll_case(CaseDefinition(case_id="empty", name="Empty", price=10), draws(0.0))


def test_reward_roller_scales_random_to_percent(basic_case):
    roller = RewardRoller(ScriptedRandom(0.0, 0.9999))
    first, last = roller.roll_many(basic_case, 2)
    assert first.item_id == "blue_1"
    assert last.item_id == "gold_2"
    assert first.case_id == "basic_case"
