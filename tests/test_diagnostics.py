from random import Random

import pytest

from caseforge.diagnostics import EconomySimulator, expected_value, run_checklist
from caseforge.domain.cases import default_cases
from caseforge.domain.exceptions import InvalidAmount
from caseforge.storage.base import LevelReward
from caseforge.testing import CaseFactory, TestClient, app_fixture, loaded_app


def test_expected_value_of_default_case():
    [case] = default_cases()
    assert expected_value(case) == pytest.approx(235.2525)


def test_expected_value_accounts_for_variation_gate():
    case = CaseFactory(rng=Random(3)).build(items=1, variations=2)
    [item] = case.items
    var_value = sum((var.price or item.base_value) * var.drop_weight for var in item.variations) / 100
    assert expected_value(case, variation_chance=0) == pytest.approx(item.base_value)
    assert expected_value(case, variation_chance=100) == pytest.approx(var_value)


@pytest.mark.asyncio()
async def test_simulator_is_deterministic_for_seed():
    app = await loaded_app()
    first = EconomySimulator(app, rng=Random(5)).simulate("basic_case", openings=500)
    second = EconomySimulator(app, rng=Random(5)).simulate("basic_case", openings=500)
    assert first.total_value == second.total_value
    assert sum(first.items.values()) == 500
    assert first.best_value <= 3000
    assert first.return_to_player == pytest.approx(first.average_value / 100)
    with pytest.raises(InvalidAmount):
        EconomySimulator(app).simulate("basic_case", openings=0)


@pytest.mark.asyncio()
async def test_checklist_flags_generous_case_and_shrinking_rewards():
    app = await loaded_app()
    issues = run_checklist(app)
    assert [issue.severity for issue in issues] == ["warning"]
    assert "basic_case" in issues[0].message

    await app.progression.set_level_reward(LevelReward(level=2, max_case_openings=5))
    await app.progression.set_level_reward(LevelReward(level=3, max_case_openings=3))
    await app.catalog.set_enabled("basic_case", False)
    messages = [issue.message for issue in run_checklist(app)]
    assert "Все кейсы отключены." in messages
    assert any("уровня 3" in message for message in messages)


def test_checklist_on_empty_catalog():
    app = app_fixture()
    [issue] = run_checklist(app)
    assert issue.severity == "error"


@pytest.mark.asyncio()
async def test_test_client_records_outcomes():
    app = await loaded_app()
    await app.promos.create_code("Once", 100, 1)
    client = TestClient(app)
    await client.connect(1)
    await client.connect(1)
    await client.redeem(1, "once")
    await client.redeem(1, "once")
    await client.open_case(1, "basic_case", count=2)
    assert client.errors() == ["already_exists", "already_redeemed", "invalid_amount"]
    assert client.history()[2].metadata == {"amount": 100, "balance": 1100}
