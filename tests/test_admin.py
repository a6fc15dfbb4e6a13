from datetime import datetime, timezone

import pytest

from caseforge.admin import app_admin_service
from caseforge.domain.exceptions import InvalidAmount, NotAuthorized, NotFound
from caseforge.storage.base import Account
from caseforge.testing import loaded_app


async def admin_app(*, audit: bool = True):
    app = await loaded_app()
    app.config.admin.enable_audit_logs = audit
    await app.store.create_account(1, username="alice")
    return app, app_admin_service(app)


def audit_actions(app):
    return [action for _, action, _ in app.audit_store.dump()]


@pytest.mark.asyncio()
async def test_ban_blocks_economy_until_unban():
    app, service = await admin_app()
    events = []

    async def listener(payload):
        events.append(payload)

    app.event_bus.subscribe("admin.account.banned", listener)
    await service.ban(1, reason="test")
    assert app.store.get_account(1).banned
    assert events == [{"account_id": 1, "reason": "test"}]
    with pytest.raises(NotAuthorized):
        await app.economy.open_case(1, "basic_case")

    await service.unban(1)
    opening = await app.economy.open_case(1, "basic_case")
    assert opening.balance == 900
    assert audit_actions(app) == ["ban", "unban"]


@pytest.mark.asyncio()
async def test_grant_item_with_and_without_variation():
    app, service = await admin_app()
    case = app.catalog.get("basic_case")
    plain = await service.grant_item(1, "basic_case", "gold_2")
    assert plain.value == 3000
    assert plain.variation is None

    with pytest.raises(NotFound):
        await service.grant_item(1, "basic_case", "gold_2", variation="Fade")
    with pytest.raises(NotFound):
        await service.grant_item(1, "basic_case", "missing")
    assert [item.item_id for item in app.store.get_account(1).inventory] == ["gold_2"]
    assert case.get_item("gold_2").name in plain.name


@pytest.mark.asyncio()
async def test_balance_progress_and_reset_are_audited():
    app, service = await admin_app()
    await service.set_balance(1, 42)
    await service.adjust_balance(1, 8)
    with pytest.raises(InvalidAmount):
        await service.adjust_balance(1, 0)
    await service.set_progress(1, level=4, xp=20)
    account = app.store.get_account(1)
    assert (account.balance, account.level, account.xp) == (50, 4, 20)

    await service.reset(1)
    account = app.store.get_account(1)
    assert (account.balance, account.level, account.inventory) == (1000, 1, [])
    assert audit_actions(app) == ["set_balance", "adjust_balance", "set_progress", "reset"]
    _, _, payload = app.audit_store.dump()[0]
    assert payload["account_id"] == 1 and "timestamp" in payload


@pytest.mark.asyncio()
async def test_promo_and_level_reward_management():
    app, service = await admin_app()
    await service.create_promo("Launch", 500, 2)
    await service.set_promo_active("launch", False)
    assert not app.store.get_promo("LAUNCH").active
    await service.delete_promo("launch")
    assert app.store.list_promos() == []

    await service.set_level_reward(2, 3, title="Bronze")
    assert app.store.level_reward(2).title == "Bronze"
    await service.remove_level_reward(2)
    assert app.store.level_reward(2) is None


@pytest.mark.asyncio()
async def test_generated_case_is_created_and_audited():
    app, service = await admin_app()
    case = await service.create_generated_case(
        "starter", "Стартовый кейс", 150, {"blue": [{"name": "Пистолет"}], "contraband": []}
    )
    stored = app.catalog.get("starter")
    assert stored.price == 150
    assert len(stored.items) == len(case.items) == 11
    assert stored.items[0].name == "Пистолет"
    assert sum(item.drop_weight for item in stored.items) == pytest.approx(100.0)
    assert audit_actions(app) == ["create_generated_case"]

    opening = await app.economy.open_case(1, "starter")
    assert opening.balance == 850


@pytest.mark.asyncio()
async def test_registry_replacement_and_daily_grant():
    app, service = await admin_app(audit=False)
    assert await service.replace_accounts([Account(account_id=5, balance=10)]) == 1
    assert app.store.account_ids() == [5]
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert await service.grant_daily_to_all(now=now) == 1
    assert app.store.get_account(5).balance == 1010
    assert await service.set_case_enabled("basic_case", False)
    assert app.audit_store.dump() == []
