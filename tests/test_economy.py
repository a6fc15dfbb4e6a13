import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from caseforge.domain.events import CASE_OPENED, DAILY_GRANTED
from caseforge.domain.exceptions import (
    AlreadyRedeemed,
    InsufficientFunds,
    InvalidAmount,
    ItemNotFound,
    NotAuthorized,
    NotFound,
)
from caseforge.domain.store import META_KEY
from caseforge.testing import ScriptedRandom, loaded_app

# 23:30 in Kyiv (UTC+2 in winter)
LATE_EVENING = datetime(2026, 1, 10, 21, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio()
async def test_open_then_sell_scenario():
    app = await loaded_app(rng=ScriptedRandom(0.0))
    await app.store.create_account(1)

    opening = await app.economy.open_case(1, "basic_case")
    assert opening.balance == 900
    [item] = opening.items
    assert item.item_id == "blue_1"
    assert item.value == 50
    assert app.store.get_account(1).xp == 10

    sale = await app.economy.sell_item(1, item.instance_id)
    assert sale.amount == 50
    assert sale.balance == 950
    account = app.store.get_account(1)
    assert account.inventory == []
    assert account.lifetime_earnings == 50


@pytest.mark.asyncio()
async def test_open_case_rejections_leave_balance_untouched():
    app = await loaded_app()
    await app.store.create_account(1)
    with pytest.raises(InvalidAmount):
        await app.economy.open_case(1, "basic_case", count=2)
    with pytest.raises(NotFound):
        await app.economy.open_case(1, "no_such_case")

    await app.catalog.set_enabled("basic_case", False)
    with pytest.raises(NotFound):
        await app.economy.open_case(1, "basic_case")
    await app.catalog.set_enabled("basic_case", True)

    await app.store.set_balance(1, 99)
    with pytest.raises(InsufficientFunds) as excinfo:
        await app.economy.open_case(1, "basic_case")
    assert excinfo.value.required == 100
    assert app.store.get_account(1).balance == 99

    await app.store.ban_account(1)
    with pytest.raises(NotAuthorized):
        await app.economy.open_case(1, "basic_case")
    assert app.store.get_account(1).inventory == []


@pytest.mark.asyncio()
async def test_open_many_within_limit():
    app = await loaded_app(rng=ScriptedRandom(0.9999))
    await app.store.create_account(1)
    async with app.store.transaction(1) as tx:
        tx.account(1).max_case_openings = 3

    opening = await app.economy.open_case(1, "basic_case", count=3)
    assert [item.item_id for item in opening.items] == ["gold_2"] * 3
    assert opening.balance == 700
    assert opening.total_value == 9000
    assert len({item.instance_id for item in opening.items}) == 3


@pytest.mark.asyncio()
async def test_sell_all_and_missing_item():
    app = await loaded_app(rng=ScriptedRandom(0.0))
    await app.store.create_account(1)
    await app.economy.open_case(1, "basic_case")
    await app.economy.open_case(1, "basic_case")

    with pytest.raises(ItemNotFound):
        await app.economy.sell_item(1, "missing")
    sale = await app.economy.sell_all(1)
    assert sale.amount == 100
    assert sale.balance == 900
    empty = await app.economy.sell_all(1)
    assert empty.amount == 0 and empty.items == []


@pytest.mark.asyncio()
async def test_events_are_published_after_commit():
    app = await loaded_app(rng=ScriptedRandom(0.0))
    await app.store.create_account(1)
    seen = []

    async def listener(payload):
        seen.append((payload["account_id"], app.store.get_account(1).balance))

    app.event_bus.subscribe(CASE_OPENED, listener)
    await app.economy.open_case(1, "basic_case")
    assert seen == [(1, 900)]


@pytest.mark.asyncio()
async def test_claim_daily_once_per_local_day():
    app = await loaded_app()
    await app.store.create_account(1)

    claim = await app.economy.claim_daily(1, now=LATE_EVENING)
    assert claim.balance == 2000
    with pytest.raises(AlreadyRedeemed):
        await app.economy.claim_daily(1, now=LATE_EVENING + timedelta(minutes=20))

    # 00:30 the next day in Kyiv although still Jan 10 in UTC
    next_day = await app.economy.claim_daily(1, now=LATE_EVENING + timedelta(hours=1))
    assert next_day.balance == 3000


@pytest.mark.asyncio()
async def test_grant_daily_to_all_is_idempotent():
    app = await loaded_app()
    for account_id in (1, 2, 3):
        await app.store.create_account(account_id)
    grants = []

    async def listener(payload):
        grants.append(payload["count"])

    app.event_bus.subscribe(DAILY_GRANTED, listener)
    midnight = LATE_EVENING + timedelta(minutes=40)
    assert app.economy.daily_grant_due(midnight)
    assert await app.economy.grant_daily_to_all(now=midnight) == 3
    assert await app.economy.grant_daily_to_all(now=midnight + timedelta(hours=5)) == 0
    assert not app.economy.daily_grant_due(midnight + timedelta(minutes=5))
    assert grants == [3]
    assert {app.store.get_account(i).balance for i in (1, 2, 3)} == {2000}
    assert app.store.meta.last_daily_grant_date == midnight.isoformat()

    assert await app.economy.grant_daily_to_all(now=midnight + timedelta(days=1)) == 3


@pytest.mark.asyncio()
async def test_grant_daily_to_all_includes_accounts_created_while_waiting():
    app = await loaded_app()
    await app.store.create_account(1)
    holding, release = asyncio.Event(), asyncio.Event()

    async def hold_meta():
        async with app.store.transaction(keys=[META_KEY]):
            holding.set()
            await release.wait()

    holder = asyncio.create_task(hold_meta())
    await holding.wait()
    grant = asyncio.create_task(
        app.economy.grant_daily_to_all(now=datetime(2026, 1, 11, 12, tzinfo=timezone.utc))
    )
    for _ in range(3):
        await asyncio.sleep(0)
    await app.store.create_account(2)
    release.set()

    assert await grant == 2
    await holder
    assert {app.store.get_account(i).balance for i in (1, 2)} == {2000}


@pytest.mark.asyncio()
async def test_daily_grant_due_only_at_configured_hour():
    app = await loaded_app()
    assert not app.economy.daily_grant_due(LATE_EVENING)
    assert app.economy.daily_grant_due(LATE_EVENING + timedelta(hours=1))
