import asyncio

import pytest

from caseforge.domain.exceptions import (
    AlreadyExists,
    AlreadyRedeemed,
    CodeInactive,
    CodeNotFound,
    InvalidAmount,
    NotAuthorized,
    RedemptionsExhausted,
)
from caseforge.testing import loaded_app


async def promo_app(*account_ids: int):
    app = await loaded_app()
    for account_id in account_ids:
        await app.store.create_account(account_id)
    return app


@pytest.mark.asyncio()
async def test_single_use_code_scenario():
    app = await promo_app(3, 4)
    await app.promos.create_code("X", 300, 1)

    redemption = await app.promos.redeem(3, "X")
    assert redemption.balance == 1300
    assert app.store.get_promo("x").redemptions_used == 1

    with pytest.raises(RedemptionsExhausted):
        await app.promos.redeem(4, "X")
    assert app.store.get_account(4).balance == 1000


@pytest.mark.asyncio()
async def test_redemption_is_exactly_once_per_account():
    app = await promo_app(1)
    await app.promos.create_code("Spring", 250, 10)
    await app.promos.redeem(1, "spring")
    with pytest.raises(AlreadyRedeemed):
        await app.promos.redeem(1, "SPRING")
    assert app.store.get_account(1).balance == 1250
    assert app.store.get_promo("spring").redeemed_by == {1}


@pytest.mark.asyncio()
async def test_concurrent_redemptions_respect_the_cap():
    app = await promo_app(*range(1, 11))
    await app.promos.create_code("RUSH", 100, 3)
    results = await asyncio.gather(
        *(app.promos.redeem(account_id, "rush") for account_id in range(1, 11)),
        return_exceptions=True,
    )
    assert sum(1 for r in results if not isinstance(r, Exception)) == 3
    assert all(isinstance(r, RedemptionsExhausted) for r in results if isinstance(r, Exception))
    promo = app.store.get_promo("rush")
    assert promo.redemptions_used == 3 == len(promo.redeemed_by)


@pytest.mark.asyncio()
async def test_code_lifecycle_errors():
    app = await promo_app(1)
    with pytest.raises(CodeNotFound):
        await app.promos.redeem(1, "missing")
    await app.promos.create_code("Gift", 50, 2)
    with pytest.raises(AlreadyExists):
        await app.promos.create_code("GIFT", 10, 1)
    with pytest.raises(InvalidAmount):
        await app.promos.create_code("Zero", 0, 1)

    await app.promos.update_code("gift", active=False)
    with pytest.raises(CodeInactive):
        await app.promos.redeem(1, "gift")
    await app.promos.update_code("gift", active=True, grant_amount=75)
    assert (await app.promos.redeem(1, "gift")).amount == 75
    with pytest.raises(InvalidAmount):
        await app.promos.update_code("gift", max_redemptions=0)

    await app.promos.delete_code("gift")
    assert app.promos.list_codes() == []


@pytest.mark.asyncio()
async def test_banned_account_cannot_redeem():
    app = await promo_app(1)
    await app.promos.create_code("Ban", 50, 5)
    await app.store.ban_account(1)
    with pytest.raises(NotAuthorized):
        await app.promos.redeem(1, "ban")
    assert app.store.get_promo("ban").redemptions_used == 0
