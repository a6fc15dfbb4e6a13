import pytest

from caseforge.domain.exceptions import (
    InsufficientFunds,
    InvalidAmount,
    NotAuthorized,
    NotPending,
    StaleOffer,
)
from caseforge.storage.base import LevelReward, OfferStatus
from caseforge.testing import ScriptedRandom, loaded_app


async def wager_app(*draws: float, balances=(500, 500)):
    app = await loaded_app(rng=ScriptedRandom(*draws))
    for account_id, balance in zip((1, 2), balances):
        await app.store.create_account(account_id)
        await app.store.set_balance(account_id, balance)
    return app


@pytest.mark.asyncio()
async def test_forced_challenger_win():
    app = await wager_app(0.1)
    wager = await app.wagers.create_wager(1, 2, 200)
    settled = await app.wagers.settle_wager(wager.wager_id, 2)

    assert app.store.get_account(1).balance == 700
    assert app.store.get_account(2).balance == 300
    assert settled.status is OfferStatus.COMPLETED
    assert settled.winner_account_id == 1


@pytest.mark.asyncio()
async def test_forced_opponent_win_is_zero_sum():
    app = await wager_app(0.9, balances=(800, 350))
    wager = await app.wagers.create_wager(1, 2, 300)
    settled = await app.wagers.settle_wager(wager.wager_id, 2)
    first, second = app.store.get_account(1), app.store.get_account(2)
    assert first.balance + second.balance == 1150
    assert settled.winner_account_id == 2
    assert second.balance == 650


@pytest.mark.asyncio()
async def test_level_up_during_settlement_keeps_wager_zero_sum():
    app = await wager_app(0.1)
    await app.progression.set_level_reward(LevelReward(level=2, max_case_openings=4))
    async with app.store.transaction(1) as tx:
        account = tx.account(1)
        account.lifetime_earnings = 9_900
        account.xp = 80
    wager = await app.wagers.create_wager(1, 2, 200)
    await app.wagers.settle_wager(wager.wager_id, 2)

    first, second = app.store.get_account(1), app.store.get_account(2)
    assert first.balance + second.balance == 1000
    assert first.balance == 700
    assert (first.level, first.xp, first.max_case_openings) == (2, 0, 4)


@pytest.mark.asyncio()
async def test_create_wager_rejections():
    app = await wager_app(0.1)
    with pytest.raises(InvalidAmount):
        await app.wagers.create_wager(1, 2, 0)
    with pytest.raises(NotAuthorized):
        await app.wagers.create_wager(1, 1, 10)
    with pytest.raises(InsufficientFunds):
        await app.wagers.create_wager(1, 2, 501)
    await app.store.ban_account(2)
    with pytest.raises(NotAuthorized):
        await app.wagers.create_wager(1, 2, 10)


@pytest.mark.asyncio()
async def test_settlement_rechecks_balances():
    app = await wager_app(0.1)
    wager = await app.wagers.create_wager(1, 2, 400)
    await app.store.set_balance(2, 100)
    with pytest.raises(StaleOffer):
        await app.wagers.settle_wager(wager.wager_id, 2)
    assert app.store.get_wager(wager.wager_id).status is OfferStatus.PENDING
    assert app.store.get_account(1).balance == 500
    assert app.store.get_account(2).balance == 100


@pytest.mark.asyncio()
async def test_only_opponent_accepts_and_cancel_is_final():
    app = await wager_app(0.1)
    wager = await app.wagers.create_wager(1, 2, 100)
    with pytest.raises(NotAuthorized):
        await app.wagers.settle_wager(wager.wager_id, 1)
    assert [w.wager_id for w in app.wagers.pending_for(2)] == [wager.wager_id]
    cancelled = await app.wagers.cancel_wager(wager.wager_id, 2)
    assert cancelled.status is OfferStatus.CANCELLED
    assert cancelled.winner_account_id is None
    with pytest.raises(NotPending):
        await app.wagers.settle_wager(wager.wager_id, 2)
    assert app.wagers.pending_for(1) == []
