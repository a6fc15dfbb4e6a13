import asyncio

import pytest

from caseforge.domain.exceptions import (
    AlreadyExists,
    InsufficientFunds,
    InvalidAmount,
    ItemNotFound,
    NotFound,
)
from caseforge.domain.store import AccountStore, account_key
from caseforge.storage.memory import InMemoryGateway
from caseforge.testing import CaseFactory


async def make_store() -> AccountStore:
    store = AccountStore(InMemoryGateway())
    await store.load()
    await store.flush()
    return store


@pytest.mark.asyncio()
async def test_create_account_seeds_starting_balance():
    store = await make_store()
    account = await store.create_account(1, display_name="Alice", username="alice")
    assert account.balance == 1000
    assert account.inventory == []
    assert account.level == 1 and account.xp == 0
    assert store.find_by_username("@ALICE").account_id == 1
    with pytest.raises(AlreadyExists):
        await store.create_account(1)


@pytest.mark.asyncio()
async def test_unknown_account_is_not_found():
    store = await make_store()
    with pytest.raises(NotFound):
        store.get_account(404)
    with pytest.raises(NotFound):
        await store.adjust_balance(404, 10)


@pytest.mark.asyncio()
async def test_adjust_balance_refuses_negative_result():
    store = await make_store()
    await store.create_account(1)
    await store.flush()
    with pytest.raises(InsufficientFunds) as exc_info:
        await store.adjust_balance(1, -1001)
    assert exc_info.value.balance == 1000
    assert store.get_account(1).balance == 1000
    assert not store.has_pending_writes


@pytest.mark.asyncio()
async def test_set_balance_rejects_negative_values():
    store = await make_store()
    await store.create_account(1)
    with pytest.raises(InvalidAmount):
        await store.set_balance(1, -5)
    assert (await store.set_balance(1, 5)).balance == 5


@pytest.mark.asyncio()
async def test_mint_and_remove_items():
    store = await make_store()
    await store.create_account(1)
    case = CaseFactory().build()
    template = CaseFactory().won_item(case)
    first = await store.mint_item(1, template)
    second = await store.mint_item(1, template)
    assert first.instance_id != second.instance_id
    removed = await store.remove_item(1, first.instance_id)
    assert removed.instance_id == first.instance_id
    assert [item.instance_id for item in store.get_account(1).inventory] == [second.instance_id]
    with pytest.raises(ItemNotFound):
        await store.remove_item(1, first.instance_id)


@pytest.mark.asyncio()
async def test_reads_are_detached_copies():
    store = await make_store()
    await store.create_account(1)
    snapshot = store.get_account(1)
    snapshot.balance = 0
    assert store.get_account(1).balance == 1000


@pytest.mark.asyncio()
async def test_failed_transaction_discards_every_staged_change():
    store = await make_store()
    await store.create_account(1)
    await store.create_account(2)
    await store.flush()

    with pytest.raises(RuntimeError):
        async with store.transaction(1, 2) as tx:
            tx.account(1).balance -= 300
            tx.account(2).balance += 300
            raise RuntimeError("boom")

    assert store.get_account(1).balance == 1000
    assert store.get_account(2).balance == 1000
    assert not store.has_pending_writes


@pytest.mark.asyncio()
async def test_transaction_only_exposes_locked_accounts():
    store = await make_store()
    await store.create_account(1)
    await store.create_account(2)
    with pytest.raises(RuntimeError):
        async with store.transaction(1) as tx:
            tx.account(2)


@pytest.mark.asyncio()
async def test_concurrent_debits_never_overdraw():
    store = await make_store()
    await store.create_account(1)
    results = await asyncio.gather(
        *(store.adjust_balance(1, -100) for _ in range(15)), return_exceptions=True
    )
    failures = [r for r in results if isinstance(r, InsufficientFunds)]
    assert len(failures) == 5
    assert store.get_account(1).balance == 0


@pytest.mark.asyncio()
async def test_opposite_lock_orders_do_not_deadlock():
    store = await make_store()
    await store.create_account(1)
    await store.create_account(2)

    async def transfer(src: int, dst: int) -> None:
        async with store.transaction(dst, src) as tx:
            await asyncio.sleep(0)
            tx.account(src).balance -= 10
            tx.account(dst).balance += 10

    await asyncio.wait_for(
        asyncio.gather(*(transfer(1, 2) if i % 2 else transfer(2, 1) for i in range(20))),
        timeout=5,
    )
    assert store.get_account(1).balance + store.get_account(2).balance == 2000


@pytest.mark.asyncio()
async def test_idle_locks_are_dropped():
    store = await make_store()
    for account_id in range(1, 51):
        await store.create_account(account_id)
    await asyncio.gather(*(store.adjust_balance(1, -10) for _ in range(5)))
    assert store._locks == {}

    entered = asyncio.Event()
    release = asyncio.Event()

    async def hold() -> None:
        async with store.transaction(1):
            entered.set()
            await release.wait()

    holder = asyncio.create_task(hold())
    await entered.wait()
    waiter = asyncio.create_task(store.adjust_balance(1, -10))
    await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert list(store._locks) == [account_key(1)]
    release.set()
    await holder
    assert store._locks == {}
    assert store.get_account(1).balance == 950


@pytest.mark.asyncio()
async def test_reset_preserves_ban_and_identity():
    store = await make_store()
    await store.create_account(1, display_name="Alice", username="alice")
    await store.adjust_balance(1, 500)
    await store.ban_account(1)
    await store.ban_account(1)
    account = await store.reset_account(1)
    assert account.balance == 1000
    assert account.banned
    assert account.username == "alice"
    assert (await store.unban_account(1)).banned is False


@pytest.mark.asyncio()
async def test_set_progress_validates_bounds():
    store = await make_store()
    await store.create_account(1)
    with pytest.raises(InvalidAmount):
        await store.set_progress(1, level=0, xp=0)
    with pytest.raises(InvalidAmount):
        await store.set_progress(1, level=2, xp=100)
    account = await store.set_progress(1, level=3, xp=99)
    assert (account.level, account.xp) == (3, 99)


@pytest.mark.asyncio()
async def test_replace_accounts_overwrites_registry():
    store = await make_store()
    await store.create_account(1)
    replacement = store.new_account(7, display_name="Seven")
    replacement.balance = 42
    assert await store.replace_accounts([replacement]) == 1
    assert store.account_ids() == [7]
    assert store.get_account(7).balance == 42


@pytest.mark.asyncio()
async def test_load_seeds_default_catalog_once():
    gateway = InMemoryGateway()
    store = AccountStore(gateway)
    await store.load()
    assert [case.case_id for case in store.list_cases()] == ["basic_case"]
    assert store.has_pending_writes
    await store.flush()
    assert gateway.saves == 1

    reloaded = AccountStore(gateway)
    await reloaded.load()
    assert not reloaded.has_pending_writes


def test_account_lock_keys_sort_numerically():
    keys = sorted([account_key(10), account_key(2), ("meta",), ("catalog",)])
    assert keys[0] == account_key(2)
    assert keys[1] == account_key(10)
