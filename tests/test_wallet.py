import pytest

from challengehub.core.config import WALLETS
from challengehub.core.exceptions import WalletConflictError
from challengehub.models.payment.wallet import OwnerType
from challengehub.services.payment.wallet_service import WalletService
from challengehub.utils.wallet import WalletUtils


async def test_first_credit_creates_wallet(db, clock):
    service = WalletService(db, clock)

    txn = await service.credit_prize("u1", OwnerType.USER, 600, "c1", "AI Hack", "first")

    wallet = await service.get_wallet("u1")
    assert wallet.balance == 600
    assert wallet.owner_type == OwnerType.USER
    assert len(wallet.transactions) == 1
    assert wallet.transactions[0].description == "Prize: 1st place - AI Hack"
    assert txn["idempotency_key"] == "c1:first"


async def test_team_wallet_id(db, clock):
    service = WalletService(db, clock)

    await service.credit_prize("t1", OwnerType.TEAM, 300, "c1", "AI Hack", "second")

    assert await db[WALLETS].find_one({"_id": "team_t1"}) is not None
    assert await db[WALLETS].find_one({"_id": "t1"}) is None


async def test_same_award_is_credited_once(db, clock):
    service = WalletService(db, clock)

    await service.credit_prize("u1", OwnerType.USER, 600, "c1", "AI Hack", "first")
    again = await service.credit_prize("u1", OwnerType.USER, 600, "c1", "AI Hack", "first")

    wallet = await service.get_wallet("u1")
    assert again is None
    assert wallet.balance == 600
    assert len(wallet.transactions) == 1


async def test_zero_prize_is_a_no_op(db, clock):
    service = WalletService(db, clock)

    assert await service.credit_prize("u1", OwnerType.USER, 0, "c1", "AI Hack", "third") is None
    assert await service.get_wallet("u1") is None


async def test_special_award_description(db, clock):
    service = WalletService(db, clock)

    await service.credit_prize("u1", OwnerType.USER, 50, "c1", "AI Hack", "Best UI", award_key="special_0")

    wallet = await service.get_wallet("u1")
    assert wallet.transactions[0].description == "Prize: Best UI - AI Hack"
    assert wallet.credited_award_keys == ["c1:special_0"]


async def test_history_is_capped_but_balance_is_exact(db, clock):
    utils = WalletUtils(db, clock)

    for i in range(1, 106):
        credited, _, _ = await utils.add_balance("u1", "u1", OwnerType.USER, i, idempotency_key=f"k{i}")
        assert credited

    wallet = await utils.get_wallet("u1")
    assert wallet["balance"] == sum(range(1, 106))
    assert len(wallet["transactions"]) == 100
    assert wallet["transactions"][0]["amount"] == 105
    assert wallet["transactions"][-1]["amount"] == 6
    assert len(wallet["credited_award_keys"]) == 105
    assert wallet["version"] == 105


async def test_lost_races_raise_conflict(db, clock, monkeypatch):
    utils = WalletUtils(db, clock)
    await utils.add_balance("u1", "u1", OwnerType.USER, 10)

    class NotModified:
        modified_count = 0

    async def concurrent_writer_wins(*args, **kwargs):
        return NotModified()

    monkeypatch.setattr(utils, "wallets", _CollectionWithUpdate(utils.wallets, concurrent_writer_wins))

    with pytest.raises(WalletConflictError):
        await utils.add_balance("u1", "u1", OwnerType.USER, 10)

    wallet = await db[WALLETS].find_one({"_id": "u1"})
    assert wallet["balance"] == 10


class _CollectionWithUpdate:
    """Real collection whose update_one is replaced"""

    def __init__(self, collection, update_one):
        self._collection = collection
        self.update_one = update_one

    def __getattr__(self, name):
        return getattr(self._collection, name)
