"""
Wallet Utilities
Low-level wallet document operations

A wallet is a single document holding the balance, a capped
transaction history and the set of idempotency keys already credited.
Every write is an optimistic read-modify-write guarded on `version`.
"""
import logging
import uuid
from typing import Optional, Tuple, Dict, Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from challengehub.core.config import WALLETS, MAX_WALLET_TRANSACTIONS
from challengehub.core.exceptions import WalletConflictError
from challengehub.models.payment.transaction import TransactionType
from challengehub.models.payment.wallet import OwnerType
from challengehub.utils.clock import Clock

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5


def version_filter(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Filter matching `doc` only if nobody has written it since it was read"""
    version = doc.get("version")
    if version is None:
        return {"_id": doc["_id"], "version": {"$exists": False}}
    return {"_id": doc["_id"], "version": version}


class WalletUtils:
    """
    Utility class for wallet operations.
    Credits are exact: balance = previous balance + amount.
    """

    def __init__(self, db: AsyncIOMotorDatabase, clock: Optional[Clock] = None):
        self.db = db
        self.wallets = db[WALLETS]
        self.clock = clock or Clock()

    @staticmethod
    def generate_transaction_id() -> str:
        """Generate unique transaction ID"""
        return f"TXN_{uuid.uuid4().hex[:16].upper()}"

    async def get_wallet(self, wallet_id: str) -> Optional[Dict[str, Any]]:
        return await self.wallets.find_one({"_id": wallet_id})

    async def add_balance(
        self,
        wallet_id: str,
        owner_id: str,
        owner_type: OwnerType,
        amount: float,
        description: str = "",
        idempotency_key: Optional[str] = None,
        reference: Optional[Dict[str, Any]] = None,
    ) -> Tuple[bool, str, Optional[Dict[str, Any]]]:
        """
        Credit a wallet, creating it on first use.

        Returns: (credited, message, transaction)
        credited is False for non-positive amounts and for an
        idempotency key that was already credited.

        Raises WalletConflictError if the write keeps losing races.
        """
        if amount <= 0:
            return False, "Amount must be positive", None

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            now = self.clock.utcnow()
            transaction = {
                "id": self.generate_transaction_id(),
                "type": TransactionType.CREDIT.value,
                "amount": amount,
                "description": description or f"Credit of {amount}",
                "idempotency_key": idempotency_key,
                "created_at": now,
                **(reference or {}),
            }

            wallet = await self.get_wallet(wallet_id)

            if wallet is None:
                try:
                    await self.wallets.insert_one({
                        "_id": wallet_id,
                        "owner_id": owner_id,
                        "owner_type": OwnerType(owner_type).value,
                        "balance": amount,
                        "currency": "USD",
                        "transactions": [transaction],
                        "credited_award_keys": [idempotency_key] if idempotency_key else [],
                        "version": 1,
                        "created_at": now,
                        "updated_at": now,
                    })
                    return True, "Wallet created and credited", transaction
                except DuplicateKeyError:
                    # Created by someone else between read and insert
                    logger.info("[WALLET] %s created concurrently, retrying (attempt %d)", wallet_id, attempt)
                    continue

            if idempotency_key and idempotency_key in wallet.get("credited_award_keys", []):
                logger.info("[WALLET] Idempotency check: %s already credited to %s", idempotency_key, wallet_id)
                return False, "Transaction already processed", None

            transactions = [transaction] + wallet.get("transactions", [])
            update: Dict[str, Any] = {
                "$set": {
                    "balance": wallet.get("balance", 0) + amount,
                    "transactions": transactions[:MAX_WALLET_TRANSACTIONS],
                    "version": wallet.get("version", 0) + 1,
                    "updated_at": now,
                }
            }
            if idempotency_key:
                update["$push"] = {"credited_award_keys": idempotency_key}

            result = await self.wallets.update_one(version_filter(wallet), update)
            if result.modified_count == 1:
                return True, "Balance added successfully", transaction

            logger.info("[WALLET] %s changed during credit, retrying (attempt %d)", wallet_id, attempt)

        raise WalletConflictError(wallet_id, MAX_WRITE_ATTEMPTS)
