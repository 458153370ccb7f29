"""
Wallet Service
Prize crediting for user and team wallets
"""
import logging
from typing import Optional, Dict, Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from challengehub.models.payment.wallet import OwnerType, WalletInDB, wallet_id_for
from challengehub.utils.clock import Clock
from challengehub.utils.wallet import WalletUtils

logger = logging.getLogger(__name__)

ORDINALS = {"first": "1st", "second": "2nd", "third": "3rd"}


def prize_idempotency_key(challenge_id: str, award_key: str) -> str:
    """One credit per (challenge, award) per wallet"""
    return f"{challenge_id}:{award_key}"


class WalletService:
    """
    Service for wallet operations.
    Wallets are internal ledgers; nothing here talks to a payment gateway.
    """

    def __init__(self, db: AsyncIOMotorDatabase, clock: Optional[Clock] = None):
        self.db = db
        self.wallet_utils = WalletUtils(db, clock)

    async def get_wallet(self, owner_id: str, owner_type: OwnerType = OwnerType.USER) -> Optional[WalletInDB]:
        """Get a wallet by owner, or None if it was never credited"""
        doc = await self.wallet_utils.get_wallet(wallet_id_for(owner_id, owner_type))
        if not doc:
            return None
        return WalletInDB.model_validate(doc)

    async def credit_prize(
        self,
        owner_id: str,
        owner_type: OwnerType,
        amount: float,
        challenge_id: str,
        challenge_title: str,
        award_type: str,
        award_key: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Credit prize money for one award.

        No-op for amount <= 0 and for an award already credited to this
        wallet (retries after a partial failure do not pay twice).

        Returns the transaction, or None if nothing was credited.
        """
        if amount <= 0:
            return None

        wallet_id = wallet_id_for(owner_id, owner_type)
        placement = ORDINALS.get(award_type)
        description = (
            f"Prize: {placement} place - {challenge_title}" if placement
            else f"Prize: {award_type} - {challenge_title}"
        )

        credited, message, transaction = await self.wallet_utils.add_balance(
            wallet_id=wallet_id,
            owner_id=owner_id,
            owner_type=owner_type,
            amount=amount,
            description=description,
            idempotency_key=prize_idempotency_key(challenge_id, award_key or award_type),
            reference={
                "challenge_id": challenge_id,
                "challenge_title": challenge_title,
                "award_type": award_type,
            },
        )

        if not credited:
            logger.info("[WALLET] Skipped credit to %s for %s/%s: %s", wallet_id, challenge_id, award_type, message)
            return None

        logger.info("[WALLET] Credited $%s to wallet %s (challenge=%s award=%s)", amount, wallet_id, challenge_id, award_type)
        return transaction
