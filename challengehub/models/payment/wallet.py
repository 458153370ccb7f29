"""
Wallet Models
Prize wallets for users and teams

Wallet document id:
- users: the user id (e.g. "abc123")
- teams: "team_{teamId}" (e.g. "team_xyz789")
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum

from challengehub.models.payment.transaction import WalletTransaction


class OwnerType(str, Enum):
    """Wallet owner"""
    USER = "user"
    TEAM = "team"


TEAM_WALLET_PREFIX = "team_"


def wallet_id_for(owner_id: str, owner_type: OwnerType) -> str:
    """Document id of the wallet that belongs to an owner"""
    if OwnerType(owner_type) == OwnerType.TEAM:
        return f"{TEAM_WALLET_PREFIX}{owner_id}"
    return owner_id


class WalletInDB(BaseModel):
    """Wallet schema in database"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="_id")
    owner_id: str
    owner_type: OwnerType = OwnerType.USER
    balance: float = 0.0
    currency: str = "USD"
    transactions: List[WalletTransaction] = []  # Newest first, capped
    credited_award_keys: List[str] = []  # Idempotency keys of prizes already credited
    version: int = 0  # Bumped on every write (optimistic concurrency)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
