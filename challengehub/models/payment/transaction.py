"""
Transaction Models
Ledger entries stored inside a wallet document
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from enum import Enum


class TransactionType(str, Enum):
    """Transaction type"""
    CREDIT = "credit"          # Prize money added
    DEBIT = "debit"            # Not produced by the midnight run
    WITHDRAWAL = "withdrawal"  # Not produced by the midnight run


class WalletTransaction(BaseModel):
    """Transaction schema (embedded in the wallet)"""
    model_config = ConfigDict(extra="ignore")

    id: str
    type: TransactionType = TransactionType.CREDIT
    amount: float
    description: str = ""

    # Prize reference
    challenge_id: Optional[str] = None
    challenge_title: Optional[str] = None
    award_type: Optional[str] = None

    # Idempotency
    idempotency_key: Optional[str] = None

    created_at: Optional[datetime] = None
