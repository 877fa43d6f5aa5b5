"""Wallet ledger domain models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


class TransactionType(str, Enum):
    LOAD = "load"
    DEDUCT = "deduct"


class WalletAccount(BaseModel):
    owner_id: str
    role: str | None = None
    balance: Decimal
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WalletTransaction(BaseModel):
    transaction_id: str
    owner_id: str
    amount: Decimal
    type: TransactionType
    trip_id: str | None = None
    reference: str | None = None
    actor_id: str | None = None
    created_at: datetime | None = None


class BalanceStatus(BaseModel):
    """Balance with the reload warning and hard-block flags derived from it."""

    worker_id: str
    balance: Decimal
    fee_per_trip: Decimal
    capacity: int
    low_balance: bool
    blocked: bool
