"""Request/response models for wallet endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from kangga.ledger.models import TransactionType, WalletTransaction
from kangga.money import MAX_AMOUNT
from kangga.trip import WorkerRole


class BalanceResponse(BaseModel):
    worker_id: str
    balance: Decimal
    fee_per_trip: Decimal
    capacity: int
    low_balance: bool
    blocked: bool
    account_number: str | None = None


class OpenWalletRequest(BaseModel):
    role: WorkerRole


class ApplyTransactionRequest(BaseModel):
    amount: Decimal = Field(
        ...,
        ge=-MAX_AMOUNT,
        le=MAX_AMOUNT,
        description="Signed amount: positive for load, negative for deduct",
    )
    type: TransactionType
    reference: str | None = Field(None, max_length=255)
    trip_id: str | None = None
    actor_id: str | None = None


class ApplyTransactionResponse(BaseModel):
    worker_id: str
    balance: Decimal


class WithdrawalRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT)
    destination_account: str = Field(..., min_length=1, description="GCash or bank account")


class TransactionResponse(BaseModel):
    transaction_id: str
    amount: Decimal
    type: TransactionType
    trip_id: str | None
    reference: str | None
    actor_id: str | None
    created_at: datetime | None

    @classmethod
    def from_transaction(cls, transaction: WalletTransaction) -> "TransactionResponse":
        return cls(
            transaction_id=transaction.transaction_id,
            amount=transaction.amount,
            type=transaction.type,
            trip_id=transaction.trip_id,
            reference=transaction.reference,
            actor_id=transaction.actor_id,
            created_at=transaction.created_at,
        )


class TransactionListResponse(BaseModel):
    worker_id: str
    transactions: list[TransactionResponse]
