"""Wallet routes: balance, loads and deducts, history, withdrawals."""

from fastapi import APIRouter, Depends, Query, Request

from kangga.api.auth import verify_api_key
from kangga.api.dependencies import LedgerDep
from kangga.api.models.wallet import (
    ApplyTransactionRequest,
    ApplyTransactionResponse,
    BalanceResponse,
    OpenWalletRequest,
    TransactionListResponse,
    TransactionResponse,
    WithdrawalRequest,
)
from kangga.api.rate_limit import WRITE_LIMIT, limiter
from kangga.ledger.service import account_number

router = APIRouter(dependencies=[Depends(verify_api_key)])


def _balance_response(worker_id: str, ledger: LedgerDep) -> BalanceResponse:
    status = ledger.balance_status(worker_id)
    account = ledger.get_account(worker_id)
    number = account_number(account.role, worker_id) if account and account.role else None
    return BalanceResponse(**status.model_dump(), account_number=number)


@router.get("/{worker_id}", response_model=BalanceResponse)
def get_wallet(worker_id: str, ledger: LedgerDep) -> BalanceResponse:
    """Balance, transaction capacity and reload warning flags."""
    return _balance_response(worker_id, ledger)


@router.put("/{worker_id}", response_model=BalanceResponse)
@limiter.limit(WRITE_LIMIT)
def open_wallet(
    request: Request, worker_id: str, body: OpenWalletRequest, ledger: LedgerDep
) -> BalanceResponse:
    """Create the worker's wallet (idempotent)."""
    ledger.open_account(worker_id, body.role)
    return _balance_response(worker_id, ledger)


@router.post("/{worker_id}/transactions", response_model=ApplyTransactionResponse)
@limiter.limit(WRITE_LIMIT)
def apply_transaction(
    request: Request, worker_id: str, body: ApplyTransactionRequest, ledger: LedgerDep
) -> ApplyTransactionResponse:
    """Load or deduct. 402 when a deduct would take the balance below zero."""
    balance = ledger.apply_transaction(
        worker_id,
        body.amount,
        body.type,
        reference=body.reference,
        trip_id=body.trip_id,
        actor_id=body.actor_id,
    )
    return ApplyTransactionResponse(worker_id=worker_id, balance=balance)


@router.get("/{worker_id}/transactions", response_model=TransactionListResponse)
def list_transactions(
    worker_id: str,
    ledger: LedgerDep,
    limit: int = Query(10, ge=1, le=200),
) -> TransactionListResponse:
    """Most recent transactions first."""
    transactions = ledger.list_transactions(worker_id, limit=limit)
    return TransactionListResponse(
        worker_id=worker_id,
        transactions=[TransactionResponse.from_transaction(t) for t in transactions],
    )


@router.post("/{worker_id}/withdrawals", response_model=ApplyTransactionResponse)
@limiter.limit(WRITE_LIMIT)
def request_withdrawal(
    request: Request, worker_id: str, body: WithdrawalRequest, ledger: LedgerDep
) -> ApplyTransactionResponse:
    balance = ledger.request_withdrawal(worker_id, body.amount, body.destination_account)
    return ApplyTransactionResponse(worker_id=worker_id, balance=balance)


@router.get("/{worker_id}/reconciliation")
def reconcile_wallet(worker_id: str, ledger: LedgerDep) -> dict[str, object]:
    """Whether the transaction journal sums to the stored balance."""
    return {"worker_id": worker_id, "balanced": ledger.reconcile(worker_id)}
