"""Wallet ledger: the only writer of worker balances."""

import hashlib
import logging
from decimal import Decimal

from sqlalchemy.orm import Session, sessionmaker

from kangga.core.exceptions import InsufficientFunds, ValidationError
from kangga.core.retry import RetryConfig
from kangga.db.repositories.wallet_repository import WalletRepository
from kangga.db.transaction import run_in_transaction
from kangga.money import Amount, from_minor_units, to_decimal, to_minor_units
from kangga.pubsub.channels import CHANNEL_WALLET_UPDATES, WalletUpdateMessage
from kangga.redis_client.publisher import RedisPublisher
from kangga.settings import LedgerSettings
from kangga.trip import TripKind, WorkerRole

from .models import BalanceStatus, TransactionType, WalletAccount, WalletTransaction

logger = logging.getLogger(__name__)

PLATFORM_FEE_REFERENCE = "KanggaXpress platform fee ({kind})"
NO_SHOW_PENALTY_REFERENCE = "No-show penalty ({reason})"
WITHDRAWAL_REFERENCE = "Withdrawal request - {account} - Pending admin approval"

ACCOUNT_PREFIXES = {
    WorkerRole.DRIVER: "KXD",
    WorkerRole.COURIER: "KXC",
}


def account_number(role: WorkerRole | str, seed: str) -> str:
    """Deterministic wallet account number, e.g. KXD-04918273 for a driver."""
    role = WorkerRole(role)
    digest = int(hashlib.sha256(seed.encode("utf-8")).hexdigest(), 16)
    return f"{ACCOUNT_PREFIXES[role]}-{digest % 100_000_000:08d}"


class WalletLedger:
    """Atomic credits and debits against worker wallets.

    apply_transaction is a single conditional UPDATE plus the journal insert in
    one database transaction, so a debit either succeeds against the latest
    balance or fails with InsufficientFunds and leaves nothing behind.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: LedgerSettings | None = None,
        publisher: RedisPublisher | None = None,
        retry_config: RetryConfig | None = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or LedgerSettings()
        self._publisher = publisher
        self._retry_config = retry_config

    @property
    def platform_fee(self) -> Decimal:
        return to_decimal(self._settings.platform_fee)

    @property
    def no_show_penalty(self) -> Decimal:
        return to_decimal(self._settings.no_show_penalty)

    def open_account(self, worker_id: str, role: WorkerRole | str) -> WalletAccount:
        """Create the wallet for a worker, or tag an existing roleless one."""
        role = WorkerRole(role)

        def work(session: Session) -> WalletAccount:
            repo = WalletRepository(session)
            if repo.get_account(worker_id) is None:
                repo.create_account(worker_id, role.value)
            else:
                repo.set_role(worker_id, role.value)
            account = repo.get_account(worker_id)
            assert account is not None
            return account

        return run_in_transaction(self._session_factory, work, "open_account", self._retry_config)

    def get_account(self, worker_id: str) -> WalletAccount | None:
        return run_in_transaction(
            self._session_factory,
            lambda session: WalletRepository(session).get_account(worker_id),
            "get_account",
            self._retry_config,
        )

    def get_balance(self, worker_id: str) -> Decimal:
        """Current balance; zero for a worker without a wallet."""
        cents = run_in_transaction(
            self._session_factory,
            lambda session: WalletRepository(session).get_balance_cents(worker_id),
            "get_balance",
            self._retry_config,
        )
        return from_minor_units(cents or 0)

    def apply_transaction(
        self,
        worker_id: str,
        amount: Amount,
        transaction_type: TransactionType | str,
        reference: str | None = None,
        trip_id: str | None = None,
        actor_id: str | None = None,
    ) -> Decimal:
        """Append a transaction and move the balance atomically; returns the new balance."""
        def work(session: Session) -> tuple[WalletTransaction, int]:
            transaction = self.apply_in_session(
                session, worker_id, amount, transaction_type, reference, trip_id, actor_id
            )
            return transaction, WalletRepository(session).get_balance_cents(worker_id) or 0

        transaction, balance_cents = run_in_transaction(
            self._session_factory, work, "apply_transaction", self._retry_config
        )
        new_balance = from_minor_units(balance_cents)
        logger.info(
            f"Wallet {transaction.type.value} of {transaction.amount} for {worker_id}, "
            f"balance now {new_balance}"
        )
        self.notify(transaction)
        return new_balance

    def apply_in_session(
        self,
        session: Session,
        worker_id: str,
        amount: Amount,
        transaction_type: TransactionType | str,
        reference: str | None = None,
        trip_id: str | None = None,
        actor_id: str | None = None,
    ) -> WalletTransaction:
        """apply_transaction inside a caller-owned transaction.

        Used by dispatch so a fee debit commits or rolls back together with the
        trip write it pays for.
        """
        transaction_type = TransactionType(transaction_type)
        value = to_decimal(amount)
        if transaction_type is TransactionType.LOAD and value <= 0:
            raise ValidationError("Load amount must be positive", {"amount": str(value)})
        if transaction_type is TransactionType.DEDUCT and value >= 0:
            raise ValidationError("Deduct amount must be negative", {"amount": str(value)})

        delta = to_minor_units(value)
        repo = WalletRepository(session)
        if not repo.apply_delta(worker_id, delta):
            balance_cents = repo.get_balance_cents(worker_id)
            if transaction_type is TransactionType.LOAD and balance_cents is None:
                repo.create_account(worker_id, balance_cents=delta)
            else:
                raise InsufficientFunds(worker_id, value, from_minor_units(balance_cents or 0))

        return repo.append_transaction(
            worker_id,
            delta,
            transaction_type,
            reference=reference,
            trip_id=trip_id,
            actor_id=actor_id,
        )

    def charge_platform_fee(
        self, session: Session, worker_id: str, trip_id: str, kind: TripKind
    ) -> WalletTransaction:
        return self.apply_in_session(
            session,
            worker_id,
            -self.platform_fee,
            TransactionType.DEDUCT,
            reference=PLATFORM_FEE_REFERENCE.format(kind=kind.value),
            trip_id=trip_id,
        )

    def charge_no_show_penalty(
        self,
        session: Session,
        worker_id: str,
        trip_id: str,
        reason: str,
        actor_id: str | None = None,
    ) -> WalletTransaction | None:
        """Debit the configured no-show penalty; None when the penalty is zero."""
        if self.no_show_penalty == 0:
            return None
        return self.apply_in_session(
            session,
            worker_id,
            -self.no_show_penalty,
            TransactionType.DEDUCT,
            reference=NO_SHOW_PENALTY_REFERENCE.format(reason=reason),
            trip_id=trip_id,
            actor_id=actor_id,
        )

    def transaction_capacity(self, worker_id: str, fee_per_trip: Amount | None = None) -> int:
        """How many more fee-charging trips the current balance covers."""
        fee = self.platform_fee if fee_per_trip is None else to_decimal(fee_per_trip)
        if fee <= 0:
            raise ValidationError("Fee per trip must be positive", {"fee_per_trip": str(fee)})
        return int(self.get_balance(worker_id) // fee)

    def balance_status(self, worker_id: str) -> BalanceStatus:
        balance = self.get_balance(worker_id)
        fee = self.platform_fee
        capacity = int(balance // fee)
        return BalanceStatus(
            worker_id=worker_id,
            balance=balance,
            fee_per_trip=fee,
            capacity=capacity,
            low_balance=capacity < self._settings.low_balance_threshold,
            blocked=capacity == 0,
        )

    def list_transactions(self, worker_id: str, limit: int = 10) -> list[WalletTransaction]:
        if limit < 1:
            raise ValidationError("Limit must be at least 1", {"limit": limit})
        return run_in_transaction(
            self._session_factory,
            lambda session: WalletRepository(session).list_transactions(worker_id, limit),
            "list_transactions",
            self._retry_config,
        )

    def list_trip_transactions(self, trip_id: str) -> list[WalletTransaction]:
        return run_in_transaction(
            self._session_factory,
            lambda session: WalletRepository(session).list_by_trip(trip_id),
            "list_trip_transactions",
            self._retry_config,
        )

    def reconcile(self, worker_id: str) -> bool:
        """Whether the journal sums to the stored balance."""

        def work(session: Session) -> bool:
            repo = WalletRepository(session)
            return repo.sum_transactions_cents(worker_id) == (repo.get_balance_cents(worker_id) or 0)

        balanced = run_in_transaction(self._session_factory, work, "reconcile", self._retry_config)
        if not balanced:
            logger.error(f"Wallet journal for {worker_id} does not match its balance")
        return balanced

    def request_withdrawal(
        self, worker_id: str, amount: Amount, destination_account: str
    ) -> Decimal:
        """Hold a withdrawal by deducting it now; an admin pays it out later."""
        value = to_decimal(amount)
        if value <= 0:
            raise ValidationError("Withdrawal amount must be positive", {"amount": str(value)})
        if not destination_account.strip():
            raise ValidationError("Destination account is required")
        return self.apply_transaction(
            worker_id,
            -value,
            TransactionType.DEDUCT,
            reference=WITHDRAWAL_REFERENCE.format(account=destination_account.strip()),
            actor_id=worker_id,
        )

    def notify(self, transaction: WalletTransaction) -> None:
        """Publish the owner's balance after a committed transaction."""
        if self._publisher is None:
            return
        status = self.balance_status(transaction.owner_id)
        self._publisher.publish_model(
            CHANNEL_WALLET_UPDATES,
            WalletUpdateMessage.from_transaction(status, transaction),
        )
