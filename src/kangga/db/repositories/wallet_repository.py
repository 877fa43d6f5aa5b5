"""Wallet repository: conditional balance updates and the append-only journal."""

import uuid

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from kangga.ledger.models import TransactionType
from kangga.ledger.models import WalletAccount as WalletAccountDomain
from kangga.ledger.models import WalletTransaction as WalletTransactionDomain
from kangga.money import from_minor_units

from ..schema import WalletAccount, WalletTransaction
from ..utils import utc_now


class WalletRepository:
    """Repository for wallet accounts and transactions.

    Balances change only through apply_delta, which is a single conditional
    UPDATE so concurrent debits serialize in the store.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_account(self, owner_id: str) -> WalletAccountDomain | None:
        account = self.session.get(WalletAccount, owner_id, populate_existing=True)
        if account is None:
            return None
        return WalletAccountDomain(
            owner_id=account.owner_id,
            role=account.role,
            balance=from_minor_units(account.balance_cents),
            created_at=account.created_at,
            updated_at=account.updated_at,
        )

    def get_balance_cents(self, owner_id: str) -> int | None:
        stmt = select(WalletAccount.balance_cents).where(WalletAccount.owner_id == owner_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def create_account(self, owner_id: str, role: str | None = None, balance_cents: int = 0) -> None:
        self.session.add(WalletAccount(owner_id=owner_id, role=role, balance_cents=balance_cents))
        self.session.flush()

    def set_role(self, owner_id: str, role: str) -> None:
        self.session.execute(
            update(WalletAccount)
            .where(WalletAccount.owner_id == owner_id, WalletAccount.role.is_(None))
            .values(role=role, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    def apply_delta(self, owner_id: str, delta_cents: int) -> bool:
        """Add delta to the balance unless the result would be negative.

        Returns False when the account is missing or cannot cover the debit.
        """
        stmt = (
            update(WalletAccount)
            .where(
                WalletAccount.owner_id == owner_id,
                WalletAccount.balance_cents + delta_cents >= 0,
            )
            .values(
                balance_cents=WalletAccount.balance_cents + delta_cents,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined]

    def append_transaction(
        self,
        owner_id: str,
        amount_cents: int,
        transaction_type: TransactionType,
        reference: str | None = None,
        trip_id: str | None = None,
        actor_id: str | None = None,
    ) -> WalletTransactionDomain:
        row = WalletTransaction(
            transaction_id=str(uuid.uuid4()),
            owner_id=owner_id,
            amount_cents=amount_cents,
            type=transaction_type.value,
            reference=reference,
            trip_id=trip_id,
            actor_id=actor_id,
            created_at=utc_now(),
        )
        self.session.add(row)
        self.session.flush()
        return self._to_domain(row)

    def list_transactions(self, owner_id: str, limit: int = 10) -> list[WalletTransactionDomain]:
        """Newest first."""
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.owner_id == owner_id)
            .order_by(WalletTransaction.id.desc())
            .limit(limit)
        )
        result = self.session.execute(stmt)
        return [self._to_domain(t) for t in result.scalars().all()]

    def list_by_trip(self, trip_id: str) -> list[WalletTransactionDomain]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.trip_id == trip_id)
            .order_by(WalletTransaction.id)
        )
        result = self.session.execute(stmt)
        return [self._to_domain(t) for t in result.scalars().all()]

    def sum_transactions_cents(self, owner_id: str) -> int:
        stmt = select(func.coalesce(func.sum(WalletTransaction.amount_cents), 0)).where(
            WalletTransaction.owner_id == owner_id
        )
        return int(self.session.execute(stmt).scalar() or 0)

    def _to_domain(self, row: WalletTransaction) -> WalletTransactionDomain:
        return WalletTransactionDomain(
            transaction_id=row.transaction_id,
            owner_id=row.owner_id,
            amount=from_minor_units(row.amount_cents),
            type=TransactionType(row.type),
            trip_id=row.trip_id,
            reference=row.reference,
            actor_id=row.actor_id,
            created_at=row.created_at,
        )
