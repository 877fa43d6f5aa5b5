"""Worker dispatch guard shared by accept, the live feed and availability."""

import logging

from kangga.core.exceptions import InsufficientFunds, NotEligible
from kangga.kyc.gate import KycGate
from kangga.ledger.service import WalletLedger
from kangga.settings import DispatchSettings
from kangga.trip import TripKind

logger = logging.getLogger(__name__)


class WorkerEligibility:
    """KYC approval plus a wallet that covers at least one more platform fee."""

    def __init__(
        self,
        kyc_gate: KycGate,
        ledger: WalletLedger,
        settings: DispatchSettings | None = None,
    ):
        self._kyc_gate = kyc_gate
        self._ledger = ledger
        self._settings = settings or DispatchSettings()

    def required_documents(self, kind: TripKind) -> list[str]:
        if kind is TripKind.RIDE:
            return list(self._settings.ride_required_documents)
        return list(self._settings.delivery_required_documents)

    def ensure_can_dispatch(self, worker_id: str, kind: TripKind) -> None:
        """Raise NotEligible or InsufficientFunds when the worker may not take trips.

        Checks, in order: approved KYC documents for the kind, a wallet role
        matching the kind (drivers take rides, couriers take deliveries), and
        a balance covering one platform fee. A worker without a wallet fails
        on the balance.
        """
        required = self.required_documents(kind)
        missing = self._kyc_gate.missing_documents(worker_id, required)
        if missing:
            logger.info(f"Worker {worker_id} refused: unapproved documents {missing}")
            raise NotEligible(worker_id, missing)

        account = self._ledger.get_account(worker_id)
        required_role = kind.worker_role.value
        if account is not None and account.role != required_role:
            logger.info(f"Worker {worker_id} refused: role {account.role} cannot take {kind.value}")
            raise NotEligible.wrong_role(worker_id, account.role, required_role)

        fee = self._ledger.platform_fee
        if self._ledger.transaction_capacity(worker_id, fee) < 1:
            balance = self._ledger.get_balance(worker_id)
            logger.info(f"Worker {worker_id} refused: balance {balance} below fee {fee}")
            raise InsufficientFunds(worker_id, fee, balance)
