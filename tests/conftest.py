import os

# Credential fields have no defaults (services must fail without secrets).
# Provide test values so Settings() can be constructed in tests.
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("REDIS_ENABLED", "false")

from collections.abc import Callable
from decimal import Decimal
from unittest.mock import Mock

import pytest

from kangga.core.retry import RetryConfig
from kangga.db.database import init_database
from kangga.db.schema import KycDocument
from kangga.dispatch import DispatchService, WorkerAvailability, WorkerEligibility
from kangga.kyc import DocumentKycGate
from kangga.ledger.models import TransactionType
from kangga.ledger.service import WalletLedger
from kangga.negotiation import NegotiationService
from kangga.ratings.service import RatingService
from kangga.settings import DEFAULT_REQUIRED_DOCUMENTS, NegotiationSettings
from kangga.trip import WorkerRole


@pytest.fixture
def temp_sqlite_db(tmp_path):
    """Temporary SQLite database file for persistence tests."""
    return tmp_path / "test_kangga.db"


@pytest.fixture
def session_factory(temp_sqlite_db):
    return init_database(f"sqlite:///{temp_sqlite_db}", busy_timeout_seconds=10.0)


@pytest.fixture
def retry_config() -> RetryConfig:
    return RetryConfig(max_attempts=5, base_delay=0.01)


@pytest.fixture
def mock_publisher():
    """Mock Redis publisher for live update tests."""
    return Mock()


@pytest.fixture
def ledger(session_factory, mock_publisher, retry_config) -> WalletLedger:
    return WalletLedger(session_factory, publisher=mock_publisher, retry_config=retry_config)


@pytest.fixture
def kyc_gate(session_factory, retry_config) -> DocumentKycGate:
    return DocumentKycGate(session_factory, retry_config)


@pytest.fixture
def eligibility(kyc_gate, ledger) -> WorkerEligibility:
    return WorkerEligibility(kyc_gate, ledger)


@pytest.fixture
def dispatch(session_factory, ledger, eligibility, mock_publisher, retry_config) -> DispatchService:
    return DispatchService(
        session_factory,
        ledger,
        eligibility,
        publisher=mock_publisher,
        retry_config=retry_config,
    )


@pytest.fixture
def negotiation_settings() -> NegotiationSettings:
    return NegotiationSettings()


@pytest.fixture
def negotiation(
    session_factory, negotiation_settings, mock_publisher, retry_config
) -> NegotiationService:
    return NegotiationService(
        session_factory,
        negotiation_settings,
        publisher=mock_publisher,
        retry_config=retry_config,
    )


@pytest.fixture
def availability(session_factory, eligibility, retry_config) -> WorkerAvailability:
    return WorkerAvailability(session_factory, eligibility, retry_config)


@pytest.fixture
def ratings(session_factory, retry_config) -> RatingService:
    return RatingService(session_factory, retry_config)


@pytest.fixture
def submit_kyc(session_factory) -> Callable[..., None]:
    """Record KYC documents the way the verification service would."""

    def _submit(
        worker_id: str,
        doc_types: list[str] | None = None,
        status: str = "APPROVED",
    ) -> None:
        with session_factory() as session:
            for doc_type in doc_types or DEFAULT_REQUIRED_DOCUMENTS:
                session.add(KycDocument(owner_id=worker_id, doc_type=doc_type, status=status))
            session.commit()

    return _submit


@pytest.fixture
def funded_worker(ledger, submit_kyc) -> Callable[..., str]:
    """Verified worker with a wallet holding the given balance."""

    def _create(
        worker_id: str = "driver-1",
        role: WorkerRole = WorkerRole.DRIVER,
        balance: str = "50.00",
    ) -> str:
        submit_kyc(worker_id)
        ledger.open_account(worker_id, role)
        if Decimal(balance) > 0:
            ledger.apply_transaction(worker_id, balance, TransactionType.LOAD, reference="Top-up")
        return worker_id

    return _create
