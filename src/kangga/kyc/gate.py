"""KYC eligibility, consulted and never mutated by the dispatch core."""

import logging
from collections.abc import Iterable
from enum import Enum
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from kangga.core.retry import RetryConfig
from kangga.db.repositories.kyc_repository import KycRepository
from kangga.db.transaction import run_in_transaction

logger = logging.getLogger(__name__)


class KycDocumentType(str, Enum):
    GOVT_ID = "GOVT_ID"
    PRIVATE_ID = "PRIVATE_ID"
    DRIVER_LICENSE = "DRIVER_LICENSE"
    OR = "OR"
    CR = "CR"
    SELFIE = "SELFIE"


class KycStatus(str, Enum):
    PENDING = "PENDING"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class KycGate(Protocol):
    def is_eligible(self, worker_id: str, required_doc_types: Iterable[str]) -> bool: ...

    def missing_documents(self, worker_id: str, required_doc_types: Iterable[str]) -> list[str]: ...


class DocumentKycGate:
    """Eligibility from the kyc_documents table.

    A worker is eligible when the latest document of every required type is
    APPROVED. A later PENDING or REJECTED upload revokes eligibility.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        retry_config: RetryConfig | None = None,
    ):
        self._session_factory = session_factory
        self._retry_config = retry_config

    def missing_documents(self, worker_id: str, required_doc_types: Iterable[str]) -> list[str]:
        required = [KycDocumentType(doc).value for doc in required_doc_types]
        latest = run_in_transaction(
            self._session_factory,
            lambda session: KycRepository(session).latest_statuses(worker_id),
            "kyc_latest_statuses",
            self._retry_config,
        )
        return [doc for doc in required if latest.get(doc) != KycStatus.APPROVED.value]

    def is_eligible(self, worker_id: str, required_doc_types: Iterable[str]) -> bool:
        missing = self.missing_documents(worker_id, required_doc_types)
        if missing:
            logger.debug(f"Worker {worker_id} missing approved documents: {missing}")
        return not missing
