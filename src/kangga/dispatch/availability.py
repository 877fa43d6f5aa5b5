"""Worker online/offline toggle, gated like accept."""

import logging

from sqlalchemy.orm import Session, sessionmaker

from kangga.core.retry import RetryConfig
from kangga.db.repositories.worker_repository import WorkerRepository
from kangga.db.transaction import run_in_transaction
from kangga.trip import WorkerRole

from .eligibility import WorkerEligibility

logger = logging.getLogger(__name__)


class WorkerAvailability:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        eligibility: WorkerEligibility,
        retry_config: RetryConfig | None = None,
    ):
        self._session_factory = session_factory
        self._eligibility = eligibility
        self._retry_config = retry_config

    def go_online(self, worker_id: str, role: WorkerRole | str) -> bool:
        """Mark the worker available; refused with NotEligible or InsufficientFunds."""
        role = WorkerRole(role)
        self._eligibility.ensure_can_dispatch(worker_id, role.trip_kind)
        run_in_transaction(
            self._session_factory,
            lambda session: WorkerRepository(session).set_availability(worker_id, role.value, True),
            "go_online",
            self._retry_config,
        )
        logger.info(f"{role.value.capitalize()} {worker_id} is online")
        return True

    def go_offline(self, worker_id: str) -> bool:
        def work(session: Session) -> None:
            repo = WorkerRepository(session)
            role = repo.get_role(worker_id)
            if role is not None:
                repo.set_availability(worker_id, role, False)

        run_in_transaction(self._session_factory, work, "go_offline", self._retry_config)
        logger.info(f"Worker {worker_id} is offline")
        return False

    def is_available(self, worker_id: str) -> bool:
        return run_in_transaction(
            self._session_factory,
            lambda session: WorkerRepository(session).is_available(worker_id),
            "is_available",
            self._retry_config,
        )

    def list_online(self, role: WorkerRole | str) -> list[str]:
        role = WorkerRole(role)
        return run_in_transaction(
            self._session_factory,
            lambda session: WorkerRepository(session).list_available(role.value),
            "list_online",
            self._retry_config,
        )
