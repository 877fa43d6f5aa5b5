"""Transaction utilities for explicit transaction boundaries.

Every state change in the dispatch core is a conditional write executed inside
one short transaction. These helpers own the commit/rollback and retry rules.
"""

from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from kangga.core.exceptions import PersistenceError
from kangga.core.retry import RetryConfig, with_retry_sync

T = TypeVar("T")


@contextmanager
def transaction(session: Session) -> Generator[Session]:
    """Context manager for explicit transaction boundaries.

    Commits on successful completion, rolls back on any exception.
    Use this when you need to ensure multiple operations succeed or fail together.

    Example:
        with transaction(session):
            trip_repo.assign("trip_1", "w1", TripStatus.ACCEPTED)
            wallet_repo.apply_delta("w1", -500)
        # Automatic commit if no exception, rollback otherwise

    Args:
        session: SQLAlchemy session to manage

    Yields:
        The same session for use within the context

    Raises:
        Any exception raised within the context (after rollback)
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def run_in_transaction(
    session_factory: sessionmaker[Session],
    work: Callable[[Session], T],
    operation_name: str = "operation",
    retry_config: RetryConfig | None = None,
) -> T:
    """Run work(session) in a fresh session and transaction, retrying store failures.

    Lock timeouts, dropped connections and racing inserts surface as
    PersistenceError and the whole unit of work is retried from scratch. Domain
    errors raised by work roll the transaction back and propagate unchanged.
    """

    def attempt() -> T:
        with session_factory() as session:
            try:
                with transaction(session):
                    return work(session)
            except (OperationalError, IntegrityError) as e:
                raise PersistenceError(
                    f"{operation_name} failed: {e.orig}",
                    {"operation": operation_name},
                ) from e

    return with_retry_sync(attempt, retry_config, operation_name)
