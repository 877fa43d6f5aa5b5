"""Tests for transaction utilities."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from kangga.core.exceptions import NotFoundError, PersistenceError
from kangga.core.retry import RetryConfig
from kangga.db.database import init_database
from kangga.db.schema import PlatformMetadata
from kangga.db.transaction import run_in_transaction, transaction


@pytest.fixture
def session_maker():
    return init_database("sqlite:///:memory:")


@pytest.mark.unit
class TestTransaction:
    """Tests for the transaction context manager."""

    def test_transaction_commits_on_success(self, session_maker):
        with session_maker() as session, transaction(session):
            session.add(PlatformMetadata(key="test_key", value="test_value"))

        with session_maker() as session:
            result = session.get(PlatformMetadata, "test_key")
            assert result is not None
            assert result.value == "test_value"

    def test_transaction_rolls_back_on_exception(self, session_maker):
        with (  # noqa: SIM117
            session_maker() as session,
            pytest.raises(ValueError, match="intentional error"),
        ):
            with transaction(session):
                session.add(PlatformMetadata(key="rollback_key", value="value"))
                raise ValueError("intentional error")

        with session_maker() as session:
            assert session.get(PlatformMetadata, "rollback_key") is None


@pytest.mark.unit
class TestRunInTransaction:
    def test_returns_work_result_and_commits(self, session_maker):
        def work(session):
            session.add(PlatformMetadata(key="k", value="v"))
            return "done"

        assert run_in_transaction(session_maker, work) == "done"
        with session_maker() as session:
            assert session.get(PlatformMetadata, "k") is not None

    def test_domain_error_rolls_back_and_propagates(self, session_maker):
        def work(session):
            session.add(PlatformMetadata(key="k", value="v"))
            session.flush()
            raise NotFoundError("missing")

        with pytest.raises(NotFoundError):
            run_in_transaction(session_maker, work)

        with session_maker() as session:
            assert session.get(PlatformMetadata, "k") is None

    @patch("kangga.core.retry.time.sleep")
    def test_operational_error_is_retried_as_persistence_error(self, mock_sleep, session_maker):
        calls = []

        def work(session):
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("UPDATE trips", {}, Exception("database is locked"))
            return "ok"

        assert run_in_transaction(session_maker, work, "flaky") == "ok"
        assert len(calls) == 2

    @patch("kangga.core.retry.time.sleep")
    def test_duplicate_key_surfaces_as_persistence_error(self, mock_sleep, session_maker):
        def work(session):
            session.add(PlatformMetadata(key="schema_version", value="dup"))
            session.flush()

        with pytest.raises(PersistenceError, match="insert_metadata failed"):
            run_in_transaction(
                session_maker, work, "insert_metadata", RetryConfig(max_attempts=2)
            )
