"""Tests for database initialization."""

import pytest
from sqlalchemy import inspect

from kangga.db.database import SCHEMA_VERSION, init_database
from kangga.db.schema import PlatformMetadata


@pytest.mark.unit
class TestInitDatabase:
    def test_creates_all_tables(self, temp_sqlite_db):
        session_maker = init_database(f"sqlite:///{temp_sqlite_db}")

        with session_maker() as session:
            tables = set(inspect(session.get_bind()).get_table_names())
        assert {
            "trips",
            "wallet_accounts",
            "wallet_transactions",
            "kyc_documents",
            "workers",
            "trip_ratings",
            "platform_metadata",
        } <= tables

    def test_records_schema_version_once(self, temp_sqlite_db):
        url = f"sqlite:///{temp_sqlite_db}"
        init_database(url)
        session_maker = init_database(url)

        with session_maker() as session:
            rows = session.query(PlatformMetadata).filter_by(key="schema_version").all()
        assert len(rows) == 1
        assert rows[0].value == SCHEMA_VERSION

    def test_creates_parent_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "kangga.db"
        init_database(f"sqlite:///{db_path}")
        assert db_path.exists()

    def test_in_memory_database_is_shared_across_sessions(self):
        session_maker = init_database("sqlite:///:memory:")

        with session_maker() as session:
            session.add(PlatformMetadata(key="marker", value="1"))
            session.commit()

        with session_maker() as session:
            assert session.get(PlatformMetadata, "marker") is not None
