"""Database engine initialization and connection management."""

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .schema import Base, PlatformMetadata

SCHEMA_VERSION = "1.1.0"


def init_database(
    database_url: str,
    echo: bool = False,
    busy_timeout_seconds: float = 30.0,
) -> sessionmaker[Session]:
    """Initialize database and return session factory."""
    url = make_url(database_url)
    engine_kwargs: dict[str, Any] = {"echo": echo}

    if url.get_backend_name() == "sqlite":
        engine_kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": busy_timeout_seconds,
        }
        if url.database and url.database != ":memory:":
            # Ensure parent directory exists
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        else:
            # One shared connection, otherwise each thread sees its own empty database
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **engine_kwargs)
    Base.metadata.create_all(engine)

    session_maker = sessionmaker(bind=engine)

    with session_maker() as session:
        schema_version = session.get(PlatformMetadata, "schema_version")
        if not schema_version:
            session.add(PlatformMetadata(key="schema_version", value=SCHEMA_VERSION))
            session.commit()

    return session_maker
