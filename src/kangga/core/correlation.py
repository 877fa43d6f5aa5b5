"""Request correlation ids shared by logs and trace spans.

The HTTP middleware opens a correlation scope per request; everything the
request does (trip writes, wallet debits, Redis publishes) logs under it.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def get_current_correlation_id() -> str | None:
    return _correlation_id.get()


@contextmanager
def with_correlation(correlation_id: str) -> Iterator[None]:
    """Scope a correlation id to a block; nested scopes restore the outer id."""
    token = _correlation_id.set(correlation_id)
    try:
        yield
    finally:
        _correlation_id.reset(token)


class CorrelationFilter(logging.Filter):
    """Stamps records with the active request id, or "-" outside a request.

    A record that already has one (log_trip_context may set it) keeps it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = _correlation_id.get() or "-"
        return True
