"""Log formatters for JSON and human-readable output."""

import json
import logging
from datetime import UTC, datetime

SERVICE_NAME = "kangga-dispatch"

# Parties of a trip, attached by log_trip_context
TRIP_FIELDS = ("trip_id", "worker_id", "requester_id")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, trip fields promoted to top-level keys."""

    def __init__(self, environment: str = "development"):
        super().__init__()
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "env": self.environment,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }
        entry.update(
            {name: getattr(record, name) for name in TRIP_FIELDS if hasattr(record, name)}
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # Decimals (fares, balances) fall back to str
        return json.dumps(entry, default=str)


class DevFormatter(logging.Formatter):
    """Single-line console output with the trip parties appended."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s [%(levelname)8s] [corr=%(correlation_id)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        line = super().format(record)
        parties = " ".join(
            f"{name.removesuffix('_id')}={getattr(record, name)}"
            for name in TRIP_FIELDS
            if getattr(record, name, None)
        )
        return f"{line} ({parties})" if parties else line
