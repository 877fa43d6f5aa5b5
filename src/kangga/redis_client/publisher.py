import json
import logging
from typing import Any

import redis
from opentelemetry import trace
from pydantic import BaseModel
from redis.exceptions import ConnectionError, TimeoutError

from kangga.core.correlation import get_current_correlation_id
from kangga.pubsub.channels import ALL_CHANNELS

logger = logging.getLogger(__name__)


_tracer = trace.get_tracer(__name__)


class RedisPublisher:
    """Synchronous Redis publisher for live trip, negotiation and wallet updates.

    Uses the sync Redis client so services can publish from FastAPI's worker
    threads right after their transaction commits. A failed publish is logged
    and never undoes the committed state change.
    """

    def __init__(self, config: dict[str, Any]):
        self.config = config
        self._client = redis.Redis(
            host=config["host"],
            port=config["port"],
            db=config.get("db", 0),
            password=config.get("password") or None,
            ssl=config.get("ssl", False),
            decode_responses=True,
        )

    def publish_sync(self, channel: str, message: dict[str, Any]) -> None:
        """Synchronous publish method."""
        if channel not in ALL_CHANNELS:
            raise ValueError(
                f"Channel '{channel}' is not a valid channel. Valid channels: {ALL_CHANNELS}"
            )

        with _tracer.start_as_current_span("redis.publish") as span:
            span.set_attribute("db.system", "redis")
            span.set_attribute("db.redis.channel", channel)

            # Bridge correlation_id to trace span
            correlation_id = get_current_correlation_id()
            if correlation_id:
                span.set_attribute("correlation_id", correlation_id)

            try:
                json_message = json.dumps(message)
                self._client.publish(channel, json_message)
            except (ConnectionError, TimeoutError) as e:
                span.record_exception(e)
                logger.error(f"Failed to publish to channel {channel}: {e}")

    def publish_model(self, channel: str, message: BaseModel) -> None:
        self.publish_sync(channel, message.model_dump(mode="json"))

    def close(self) -> None:
        self._client.close()
