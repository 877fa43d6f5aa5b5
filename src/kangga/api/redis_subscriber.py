"""Redis pub/sub subscriber for WebSocket fan-out."""

import asyncio
import contextlib
import json
import logging

import redis.asyncio as redis

from kangga.pubsub.channels import (
    ALL_CHANNELS,
    CHANNEL_NEGOTIATION_UPDATES,
    CHANNEL_TRIP_REQUESTS,
    CHANNEL_TRIP_UPDATES,
    CHANNEL_WALLET_UPDATES,
)

logger = logging.getLogger(__name__)

# Map Redis channels to WebSocket message types
CHANNEL_TO_MESSAGE_TYPE = {
    CHANNEL_TRIP_REQUESTS: "trip_request",
    CHANNEL_TRIP_UPDATES: "trip_update",
    CHANNEL_NEGOTIATION_UPDATES: "negotiation_update",
    CHANNEL_WALLET_UPDATES: "wallet_update",
}


class RedisSubscriber:
    """Subscribes to Redis pub/sub and broadcasts to WebSocket clients."""

    def __init__(self, redis_client, connection_manager):
        self.redis_client = redis_client
        self.connection_manager = connection_manager
        self.channels = list(ALL_CHANNELS)
        self.task = None
        self.reconnect_delay = 5
        self._subscribed = asyncio.Event()

    async def start(self):
        """Start the subscriber and wait for subscription to be established."""
        self.task = asyncio.create_task(self._subscribe_and_fanout())
        try:
            await asyncio.wait_for(self._subscribed.wait(), timeout=10.0)
            logger.info("Redis subscriber ready - subscribed to all channels")
        except TimeoutError:
            logger.warning("Redis subscription timeout - proceeding anyway")

    async def stop(self):
        if self.task:
            self.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.task

    def _transform_event(self, channel: str, data: dict) -> dict | None:
        """Wrap a channel payload as {"type", "data"} for clients."""
        message_type = CHANNEL_TO_MESSAGE_TYPE.get(channel)
        if not message_type:
            return None

        if channel == CHANNEL_TRIP_UPDATES:
            # "trip.picked_up" -> "picked_up" when status is missing
            status = data.get("status")
            event_type = data.get("event_type", "")
            if not status and event_type.startswith("trip."):
                status = event_type[5:]
            data = {**data, "status": status or "unknown"}
        elif channel == CHANNEL_WALLET_UPDATES:
            data = {
                "worker_id": data.get("worker_id"),
                "balance": data.get("balance"),
                "capacity": data.get("capacity", 0),
                "low_balance": data.get("low_balance", False),
                "blocked": data.get("blocked", False),
                "transaction_type": data.get("transaction_type"),
                "amount": data.get("amount"),
                "reference": data.get("reference"),
                "trip_id": data.get("trip_id"),
                "timestamp": data.get("timestamp"),
            }

        return {"type": message_type, "data": data}

    async def _subscribe_and_fanout(self):
        while True:
            try:
                pubsub = self.redis_client.pubsub()
                await pubsub.subscribe(*self.channels)
                self._subscribed.set()
                logger.info(f"Subscribed to Redis channels: {self.channels}")

                async for message in pubsub.listen():
                    if message["type"] == "message":
                        try:
                            channel = message["channel"]
                            if isinstance(channel, bytes):
                                channel = channel.decode("utf-8")

                            data = json.loads(message["data"])
                            transformed = self._transform_event(channel, data)

                            if transformed:
                                await self.connection_manager.broadcast(transformed)
                        except json.JSONDecodeError:
                            logger.warning(f"Invalid JSON from Redis: {message['data']}")
                        except Exception as e:
                            logger.warning(f"Error broadcasting message: {e}")

            except redis.ConnectionError:
                logger.error(f"Redis disconnected, reconnecting in {self.reconnect_delay}s...")
                await asyncio.sleep(self.reconnect_delay)
            except asyncio.CancelledError:
                break
