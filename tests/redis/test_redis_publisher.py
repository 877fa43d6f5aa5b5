import json
from decimal import Decimal
from unittest.mock import patch

import pytest
from redis.exceptions import ConnectionError

from kangga.pubsub.channels import CHANNEL_TRIP_REQUESTS, CHANNEL_WALLET_UPDATES, TripRequestMessage
from kangga.redis_client.publisher import RedisPublisher

REDIS_CONFIG = {"host": "localhost", "port": 6379, "db": 0}


@pytest.fixture
def redis_mock():
    with patch("kangga.redis_client.publisher.redis.Redis") as redis_cls:
        yield redis_cls.return_value


@pytest.mark.unit
class TestRedisPublisher:
    def test_client_configuration(self):
        with patch("kangga.redis_client.publisher.redis.Redis") as redis_cls:
            RedisPublisher({**REDIS_CONFIG, "password": "", "ssl": True})

        kwargs = redis_cls.call_args.kwargs
        assert kwargs["host"] == "localhost"
        assert kwargs["password"] is None
        assert kwargs["ssl"] is True
        assert kwargs["decode_responses"] is True

    def test_publish_sync_sends_json(self, redis_mock):
        publisher = RedisPublisher(REDIS_CONFIG)

        publisher.publish_sync(CHANNEL_WALLET_UPDATES, {"worker_id": "driver-1"})

        redis_mock.publish.assert_called_once_with(
            CHANNEL_WALLET_UPDATES, json.dumps({"worker_id": "driver-1"})
        )

    def test_invalid_channel_rejected(self, redis_mock):
        publisher = RedisPublisher(REDIS_CONFIG)

        with pytest.raises(ValueError, match="not a valid channel"):
            publisher.publish_sync("gps-pings", {})
        redis_mock.publish.assert_not_called()

    def test_connection_failure_is_logged_not_raised(self, redis_mock, caplog):
        redis_mock.publish.side_effect = ConnectionError("refused")
        publisher = RedisPublisher(REDIS_CONFIG)

        publisher.publish_sync(CHANNEL_WALLET_UPDATES, {"worker_id": "driver-1"})

        assert "Failed to publish to channel wallet-updates" in caplog.text

    def test_publish_model_dumps_decimals_as_strings(self, redis_mock):
        publisher = RedisPublisher(REDIS_CONFIG)
        message = TripRequestMessage(
            trip_id="trip-1",
            kind="ride",
            requester_id="passenger-1",
            pickup_location="A",
            dropoff_location="B",
            total_fare=Decimal("120.50"),
        )

        publisher.publish_model(CHANNEL_TRIP_REQUESTS, message)

        channel, raw = redis_mock.publish.call_args.args
        assert channel == CHANNEL_TRIP_REQUESTS
        payload = json.loads(raw)
        assert payload["total_fare"] == "120.50"
        assert payload["trip_id"] == "trip-1"

    def test_close(self, redis_mock):
        RedisPublisher(REDIS_CONFIG).close()
        redis_mock.close.assert_called_once()
