import json
from decimal import Decimal

import pytest

from kangga.ledger.models import BalanceStatus, TransactionType, WalletTransaction
from kangga.pubsub.channels import (
    ALL_CHANNELS,
    CHANNEL_NEGOTIATION_UPDATES,
    CHANNEL_TRIP_REQUESTS,
    CHANNEL_TRIP_UPDATES,
    CHANNEL_WALLET_UPDATES,
    NegotiationUpdateMessage,
    TripRequestMessage,
    TripUpdateMessage,
    WalletUpdateMessage,
)
from kangga.trip import NegotiationStatus, PartyRole, Trip, TripKind, TripStatus


@pytest.fixture
def trip() -> Trip:
    return Trip(
        trip_id="trip-1",
        kind=TripKind.DELIVERY,
        requester_id="customer-1",
        pickup_location="Store",
        dropoff_location="Home",
        base_fare=Decimal("80.00"),
        total_fare=Decimal("80.00"),
    )


@pytest.mark.unit
class TestChannels:
    def test_all_channels(self):
        assert ALL_CHANNELS == [
            CHANNEL_TRIP_REQUESTS,
            CHANNEL_TRIP_UPDATES,
            CHANNEL_NEGOTIATION_UPDATES,
            CHANNEL_WALLET_UPDATES,
        ]
        assert len(set(ALL_CHANNELS)) == 4


@pytest.mark.unit
class TestMessages:
    def test_trip_request(self, trip):
        message = TripRequestMessage.from_trip(trip)
        assert message.kind == "delivery"
        assert message.total_fare == Decimal("80.00")
        assert message.timestamp

    def test_trip_update_event_type(self, trip):
        trip.status = TripStatus.CANCELLED
        trip.cancellation_reason = "cancelled_by_customer_before_accept"

        message = TripUpdateMessage.from_trip(trip)

        assert message.event_type == "trip.cancelled"
        assert message.status == "cancelled"
        assert message.worker_id is None
        assert message.cancellation_reason == "cancelled_by_customer_before_accept"

    def test_negotiation_update(self, trip):
        trip.negotiation_status = NegotiationStatus.PENDING
        trip.negotiation_proposer = PartyRole.WORKER
        trip.negotiation_proposer_id = "courier-1"
        trip.proposed_top_up = Decimal("15.00")
        trip.negotiation_notes = "weather"

        message = NegotiationUpdateMessage.from_trip(trip)

        assert message.negotiation_status == "pending"
        assert message.proposer == "worker"
        assert message.proposer_id == "courier-1"
        assert message.notes == "weather"

    def test_wallet_update_serializes_amounts_as_strings(self):
        status = BalanceStatus(
            worker_id="driver-1",
            balance=Decimal("45.00"),
            fee_per_trip=Decimal("5.00"),
            capacity=9,
            low_balance=False,
            blocked=False,
        )
        txn = WalletTransaction(
            transaction_id="txn-1",
            owner_id="driver-1",
            amount=Decimal("-5.00"),
            type=TransactionType.DEDUCT,
            trip_id="trip-1",
        )

        payload = WalletUpdateMessage.from_transaction(status, txn).model_dump(mode="json")

        assert payload["balance"] == "45.00"
        assert payload["amount"] == "-5.00"
        assert payload["transaction_type"] == TransactionType.DEDUCT.value
        assert payload["trip_id"] == "trip-1"
        json.dumps(payload)
