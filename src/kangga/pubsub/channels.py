"""Pub/sub channel definitions and message schemas for live updates.

Delivery is at-least-once and may reorder; consumers re-read the trip before
acting on a message.
"""

from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from kangga.ledger.models import BalanceStatus, WalletTransaction
from kangga.trip import Trip

# Channel names
CHANNEL_TRIP_REQUESTS = "trip-requests"
CHANNEL_TRIP_UPDATES = "trip-updates"
CHANNEL_NEGOTIATION_UPDATES = "negotiation-updates"
CHANNEL_WALLET_UPDATES = "wallet-updates"

ALL_CHANNELS = [
    CHANNEL_TRIP_REQUESTS,
    CHANNEL_TRIP_UPDATES,
    CHANNEL_NEGOTIATION_UPDATES,
    CHANNEL_WALLET_UPDATES,
]


def _now() -> str:
    return datetime.now(UTC).isoformat()


class TripRequestMessage(BaseModel):
    """New requested trip for workers of the matching kind."""

    trip_id: str
    kind: str
    requester_id: str
    pickup_location: str
    dropoff_location: str
    total_fare: Decimal
    timestamp: str = Field(default_factory=_now)

    @classmethod
    def from_trip(cls, trip: Trip) -> "TripRequestMessage":
        return cls(
            trip_id=trip.trip_id,
            kind=trip.kind.value,
            requester_id=trip.requester_id,
            pickup_location=trip.pickup_location,
            dropoff_location=trip.dropoff_location,
            total_fare=trip.total_fare,
        )


class TripUpdateMessage(BaseModel):
    """Lifecycle change for the requester and the assigned worker."""

    trip_id: str
    kind: str
    event_type: str
    status: str
    requester_id: str
    worker_id: str | None
    total_fare: Decimal
    platform_fee_charged: bool
    cancellation_reason: str | None = None
    timestamp: str = Field(default_factory=_now)

    @classmethod
    def from_trip(cls, trip: Trip) -> "TripUpdateMessage":
        return cls(
            trip_id=trip.trip_id,
            kind=trip.kind.value,
            event_type=trip.status.to_event_type(),
            status=trip.status.value,
            requester_id=trip.requester_id,
            worker_id=trip.worker_id,
            total_fare=trip.total_fare,
            platform_fee_charged=trip.platform_fee_charged,
            cancellation_reason=trip.cancellation_reason,
        )


class NegotiationUpdateMessage(BaseModel):
    trip_id: str
    requester_id: str
    worker_id: str | None
    negotiation_status: str
    proposer: str | None
    proposer_id: str | None
    proposed_top_up: Decimal | None
    top_up_fare: Decimal
    total_fare: Decimal
    notes: str | None = None
    timestamp: str = Field(default_factory=_now)

    @classmethod
    def from_trip(cls, trip: Trip) -> "NegotiationUpdateMessage":
        return cls(
            trip_id=trip.trip_id,
            requester_id=trip.requester_id,
            worker_id=trip.worker_id,
            negotiation_status=trip.negotiation_status.value,
            proposer=trip.negotiation_proposer.value if trip.negotiation_proposer else None,
            proposer_id=trip.negotiation_proposer_id,
            proposed_top_up=trip.proposed_top_up,
            top_up_fare=trip.top_up_fare,
            total_fare=trip.total_fare,
            notes=trip.negotiation_notes,
        )


class WalletUpdateMessage(BaseModel):
    """Balance change for the wallet owner."""

    worker_id: str
    balance: Decimal
    capacity: int
    low_balance: bool
    blocked: bool
    transaction_type: str
    amount: Decimal
    reference: str | None = None
    trip_id: str | None = None
    timestamp: str = Field(default_factory=_now)

    @classmethod
    def from_transaction(
        cls, status: BalanceStatus, transaction: WalletTransaction
    ) -> "WalletUpdateMessage":
        return cls(
            worker_id=status.worker_id,
            balance=status.balance,
            capacity=status.capacity,
            low_balance=status.low_balance,
            blocked=status.blocked,
            transaction_type=transaction.type.value,
            amount=transaction.amount,
            reference=transaction.reference,
            trip_id=transaction.trip_id,
        )
