"""Trip state machine and models.

Rides and deliveries share one lifecycle shape with kind-specific statuses:

    ride:      requested -> accepted -> arrived -> in_progress -> completed
    delivery:  requested -> assigned -> picked_up -> in_transit -> delivered

Every non-terminal status may also move to cancelled.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from kangga.core.exceptions import InvalidTransition


class TripKind(str, Enum):
    RIDE = "ride"
    DELIVERY = "delivery"

    @property
    def worker_role(self) -> "WorkerRole":
        return WorkerRole.DRIVER if self is TripKind.RIDE else WorkerRole.COURIER


class WorkerRole(str, Enum):
    DRIVER = "driver"
    COURIER = "courier"

    @property
    def trip_kind(self) -> TripKind:
        return TripKind.RIDE if self is WorkerRole.DRIVER else TripKind.DELIVERY


class TripStatus(str, Enum):
    """Trip lifecycle statuses across both kinds."""

    REQUESTED = "requested"
    # Ride
    ACCEPTED = "accepted"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    # Delivery
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"

    CANCELLED = "cancelled"

    def to_event_type(self) -> str:
        """Convert status to live-update event type (e.g., 'trip.accepted')."""
        return f"trip.{self.value}"


RIDE_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.REQUESTED: {TripStatus.ACCEPTED, TripStatus.CANCELLED},
    TripStatus.ACCEPTED: {TripStatus.ARRIVED, TripStatus.CANCELLED},
    TripStatus.ARRIVED: {TripStatus.IN_PROGRESS, TripStatus.CANCELLED},
    TripStatus.IN_PROGRESS: {TripStatus.COMPLETED, TripStatus.CANCELLED},
    TripStatus.COMPLETED: set(),
    TripStatus.CANCELLED: set(),
}

DELIVERY_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.REQUESTED: {TripStatus.ASSIGNED, TripStatus.CANCELLED},
    TripStatus.ASSIGNED: {TripStatus.PICKED_UP, TripStatus.CANCELLED},
    TripStatus.PICKED_UP: {TripStatus.IN_TRANSIT, TripStatus.CANCELLED},
    TripStatus.IN_TRANSIT: {TripStatus.DELIVERED, TripStatus.CANCELLED},
    TripStatus.DELIVERED: set(),
    TripStatus.CANCELLED: set(),
}

VALID_TRANSITIONS: dict[TripKind, dict[TripStatus, set[TripStatus]]] = {
    TripKind.RIDE: RIDE_TRANSITIONS,
    TripKind.DELIVERY: DELIVERY_TRANSITIONS,
}

TERMINAL_STATUSES = frozenset(
    {TripStatus.COMPLETED, TripStatus.DELIVERED, TripStatus.CANCELLED}
)

ASSIGNMENT_STATUS = {
    TripKind.RIDE: TripStatus.ACCEPTED,
    TripKind.DELIVERY: TripStatus.ASSIGNED,
}

COMPLETION_STATUS = {
    TripKind.RIDE: TripStatus.COMPLETED,
    TripKind.DELIVERY: TripStatus.DELIVERED,
}

# Entering these statuses stamps started_at
START_STATUSES = frozenset({TripStatus.IN_PROGRESS, TripStatus.PICKED_UP})


def can_transition(kind: TripKind, from_status: TripStatus, to_status: TripStatus) -> bool:
    """Pure lookup against the transition table for the trip kind."""
    return to_status in VALID_TRANSITIONS[kind].get(from_status, set())


def is_terminal(status: TripStatus) -> bool:
    return status in TERMINAL_STATUSES


def assignment_status(kind: TripKind) -> TripStatus:
    return ASSIGNMENT_STATUS[kind]


def completion_status(kind: TripKind) -> TripStatus:
    return COMPLETION_STATUS[kind]


class NegotiationStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# A new proposal may only be opened from these
PROPOSABLE_NEGOTIATION_STATUSES = frozenset(
    {NegotiationStatus.NONE, NegotiationStatus.ACCEPTED, NegotiationStatus.REJECTED}
)


class PartyRole(str, Enum):
    REQUESTER = "requester"
    WORKER = "worker"

    @property
    def counterparty(self) -> "PartyRole":
        return PartyRole.WORKER if self is PartyRole.REQUESTER else PartyRole.REQUESTER


class CancellationReason(str, Enum):
    """Known cancellation reasons. Free-text reasons are accepted too."""

    PASSENGER_BEFORE_ACCEPT = "cancelled_by_passenger_before_accept"
    PASSENGER_AFTER_ACCEPT = "cancelled_by_passenger_after_accept"
    SENDER_BEFORE_ACCEPT = "cancelled_by_sender_before_accept"
    SENDER_AFTER_ACCEPT = "cancelled_by_sender_after_accept"
    DRIVER = "cancelled_by_driver"
    COURIER = "cancelled_by_courier"
    SYSTEM = "cancelled_by_system"
    DRIVER_NO_SHOW = "timed_out_driver_no_show"
    COURIER_NO_SHOW = "timed_out_courier_no_show"
    PASSENGER_NO_SHOW = "passenger_no_show"
    SENDER_NO_SHOW = "sender_no_show"


WORKER_NO_SHOW_REASONS = {
    TripKind.RIDE: CancellationReason.DRIVER_NO_SHOW,
    TripKind.DELIVERY: CancellationReason.COURIER_NO_SHOW,
}


def is_worker_no_show(kind: TripKind, reason: str | None) -> bool:
    """Whether a cancellation reason blames the assigned worker for a no-show.

    Only the worker no-show matching the trip kind counts. A requester who
    fails to show up costs the worker nothing.
    """
    if not reason:
        return False
    return reason.strip().lower() == WORKER_NO_SHOW_REASONS[kind].value


class Trip(BaseModel):
    """Ride or delivery request with state machine logic."""

    trip_id: str
    kind: TripKind
    requester_id: str
    worker_id: str | None = None
    status: TripStatus = Field(default=TripStatus.REQUESTED)
    pickup_location: str
    dropoff_location: str
    base_fare: Decimal
    top_up_fare: Decimal = Field(default=Decimal("0.00"))
    total_fare: Decimal
    platform_fee_charged: bool = False
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    negotiation_status: NegotiationStatus = Field(default=NegotiationStatus.NONE)
    negotiation_proposer: PartyRole | None = None
    negotiation_proposer_id: str | None = None
    proposed_top_up: Decimal | None = None
    negotiation_notes: str | None = None
    negotiation_version: int = 0
    created_at: datetime | None = None
    accepted_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    @property
    def is_assigned(self) -> bool:
        return self.worker_id is not None

    def can_transition_to(self, new_status: TripStatus) -> bool:
        return can_transition(self.kind, self.status, new_status)

    def transition_to(self, new_status: TripStatus) -> None:
        """Transition to a new status with validation."""
        if not self.can_transition_to(new_status):
            raise InvalidTransition(self.status.value, new_status.value, self.trip_id)
        self.status = new_status

    def role_of(self, party_id: str) -> PartyRole | None:
        """Which side of the trip a party is on, if any."""
        if party_id == self.requester_id:
            return PartyRole.REQUESTER
        if self.worker_id is not None and party_id == self.worker_id:
            return PartyRole.WORKER
        return None
