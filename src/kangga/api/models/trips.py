"""Request/response models for trip endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from kangga.money import MAX_AMOUNT
from kangga.trip import Trip, TripKind, TripStatus


class CreateTripRequest(BaseModel):
    requester_id: str = Field(..., min_length=1)
    kind: TripKind
    pickup_location: str = Field(..., min_length=1, description="Pickup address or place label")
    dropoff_location: str = Field(..., min_length=1, description="Dropoff address or place label")
    base_fare: Decimal = Field(
        ..., ge=0, le=MAX_AMOUNT, description="Fare before any negotiated top-up"
    )


class AcceptTripRequest(BaseModel):
    worker_id: str = Field(..., min_length=1)


class AdvanceStatusRequest(BaseModel):
    status: TripStatus
    actor_id: str | None = Field(None, description="Worker or admin issuing the move")


class CancelTripRequest(BaseModel):
    reason: str | None = Field(
        None,
        description=(
            "Cancellation reason; timed_out_driver_no_show (rides) and "
            "timed_out_courier_no_show (deliveries) charge the assigned worker a penalty"
        ),
    )
    actor_id: str | None = None


class TripResponse(BaseModel):
    trip_id: str
    kind: TripKind
    requester_id: str
    worker_id: str | None
    status: TripStatus
    pickup_location: str
    dropoff_location: str
    base_fare: Decimal
    top_up_fare: Decimal
    total_fare: Decimal
    platform_fee_charged: bool
    cancellation_reason: str | None
    cancelled_by: str | None
    negotiation_status: str
    negotiation_proposer: str | None
    proposed_top_up: Decimal | None
    negotiation_notes: str | None
    created_at: datetime | None
    accepted_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None

    @classmethod
    def from_trip(cls, trip: Trip) -> "TripResponse":
        return cls(
            trip_id=trip.trip_id,
            kind=trip.kind,
            requester_id=trip.requester_id,
            worker_id=trip.worker_id,
            status=trip.status,
            pickup_location=trip.pickup_location,
            dropoff_location=trip.dropoff_location,
            base_fare=trip.base_fare,
            top_up_fare=trip.top_up_fare,
            total_fare=trip.total_fare,
            platform_fee_charged=trip.platform_fee_charged,
            cancellation_reason=trip.cancellation_reason,
            cancelled_by=trip.cancelled_by,
            negotiation_status=trip.negotiation_status.value,
            negotiation_proposer=(
                trip.negotiation_proposer.value if trip.negotiation_proposer else None
            ),
            proposed_top_up=trip.proposed_top_up,
            negotiation_notes=trip.negotiation_notes,
            created_at=trip.created_at,
            accepted_at=trip.accepted_at,
            completed_at=trip.completed_at,
            cancelled_at=trip.cancelled_at,
        )


class TripListResponse(BaseModel):
    trips: list[TripResponse]
    count: int
