"""Trip lifecycle routes: create, feed, accept, advance, cancel."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from kangga.api.auth import verify_api_key
from kangga.api.dependencies import DispatchDep
from kangga.api.models.trips import (
    AcceptTripRequest,
    AdvanceStatusRequest,
    CancelTripRequest,
    CreateTripRequest,
    TripListResponse,
    TripResponse,
)
from kangga.api.rate_limit import ACCEPT_LIMIT, WRITE_LIMIT, limiter
from kangga.trip import TripKind

router = APIRouter(dependencies=[Depends(verify_api_key)])


def _trip_list(trips: list) -> TripListResponse:
    return TripListResponse(trips=[TripResponse.from_trip(t) for t in trips], count=len(trips))


@router.post("", response_model=TripResponse, status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_trip(request: Request, body: CreateTripRequest, dispatch: DispatchDep) -> TripResponse:
    """Open a ride or delivery request."""
    trip = dispatch.create_trip(
        requester_id=body.requester_id,
        kind=body.kind,
        pickup_location=body.pickup_location,
        dropoff_location=body.dropoff_location,
        base_fare=body.base_fare,
    )
    return TripResponse.from_trip(trip)


@router.get("/available", response_model=TripListResponse)
def list_available_trips(
    dispatch: DispatchDep,
    kind: TripKind = Query(...),
    worker_id: str | None = Query(None, description="Checks the worker's eligibility first"),
) -> TripListResponse:
    """Unassigned requested trips, oldest first."""
    return _trip_list(dispatch.list_available(kind, worker_id=worker_id))


@router.get("", response_model=TripListResponse)
def list_trips(
    dispatch: DispatchDep,
    worker_id: str | None = Query(None),
    requester_id: str | None = Query(None),
) -> TripListResponse:
    """Trip history for one worker or one requester."""
    if (worker_id is None) == (requester_id is None):
        raise HTTPException(status_code=400, detail="Pass exactly one of worker_id or requester_id")
    if worker_id is not None:
        return _trip_list(dispatch.list_worker_trips(worker_id))
    return _trip_list(dispatch.list_requester_trips(requester_id))


@router.get("/{trip_id}", response_model=TripResponse)
def get_trip(trip_id: str, dispatch: DispatchDep) -> TripResponse:
    return TripResponse.from_trip(dispatch.get_trip(trip_id))


@router.post("/{trip_id}/accept", response_model=TripResponse)
@limiter.limit(ACCEPT_LIMIT)
def accept_trip(
    request: Request, trip_id: str, body: AcceptTripRequest, dispatch: DispatchDep
) -> TripResponse:
    """Claim the trip for a worker. 409 when another worker got it first."""
    return TripResponse.from_trip(dispatch.accept(trip_id, body.worker_id))


@router.post("/{trip_id}/status", response_model=TripResponse)
@limiter.limit(WRITE_LIMIT)
def advance_trip_status(
    request: Request, trip_id: str, body: AdvanceStatusRequest, dispatch: DispatchDep
) -> TripResponse:
    return TripResponse.from_trip(dispatch.advance_status(trip_id, body.status, body.actor_id))


@router.post("/{trip_id}/cancel", response_model=TripResponse)
@limiter.limit(WRITE_LIMIT)
def cancel_trip(
    request: Request, trip_id: str, body: CancelTripRequest, dispatch: DispatchDep
) -> TripResponse:
    return TripResponse.from_trip(dispatch.cancel(trip_id, body.reason, body.actor_id))
