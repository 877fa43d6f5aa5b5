"""Fare negotiation routes."""

from fastapi import APIRouter, Depends, Request

from kangga.api.auth import verify_api_key
from kangga.api.dependencies import NegotiationDep
from kangga.api.models.negotiation import ProposeTopUpRequest, ResolveProposalRequest
from kangga.api.models.trips import TripResponse
from kangga.api.rate_limit import WRITE_LIMIT, limiter

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.post("/{trip_id}/negotiation", response_model=TripResponse)
@limiter.limit(WRITE_LIMIT)
def propose_top_up(
    request: Request, trip_id: str, body: ProposeTopUpRequest, negotiation: NegotiationDep
) -> TripResponse:
    """Open a top-up proposal. 409 while another proposal is pending."""
    trip = negotiation.propose(
        trip_id, body.proposer_role, body.proposer_id, body.top_up, body.reason
    )
    return TripResponse.from_trip(trip)


@router.post("/{trip_id}/negotiation/accept", response_model=TripResponse)
@limiter.limit(WRITE_LIMIT)
def accept_top_up(
    request: Request, trip_id: str, body: ResolveProposalRequest, negotiation: NegotiationDep
) -> TripResponse:
    return TripResponse.from_trip(negotiation.accept(trip_id, body.resolver_id))


@router.post("/{trip_id}/negotiation/reject", response_model=TripResponse)
@limiter.limit(WRITE_LIMIT)
def reject_top_up(
    request: Request, trip_id: str, body: ResolveProposalRequest, negotiation: NegotiationDep
) -> TripResponse:
    return TripResponse.from_trip(negotiation.reject(trip_id, body.resolver_id))
