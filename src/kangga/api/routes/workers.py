"""Worker availability routes."""

from fastapi import APIRouter, Depends, Request

from kangga.api.auth import verify_api_key
from kangga.api.dependencies import AvailabilityDep
from kangga.api.models.workers import AvailabilityResponse, GoOnlineRequest
from kangga.api.rate_limit import WRITE_LIMIT, limiter

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.put("/{worker_id}/online", response_model=AvailabilityResponse)
@limiter.limit(WRITE_LIMIT)
def go_online(
    request: Request, worker_id: str, body: GoOnlineRequest, availability: AvailabilityDep
) -> AvailabilityResponse:
    """Refused with 403 for unverified workers and 402 for empty wallets."""
    return AvailabilityResponse(
        worker_id=worker_id, is_available=availability.go_online(worker_id, body.role)
    )


@router.put("/{worker_id}/offline", response_model=AvailabilityResponse)
@limiter.limit(WRITE_LIMIT)
def go_offline(
    request: Request, worker_id: str, availability: AvailabilityDep
) -> AvailabilityResponse:
    return AvailabilityResponse(worker_id=worker_id, is_available=availability.go_offline(worker_id))


@router.get("/{worker_id}/availability", response_model=AvailabilityResponse)
def get_availability(worker_id: str, availability: AvailabilityDep) -> AvailabilityResponse:
    return AvailabilityResponse(
        worker_id=worker_id, is_available=availability.is_available(worker_id)
    )
