"""Trip rating routes."""

from fastapi import APIRouter, Depends, Request

from kangga.api.auth import verify_api_key
from kangga.api.dependencies import RatingsDep
from kangga.api.models.ratings import RateTripRequest, RatingResponse, WorkerRatingsResponse
from kangga.api.rate_limit import WRITE_LIMIT, limiter
from kangga.core.exceptions import NotFoundError

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.post("/trips/{trip_id}/rating", response_model=RatingResponse, status_code=201)
@limiter.limit(WRITE_LIMIT)
def rate_trip(
    request: Request, trip_id: str, body: RateTripRequest, ratings: RatingsDep
) -> RatingResponse:
    """Rate the worker of a finished trip. 409 if unfinished, not yours, or already rated."""
    rating = ratings.rate(trip_id, body.rater_id, body.score, body.review_text)
    return RatingResponse.from_rating(rating)


@router.get("/trips/{trip_id}/rating", response_model=RatingResponse)
def get_trip_rating(trip_id: str, ratings: RatingsDep) -> RatingResponse:
    rating = ratings.get_trip_rating(trip_id)
    if rating is None:
        raise NotFoundError(f"Trip {trip_id} has no rating", {"trip_id": trip_id})
    return RatingResponse.from_rating(rating)


@router.get("/workers/{worker_id}/ratings", response_model=WorkerRatingsResponse)
def list_worker_ratings(worker_id: str, ratings: RatingsDep) -> WorkerRatingsResponse:
    return WorkerRatingsResponse.from_summary(ratings.list_worker_ratings(worker_id))
