"""Request/response models for trip ratings."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from kangga.ratings.models import MAX_SCORE, MIN_SCORE, TripRating, WorkerRatings
from kangga.ratings.service import MAX_REVIEW_LENGTH


class RateTripRequest(BaseModel):
    rater_id: str = Field(..., min_length=1, description="The passenger or sender of the trip")
    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)
    review_text: str | None = Field(None, max_length=MAX_REVIEW_LENGTH)


class RatingResponse(BaseModel):
    trip_id: str
    requester_id: str
    worker_id: str
    score: int
    review_text: str | None
    created_at: datetime | None

    @classmethod
    def from_rating(cls, rating: TripRating) -> "RatingResponse":
        return cls(**rating.model_dump())


class WorkerRatingsResponse(BaseModel):
    worker_id: str
    count: int
    average: Decimal | None
    ratings: list[RatingResponse]

    @classmethod
    def from_summary(cls, summary: WorkerRatings) -> "WorkerRatingsResponse":
        return cls(
            worker_id=summary.worker_id,
            count=summary.count,
            average=summary.average,
            ratings=[RatingResponse.from_rating(r) for r in summary.ratings],
        )
