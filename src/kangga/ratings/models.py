from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

MIN_SCORE = 1
MAX_SCORE = 5


class TripRating(BaseModel):
    trip_id: str
    requester_id: str
    worker_id: str
    score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    review_text: str | None = None
    created_at: datetime | None = None


class WorkerRatings(BaseModel):
    """All ratings a worker received, newest first."""

    worker_id: str
    count: int
    average: Decimal | None
    ratings: list[TripRating]
