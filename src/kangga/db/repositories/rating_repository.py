"""Trip ratings. One row per trip, enforced by a unique constraint."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from kangga.ratings.models import TripRating as TripRatingDomain

from ..schema import TripRating


class RatingRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        trip_id: str,
        requester_id: str,
        worker_id: str,
        score: int,
        review_text: str | None,
    ) -> TripRatingDomain:
        """Insert a rating; a second one for the same trip fails at flush."""
        rating = TripRating(
            trip_id=trip_id,
            requester_id=requester_id,
            worker_id=worker_id,
            score=score,
            review_text=review_text,
        )
        self.session.add(rating)
        self.session.flush()
        return self._to_domain(rating)

    def get_for_trip(self, trip_id: str) -> TripRatingDomain | None:
        stmt = select(TripRating).where(TripRating.trip_id == trip_id)
        rating = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(rating) if rating is not None else None

    def list_by_worker(self, worker_id: str) -> list[TripRatingDomain]:
        stmt = (
            select(TripRating)
            .where(TripRating.worker_id == worker_id)
            .order_by(TripRating.created_at.desc(), TripRating.id.desc())
        )
        return [self._to_domain(r) for r in self.session.execute(stmt).scalars().all()]

    def list_by_requester(self, requester_id: str) -> list[TripRatingDomain]:
        stmt = (
            select(TripRating)
            .where(TripRating.requester_id == requester_id)
            .order_by(TripRating.created_at.desc(), TripRating.id.desc())
        )
        return [self._to_domain(r) for r in self.session.execute(stmt).scalars().all()]

    def _to_domain(self, rating: TripRating) -> TripRatingDomain:
        return TripRatingDomain(
            trip_id=rating.trip_id,
            requester_id=rating.requester_id,
            worker_id=rating.worker_id,
            score=rating.score,
            review_text=rating.review_text,
            created_at=rating.created_at,
        )
