"""Ratings a requester leaves for the worker of a finished trip."""

import logging
from decimal import Decimal

from sqlalchemy.orm import Session, sessionmaker

from kangga.core.exceptions import InvalidRatingState, NotFoundError, ValidationError
from kangga.core.retry import RetryConfig
from kangga.db.repositories.rating_repository import RatingRepository
from kangga.db.repositories.trip_repository import TripRepository
from kangga.db.transaction import run_in_transaction
from kangga.kx_logging import log_trip_context
from kangga.trip import completion_status

from .models import MAX_SCORE, MIN_SCORE, TripRating, WorkerRatings

logger = logging.getLogger(__name__)

MAX_REVIEW_LENGTH = 1000


class RatingService:
    """One rating per completed ride or delivered parcel, by its requester."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        retry_config: RetryConfig | None = None,
    ):
        self._session_factory = session_factory
        self._retry_config = retry_config

    def rate(
        self,
        trip_id: str,
        rater_id: str,
        score: int,
        review_text: str | None = None,
    ) -> TripRating:
        """Record the requester's rating of the worker who finished the trip.

        Raises InvalidRatingState when the trip has not reached its completion
        status, the rater is not the requester, or the trip is already rated.
        Two racing submissions both pass the read; the unique constraint fails
        the slower insert, and its retry reports the duplicate.
        """
        if not MIN_SCORE <= score <= MAX_SCORE:
            raise ValidationError(
                f"Score must be between {MIN_SCORE} and {MAX_SCORE}", {"score": score}
            )
        review = review_text.strip() if review_text else None
        if review and len(review) > MAX_REVIEW_LENGTH:
            raise ValidationError(
                f"Review is longer than {MAX_REVIEW_LENGTH} characters", {"trip_id": trip_id}
            )

        def work(session: Session) -> TripRating:
            trip = TripRepository(session).get(trip_id)
            if trip is None:
                raise NotFoundError(f"Trip {trip_id} not found", {"trip_id": trip_id})
            if trip.status is not completion_status(trip.kind) or trip.worker_id is None:
                raise InvalidRatingState(
                    f"Trip {trip_id} is {trip.status.value}, only finished trips can be rated",
                    {"trip_id": trip_id, "status": trip.status.value},
                )
            if rater_id != trip.requester_id:
                raise InvalidRatingState(
                    f"{rater_id} cannot rate trip {trip_id}",
                    {"trip_id": trip_id, "rater_id": rater_id},
                )
            repo = RatingRepository(session)
            if repo.get_for_trip(trip_id) is not None:
                raise InvalidRatingState(
                    f"Trip {trip_id} has already been rated", {"trip_id": trip_id}
                )
            return repo.create(trip_id, trip.requester_id, trip.worker_id, score, review)

        with log_trip_context(trip_id, requester_id=rater_id):
            rating = run_in_transaction(
                self._session_factory, work, "rate_trip", self._retry_config
            )
            logger.info(f"Worker {rating.worker_id} rated {score}/{MAX_SCORE}")
        return rating

    def get_trip_rating(self, trip_id: str) -> TripRating | None:
        return run_in_transaction(
            self._session_factory,
            lambda session: RatingRepository(session).get_for_trip(trip_id),
            "get_trip_rating",
            self._retry_config,
        )

    def list_worker_ratings(self, worker_id: str) -> WorkerRatings:
        """Ratings a worker received, newest first, with their average."""
        ratings = run_in_transaction(
            self._session_factory,
            lambda session: RatingRepository(session).list_by_worker(worker_id),
            "list_worker_ratings",
            self._retry_config,
        )
        average = None
        if ratings:
            total = Decimal(sum(r.score for r in ratings))
            average = (total / len(ratings)).quantize(Decimal("0.01"))
        return WorkerRatings(
            worker_id=worker_id, count=len(ratings), average=average, ratings=ratings
        )

    def list_requester_ratings(self, requester_id: str) -> list[TripRating]:
        return run_in_transaction(
            self._session_factory,
            lambda session: RatingRepository(session).list_by_requester(requester_id),
            "list_requester_ratings",
            self._retry_config,
        )
