"""Trip creation, assignment and lifecycle advancement.

Every write is a compare-and-set on the state the caller read, executed in a
short transaction. No in-process locks: any number of service instances can
share one database.
"""

import logging
import uuid

from sqlalchemy.orm import Session, sessionmaker

from kangga.core.exceptions import (
    AlreadyAssigned,
    InsufficientFunds,
    InvalidTransition,
    KanggaError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from kangga.core.retry import RetryConfig
from kangga.db.repositories.trip_repository import TripRepository
from kangga.db.transaction import run_in_transaction
from kangga.kx_logging import log_trip_context
from kangga.ledger.models import WalletTransaction
from kangga.ledger.service import WalletLedger
from kangga.money import Amount, to_decimal
from kangga.pubsub.channels import (
    CHANNEL_TRIP_REQUESTS,
    CHANNEL_TRIP_UPDATES,
    TripRequestMessage,
    TripUpdateMessage,
)
from kangga.redis_client.publisher import RedisPublisher
from kangga.settings import DispatchSettings
from kangga.trip import (
    CancellationReason,
    Trip,
    TripKind,
    TripStatus,
    assignment_status,
    completion_status,
    is_worker_no_show,
)

from .eligibility import WorkerEligibility

logger = logging.getLogger(__name__)

# Re-reads allowed when a cancellation races another writer on the same trip
CANCEL_CAS_ATTEMPTS = 3


def _parse_kind(kind: TripKind | str) -> TripKind:
    try:
        return TripKind(kind)
    except ValueError as e:
        raise ValidationError(f"Unknown trip kind: {kind}") from e


def _parse_status(status: TripStatus | str) -> TripStatus:
    try:
        return TripStatus(status)
    except ValueError as e:
        raise ValidationError(f"Unknown trip status: {status}") from e


def _normalize_reason(reason: CancellationReason | str | None) -> str | None:
    if isinstance(reason, CancellationReason):
        return reason.value
    if reason is None or not reason.strip():
        return None
    return reason.strip()


def _assignment_failure(current: Trip | None, trip_id: str, target: TripStatus) -> KanggaError:
    """Explain why a trip could not be claimed."""
    if current is None:
        return NotFoundError(f"Trip {trip_id} not found", {"trip_id": trip_id})
    if current.worker_id is not None:
        logger.info(f"Trip {trip_id} is held by {current.worker_id}")
        return AlreadyAssigned(trip_id)
    return InvalidTransition(current.status.value, target.value, trip_id)


class DispatchService:
    """Matches requested trips to exactly one worker and drives their lifecycle."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        ledger: WalletLedger,
        eligibility: WorkerEligibility,
        settings: DispatchSettings | None = None,
        publisher: RedisPublisher | None = None,
        retry_config: RetryConfig | None = None,
    ):
        self._session_factory = session_factory
        self._ledger = ledger
        self._eligibility = eligibility
        self._settings = settings or DispatchSettings()
        self._publisher = publisher
        self._retry_config = retry_config

    def create_trip(
        self,
        requester_id: str,
        kind: TripKind | str,
        pickup_location: str,
        dropoff_location: str,
        base_fare: Amount,
    ) -> Trip:
        """Open a new trip request in REQUESTED state."""
        kind = _parse_kind(kind)
        fare = to_decimal(base_fare)
        if not requester_id:
            raise ValidationError("Requester id is required")
        if fare < 0:
            raise ValidationError("Base fare cannot be negative", {"base_fare": str(fare)})
        if not pickup_location or not dropoff_location:
            raise ValidationError("Pickup and dropoff locations are required")

        trip_id = str(uuid.uuid4())
        trip = run_in_transaction(
            self._session_factory,
            lambda session: TripRepository(session).create(
                trip_id=trip_id,
                kind=kind,
                requester_id=requester_id,
                pickup_location=pickup_location,
                dropoff_location=dropoff_location,
                base_fare=fare,
            ),
            "create_trip",
            self._retry_config,
        )
        with log_trip_context(trip_id, requester_id=requester_id):
            logger.info(f"Trip requested: {kind.value} for {fare}")
        self._publish(CHANNEL_TRIP_REQUESTS, TripRequestMessage.from_trip(trip))
        return trip

    def get_trip(self, trip_id: str) -> Trip:
        trip = run_in_transaction(
            self._session_factory,
            lambda session: TripRepository(session).get(trip_id),
            "get_trip",
            self._retry_config,
        )
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found", {"trip_id": trip_id})
        return trip

    def list_available(self, kind: TripKind | str, worker_id: str | None = None) -> list[Trip]:
        """Unassigned requested trips, oldest first.

        With a worker_id the worker's eligibility is checked first, so an
        unverified or unfunded worker never sees the feed.
        """
        kind = _parse_kind(kind)
        if worker_id is not None:
            self._eligibility.ensure_can_dispatch(worker_id, kind)
        return run_in_transaction(
            self._session_factory,
            lambda session: TripRepository(session).list_available(
                kind, limit=self._settings.available_page_size
            ),
            "list_available",
            self._retry_config,
        )

    def list_worker_trips(self, worker_id: str) -> list[Trip]:
        return run_in_transaction(
            self._session_factory,
            lambda session: TripRepository(session).list_by_worker(worker_id),
            "list_worker_trips",
            self._retry_config,
        )

    def list_requester_trips(self, requester_id: str) -> list[Trip]:
        return run_in_transaction(
            self._session_factory,
            lambda session: TripRepository(session).list_by_requester(requester_id),
            "list_requester_trips",
            self._retry_config,
        )

    def accept(self, trip_id: str, worker_id: str) -> Trip:
        """Claim a requested trip for a worker and charge the platform fee.

        The claim and the fee debit commit together. Losing the race raises
        AlreadyAssigned with nothing written; a debit that fails after the
        claim rolls the claim back so the trip stays requested and unassigned.
        """
        with log_trip_context(trip_id, worker_id=worker_id):
            trip = self.get_trip(trip_id)
            target = assignment_status(trip.kind)
            if trip.worker_id is not None or trip.status is not TripStatus.REQUESTED:
                raise _assignment_failure(trip, trip_id, target)

            self._eligibility.ensure_can_dispatch(worker_id, trip.kind)

            def work(session: Session) -> tuple[Trip, WalletTransaction]:
                repo = TripRepository(session)
                if not repo.assign(trip_id, worker_id, target):
                    raise _assignment_failure(repo.get(trip_id), trip_id, target)
                fee = self._ledger.charge_platform_fee(session, worker_id, trip_id, trip.kind)
                assigned = repo.get(trip_id)
                assert assigned is not None
                return assigned, fee

            try:
                assigned, fee = run_in_transaction(
                    self._session_factory, work, "accept_trip", self._retry_config
                )
            except AlreadyAssigned:
                logger.info("Accept lost the race, trip already assigned")
                raise
            except InsufficientFunds:
                logger.warning("Platform fee debit failed, assignment rolled back")
                raise

            logger.info(f"Trip {target.value}, platform fee {-fee.amount} charged")

        self._publish(CHANNEL_TRIP_UPDATES, TripUpdateMessage.from_trip(assigned))
        self._ledger.notify(fee)
        return assigned

    def advance_status(
        self,
        trip_id: str,
        target: TripStatus | str,
        actor_id: str | None = None,
    ) -> Trip:
        """Move a trip one step along its lifecycle table.

        Illegal pairs, skipped steps and moves out of terminal statuses raise
        InvalidTransition. The assignment step is delegated to accept (actor_id
        is the accepting worker) and cancelled to cancel.
        """
        target = _parse_status(target)
        trip = self.get_trip(trip_id)
        if not trip.can_transition_to(target):
            raise InvalidTransition(trip.status.value, target.value, trip_id)

        if target is TripStatus.CANCELLED:
            return self.cancel(trip_id, None, actor_id)
        if target is assignment_status(trip.kind):
            if actor_id is None:
                raise ValidationError(
                    "Assignment requires the accepting worker id", {"trip_id": trip_id}
                )
            return self.accept(trip_id, actor_id)

        from_status = trip.status
        trip.transition_to(target)
        completion = target is completion_status(trip.kind)

        def work(session: Session) -> Trip:
            repo = TripRepository(session)
            if not repo.update_status(trip_id, from_status, target, completion=completion):
                current = repo.get(trip_id)
                current_status = current.status.value if current else from_status.value
                raise InvalidTransition(current_status, target.value, trip_id)
            updated = repo.get(trip_id)
            assert updated is not None
            return updated

        with log_trip_context(trip_id, worker_id=trip.worker_id):
            updated = run_in_transaction(
                self._session_factory, work, "advance_status", self._retry_config
            )
            logger.info(f"Trip {from_status.value} -> {target.value} (actor={actor_id or '-'})")

        self._publish(CHANNEL_TRIP_UPDATES, TripUpdateMessage.from_trip(updated))
        return updated

    def cancel(
        self,
        trip_id: str,
        reason: CancellationReason | str | None = None,
        actor_id: str | None = None,
    ) -> Trip:
        """Cancel any non-terminal trip.

        A worker no-show reason matching the trip kind (timed_out_driver_no_show
        for rides, timed_out_courier_no_show for deliveries) debits the no-show
        penalty from the assigned worker in the same transaction. If the wallet
        cannot cover it the cancellation still commits without a penalty.
        """
        reason = _normalize_reason(reason)

        def work(session: Session) -> tuple[Trip, WalletTransaction | None]:
            repo = TripRepository(session)
            for _ in range(CANCEL_CAS_ATTEMPTS):
                current = repo.get(trip_id)
                if current is None:
                    raise NotFoundError(f"Trip {trip_id} not found", {"trip_id": trip_id})
                if current.is_terminal:
                    raise InvalidTransition(
                        current.status.value, TripStatus.CANCELLED.value, trip_id
                    )
                if repo.cancel(trip_id, current.status, current.worker_id, reason, actor_id):
                    break
            else:
                raise PersistenceError(
                    f"Trip {trip_id} kept changing during cancellation", {"trip_id": trip_id}
                )

            penalty = None
            if current.worker_id is not None and is_worker_no_show(current.kind, reason):
                try:
                    penalty = self._ledger.charge_no_show_penalty(
                        session, current.worker_id, trip_id, reason or "", actor_id
                    )
                except InsufficientFunds:
                    logger.warning(
                        f"Worker {current.worker_id} cannot cover the no-show penalty, "
                        "cancelling without it"
                    )
                else:
                    repo.mark_fee_charged(trip_id)

            cancelled = repo.get(trip_id)
            assert cancelled is not None
            return cancelled, penalty

        with log_trip_context(trip_id):
            cancelled, penalty = run_in_transaction(
                self._session_factory, work, "cancel_trip", self._retry_config
            )
            logger.info(f"Trip cancelled (reason={reason or '-'}, actor={actor_id or '-'})")

        self._publish(CHANNEL_TRIP_UPDATES, TripUpdateMessage.from_trip(cancelled))
        if penalty is not None:
            self._ledger.notify(penalty)
        return cancelled

    def _publish(self, channel: str, message: TripRequestMessage | TripUpdateMessage) -> None:
        if self._publisher is not None:
            self._publisher.publish_model(channel, message)
