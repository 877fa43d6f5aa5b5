"""Fare top-up negotiation layered on top of the trip lifecycle.

One proposal may be pending per trip. Only the other party resolves it.
Accepting merges the proposal into the fare; rejecting discards it. The trip
lifecycle never waits on a negotiation: cancellation and completion drop any
proposal that is still pending.
"""

import logging
from decimal import Decimal
from enum import Enum

from sqlalchemy.orm import Session, sessionmaker

from kangga.core.exceptions import InvalidNegotiationState, NotFoundError, ValidationError
from kangga.core.retry import RetryConfig
from kangga.db.repositories.trip_repository import TripRepository
from kangga.db.transaction import run_in_transaction
from kangga.kx_logging import log_trip_context
from kangga.money import Amount, to_decimal
from kangga.pubsub.channels import CHANNEL_NEGOTIATION_UPDATES, NegotiationUpdateMessage
from kangga.redis_client.publisher import RedisPublisher
from kangga.settings import NegotiationSettings
from kangga.trip import (
    PROPOSABLE_NEGOTIATION_STATUSES,
    NegotiationStatus,
    PartyRole,
    Trip,
)

logger = logging.getLogger(__name__)


class NegotiationReason(str, Enum):
    """Reason codes offered to the proposer. Free text is accepted as well."""

    TRAFFIC = "traffic"
    WEATHER = "weather"
    DISTANCE = "distance"
    LATE_NIGHT = "late_night"
    PEAK_HOURS = "peak_hours"
    ROAD_CONDITIONS = "road_conditions"
    HIGH_DEMAND = "high_demand"
    OTHER = "other"


class NegotiationService:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: NegotiationSettings | None = None,
        publisher: RedisPublisher | None = None,
        retry_config: RetryConfig | None = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or NegotiationSettings()
        self._publisher = publisher
        self._retry_config = retry_config

    def propose(
        self,
        trip_id: str,
        proposer_role: PartyRole | str,
        proposer_id: str,
        top_up: Amount,
        reason: NegotiationReason | str | None = None,
    ) -> Trip:
        """Open a top-up proposal.

        Legal while no proposal is pending and the trip has not ended. A worker
        may propose on an unassigned trip; once assigned, only the assigned
        worker may.
        """
        role = PartyRole(proposer_role)
        amount = to_decimal(top_up)
        notes = reason.value if isinstance(reason, NegotiationReason) else reason

        trip = self._get(trip_id)
        self._validate_amount(trip, amount)
        if trip.is_terminal:
            raise InvalidNegotiationState(
                f"Trip {trip_id} is {trip.status.value}, negotiation closed",
                {"trip_id": trip_id, "status": trip.status.value},
            )
        if trip.negotiation_status not in PROPOSABLE_NEGOTIATION_STATUSES:
            raise InvalidNegotiationState(
                f"Trip {trip_id} already has a pending proposal",
                {"trip_id": trip_id, "negotiation_status": trip.negotiation_status.value},
            )
        self._ensure_can_propose(trip, role, proposer_id)

        def work(session: Session) -> Trip:
            repo = TripRepository(session)
            if not repo.propose_negotiation(
                trip_id, role, proposer_id, amount, notes, trip.negotiation_version
            ):
                current = repo.get(trip_id)
                state = current.negotiation_status.value if current else "missing"
                raise InvalidNegotiationState(
                    f"Trip {trip_id} cannot take a proposal now",
                    {"trip_id": trip_id, "negotiation_status": state},
                )
            updated = repo.get(trip_id)
            assert updated is not None
            return updated

        with log_trip_context(trip_id, requester_id=trip.requester_id, worker_id=trip.worker_id):
            updated = run_in_transaction(
                self._session_factory, work, "propose_negotiation", self._retry_config
            )
            logger.info(f"Top-up of {amount} proposed by {role.value} ({notes or 'no reason'})")

        self._publish(updated)
        return updated

    def accept(self, trip_id: str, resolver_id: str) -> Trip:
        """Merge the pending top-up into the fare: total = base + top-up."""
        return self._resolve(trip_id, resolver_id, accepted=True)

    def reject(self, trip_id: str, resolver_id: str) -> Trip:
        """Discard the pending top-up, leaving the fare unchanged."""
        return self._resolve(trip_id, resolver_id, accepted=False)

    def _resolve(self, trip_id: str, resolver_id: str, accepted: bool) -> Trip:
        trip = self._get(trip_id)
        if trip.negotiation_status is not NegotiationStatus.PENDING:
            raise InvalidNegotiationState(
                f"Trip {trip_id} has no pending proposal",
                {"trip_id": trip_id, "negotiation_status": trip.negotiation_status.value},
            )
        self._ensure_can_resolve(trip, resolver_id)

        def work(session: Session) -> Trip:
            repo = TripRepository(session)
            if not repo.resolve_negotiation(
                trip_id,
                resolver_id,
                trip.negotiation_version,
                accepted,
                stack_top_ups=self._settings.stack_top_ups,
            ):
                raise InvalidNegotiationState(
                    f"Proposal on trip {trip_id} changed before it could be resolved",
                    {"trip_id": trip_id, "resolver_id": resolver_id},
                )
            updated = repo.get(trip_id)
            assert updated is not None
            return updated

        outcome = "accept" if accepted else "reject"
        with log_trip_context(trip_id, requester_id=trip.requester_id, worker_id=trip.worker_id):
            updated = run_in_transaction(
                self._session_factory, work, f"{outcome}_negotiation", self._retry_config
            )
            logger.info(f"Top-up proposal {outcome}ed, total fare {updated.total_fare}")

        self._publish(updated)
        return updated

    def _get(self, trip_id: str) -> Trip:
        trip = run_in_transaction(
            self._session_factory,
            lambda session: TripRepository(session).get(trip_id),
            "get_trip",
            self._retry_config,
        )
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found", {"trip_id": trip_id})
        return trip

    def _validate_amount(self, trip: Trip, amount: Decimal) -> None:
        if amount == 0:
            raise ValidationError("Top-up must be non-zero", {"top_up": str(amount)})
        if amount < 0 and not self._settings.allow_discount:
            raise ValidationError("Discounts are not allowed", {"top_up": str(amount)})
        if abs(amount) > self._settings.max_top_up:
            raise ValidationError(
                f"Top-up exceeds the maximum of {self._settings.max_top_up}",
                {"top_up": str(amount)},
            )
        top_up_after = trip.top_up_fare + amount if self._settings.stack_top_ups else amount
        if trip.base_fare + top_up_after < 0:
            raise ValidationError(
                "Discount would make the fare negative", {"top_up": str(amount)}
            )

    def _ensure_can_propose(self, trip: Trip, role: PartyRole, proposer_id: str) -> None:
        if role is PartyRole.REQUESTER:
            allowed = proposer_id == trip.requester_id
        else:
            allowed = proposer_id != trip.requester_id and (
                trip.worker_id is None or proposer_id == trip.worker_id
            )
        if not allowed:
            raise InvalidNegotiationState(
                f"{proposer_id} cannot propose as {role.value} on trip {trip.trip_id}",
                {"trip_id": trip.trip_id, "proposer_id": proposer_id, "role": role.value},
            )

    def _ensure_can_resolve(self, trip: Trip, resolver_id: str) -> None:
        """Only the counterparty of the proposer may resolve."""
        proposer = trip.negotiation_proposer
        if resolver_id == trip.negotiation_proposer_id:
            allowed = False
        elif proposer is PartyRole.WORKER:
            allowed = resolver_id == trip.requester_id
        else:
            # Requester proposal: the assigned worker, or any worker while unassigned
            allowed = resolver_id != trip.requester_id and (
                trip.worker_id is None or resolver_id == trip.worker_id
            )
        if not allowed:
            raise InvalidNegotiationState(
                f"{resolver_id} cannot resolve this proposal",
                {"trip_id": trip.trip_id, "resolver_id": resolver_id},
            )

    def _publish(self, trip: Trip) -> None:
        if self._publisher is not None:
            self._publisher.publish_model(
                CHANNEL_NEGOTIATION_UPDATES, NegotiationUpdateMessage.from_trip(trip)
            )
