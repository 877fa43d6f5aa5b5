"""Trip repository with compare-and-set lifecycle writes.

Every mutating method is one conditional UPDATE whose WHERE clause names the
state the caller expects. A rowcount of zero means another writer got there
first; the caller decides which error that is.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.orm import Session

from kangga.money import from_minor_units, to_minor_units
from kangga.trip import (
    PROPOSABLE_NEGOTIATION_STATUSES,
    START_STATUSES,
    TERMINAL_STATUSES,
    NegotiationStatus,
    PartyRole,
    TripKind,
    TripStatus,
)
from kangga.trip import Trip as TripDomain

from ..schema import Trip
from ..utils import utc_now

TERMINAL_VALUES = {status.value for status in TERMINAL_STATUSES}
PROPOSABLE_VALUES = {status.value for status in PROPOSABLE_NEGOTIATION_STATUSES}


def _discard_pending_negotiation() -> dict[str, Any]:
    """Column values that drop an unresolved proposal as part of another update."""
    pending = Trip.negotiation_status == NegotiationStatus.PENDING.value
    return {
        "negotiation_status": case(
            (pending, NegotiationStatus.REJECTED.value),
            else_=Trip.negotiation_status,
        ),
        "proposed_top_up_cents": case((pending, None), else_=Trip.proposed_top_up_cents),
        "negotiation_version": case(
            (pending, Trip.negotiation_version + 1), else_=Trip.negotiation_version
        ),
    }


class TripRepository:
    """Repository for trip reads and conditional lifecycle writes."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        trip_id: str,
        kind: TripKind,
        requester_id: str,
        pickup_location: str,
        dropoff_location: str,
        base_fare: Decimal,
    ) -> TripDomain:
        """Create a new trip in REQUESTED state."""
        base_cents = to_minor_units(base_fare)
        now = utc_now()
        trip = Trip(
            trip_id=trip_id,
            kind=kind.value,
            requester_id=requester_id,
            status=TripStatus.REQUESTED.value,
            pickup_location=pickup_location,
            dropoff_location=dropoff_location,
            base_fare_cents=base_cents,
            top_up_fare_cents=0,
            total_fare_cents=base_cents,
            platform_fee_charged=False,
            negotiation_status=NegotiationStatus.NONE.value,
            created_at=now,
            updated_at=now,
        )
        self.session.add(trip)
        self.session.flush()
        return self._to_domain(trip)

    def get(self, trip_id: str) -> TripDomain | None:
        """Get trip by ID, returning domain model."""
        trip = self.session.get(Trip, trip_id, populate_existing=True)
        if trip is None:
            return None
        return self._to_domain(trip)

    def list_available(self, kind: TripKind, limit: int = 100) -> list[TripDomain]:
        """Unassigned requested trips of one kind, oldest first."""
        stmt = (
            select(Trip)
            .where(
                Trip.kind == kind.value,
                Trip.status == TripStatus.REQUESTED.value,
                Trip.worker_id.is_(None),
            )
            .order_by(Trip.created_at, Trip.trip_id)
            .limit(limit)
        )
        result = self.session.execute(stmt)
        return [self._to_domain(t) for t in result.scalars().all()]

    def list_by_worker(self, worker_id: str) -> list[TripDomain]:
        """List trips by worker ID, newest first."""
        stmt = (
            select(Trip)
            .where(Trip.worker_id == worker_id)
            .order_by(Trip.created_at.desc(), Trip.trip_id)
        )
        result = self.session.execute(stmt)
        return [self._to_domain(t) for t in result.scalars().all()]

    def list_by_requester(self, requester_id: str) -> list[TripDomain]:
        """List trips by requester ID, newest first."""
        stmt = (
            select(Trip)
            .where(Trip.requester_id == requester_id)
            .order_by(Trip.created_at.desc(), Trip.trip_id)
        )
        result = self.session.execute(stmt)
        return [self._to_domain(t) for t in result.scalars().all()]

    def assign(self, trip_id: str, worker_id: str, assigned_status: TripStatus) -> bool:
        """Claim an unassigned requested trip for a worker.

        Conditioned on (status = requested, worker_id IS NULL) so exactly one
        concurrent caller can succeed. Marks the platform fee as charged; the
        caller debits it in the same transaction.
        """
        now = utc_now()
        stmt = (
            update(Trip)
            .where(
                Trip.trip_id == trip_id,
                Trip.status == TripStatus.REQUESTED.value,
                Trip.worker_id.is_(None),
            )
            .values(
                status=assigned_status.value,
                worker_id=worker_id,
                accepted_at=now,
                platform_fee_charged=True,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self._applied(stmt)

    def update_status(
        self,
        trip_id: str,
        expected_status: TripStatus,
        new_status: TripStatus,
        completion: bool = False,
    ) -> bool:
        """Advance status, conditioned on the status the caller read."""
        now = utc_now()
        values: dict[str, Any] = {"status": new_status.value, "updated_at": now}
        if new_status in START_STATUSES:
            values["started_at"] = now
        if completion:
            values["completed_at"] = now
            values.update(_discard_pending_negotiation())

        stmt = (
            update(Trip)
            .where(Trip.trip_id == trip_id, Trip.status == expected_status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self._applied(stmt)

    def cancel(
        self,
        trip_id: str,
        expected_status: TripStatus,
        expected_worker_id: str | None,
        reason: str | None,
        cancelled_by: str | None,
    ) -> bool:
        """Cancel a trip, conditioned on the (status, worker) pair the caller read."""
        now = utc_now()
        worker_matches = (
            Trip.worker_id.is_(None)
            if expected_worker_id is None
            else Trip.worker_id == expected_worker_id
        )
        stmt = (
            update(Trip)
            .where(
                Trip.trip_id == trip_id,
                Trip.status == expected_status.value,
                worker_matches,
            )
            .values(
                status=TripStatus.CANCELLED.value,
                cancellation_reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
                updated_at=now,
                **_discard_pending_negotiation(),
            )
            .execution_options(synchronize_session=False)
        )
        return self._applied(stmt)

    def mark_fee_charged(self, trip_id: str) -> None:
        self.session.execute(
            update(Trip)
            .where(Trip.trip_id == trip_id)
            .values(platform_fee_charged=True, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    def propose_negotiation(
        self,
        trip_id: str,
        proposer: PartyRole,
        proposer_id: str,
        top_up: Decimal,
        notes: str | None,
        expected_version: int,
    ) -> bool:
        """Open a proposal on the negotiation round the caller read.

        Fails if a proposal is pending, the trip has ended, the round moved on,
        or the proposer is not (or is no longer) a party to the trip.
        """
        if proposer is PartyRole.REQUESTER:
            is_party = Trip.requester_id == proposer_id
        else:
            is_party = and_(
                Trip.requester_id != proposer_id,
                or_(Trip.worker_id.is_(None), Trip.worker_id == proposer_id),
            )
        stmt = (
            update(Trip)
            .where(
                Trip.trip_id == trip_id,
                Trip.negotiation_status.in_(PROPOSABLE_VALUES),
                Trip.negotiation_version == expected_version,
                Trip.status.notin_(TERMINAL_VALUES),
                is_party,
            )
            .values(
                negotiation_status=NegotiationStatus.PENDING.value,
                negotiation_proposer=proposer.value,
                negotiation_proposer_id=proposer_id,
                proposed_top_up_cents=to_minor_units(top_up),
                negotiation_notes=notes,
                negotiation_version=Trip.negotiation_version + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return self._applied(stmt)

    def resolve_negotiation(
        self,
        trip_id: str,
        resolver_id: str,
        expected_version: int,
        accepted: bool,
        stack_top_ups: bool = False,
    ) -> bool:
        """Accept or reject the pending proposal the resolver read.

        The version pins the exact proposal; the counterparty rule is checked
        against the row as it is now, so a worker who lost the trip in the
        meantime cannot resolve. Accepting merges the proposal into
        top_up_fare and recomputes total_fare = base_fare + top_up_fare in the
        same statement.
        """
        values: dict[str, Any] = {
            "negotiation_version": Trip.negotiation_version + 1,
            "updated_at": utc_now(),
        }
        if accepted:
            if stack_top_ups:
                new_top_up = Trip.top_up_fare_cents + Trip.proposed_top_up_cents
            else:
                new_top_up = Trip.proposed_top_up_cents
            values.update(
                negotiation_status=NegotiationStatus.ACCEPTED.value,
                top_up_fare_cents=new_top_up,
                total_fare_cents=Trip.base_fare_cents + new_top_up,
            )
        else:
            values.update(
                negotiation_status=NegotiationStatus.REJECTED.value,
                proposed_top_up_cents=None,
            )

        requester_resolves = and_(
            Trip.negotiation_proposer == PartyRole.WORKER.value,
            Trip.requester_id == resolver_id,
        )
        worker_resolves = and_(
            Trip.negotiation_proposer == PartyRole.REQUESTER.value,
            Trip.requester_id != resolver_id,
            or_(Trip.worker_id.is_(None), Trip.worker_id == resolver_id),
        )
        stmt = (
            update(Trip)
            .where(
                Trip.trip_id == trip_id,
                Trip.negotiation_status == NegotiationStatus.PENDING.value,
                Trip.negotiation_version == expected_version,
                Trip.negotiation_proposer_id != resolver_id,
                or_(requester_resolves, worker_resolves),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self._applied(stmt)

    def _applied(self, stmt: Any) -> bool:
        result = self.session.execute(stmt)
        return result.rowcount == 1  # type: ignore[attr-defined]

    def _to_domain(self, trip: Trip) -> TripDomain:
        """Convert ORM model to domain model."""
        return TripDomain(
            trip_id=trip.trip_id,
            kind=TripKind(trip.kind),
            requester_id=trip.requester_id,
            worker_id=trip.worker_id,
            status=TripStatus(trip.status),
            pickup_location=trip.pickup_location,
            dropoff_location=trip.dropoff_location,
            base_fare=from_minor_units(trip.base_fare_cents),
            top_up_fare=from_minor_units(trip.top_up_fare_cents),
            total_fare=from_minor_units(trip.total_fare_cents),
            platform_fee_charged=trip.platform_fee_charged,
            cancellation_reason=trip.cancellation_reason,
            cancelled_by=trip.cancelled_by,
            negotiation_status=NegotiationStatus(trip.negotiation_status),
            negotiation_proposer=(
                PartyRole(trip.negotiation_proposer) if trip.negotiation_proposer else None
            ),
            negotiation_proposer_id=trip.negotiation_proposer_id,
            proposed_top_up=(
                from_minor_units(trip.proposed_top_up_cents)
                if trip.proposed_top_up_cents is not None
                else None
            ),
            negotiation_notes=trip.negotiation_notes,
            negotiation_version=trip.negotiation_version,
            created_at=trip.created_at,
            accepted_at=trip.accepted_at,
            started_at=trip.started_at,
            completed_at=trip.completed_at,
            cancelled_at=trip.cancelled_at,
            updated_at=trip.updated_at,
        )
