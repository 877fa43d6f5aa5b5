"""Tests for trip creation, assignment, lifecycle and cancellation."""

from decimal import Decimal

import pytest

from kangga.core.exceptions import (
    AlreadyAssigned,
    InsufficientFunds,
    InvalidTransition,
    NotEligible,
    NotFoundError,
    ValidationError,
)
from kangga.ledger.service import NO_SHOW_PENALTY_REFERENCE, PLATFORM_FEE_REFERENCE
from kangga.pubsub.channels import (
    CHANNEL_TRIP_REQUESTS,
    CHANNEL_TRIP_UPDATES,
    CHANNEL_WALLET_UPDATES,
)
from kangga.trip import (
    CancellationReason,
    NegotiationStatus,
    PartyRole,
    TripKind,
    TripStatus,
    WorkerRole,
)


@pytest.fixture
def ride(dispatch):
    return dispatch.create_trip("passenger-1", "ride", "Cubao", "Makati", "150")


@pytest.fixture
def parcel(dispatch):
    return dispatch.create_trip("sender-1", TripKind.DELIVERY, "Pasig", "Taguig", "90")


def published(mock_publisher, channel):
    return [
        call.args[1]
        for call in mock_publisher.publish_model.call_args_list
        if call.args[0] == channel
    ]


@pytest.mark.unit
class TestCreateTrip:
    def test_new_trip_is_requested_and_unassigned(self, ride):
        assert ride.status == TripStatus.REQUESTED
        assert ride.worker_id is None
        assert ride.base_fare == Decimal("150.00")
        assert ride.total_fare == Decimal("150.00")
        assert ride.platform_fee_charged is False

    def test_publishes_trip_request(self, ride, mock_publisher):
        (message,) = published(mock_publisher, CHANNEL_TRIP_REQUESTS)
        assert message.trip_id == ride.trip_id
        assert message.kind == "ride"

    @pytest.mark.parametrize(
        ("kwargs", "error"),
        [
            ({"kind": "tricycle"}, "Unknown trip kind"),
            ({"base_fare": "-1"}, "negative"),
            ({"requester_id": ""}, "Requester"),
            ({"pickup_location": ""}, "locations"),
        ],
    )
    def test_validation(self, dispatch, kwargs, error):
        fields = {
            "requester_id": "p1",
            "kind": "ride",
            "pickup_location": "A",
            "dropoff_location": "B",
            "base_fare": "100",
        }
        fields.update(kwargs)
        with pytest.raises(ValidationError, match=error):
            dispatch.create_trip(**fields)

    def test_get_missing_trip(self, dispatch):
        with pytest.raises(NotFoundError):
            dispatch.get_trip("nope")


@pytest.mark.unit
@pytest.mark.critical
class TestAccept:
    def test_accept_assigns_and_charges_fee(self, dispatch, ledger, ride, funded_worker):
        funded_worker("driver-1", balance="50")

        trip = dispatch.accept(ride.trip_id, "driver-1")

        assert trip.status == TripStatus.ACCEPTED
        assert trip.worker_id == "driver-1"
        assert trip.platform_fee_charged is True
        assert trip.accepted_at is not None
        assert ledger.get_balance("driver-1") == Decimal("45.00")
        (fee,) = ledger.list_trip_transactions(ride.trip_id)
        assert fee.amount == Decimal("-5.00")
        assert fee.reference == PLATFORM_FEE_REFERENCE.format(kind="ride")

    def test_delivery_goes_to_assigned(self, dispatch, parcel, funded_worker):
        funded_worker("courier-1", WorkerRole.COURIER)
        trip = dispatch.accept(parcel.trip_id, "courier-1")
        assert trip.status == TripStatus.ASSIGNED

    def test_second_accept_is_already_assigned(self, dispatch, ledger, ride, funded_worker):
        funded_worker("driver-1")
        funded_worker("driver-2")
        dispatch.accept(ride.trip_id, "driver-1")

        with pytest.raises(AlreadyAssigned) as exc_info:
            dispatch.accept(ride.trip_id, "driver-2")

        assert "driver-1" not in str(exc_info.value.details)
        assert ledger.get_balance("driver-2") == Decimal("50.00")
        assert len(ledger.list_trip_transactions(ride.trip_id)) == 1

    def test_unverified_worker_not_eligible(self, dispatch, ledger, ride, submit_kyc):
        submit_kyc("driver-1", ["DRIVER_LICENSE", "OR"])
        ledger.apply_transaction("driver-1", "50", "load")

        with pytest.raises(NotEligible) as exc_info:
            dispatch.accept(ride.trip_id, "driver-1")

        assert exc_info.value.details["missing_documents"] == ["CR", "SELFIE"]
        assert dispatch.get_trip(ride.trip_id).worker_id is None

    def test_driver_cannot_accept_delivery(self, dispatch, ledger, parcel, funded_worker):
        funded_worker("driver-1")

        with pytest.raises(NotEligible, match="courier"):
            dispatch.accept(parcel.trip_id, "driver-1")

        assert dispatch.get_trip(parcel.trip_id).worker_id is None
        assert ledger.get_balance("driver-1") == Decimal("50.00")

    def test_courier_cannot_accept_ride(self, dispatch, ride, funded_worker):
        funded_worker("courier-1", WorkerRole.COURIER)

        with pytest.raises(NotEligible, match="driver"):
            dispatch.accept(ride.trip_id, "courier-1")

        assert dispatch.get_trip(ride.trip_id).status == TripStatus.REQUESTED

    def test_empty_wallet_insufficient_funds(self, dispatch, ride, funded_worker):
        funded_worker("driver-1", balance="4.99")

        with pytest.raises(InsufficientFunds):
            dispatch.accept(ride.trip_id, "driver-1")

        trip = dispatch.get_trip(ride.trip_id)
        assert trip.status == TripStatus.REQUESTED
        assert trip.worker_id is None

    def test_exact_fee_balance_can_accept(self, dispatch, ledger, ride, funded_worker):
        funded_worker("driver-1", balance="5.00")
        dispatch.accept(ride.trip_id, "driver-1")
        assert ledger.get_balance("driver-1") == Decimal("0.00")

    def test_failed_debit_rolls_back_claim(self, dispatch, ledger, ride, funded_worker, monkeypatch):
        funded_worker("driver-1")

        def refuse(session, worker_id, trip_id, kind):
            raise InsufficientFunds(worker_id, ledger.platform_fee)

        monkeypatch.setattr(ledger, "charge_platform_fee", refuse)

        with pytest.raises(InsufficientFunds):
            dispatch.accept(ride.trip_id, "driver-1")

        trip = dispatch.get_trip(ride.trip_id)
        assert trip.status == TripStatus.REQUESTED
        assert trip.worker_id is None
        assert trip.platform_fee_charged is False

    def test_cannot_accept_cancelled_trip(self, dispatch, ride, funded_worker):
        funded_worker("driver-1")
        dispatch.cancel(ride.trip_id, CancellationReason.PASSENGER_BEFORE_ACCEPT, "passenger-1")

        with pytest.raises(InvalidTransition):
            dispatch.accept(ride.trip_id, "driver-1")

    def test_accept_publishes_trip_and_wallet_updates(
        self, dispatch, ride, funded_worker, mock_publisher
    ):
        funded_worker("driver-1")
        mock_publisher.reset_mock()

        dispatch.accept(ride.trip_id, "driver-1")

        (update,) = published(mock_publisher, CHANNEL_TRIP_UPDATES)
        assert update.event_type == "trip.accepted"
        assert update.worker_id == "driver-1"
        (wallet,) = published(mock_publisher, CHANNEL_WALLET_UPDATES)
        assert wallet.balance == Decimal("45.00")


@pytest.mark.unit
class TestAvailableFeed:
    def test_lists_unassigned_of_kind_oldest_first(self, dispatch, funded_worker):
        first = dispatch.create_trip("p1", "ride", "A", "B", "100")
        second = dispatch.create_trip("p2", "ride", "C", "D", "100")
        dispatch.create_trip("s1", "delivery", "E", "F", "80")
        funded_worker("driver-1")
        dispatch.accept(first.trip_id, "driver-1")

        feed = dispatch.list_available("ride")

        assert [t.trip_id for t in feed] == [second.trip_id]

    def test_feed_checks_worker_eligibility(self, dispatch, ride, submit_kyc):
        with pytest.raises(NotEligible):
            dispatch.list_available("ride", worker_id="driver-x")

        submit_kyc("driver-x")
        with pytest.raises(InsufficientFunds):
            dispatch.list_available("ride", worker_id="driver-x")

    def test_feed_for_eligible_worker(self, dispatch, ride, funded_worker):
        funded_worker("driver-1")
        assert [t.trip_id for t in dispatch.list_available("ride", "driver-1")] == [ride.trip_id]

    def test_repeated_feed_reads_agree_and_write_nothing(self, dispatch, ledger, funded_worker):
        dispatch.create_trip("p1", "ride", "A", "B", "100")
        dispatch.create_trip("p2", "ride", "C", "D", "120")
        funded_worker("driver-1")
        balance = ledger.get_balance("driver-1")

        first = dispatch.list_available("ride", "driver-1")
        second = dispatch.list_available("ride", "driver-1")

        assert first == second
        assert len(first) == 2
        assert ledger.get_balance("driver-1") == balance
        assert all(t.status == TripStatus.REQUESTED and t.worker_id is None for t in second)

    def test_history_by_party(self, dispatch, ride, funded_worker):
        funded_worker("driver-1")
        dispatch.accept(ride.trip_id, "driver-1")
        assert [t.trip_id for t in dispatch.list_worker_trips("driver-1")] == [ride.trip_id]
        assert [t.trip_id for t in dispatch.list_requester_trips("passenger-1")] == [ride.trip_id]


@pytest.mark.unit
class TestAdvanceStatus:
    def test_ride_happy_path(self, dispatch, ride, funded_worker):
        funded_worker("driver-1")
        dispatch.accept(ride.trip_id, "driver-1")

        arrived = dispatch.advance_status(ride.trip_id, "arrived", "driver-1")
        started = dispatch.advance_status(ride.trip_id, TripStatus.IN_PROGRESS, "driver-1")
        done = dispatch.advance_status(ride.trip_id, TripStatus.COMPLETED, "driver-1")

        assert arrived.status == TripStatus.ARRIVED
        assert started.started_at is not None
        assert done.status == TripStatus.COMPLETED
        assert done.completed_at is not None

    def test_delivery_happy_path(self, dispatch, parcel, funded_worker):
        funded_worker("courier-1", WorkerRole.COURIER)
        dispatch.advance_status(parcel.trip_id, TripStatus.ASSIGNED, "courier-1")
        for status in (TripStatus.PICKED_UP, TripStatus.IN_TRANSIT, TripStatus.DELIVERED):
            trip = dispatch.advance_status(parcel.trip_id, status)
        assert trip.status == TripStatus.DELIVERED
        assert trip.worker_id == "courier-1"

    def test_skipping_a_step_raises(self, dispatch, ride, funded_worker):
        funded_worker("driver-1")
        dispatch.accept(ride.trip_id, "driver-1")

        with pytest.raises(InvalidTransition) as exc_info:
            dispatch.advance_status(ride.trip_id, TripStatus.COMPLETED)

        assert exc_info.value.from_status == "accepted"
        assert dispatch.get_trip(ride.trip_id).status == TripStatus.ACCEPTED

    def test_wrong_kind_status_raises(self, dispatch, ride):
        with pytest.raises(InvalidTransition):
            dispatch.advance_status(ride.trip_id, TripStatus.ASSIGNED, "driver-1")

    def test_terminal_trip_cannot_move(self, dispatch, ride):
        dispatch.cancel(ride.trip_id)
        with pytest.raises(InvalidTransition):
            dispatch.advance_status(ride.trip_id, TripStatus.ACCEPTED, "driver-1")

    def test_assignment_needs_worker(self, dispatch, ride):
        with pytest.raises(ValidationError):
            dispatch.advance_status(ride.trip_id, TripStatus.ACCEPTED)

    def test_unknown_status(self, dispatch, ride):
        with pytest.raises(ValidationError):
            dispatch.advance_status(ride.trip_id, "teleported")

    def test_cancelled_target_delegates_to_cancel(self, dispatch, ride):
        trip = dispatch.advance_status(ride.trip_id, "cancelled", "passenger-1")
        assert trip.status == TripStatus.CANCELLED
        assert trip.cancelled_by == "passenger-1"


@pytest.mark.unit
class TestCancel:
    def test_cancel_unassigned_trip(self, dispatch, ride, mock_publisher):
        trip = dispatch.cancel(
            ride.trip_id, CancellationReason.PASSENGER_BEFORE_ACCEPT, "passenger-1"
        )

        assert trip.status == TripStatus.CANCELLED
        assert trip.cancellation_reason == "cancelled_by_passenger_before_accept"
        assert trip.cancelled_at is not None
        (update,) = published(mock_publisher, CHANNEL_TRIP_UPDATES)
        assert update.event_type == "trip.cancelled"

    def test_cancel_twice_raises(self, dispatch, ride):
        dispatch.cancel(ride.trip_id)
        with pytest.raises(InvalidTransition):
            dispatch.cancel(ride.trip_id)

    def test_cancel_completed_trip_raises(self, dispatch, parcel, funded_worker):
        funded_worker("courier-1", WorkerRole.COURIER)
        dispatch.accept(parcel.trip_id, "courier-1")
        for status in ("picked_up", "in_transit", "delivered"):
            dispatch.advance_status(parcel.trip_id, status)

        with pytest.raises(InvalidTransition):
            dispatch.cancel(parcel.trip_id, "cancelled_by_sender_after_accept")

    def test_cancel_missing_trip(self, dispatch):
        with pytest.raises(NotFoundError):
            dispatch.cancel("nope")

    def test_ordinary_cancel_keeps_fee_and_charges_nothing_more(
        self, dispatch, ledger, ride, funded_worker
    ):
        funded_worker("driver-1")
        dispatch.accept(ride.trip_id, "driver-1")

        dispatch.cancel(ride.trip_id, CancellationReason.DRIVER, "driver-1")

        assert ledger.get_balance("driver-1") == Decimal("45.00")

    def test_no_show_charges_penalty(self, dispatch, ledger, ride, funded_worker):
        funded_worker("driver-1")
        dispatch.accept(ride.trip_id, "driver-1")

        trip = dispatch.cancel(ride.trip_id, CancellationReason.DRIVER_NO_SHOW, "system")

        assert trip.platform_fee_charged is True
        assert ledger.get_balance("driver-1") == Decimal("40.00")
        penalty = ledger.list_trip_transactions(ride.trip_id)[-1]
        assert penalty.amount == Decimal("-5.00")
        assert penalty.reference == NO_SHOW_PENALTY_REFERENCE.format(
            reason="timed_out_driver_no_show"
        )
        assert penalty.actor_id == "system"

    @pytest.mark.parametrize("reason", ["passenger_no_show", CancellationReason.PASSENGER_NO_SHOW])
    def test_requester_no_show_charges_worker_nothing(
        self, dispatch, ledger, ride, funded_worker, reason
    ):
        funded_worker("driver-1")
        dispatch.accept(ride.trip_id, "driver-1")

        trip = dispatch.cancel(ride.trip_id, reason, "driver-1")

        assert trip.status == TripStatus.CANCELLED
        assert ledger.get_balance("driver-1") == Decimal("45.00")
        assert len(ledger.list_trip_transactions(ride.trip_id)) == 1

    def test_no_show_reason_for_the_other_kind_charges_nothing(
        self, dispatch, ledger, ride, funded_worker
    ):
        funded_worker("driver-1")
        dispatch.accept(ride.trip_id, "driver-1")

        dispatch.cancel(ride.trip_id, CancellationReason.COURIER_NO_SHOW, "system")

        assert ledger.get_balance("driver-1") == Decimal("45.00")

    def test_courier_no_show_charges_penalty_on_delivery(
        self, dispatch, ledger, parcel, funded_worker
    ):
        funded_worker("courier-1", WorkerRole.COURIER)
        dispatch.accept(parcel.trip_id, "courier-1")

        dispatch.cancel(parcel.trip_id, CancellationReason.COURIER_NO_SHOW, "system")

        assert ledger.get_balance("courier-1") == Decimal("40.00")

    def test_no_show_without_funds_still_cancels(self, dispatch, ledger, ride, funded_worker):
        funded_worker("driver-1", balance="5.00")
        dispatch.accept(ride.trip_id, "driver-1")

        trip = dispatch.cancel(ride.trip_id, "timed_out_driver_no_show")

        assert trip.status == TripStatus.CANCELLED
        assert ledger.get_balance("driver-1") == Decimal("0.00")
        assert len(ledger.list_trip_transactions(ride.trip_id)) == 1

    def test_no_show_on_unassigned_trip_charges_nobody(self, dispatch, ledger, ride):
        trip = dispatch.cancel(ride.trip_id, "timed_out_driver_no_show")
        assert trip.status == TripStatus.CANCELLED
        assert ledger.list_trip_transactions(ride.trip_id) == []

    def test_cancel_discards_pending_negotiation(self, dispatch, negotiation, ride):
        negotiation.propose(ride.trip_id, PartyRole.REQUESTER, "passenger-1", "20")

        trip = dispatch.cancel(ride.trip_id)

        assert trip.negotiation_status == NegotiationStatus.REJECTED
        assert trip.proposed_top_up is None
        assert trip.total_fare == Decimal("150.00")

    def test_blank_reason_is_stored_as_none(self, dispatch, ride):
        assert dispatch.cancel(ride.trip_id, "   ").cancellation_reason is None
