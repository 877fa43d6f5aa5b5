"""Exception hierarchy for the dispatch core.

Expected, user-recoverable conditions (lost races, empty wallets, KYC denials,
out-of-turn negotiation moves) are PermanentError subclasses. Storage and
transport hiccups are TransientError subclasses and may be retried.
"""

from typing import Any


class KanggaError(Exception):
    """Base exception for all dispatch core errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientError(KanggaError):
    """Errors that may succeed on retry."""

    pass


class NetworkError(TransientError):
    """Network-related transient errors (timeout, connection refused)."""

    pass


class ServiceUnavailableError(TransientError):
    """External service temporarily unavailable."""

    pass


class PersistenceError(TransientError):
    """Database write or read failed (locked, connection dropped)."""

    pass


class PermanentError(KanggaError):
    """Errors that will not succeed on retry."""

    pass


class ValidationError(PermanentError):
    """Invalid input or data format."""

    pass


class NotFoundError(PermanentError):
    """Requested entity does not exist."""

    pass


class StateError(PermanentError):
    """Operation not allowed in the current state."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    pass


class FatalError(KanggaError):
    """Critical errors requiring immediate shutdown."""

    pass


class InvalidTransition(StateError):
    """Illegal lifecycle move. Never coerced into a legal one."""

    def __init__(self, from_status: str, to_status: str, trip_id: str | None = None):
        super().__init__(
            f"Cannot transition from {from_status} to {to_status}",
            {"trip_id": trip_id, "from": from_status, "to": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status


class InvalidNegotiationState(StateError):
    """Proposing or resolving a negotiation out of turn."""

    pass


class InvalidRatingState(StateError):
    """Rating a trip that has not finished, that is not yours, or twice."""

    pass


class AlreadyAssigned(PermanentError):
    """Another worker's accept committed first."""

    def __init__(self, trip_id: str):
        super().__init__(f"Trip {trip_id} is already assigned", {"trip_id": trip_id})
        self.trip_id = trip_id


class InsufficientFunds(PermanentError):
    """Wallet balance cannot cover the requested debit."""

    def __init__(self, owner_id: str, amount: Any, balance: Any | None = None):
        super().__init__(
            f"Insufficient wallet balance for {owner_id}: reload balance to continue",
            {
                "owner_id": owner_id,
                "amount": str(amount),
                "balance": None if balance is None else str(balance),
            },
        )
        self.owner_id = owner_id


class NotEligible(PermanentError):
    """KYC gate or role check denies the worker."""

    def __init__(
        self,
        worker_id: str,
        missing: list[str] | None = None,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message or f"Worker {worker_id} is not verified for dispatch",
            {"worker_id": worker_id, "missing_documents": missing or [], **(details or {})},
        )
        self.worker_id = worker_id

    @classmethod
    def wrong_role(
        cls, worker_id: str, role: str | None, required_role: str
    ) -> "NotEligible":
        return cls(
            worker_id,
            message=f"Worker {worker_id} is not registered as a {required_role}",
            details={"role": role, "required_role": required_role},
        )
