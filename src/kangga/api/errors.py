"""Maps dispatch core errors onto HTTP responses."""

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from kangga.core.exceptions import (
    AlreadyAssigned,
    InsufficientFunds,
    InvalidNegotiationState,
    InvalidRatingState,
    InvalidTransition,
    KanggaError,
    NotEligible,
    NotFoundError,
    TransientError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS: list[tuple[type[KanggaError], int, str]] = [
    (NotFoundError, 404, "not_found"),
    (InvalidTransition, 409, "invalid_transition"),
    (InvalidNegotiationState, 409, "invalid_negotiation_state"),
    (InvalidRatingState, 409, "invalid_rating_state"),
    (AlreadyAssigned, 409, "already_assigned"),
    (InsufficientFunds, 402, "insufficient_funds"),
    (NotEligible, 403, "not_eligible"),
    (ValidationError, 422, "validation_error"),
    (TransientError, 503, "service_unavailable"),
]


def status_for(exc: KanggaError) -> tuple[int, str]:
    for error_type, status_code, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code, code
    return 500, "internal_error"


def kangga_error_handler(request: Request, exc: Exception) -> Response:
    """Render a domain error as {"detail", "error", "details"}."""
    assert isinstance(exc, KanggaError)
    status_code, code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": code, "details": exc.details},
    )
