"""FastAPI dependency injection providers."""

from typing import Annotated, Any

from fastapi import Depends, Request


def get_dispatch(request: Request) -> Any:
    """Retrieve DispatchService from app state."""
    return request.app.state.dispatch


def get_ledger(request: Request) -> Any:
    """Retrieve WalletLedger from app state."""
    return request.app.state.ledger


def get_negotiation(request: Request) -> Any:
    """Retrieve NegotiationService from app state."""
    return request.app.state.negotiation


def get_availability(request: Request) -> Any:
    """Retrieve WorkerAvailability from app state."""
    return request.app.state.availability


def get_ratings(request: Request) -> Any:
    """Retrieve RatingService from app state."""
    return request.app.state.ratings


DispatchDep = Annotated[Any, Depends(get_dispatch)]
LedgerDep = Annotated[Any, Depends(get_ledger)]
NegotiationDep = Annotated[Any, Depends(get_negotiation)]
AvailabilityDep = Annotated[Any, Depends(get_availability)]
RatingsDep = Annotated[Any, Depends(get_ratings)]
