"""FastAPI application factory for the dispatch API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from slowapi.errors import RateLimitExceeded

if TYPE_CHECKING:
    from redis.asyncio import Redis

from kangga.api.auth import verify_api_key
from kangga.api.errors import kangga_error_handler
from kangga.api.middleware.correlation import CorrelationIdMiddleware
from kangga.api.rate_limit import limiter, rate_limit_exceeded_handler
from kangga.api.redis_subscriber import RedisSubscriber
from kangga.api.routes import negotiation, ratings, trips, wallet, workers
from kangga.api.websocket import manager as connection_manager
from kangga.api.websocket import router as websocket_router
from kangga.core.exceptions import KanggaError
from kangga.settings import get_settings

if TYPE_CHECKING:
    from kangga.dispatch import DispatchService, WorkerAvailability
    from kangga.ledger.service import WalletLedger
    from kangga.negotiation import NegotiationService
    from kangga.ratings.service import RatingService


def create_app(
    dispatch: DispatchService,
    ledger: WalletLedger,
    negotiation_service: NegotiationService,
    availability: WorkerAvailability,
    ratings_service: RatingService,
    redis_client: Redis[str] | None = None,
) -> FastAPI:
    """Create FastAPI application with injected dependencies.

    Args:
        dispatch: DispatchService for trip lifecycle
        ledger: WalletLedger for balances and transactions
        negotiation_service: NegotiationService for fare top-ups
        availability: WorkerAvailability for online/offline
        ratings_service: RatingService for trip ratings
        redis_client: Async Redis client for live updates (optional; no fan-out without it)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> Any:
        """Manage application startup and shutdown."""
        subscriber = None
        if redis_client is not None:
            subscriber = RedisSubscriber(redis_client, connection_manager)
            await subscriber.start()
        app.state.subscriber = subscriber
        yield
        if subscriber is not None:
            await subscriber.stop()

    app = FastAPI(
        title="KanggaXpress Dispatch API",
        version="0.1.0",
        description="Trip dispatch, fare negotiation and worker wallets with live updates",
        lifespan=lifespan,
    )

    FastAPIInstrumentor.instrument_app(app)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]
    app.add_exception_handler(KanggaError, kangga_error_handler)

    # Set core dependencies immediately (not in lifespan) so they're available for testing
    app.state.dispatch = dispatch
    app.state.ledger = ledger
    app.state.negotiation = negotiation_service
    app.state.availability = availability
    app.state.ratings = ratings_service
    app.state.redis_client = redis_client
    app.state.connection_manager = connection_manager

    settings = get_settings()
    origins = settings.cors.origins.split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(trips.router, prefix="/trips", tags=["trips"])
    app.include_router(negotiation.router, prefix="/trips", tags=["negotiation"])
    app.include_router(wallet.router, prefix="/wallets", tags=["wallets"])
    app.include_router(workers.router, prefix="/workers", tags=["workers"])
    app.include_router(ratings.router, tags=["ratings"])
    app.include_router(websocket_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint for monitoring (unauthenticated for infrastructure)."""
        return {"status": "healthy"}

    @app.get("/auth/validate")
    async def validate_api_key_endpoint(
        _: str = Depends(verify_api_key),
    ) -> dict[str, str]:
        """Returns 200 for a valid API key, 401 otherwise."""
        return {"status": "authenticated"}

    return app
