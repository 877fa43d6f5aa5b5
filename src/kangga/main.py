"""
KanggaXpress Dispatch - Service Entry Point

Wires the database, wallet ledger, KYC gate, dispatch, negotiation and rating
services into the FastAPI app and serves it with uvicorn. Live updates go
out through Redis when it is enabled; the API keeps working without it.
"""

import logging

import uvicorn
from redis.asyncio import Redis

from kangga.api.app import create_app
from kangga.core.retry import RetryConfig
from kangga.db.database import init_database
from kangga.dispatch import DispatchService, WorkerAvailability, WorkerEligibility
from kangga.kx_logging import setup_logging
from kangga.kyc import DocumentKycGate
from kangga.ledger.service import WalletLedger
from kangga.negotiation import NegotiationService
from kangga.ratings.service import RatingService
from kangga.redis_client.publisher import RedisPublisher
from kangga.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_redis_publisher(settings: Settings) -> RedisPublisher | None:
    """Create Redis publisher with settings."""
    if not settings.redis.enabled:
        return None
    try:
        redis_config = {
            "host": settings.redis.host,
            "port": settings.redis.port,
            "db": settings.redis.db,
            "password": settings.redis.password if settings.redis.password else None,
            "ssl": settings.redis.ssl,
        }
        return RedisPublisher(redis_config)
    except Exception as e:
        logger.warning(f"Redis publisher unavailable: {e}")
        return None


def create_async_redis_client(settings: Settings) -> "Redis[str] | None":
    """Create async Redis client for the WebSocket fan-out."""
    if not settings.redis.enabled:
        return None
    return Redis(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
        password=settings.redis.password or None,
        ssl=settings.redis.ssl,
        decode_responses=True,
    )


def main() -> None:
    """Main entry point - initializes and runs the dispatch API."""
    settings = get_settings()

    setup_logging(
        level=settings.logging.level,
        json_output=settings.logging.format == "json",
        environment=settings.logging.environment,
    )

    logger.info("Starting KanggaXpress dispatch service...")

    session_factory = init_database(
        settings.database.url,
        echo=settings.database.echo,
        busy_timeout_seconds=settings.database.busy_timeout_seconds,
    )
    retry_config = RetryConfig(
        max_attempts=settings.database.max_retries,
        base_delay=settings.database.retry_base_delay,
    )

    redis_publisher = create_redis_publisher(settings)
    if redis_publisher:
        logger.info("Redis publisher configured")
    else:
        logger.info("Redis disabled, live updates will not be published")

    ledger = WalletLedger(session_factory, settings.ledger, redis_publisher, retry_config)
    kyc_gate = DocumentKycGate(session_factory, retry_config)
    eligibility = WorkerEligibility(kyc_gate, ledger, settings.dispatch)
    dispatch = DispatchService(
        session_factory, ledger, eligibility, settings.dispatch, redis_publisher, retry_config
    )
    negotiation = NegotiationService(
        session_factory, settings.negotiation, redis_publisher, retry_config
    )
    availability = WorkerAvailability(session_factory, eligibility, retry_config)
    ratings = RatingService(session_factory, retry_config)

    app = create_app(
        dispatch=dispatch,
        ledger=ledger,
        negotiation_service=negotiation,
        availability=availability,
        ratings_service=ratings,
        redis_client=create_async_redis_client(settings),
    )

    logger.info(f"Serving dispatch API on {settings.api.host}:{settings.api.port}")
    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
