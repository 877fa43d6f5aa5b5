"""Repository layer for database reads and conditional writes."""

from .kyc_repository import KycRepository
from .rating_repository import RatingRepository
from .trip_repository import TripRepository
from .wallet_repository import WalletRepository
from .worker_repository import WorkerRepository

__all__ = [
    "KycRepository",
    "RatingRepository",
    "TripRepository",
    "WalletRepository",
    "WorkerRepository",
]
