"""Database persistence module."""

from .database import init_database
from .schema import KycDocument, PlatformMetadata, Trip, WalletAccount, WalletTransaction, Worker
from .transaction import run_in_transaction, transaction

__all__ = [
    "init_database",
    "KycDocument",
    "PlatformMetadata",
    "Trip",
    "WalletAccount",
    "WalletTransaction",
    "Worker",
    "run_in_transaction",
    "transaction",
]
