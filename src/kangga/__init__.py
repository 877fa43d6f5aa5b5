"""Kangga dispatch core: trips, assignment, wallet ledger and fare negotiation."""

__version__ = "0.1.0"
