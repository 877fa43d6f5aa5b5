"""Requester ratings of finished trips."""
