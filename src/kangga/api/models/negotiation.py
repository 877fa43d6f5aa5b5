"""Request models for fare negotiation endpoints."""

from decimal import Decimal

from pydantic import BaseModel, Field

from kangga.money import MAX_AMOUNT
from kangga.trip import PartyRole


class ProposeTopUpRequest(BaseModel):
    proposer_role: PartyRole
    proposer_id: str = Field(..., min_length=1)
    top_up: Decimal = Field(
        ..., ge=-MAX_AMOUNT, le=MAX_AMOUNT, description="Amount added to the base fare"
    )
    reason: str | None = Field(None, max_length=500)


class ResolveProposalRequest(BaseModel):
    resolver_id: str = Field(..., min_length=1, description="The party that did not propose")
