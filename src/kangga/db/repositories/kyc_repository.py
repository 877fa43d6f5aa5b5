"""Read-only access to KYC documents written by the verification service."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..schema import KycDocument


class KycRepository:
    def __init__(self, session: Session):
        self.session = session

    def latest_statuses(self, owner_id: str) -> dict[str, str]:
        """Status of the most recent document of each type for an owner."""
        stmt = (
            select(KycDocument.doc_type, KycDocument.status)
            .where(KycDocument.owner_id == owner_id)
            .order_by(KycDocument.created_at, KycDocument.id)
        )
        latest: dict[str, str] = {}
        for doc_type, status in self.session.execute(stmt):
            latest[doc_type] = status
        return latest
