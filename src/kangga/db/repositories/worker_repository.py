"""Worker availability repository."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..schema import Worker
from ..utils import utc_now


class WorkerRepository:
    def __init__(self, session: Session):
        self.session = session

    def set_availability(self, worker_id: str, role: str, available: bool) -> None:
        worker = self.session.get(Worker, worker_id)
        if worker is None:
            self.session.add(Worker(worker_id=worker_id, role=role, is_available=available))
        else:
            worker.role = role
            worker.is_available = available
            worker.updated_at = utc_now()
        self.session.flush()

    def is_available(self, worker_id: str) -> bool:
        stmt = select(Worker.is_available).where(Worker.worker_id == worker_id)
        return bool(self.session.execute(stmt).scalar_one_or_none())

    def get_role(self, worker_id: str) -> str | None:
        stmt = select(Worker.role).where(Worker.worker_id == worker_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_available(self, role: str) -> list[str]:
        stmt = (
            select(Worker.worker_id)
            .where(Worker.role == role, Worker.is_available.is_(True))
            .order_by(Worker.worker_id)
        )
        return list(self.session.execute(stmt).scalars().all())
