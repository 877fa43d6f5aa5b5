from pydantic import BaseModel

from kangga.trip import WorkerRole


class GoOnlineRequest(BaseModel):
    role: WorkerRole


class AvailabilityResponse(BaseModel):
    worker_id: str
    is_available: bool
