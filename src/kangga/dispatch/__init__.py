"""Assignment and lifecycle dispatch."""

from kangga.dispatch.availability import WorkerAvailability
from kangga.dispatch.eligibility import WorkerEligibility
from kangga.dispatch.service import DispatchService

__all__ = ["DispatchService", "WorkerAvailability", "WorkerEligibility"]
