"""Job and Batch — the unit of concurrent research work.

Job state machine::

    pending ──▶ in-progress ──▶ complete
                           └──▶ error

``complete`` and ``error`` are absorbing.  A Batch never stores its own
status; ``overall_status()`` derives it from the job statuses every time it
is asked.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, Field

from scout.errors import InvalidJobTransition
from scout.models.schemas import ProductRecord


class JobStatus(str, enum.Enum):
    """Pipeline stage status.

    IDLE is only ever a derived batch status (a batch with no jobs); jobs
    themselves start at PENDING.
    """

    IDLE = "idle"
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.ERROR)


# Legal job transitions: current status → statuses it may move to
_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.IN_PROGRESS}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.COMPLETE, JobStatus.ERROR}),
    JobStatus.COMPLETE: frozenset(),
    JobStatus.ERROR: frozenset(),
}


class Job(BaseModel):
    """One product's research task within a batch."""

    product_name: str
    category: str
    status: JobStatus = JobStatus.PENDING
    result: ProductRecord | None = None
    error: str | None = None

    def advance(
        self,
        status: JobStatus,
        *,
        result: ProductRecord | None = None,
        error: str | None = None,
    ) -> "Job":
        """Return a copy of this job moved to *status*.

        Raises:
            InvalidJobTransition: if the state machine forbids the move.
        """
        if status not in _TRANSITIONS[self.status]:
            raise InvalidJobTransition(
                f"Job {self.product_name!r}: {self.status.value} → {status.value} is not allowed"
            )
        if status == JobStatus.COMPLETE and result is None:
            raise InvalidJobTransition(f"Job {self.product_name!r}: complete without a result")
        return self.model_copy(update={"status": status, "result": result, "error": error})


def overall_status(jobs: list[Job]) -> JobStatus:
    """Derive a batch's status from its jobs.

    Precedence: no jobs → IDLE; any IN_PROGRESS → IN_PROGRESS; all terminal →
    ERROR if any job errored, else COMPLETE; anything else → PENDING.
    """
    if not jobs:
        return JobStatus.IDLE
    if any(j.status == JobStatus.IN_PROGRESS for j in jobs):
        return JobStatus.IN_PROGRESS
    if all(j.status.is_terminal for j in jobs):
        if any(j.status == JobStatus.ERROR for j in jobs):
            return JobStatus.ERROR
        return JobStatus.COMPLETE
    return JobStatus.PENDING


class Batch(BaseModel):
    """A launched group of concurrently researched products.

    Jobs are kept in launch order and addressed by ``product_name``, which is
    unique within the batch.
    """

    id: int
    jobs: list[Job] = Field(default_factory=list)

    @property
    def status(self) -> JobStatus:
        return overall_status(self.jobs)

    def job(self, product_name: str) -> Job | None:
        for j in self.jobs:
            if j.product_name == product_name:
                return j
        return None

    def replace_job(self, job: Job) -> None:
        """Swap in *job* at the slot of the job with the same product name."""
        for idx, existing in enumerate(self.jobs):
            if existing.product_name == job.product_name:
                self.jobs[idx] = job
                return
        raise KeyError(f"Batch {self.id} has no job for {job.product_name!r}")

    @property
    def completed_jobs(self) -> list[Job]:
        return [j for j in self.jobs if j.status == JobStatus.COMPLETE and j.result is not None]

    @property
    def errored_jobs(self) -> list[Job]:
        return [j for j in self.jobs if j.status == JobStatus.ERROR]

    @property
    def successful_results(self) -> list[ProductRecord]:
        return [j.result for j in self.completed_jobs if j.result is not None]

    @property
    def product_names(self) -> list[str]:
        return [j.product_name for j in self.jobs]
