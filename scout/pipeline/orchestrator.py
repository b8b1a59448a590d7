"""Batch Orchestrator — owns the lifecycle of every research batch.

1. create_batch — one PENDING job per (product_name, category) selection
2. dispatch     — every job → IN_PROGRESS, one research task each, all at once
3. completion   — each task patches its own job to COMPLETE or ERROR
4. dismiss      — drop the batch; late completions for it are discarded

Concurrency model: a single asyncio event loop.  Completions are applied as
targeted patches addressed by ``(batch_id, product_name)`` against the
*current* registry entry, never against a batch captured at dispatch time,
so two jobs finishing back to back cannot overwrite each other and a
dismissed batch (absent from the registry) cannot be resurrected.

There is no concurrency ceiling and no timeout: a hung research call leaves
its job IN_PROGRESS until it returns or the batch is dismissed.
"""

from __future__ import annotations

import asyncio
from typing import Iterable

import structlog

from scout.errors import DuplicateProductInBatch, InvalidJobTransition
from scout.models.batch import Batch, Job, JobStatus, overall_status
from scout.models.schemas import ProductRecord
from scout.models.synapse import SynapseEvent, SynapseEventBus, batch_correlation_id
from scout.pipeline.interfaces import ProductResearcher
from scout.utils import bind_correlation

logger = structlog.get_logger().bind(component="pipeline.orchestrator")

_EVENT_SOURCE = "pipeline.orchestrator"


def _error_message(exc: BaseException) -> str:
    return str(exc).strip() or exc.__class__.__name__


class BatchOrchestrator:
    """Creates, dispatches, tracks and dismisses research batches.

    Args:
        researcher: Anything with ``async research_product(name, category)``.
        synapse:    Event bus for lifecycle tracing (a private one if omitted).
    """

    def __init__(
        self,
        researcher: ProductResearcher,
        synapse: SynapseEventBus | None = None,
    ) -> None:
        self._researcher = researcher
        self.synapse = synapse or SynapseEventBus()
        # batch_id → Batch, in creation order.  Only active batches live here.
        self._batches: dict[int, Batch] = {}
        self._next_id = 1
        # Per-batch outstanding tasks (for wait()), plus a process-wide set so
        # tasks of dismissed batches stay referenced until they finish.
        self._batch_tasks: dict[int, set[asyncio.Task[None]]] = {}
        self._inflight: set[asyncio.Task[None]] = set()

    # ── Registry ──────────────────────────────────────────────────────────

    def active_batches(self) -> list[Batch]:
        return list(self._batches.values())

    def get_batch(self, batch_id: int) -> Batch | None:
        return self._batches.get(batch_id)

    def is_active(self, batch_id: int) -> bool:
        return batch_id in self._batches

    def overall_status(self, batch: Batch) -> JobStatus:
        return overall_status(batch.jobs)

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def create_batch(self, selections: Iterable[tuple[str, str]]) -> Batch | None:
        """Register a new batch of PENDING jobs.

        Args:
            selections: ``(product_name, category)`` pairs, in launch order.

        Returns:
            The new active Batch, or None when *selections* is empty (no id
            is consumed in that case).

        Raises:
            DuplicateProductInBatch: if a product name appears twice.
        """
        pairs = list(selections)
        if not pairs:
            logger.debug("batch_create_skipped_empty")
            return None

        seen: set[str] = set()
        for name, _category in pairs:
            if name in seen:
                logger.warning("batch_duplicate_product_rejected", product=name)
                raise DuplicateProductInBatch(name)
            seen.add(name)

        batch = Batch(
            id=self._next_id,
            jobs=[Job(product_name=name, category=category) for name, category in pairs],
        )
        self._next_id += 1
        self._batches[batch.id] = batch

        logger.info("batch_created", batch_id=batch.id, jobs=len(batch.jobs))
        self.synapse.emit(SynapseEvent(
            correlation_id=batch_correlation_id(batch.id),
            event_type="batch_created",
            source=_EVENT_SOURCE,
            payload={"products": batch.product_names},
        ))
        return batch

    def dispatch(self, batch: Batch | int) -> list[asyncio.Task[None]]:
        """Start one research task per PENDING job.  Must run inside an event loop.

        Jobs already dispatched are left alone, so calling this twice never
        issues a second research call for the same job.
        """
        batch_id = batch if isinstance(batch, int) else batch.id
        live = self._batches.get(batch_id)
        if live is None:
            logger.warning("dispatch_inactive_batch", batch_id=batch_id)
            return []

        tasks: list[asyncio.Task[None]] = []
        for job in list(live.jobs):
            if job.status != JobStatus.PENDING:
                continue
            self._patch(batch_id, job.product_name, JobStatus.IN_PROGRESS)
            task = asyncio.create_task(
                self._run_job(batch_id, job.product_name, job.category),
                name=f"scout-batch-{batch_id}-{job.product_name}",
            )
            self._track(batch_id, task)
            tasks.append(task)

        logger.info("batch_dispatched", batch_id=batch_id, tasks=len(tasks))
        return tasks

    def dismiss(self, batch_id: int) -> bool:
        """Remove a batch from the active set, whatever its status.

        In-flight research calls keep running; their results are dropped when
        they arrive.  Returns False if the batch was not active.
        """
        batch = self._batches.pop(batch_id, None)
        self._batch_tasks.pop(batch_id, None)
        if batch is None:
            return False

        status = overall_status(batch.jobs)
        logger.info("batch_dismissed", batch_id=batch_id, status=status.value)
        self.synapse.emit(SynapseEvent(
            correlation_id=batch_correlation_id(batch_id),
            event_type="batch_dismissed",
            source=_EVENT_SOURCE,
            payload={"status": status.value},
        ))
        return True

    async def wait(self, batch_id: int) -> Batch | None:
        """Wait until every outstanding job of *batch_id* has reported back."""
        tasks = list(self._batch_tasks.get(batch_id, ()))
        if tasks:
            await asyncio.gather(*tasks)
        return self._batches.get(batch_id)

    async def run(self, selections: Iterable[tuple[str, str]]) -> Batch | None:
        """create_batch + dispatch + wait, for callers that just want the outcome."""
        batch = self.create_batch(selections)
        if batch is None:
            return None
        self.dispatch(batch)
        await self.wait(batch.id)
        return batch

    # ── Job plumbing ──────────────────────────────────────────────────────

    def _track(self, batch_id: int, task: asyncio.Task[None]) -> None:
        self._inflight.add(task)
        self._batch_tasks.setdefault(batch_id, set()).add(task)

        def _done(t: asyncio.Task[None]) -> None:
            self._inflight.discard(t)
            pending = self._batch_tasks.get(batch_id)
            if pending is not None:
                pending.discard(t)

        task.add_done_callback(_done)

    async def _run_job(self, batch_id: int, product_name: str, category: str) -> None:
        bind_correlation(batch_correlation_id(batch_id), product=product_name)
        try:
            record = await self._researcher.research_product(product_name, category)
        except Exception as exc:
            message = _error_message(exc)
            logger.warning("job_failed", batch_id=batch_id, product=product_name, error=message)
            self._patch(batch_id, product_name, JobStatus.ERROR, error=message)
            return

        if not isinstance(record, ProductRecord):
            self._patch(
                batch_id,
                product_name,
                JobStatus.ERROR,
                error=f"Research for {product_name!r} returned no product record",
            )
            return
        self._patch(batch_id, product_name, JobStatus.COMPLETE, result=record)

    def _patch(
        self,
        batch_id: int,
        product_name: str,
        status: JobStatus,
        *,
        result: ProductRecord | None = None,
        error: str | None = None,
    ) -> bool:
        """Apply one job transition to the live batch.  Returns False if dropped."""
        cid = batch_correlation_id(batch_id)
        batch = self._batches.get(batch_id)
        if batch is None:
            logger.debug("job_update_discarded", batch_id=batch_id, product=product_name, status=status.value)
            self.synapse.emit(SynapseEvent(
                correlation_id=cid,
                event_type="job_discarded",
                source=_EVENT_SOURCE,
                target=product_name,
                payload={"status": status.value},
            ))
            return False

        job = batch.job(product_name)
        if job is None:
            logger.warning("job_update_unknown_product", batch_id=batch_id, product=product_name)
            return False

        try:
            updated = job.advance(status, result=result, error=error)
        except InvalidJobTransition as exc:
            logger.warning("job_transition_rejected", batch_id=batch_id, error=str(exc))
            return False

        batch.replace_job(updated)

        event_type = {
            JobStatus.IN_PROGRESS: "dispatch",
            JobStatus.COMPLETE: "job_complete",
            JobStatus.ERROR: "job_error",
        }[status]
        payload: dict[str, object] = {"category": updated.category}
        if result is not None:
            payload["product_id"] = result.product_id
        self.synapse.emit(SynapseEvent(
            correlation_id=cid,
            event_type=event_type,
            source=_EVENT_SOURCE,
            target=product_name,
            payload=payload,
            error=error or "",
        ))
        if status.is_terminal:
            logger.info(
                "job_finished",
                batch_id=batch_id,
                product=product_name,
                status=status.value,
                batch_status=overall_status(batch.jobs).value,
            )
        return True
