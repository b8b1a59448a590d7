"""Aggregation/Dedup Engine — review a batch's results and commit them.

An ``AggregationSession`` is opened on one batch.  Its results are split
into *new* (product_id not in the KnowledgeStore) and *duplicate* (already
known).  The split is recomputed from the live store on every read, so a
commit made by another session shows up here immediately and a result that
has become a duplicate drops out of the selection.

Selection model: every new result is selected unless the user has toggled
it off.  Only the user's opt-outs are stored, so results that become
duplicates simply stop being selectable.

Commit merges the selected new results into the store (ids that appeared
in the meantime are skipped) and dismisses the batch.  Export to the
spreadsheet mirror is separate and can fail without touching the commit.
"""

from __future__ import annotations

from typing import Iterable, NamedTuple

import structlog
from pydantic import BaseModel, Field

from scout.models.batch import Batch
from scout.models.schemas import ProductRecord
from scout.models.synapse import SynapseEvent, batch_correlation_id
from scout.pipeline.interfaces import Destination, RecordExporter
from scout.pipeline.knowledge import KnowledgeStore
from scout.pipeline.orchestrator import BatchOrchestrator

logger = structlog.get_logger().bind(component="pipeline.aggregation")

_EVENT_SOURCE = "pipeline.aggregation"


class Partition(NamedTuple):
    new: list[ProductRecord]
    duplicate: list[ProductRecord]


def partition(results: Iterable[ProductRecord], store: KnowledgeStore) -> Partition:
    """Split *results* by whether their product_id is already in *store*.

    Lossless and order-preserving: every input lands in exactly one list.
    """
    known = store.ids()
    new: list[ProductRecord] = []
    duplicate: list[ProductRecord] = []
    for record in results:
        (duplicate if record.product_id in known else new).append(record)
    return Partition(new=new, duplicate=duplicate)


class ExportOutcome(BaseModel):
    """Result of mirroring records to the external spreadsheet."""

    ok: bool
    destination: Destination | None = None
    exported: int = 0
    error: str = ""


class CommitOutcome(BaseModel):
    """What a commit did to the KnowledgeStore (and the mirror, if asked)."""

    committed: list[ProductRecord] = Field(default_factory=list)
    skipped_ids: list[str] = Field(
        default_factory=list,
        description="Selected ids already present in the store at commit time",
    )
    batch_dismissed: bool = False
    export: ExportOutcome | None = None


class AggregationSession:
    """Review state for one batch's successful results.

    Args:
        batch:        The batch whose results are being reviewed.
        store:        The live KnowledgeStore.
        orchestrator: Used to dismiss the batch after commit.
    """

    def __init__(
        self,
        batch: Batch,
        store: KnowledgeStore,
        orchestrator: BatchOrchestrator,
    ) -> None:
        self.batch = batch
        self._store = store
        self._orchestrator = orchestrator
        self._deselected: set[str] = set()

    # ── Derived views ─────────────────────────────────────────────────────

    @property
    def results(self) -> list[ProductRecord]:
        return self.batch.successful_results

    def partition(self) -> Partition:
        return partition(self.results, self._store)

    @property
    def new_results(self) -> list[ProductRecord]:
        return self.partition().new

    @property
    def duplicate_results(self) -> list[ProductRecord]:
        return self.partition().duplicate

    @property
    def selected_ids(self) -> set[str]:
        return {r.product_id for r in self.new_results if r.product_id not in self._deselected}

    @property
    def selected_records(self) -> list[ProductRecord]:
        selected = self.selected_ids
        return [r for r in self.new_results if r.product_id in selected]

    def is_selected(self, product_id: str) -> bool:
        return product_id in self.selected_ids

    # ── User actions ──────────────────────────────────────────────────────

    def toggle_selection(self, product_id: str) -> bool:
        """Flip selection of a new result.  Duplicate or unknown ids are ignored.

        Returns whether *product_id* is selected afterwards.
        """
        if product_id not in {r.product_id for r in self.new_results}:
            logger.debug("toggle_ignored", batch_id=self.batch.id, product_id=product_id)
            return False
        if product_id in self._deselected:
            self._deselected.discard(product_id)
        else:
            self._deselected.add(product_id)
        return product_id not in self._deselected

    def commit(self, selected_ids: Iterable[str] | None = None) -> CommitOutcome:
        """Merge the selected new results into the store and dismiss the batch.

        Args:
            selected_ids: Ids to commit; defaults to the current selection.
                Ids that are not new results are ignored.

        An empty effective selection is a no-op: nothing is merged and the
        batch stays active.
        """
        wanted = self.selected_ids if selected_ids is None else set(selected_ids)
        chosen = [r for r in self.new_results if r.product_id in wanted]
        if not chosen:
            logger.info("commit_skipped_empty", batch_id=self.batch.id)
            return CommitOutcome()

        added = self._store.merge(chosen)
        added_ids = {r.product_id for r in added}
        skipped = [r.product_id for r in chosen if r.product_id not in added_ids]
        dismissed = self._orchestrator.dismiss(self.batch.id)

        logger.info(
            "commit_complete",
            batch_id=self.batch.id,
            committed=len(added),
            skipped=len(skipped),
        )
        self._orchestrator.synapse.emit(SynapseEvent(
            correlation_id=batch_correlation_id(self.batch.id),
            event_type="commit",
            source=_EVENT_SOURCE,
            payload={"committed": sorted(added_ids), "skipped": skipped},
        ))
        return CommitOutcome(committed=added, skipped_ids=skipped, batch_dismissed=dismissed)

    async def export(
        self,
        exporter: RecordExporter,
        destination: Destination | None = None,
        records: list[ProductRecord] | None = None,
    ) -> ExportOutcome:
        """Append records (default: current selection) to the external mirror.

        Never raises for exporter failures; they come back as ``ok=False``.
        """
        to_send = self.selected_records if records is None else records
        if not to_send:
            return ExportOutcome(ok=True, destination=destination)

        try:
            target = destination or await exporter.pick_or_create_destination()
            await exporter.export_records(target, to_send)
        except Exception as exc:
            message = str(exc).strip() or exc.__class__.__name__
            logger.warning("export_failed", batch_id=self.batch.id, error=message)
            self._orchestrator.synapse.emit(SynapseEvent(
                correlation_id=batch_correlation_id(self.batch.id),
                event_type="export",
                source=_EVENT_SOURCE,
                error=message,
            ))
            return ExportOutcome(ok=False, destination=destination, error=message)

        logger.info("export_complete", batch_id=self.batch.id, rows=len(to_send), destination=target.id)
        self._orchestrator.synapse.emit(SynapseEvent(
            correlation_id=batch_correlation_id(self.batch.id),
            event_type="export",
            source=_EVENT_SOURCE,
            payload={"destination": target.id, "rows": len(to_send)},
        ))
        return ExportOutcome(ok=True, destination=target, exported=len(to_send))

    async def finalize(
        self,
        selected_ids: Iterable[str] | None = None,
        exporter: RecordExporter | None = None,
        destination: Destination | None = None,
    ) -> CommitOutcome:
        """Commit, then mirror the same records when an exporter is given.

        The records to mirror are captured before the commit (afterwards they
        would count as duplicates).  Export failure is reported on the
        outcome and leaves the commit in place.
        """
        wanted = self.selected_ids if selected_ids is None else set(selected_ids)
        chosen = [r for r in self.new_results if r.product_id in wanted]
        outcome = self.commit(wanted)
        if exporter is not None and chosen:
            outcome.export = await self.export(exporter, destination, records=chosen)
        return outcome

    def to_json(self) -> str:
        """JSON of the current selection."""
        return self._store.to_json(self.selected_records)
