"""Selection Tracker — which products and categories are already spoken for.

A product is *accounted for* when the KnowledgeStore holds a record with that
product_name or any active batch holds a job for it, whatever the job's
status.  Nothing is cached: every answer is read from the live store and the
orchestrator's current active batches.
"""

from __future__ import annotations

from typing import Iterable

from scout.pipeline.knowledge import KnowledgeStore
from scout.pipeline.orchestrator import BatchOrchestrator


class SelectionTracker:
    def __init__(self, store: KnowledgeStore, orchestrator: BatchOrchestrator) -> None:
        self._store = store
        self._orchestrator = orchestrator

    def accounted_products(self) -> set[str]:
        names = self._store.product_names()
        for batch in self._orchestrator.active_batches():
            names.update(batch.product_names)
        return names

    def is_product_accounted(self, name: str) -> bool:
        return name in self.accounted_products()

    def is_category_complete(self, category: str, candidate_products: Iterable[str]) -> bool:
        """True iff there is at least one candidate and every candidate is accounted for.

        ``category`` is carried for logging/call-site clarity only; completion
        is decided by the candidate list alone.
        """
        candidates = list(candidate_products)
        if not candidates:
            return False
        accounted = self.accounted_products()
        return all(p in accounted for p in candidates)

    def unaccounted(self, candidate_products: Iterable[str]) -> list[str]:
        """Candidates not yet accounted for, in their original order."""
        accounted = self.accounted_products()
        return [p for p in candidate_products if p not in accounted]
