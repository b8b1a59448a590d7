"""KnowledgeStore — the accepted research records, unique by product_id.

Append-only from the pipeline's point of view.  ``merge()`` derives the next
record tuple from the latest one, so a snapshot obtained from ``records``
before a merge is never altered by it.
"""

from __future__ import annotations

import json
from typing import Iterable

import structlog

from scout.models.schemas import ProductRecord

logger = structlog.get_logger().bind(component="pipeline.knowledge")


class KnowledgeStore:
    def __init__(self, records: Iterable[ProductRecord] = ()) -> None:
        self._records: tuple[ProductRecord, ...] = ()
        self.revision = 0
        self.merge(records)

    @property
    def records(self) -> tuple[ProductRecord, ...]:
        return self._records

    def ids(self) -> set[str]:
        return {r.product_id for r in self._records}

    def product_names(self) -> set[str]:
        return {r.product_name for r in self._records}

    def get(self, product_id: str) -> ProductRecord | None:
        for r in self._records:
            if r.product_id == product_id:
                return r
        return None

    def merge(self, records: Iterable[ProductRecord]) -> list[ProductRecord]:
        """Append records whose product_id is not already present.

        Ids already in the store (or repeated within *records*) are skipped
        silently.  Returns the records actually added, in input order.
        """
        known = self.ids()
        added: list[ProductRecord] = []
        for record in records:
            if record.product_id in known:
                continue
            known.add(record.product_id)
            added.append(record)
        if added:
            self._records = (*self._records, *added)
            self.revision += 1
            logger.info(
                "knowledge_merged",
                added=len(added),
                total=len(self._records),
                revision=self.revision,
            )
        return added

    def to_json(self, records: Iterable[ProductRecord] | None = None) -> str:
        """Pretty JSON array of *records* (defaults to the whole store)."""
        chosen = self._records if records is None else list(records)
        return json.dumps([r.model_dump(mode="json") for r in chosen], indent=2)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, product_id: object) -> bool:
        return any(r.product_id == product_id for r in self._records)
