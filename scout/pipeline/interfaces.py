"""External collaborator contracts.

The pipeline never talks to a backend directly; it is handed objects that
satisfy these protocols.  ``scout.tools.gemini.GeminiClient`` implements the
three research protocols and ``scout.tools.sheets.SheetsExporter`` implements
``RecordExporter``.  Tests pass in fakes.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from pydantic import BaseModel

from scout.models.schemas import ProductRecord


class Destination(BaseModel):
    """An external tabular mirror target (spreadsheet id + display name)."""

    id: str
    name: str = ""


class CategoryDiscoverer(Protocol):
    async def discover_categories(self, query: str) -> list[str]: ...


class ProductIdentifier(Protocol):
    async def identify_products(self, category: str) -> list[str]: ...


class ProductResearcher(Protocol):
    async def research_product(self, product_name: str, category: str) -> ProductRecord: ...


class RecordExporter(Protocol):
    async def export_records(self, destination: Destination, records: Sequence[ProductRecord]) -> None:
        """Append *records* as rows; header is written once when the sheet is empty.

        Raises on failure.
        """
        ...

    async def pick_or_create_destination(self) -> Destination: ...
