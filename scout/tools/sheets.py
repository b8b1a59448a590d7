"""Google Sheets mirror — appends committed records as spreadsheet rows.

Uses the Sheets v4 REST API with an OAuth bearer token (obtaining the token
is outside Scout; put it in ``SHEETS_ACCESS_TOKEN``).  Appends are row-level
and safe to repeat; the header row is written only when the sheet is empty.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

import httpx
import structlog

from scout.config import settings
from scout.errors import ExportError
from scout.models.schemas import ProductRecord
from scout.pipeline.interfaces import Destination

logger = structlog.get_logger().bind(component="tools.sheets")

SHEET_HEADER = [
    "product_id",
    "product_name",
    "category",
    "price_usd",
    "summary_description",
    "summary_pros",
    "summary_cons",
    "specifications",
    "review_urls",
    "retail_urls",
    "research_date",
]


def flatten_record(record: ProductRecord) -> list[Any]:
    """One spreadsheet row per record, columns in SHEET_HEADER order."""
    return [
        record.product_id,
        record.product_name,
        record.category,
        record.price_usd,
        record.summary.description,
        "\n".join(record.summary.pros),
        "\n".join(record.summary.cons),
        json.dumps(record.specifications, indent=2),
        "\n".join(record.source_info.review_urls),
        "\n".join(record.source_info.retail_urls),
        record.source_info.research_date,
    ]


class SheetsExporter:
    """RecordExporter backed by Google Sheets.

    Args:
        access_token:   Defaults to ``settings.sheets_access_token``.
        spreadsheet_id: Default destination; a new spreadsheet is created
                        by ``pick_or_create_destination`` when empty.
        sheet:          Tab name rows are appended to.
        _client:        Pre-built ``httpx.AsyncClient`` (inject for tests).
    """

    def __init__(
        self,
        access_token: str | None = None,
        spreadsheet_id: str | None = None,
        sheet: str | None = None,
        base_url: str | None = None,
        *,
        _client: httpx.AsyncClient | None = None,
    ) -> None:
        self.access_token = access_token if access_token is not None else settings.sheets_access_token
        self.spreadsheet_id = spreadsheet_id if spreadsheet_id is not None else settings.sheets_spreadsheet_id
        self.sheet = sheet or settings.sheets_range
        self.base_url = (base_url or settings.sheets_base_url).rstrip("/")
        self._client = _client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=30.0)
        return self._client

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def pick_or_create_destination(self) -> Destination:
        """Return the configured spreadsheet, creating one if none is set."""
        if self.spreadsheet_id:
            return Destination(id=self.spreadsheet_id, name=self.spreadsheet_id)

        client = await self._get_client()
        try:
            response = await client.post(
                "/spreadsheets",
                json={"properties": {"title": settings.sheets_title}},
                headers=self._headers(),
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ExportError(f"Could not create spreadsheet: {exc}") from exc

        self.spreadsheet_id = body["spreadsheetId"]
        name = (body.get("properties") or {}).get("title", settings.sheets_title)
        logger.info("spreadsheet_created", spreadsheet_id=self.spreadsheet_id, title=name)
        return Destination(id=self.spreadsheet_id, name=name)

    async def _is_empty(self, client: httpx.AsyncClient, spreadsheet_id: str) -> bool:
        response = await client.get(
            f"/spreadsheets/{spreadsheet_id}/values/{self.sheet}!A1:A1",
            headers=self._headers(),
        )
        response.raise_for_status()
        return not response.json().get("values")

    async def export_records(self, destination: Destination, records: Sequence[ProductRecord]) -> None:
        """Append *records*; prepend SHEET_HEADER if the sheet is empty.

        Raises:
            ExportError: on any transport or API failure.
        """
        if not records:
            return
        client = await self._get_client()
        rows = [flatten_record(r) for r in records]
        try:
            if await self._is_empty(client, destination.id):
                rows.insert(0, list(SHEET_HEADER))
            response = await client.post(
                f"/spreadsheets/{destination.id}/values/{self.sheet}!A1:append",
                params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
                json={"values": rows},
                headers=self._headers(),
            )
            response.raise_for_status()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("sheets_append_failed", spreadsheet_id=destination.id, error=str(exc))
            raise ExportError(f"Failed to append to spreadsheet {destination.name or destination.id}: {exc}") from exc

        logger.info("sheets_append_complete", spreadsheet_id=destination.id, rows=len(rows))
