"""SheetsExporter — row flattening, header-once appends, destination creation."""

from __future__ import annotations

import json

import httpx
import pytest

from scout.errors import ExportError
from scout.pipeline import Destination
from scout.tools.sheets import SHEET_HEADER, SheetsExporter, flatten_record

_BASE = "https://sheets.test/v4"


def _exporter(handler, spreadsheet_id: str = "") -> SheetsExporter:
    http = httpx.AsyncClient(base_url=_BASE, transport=httpx.MockTransport(handler))
    return SheetsExporter(
        access_token="tok",
        spreadsheet_id=spreadsheet_id,
        sheet="Sheet1",
        base_url=_BASE,
        _client=http,
    )


class FakeSheet:
    """Records appends; reports non-empty once anything has been appended."""

    def __init__(self, rows: list[list] | None = None, fail_append: bool = False) -> None:
        self.rows = rows or []
        self.fail_append = fail_append
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET" and path.endswith("A1:A1"):
            body = {"range": "Sheet1!A1:A1"}
            if self.rows:
                body["values"] = [[self.rows[0][0]]]
            return httpx.Response(200, json=body)
        if request.method == "POST" and path.endswith(":append"):
            if self.fail_append:
                return httpx.Response(403, json={"error": {"message": "forbidden"}})
            self.rows.extend(json.loads(request.content)["values"])
            return httpx.Response(200, json={"updates": {}})
        if request.method == "POST" and path.endswith("/spreadsheets"):
            return httpx.Response(200, json={"spreadsheetId": "new-id", "properties": {"title": "Research"}})
        return httpx.Response(404)


def test_flatten_record(make_record):
    record = make_record("XM5")
    record.summary.pros = ["ANC", "Comfort"]
    row = flatten_record(record)

    assert len(row) == len(SHEET_HEADER)
    assert row[0] == "xm5"
    assert row[3] == 199.0
    assert row[5] == "ANC\nComfort"
    assert json.loads(row[7]) == {"weight_grams": 250}
    assert row[10] == "2026-01-15"


@pytest.mark.asyncio
async def test_empty_sheet_gets_header_once(make_record):
    sheet = FakeSheet()
    exporter = _exporter(sheet)
    dest = Destination(id="abc", name="Research")

    await exporter.export_records(dest, [make_record("P1")])
    await exporter.export_records(dest, [make_record("P2")])

    assert sheet.rows[0] == SHEET_HEADER
    assert [r[0] for r in sheet.rows[1:]] == ["p1", "p2"]
    append = next(r for r in sheet.requests if r.method == "POST")
    assert append.url.params["valueInputOption"] == "RAW"
    assert append.headers["authorization"] == "Bearer tok"


@pytest.mark.asyncio
async def test_nonempty_sheet_appends_rows_only(make_record):
    sheet = FakeSheet(rows=[list(SHEET_HEADER)])
    exporter = _exporter(sheet)

    await exporter.export_records(Destination(id="abc"), [make_record("P1")])

    assert sheet.rows.count(SHEET_HEADER) == 1
    assert sheet.rows[-1][0] == "p1"


@pytest.mark.asyncio
async def test_export_nothing_makes_no_requests():
    sheet = FakeSheet()
    await _exporter(sheet).export_records(Destination(id="abc"), [])
    assert sheet.requests == []


@pytest.mark.asyncio
async def test_api_failure_raises_export_error(make_record):
    exporter = _exporter(FakeSheet(fail_append=True))
    with pytest.raises(ExportError, match="Research"):
        await exporter.export_records(Destination(id="abc", name="Research"), [make_record("P1")])


@pytest.mark.asyncio
async def test_configured_destination_is_reused():
    sheet = FakeSheet()
    dest = await _exporter(sheet, spreadsheet_id="existing").pick_or_create_destination()
    assert dest.id == "existing"
    assert sheet.requests == []


@pytest.mark.asyncio
async def test_destination_created_when_unset():
    sheet = FakeSheet()
    exporter = _exporter(sheet)

    dest = await exporter.pick_or_create_destination()

    assert dest == Destination(id="new-id", name="Research")
    assert exporter.spreadsheet_id == "new-id"
    # Second call reuses the created spreadsheet
    assert (await exporter.pick_or_create_destination()).id == "new-id"
    assert len(sheet.requests) == 1


@pytest.mark.asyncio
async def test_create_failure_raises_export_error():
    exporter = _exporter(lambda r: httpx.Response(401, json={}))
    with pytest.raises(ExportError, match="create spreadsheet"):
        await exporter.pick_or_create_destination()
