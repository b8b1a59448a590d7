"""Unit-test conftest — fake collaborators and shared fixtures.

All fixtures here are available to every test under tests/unit/ without import.
"""

from __future__ import annotations

import asyncio
import re
from typing import Sequence

import pytest

from scout.models.schemas import ProductRecord, ProductSourceInfo, ProductSummary
from scout.models.synapse import SynapseEventBus
from scout.pipeline import BatchOrchestrator, Destination, KnowledgeStore, SelectionTracker


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def make_record(name: str, category: str = "Headphones", product_id: str | None = None) -> ProductRecord:
    return ProductRecord(
        product_id=product_id or slugify(name),
        product_name=name,
        category=category,
        price_usd=199.0,
        summary=ProductSummary(description=f"{name} overview", pros=["good"], cons=["pricey"]),
        specifications={"weight_grams": 250},
        source_info=ProductSourceInfo(
            review_urls=[f"https://reviews.example/{slugify(name)}"],
            retail_urls=[f"https://shop.example/{slugify(name)}"],
            research_date="2026-01-15",
        ),
    )


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run until the loop has nothing immediate left to do."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ─────────────────────────────────────────────────────────────────────────────
# FakeResearcher: controllable stand-in for GeminiClient.research_product
# ─────────────────────────────────────────────────────────────────────────────

class FakeResearcher:
    """Configurable fake research backend.

    Args:
        outcomes: product_name → ProductRecord to return or Exception to raise.
                  Unlisted products get ``make_record(name, category)``.
        gated:    When True each call blocks until ``release(name)`` is called,
                  so tests decide the completion order.
    """

    def __init__(
        self,
        outcomes: dict[str, ProductRecord | BaseException | None] | None = None,
        *,
        gated: bool = False,
    ) -> None:
        self.outcomes = outcomes or {}
        self.gated = gated
        self.calls: list[tuple[str, str]] = []
        self._gates: dict[str, asyncio.Event] = {}

    def _gate(self, name: str) -> asyncio.Event:
        return self._gates.setdefault(name, asyncio.Event())

    def release(self, *names: str) -> None:
        for name in names:
            self._gate(name).set()

    async def research_product(self, product_name: str, category: str) -> ProductRecord:
        self.calls.append((product_name, category))
        if self.gated:
            await self._gate(product_name).wait()
        if product_name in self.outcomes:
            outcome = self.outcomes[product_name]
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome  # type: ignore[return-value]
        return make_record(product_name, category)


class FakeCatalog:
    """Discovery + identification fake."""

    def __init__(
        self,
        categories: list[str] | None = None,
        products: dict[str, list[str]] | None = None,
        raises: Exception | None = None,
    ) -> None:
        self.categories = categories or []
        self.products = products or {}
        self.raises = raises
        self.identify_calls: list[str] = []

    async def discover_categories(self, query: str) -> list[str]:
        if self.raises:
            raise self.raises
        return list(self.categories)

    async def identify_products(self, category: str) -> list[str]:
        self.identify_calls.append(category)
        if self.raises:
            raise self.raises
        return list(self.products.get(category, []))


class FakeExporter:
    def __init__(self, raises: Exception | None = None) -> None:
        self.raises = raises
        self.exported: list[tuple[str, list[str]]] = []
        self.created = 0

    async def pick_or_create_destination(self) -> Destination:
        self.created += 1
        return Destination(id="sheet-1", name="Research")

    async def export_records(self, destination: Destination, records: Sequence[ProductRecord]) -> None:
        if self.raises:
            raise self.raises
        self.exported.append((destination.id, [r.product_id for r in records]))


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def synapse():
    return SynapseEventBus(persist=False)


@pytest.fixture
def store():
    return KnowledgeStore()


@pytest.fixture
def researcher():
    return FakeResearcher()


@pytest.fixture
def gated_researcher():
    return FakeResearcher(gated=True)


@pytest.fixture
def orchestrator(researcher, synapse):
    return BatchOrchestrator(researcher, synapse)


@pytest.fixture
def tracker(store, orchestrator):
    return SelectionTracker(store, orchestrator)


# Factories exposed as fixtures so test modules never import from conftest

@pytest.fixture(name="make_record")
def make_record_fixture():
    return make_record


@pytest.fixture(name="settle")
def settle_fixture():
    return settle


@pytest.fixture
def fake_researcher():
    return FakeResearcher


@pytest.fixture
def fake_catalog():
    return FakeCatalog


@pytest.fixture
def fake_exporter():
    return FakeExporter
