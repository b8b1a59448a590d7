"""DiscoverySession — query → categories → products → launched batch.

Holds the transient selection sets for one discovery cycle.  Completion of
categories and products is always asked of the SelectionTracker, so launching
a batch or committing results elsewhere is reflected here without any
refresh step.
"""

from __future__ import annotations

import asyncio

import structlog

from scout.models.batch import Batch, JobStatus
from scout.pipeline.interfaces import CategoryDiscoverer, ProductIdentifier
from scout.pipeline.orchestrator import BatchOrchestrator
from scout.pipeline.tracker import SelectionTracker

logger = structlog.get_logger().bind(component="pipeline.discovery")

NO_CATEGORIES_MESSAGE = "No categories found for this query."


class DiscoverySession:
    def __init__(
        self,
        discoverer: CategoryDiscoverer,
        identifier: ProductIdentifier,
        tracker: SelectionTracker,
        orchestrator: BatchOrchestrator,
    ) -> None:
        self._discoverer = discoverer
        self._identifier = identifier
        self._tracker = tracker
        self._orchestrator = orchestrator

        self.query = ""
        self.discovery_status = JobStatus.IDLE
        self.identification_status = JobStatus.IDLE
        self.categories: list[str] = []
        self.selected_categories: set[str] = set()
        self.identified_products: dict[str, list[str]] = {}
        self.selected_products: dict[str, set[str]] = {}
        self.error_message: str | None = None

    def reset(self, clear_query: bool = False) -> None:
        if clear_query:
            self.query = ""
        self.discovery_status = JobStatus.IDLE
        self.identification_status = JobStatus.IDLE
        self.categories = []
        self.selected_categories = set()
        self.identified_products = {}
        self.selected_products = {}
        self.error_message = None

    # ── Stage 1: categories ──────────────────────────────────────────────

    async def discover(self, query: str) -> list[str]:
        """Ask the backend for categories.  A blank query does nothing.

        Failures are recorded on the session (status ERROR + message), not raised.
        """
        if not query.strip():
            return []
        self.reset()
        self.query = query
        self.discovery_status = JobStatus.IN_PROGRESS
        try:
            categories = await self._discoverer.discover_categories(query)
        except Exception as exc:
            self.error_message = str(exc).strip() or "Failed to discover categories."
            self.discovery_status = JobStatus.ERROR
            logger.warning("discovery_failed", query=query[:80], error=self.error_message)
            return []

        self.categories = list(categories)
        self.discovery_status = JobStatus.COMPLETE
        if not self.categories:
            self.error_message = NO_CATEGORIES_MESSAGE
        logger.info("discovery_complete", query=query[:80], categories=len(self.categories))
        return self.categories

    def category_completion(self) -> dict[str, bool]:
        """category → complete?  Categories not yet identified are incomplete."""
        return {
            cat: self._tracker.is_category_complete(cat, self.identified_products.get(cat, []))
            for cat in self.categories
        }

    def toggle_category(self, category: str) -> bool:
        """Flip a category's selection; complete categories cannot be selected."""
        if category in self.selected_categories:
            self.selected_categories.discard(category)
            return False
        if self._tracker.is_category_complete(category, self.identified_products.get(category, [])):
            return False
        self.selected_categories.add(category)
        return True

    # ── Stage 2: products ────────────────────────────────────────────────

    async def identify(self) -> dict[str, list[str]]:
        """Identify products for every selected category, concurrently.

        Products not yet accounted for are pre-selected.  If any category
        fails the whole stage is marked ERROR, as the results are only
        useful together.
        """
        if not self.selected_categories:
            return {}
        cats = sorted(self.selected_categories)
        self.identification_status = JobStatus.IN_PROGRESS
        self.error_message = None
        try:
            results = await asyncio.gather(*(self._identifier.identify_products(c) for c in cats))
        except Exception as exc:
            self.error_message = str(exc).strip() or "Failed to identify products."
            self.identification_status = JobStatus.ERROR
            logger.warning("identification_failed", categories=cats, error=self.error_message)
            return {}

        self.identified_products = {cat: list(products) for cat, products in zip(cats, results)}
        self.selected_products = {
            cat: set(self._tracker.unaccounted(products))
            for cat, products in self.identified_products.items()
        }
        self.identification_status = JobStatus.COMPLETE
        logger.info(
            "identification_complete",
            categories=len(cats),
            products=sum(len(p) for p in results),
            preselected=self.selected_count,
        )
        return self.identified_products

    def toggle_product(self, category: str, product_name: str) -> bool:
        """Flip a product's selection; accounted-for products cannot be selected."""
        chosen = self.selected_products.setdefault(category, set())
        if product_name in chosen:
            chosen.discard(product_name)
            return False
        if self._tracker.is_product_accounted(product_name):
            return False
        chosen.add(product_name)
        return True

    @property
    def selected_count(self) -> int:
        return sum(len(s) for s in self.selected_products.values())

    def selections(self) -> list[tuple[str, str]]:
        """Flatten selected products into ``(product_name, category)`` pairs.

        Follows the identified order so launches are deterministic.  A product
        chosen under two categories is launched once, under the first.
        Products accounted for since selection (stored or reserved by
        another batch) are left out.
        """
        pairs: list[tuple[str, str]] = []
        seen = self._tracker.accounted_products()
        for cat, products in self.identified_products.items():
            chosen = self.selected_products.get(cat, set())
            for name in products:
                if name in chosen and name not in seen:
                    seen.add(name)
                    pairs.append((name, cat))
        return pairs

    # ── Stage 3: launch ──────────────────────────────────────────────────

    def launch(self) -> Batch | None:
        """Create and dispatch a batch for the selected products.

        Must be called from inside the event loop.  Returns None when nothing
        is selected.
        """
        pairs = self.selections()
        if not pairs:
            return None
        batch = self._orchestrator.create_batch(pairs)
        if batch is None:
            return None
        self._orchestrator.dispatch(batch)
        self.selected_categories = set()
        self.selected_products = {}
        return batch
