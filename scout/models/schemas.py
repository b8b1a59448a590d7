"""ProductRecord — the unit of accepted research.

A record is produced by the research backend for one product and, once the
user accepts it, lives in the KnowledgeStore keyed by ``product_id``.
"""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, Field

SpecValue = Union[str, int, float, bool, None]


class ProductSummary(BaseModel):
    description: str = ""
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)


class ProductSourceInfo(BaseModel):
    review_urls: list[str] = Field(default_factory=list)
    retail_urls: list[str] = Field(default_factory=list)
    research_date: str = Field(default="", description="ISO 8601 date (YYYY-MM-DD)")


class ProductRecord(BaseModel):
    """A fully researched product.

    ``product_id`` is a slug-style identifier that stays stable when the same
    product is researched again, which is what deduplication keys on.
    """

    product_id: str = Field(description="Unique slug, e.g. 'sony-wh1000xm5'")
    product_name: str
    category: str
    price_usd: float | None = Field(
        default=None,
        description="Approximate retail price; None when unknown",
    )
    summary: ProductSummary = Field(default_factory=ProductSummary)
    specifications: dict[str, SpecValue] = Field(default_factory=dict)
    source_info: ProductSourceInfo = Field(default_factory=ProductSourceInfo)

    @property
    def all_urls(self) -> list[str]:
        """Review URLs followed by retail URLs."""
        return [*self.source_info.review_urls, *self.source_info.retail_urls]
