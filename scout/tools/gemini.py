"""Async client for the Gemini Generative Language REST API.

Implements the three research collaborators the pipeline consumes:

    discover_categories(query)            → list[str]
    identify_products(category)           → list[str]
    research_product(name, category)      → ProductRecord

Discovery and identification use schema-constrained JSON output.  Research
uses Google Search grounding, which cannot be combined with a response
schema, so its free-text answer is cleaned up before parsing and the
grounding source URLs are folded into the record.

Every failure surfaces as ``ResearchBackendError`` with a message fit to show
a user.
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from scout.config import settings
from scout.errors import ResearchBackendError
from scout.models.schemas import ProductRecord
from scout.utils.clock import today_str

logger = structlog.get_logger().bind(component="tools.gemini")

_DISCOVERY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "categories": {
            "type": "ARRAY",
            "description": "A list of potential product categories based on the user query.",
            "items": {"type": "STRING"},
        },
    },
    "required": ["categories"],
}

_IDENTIFICATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "products": {
            "type": "ARRAY",
            "description": "A list of specific, popular, and researchable product names within the given category.",
            "items": {"type": "STRING"},
        },
    },
    "required": ["products"],
}

_RESEARCH_PROMPT = """\
Conduct comprehensive research on the product "{name}" in the category "{category}".
Use Google Search to gather up-to-date information.
Your goal is to populate a detailed JSON object about the product.

The JSON object must conform to this structure:
{{
  "product_id": "A unique slug-style ID (e.g., 'sony-wh1000xm5').",
  "product_name": "The full, official product name.",
  "category": "The provided category.",
  "price_usd": "The approximate current retail price in USD as a number. If a range, use the average. If unknown, use null.",
  "summary": {{
    "description": "A concise, neutral, one-paragraph overview of the product.",
    "pros": ["An array of 3-5 key advantages or strengths."],
    "cons": ["An array of 3-5 key disadvantages or weaknesses."]
  }},
  "specifications": {{
    "comment": "An object of key technical specs relevant to the category (e.g., for headphones: 'connectivity', 'battery_life', 'driver_size', 'weight_grams')."
  }},
  "source_info": {{
    "review_urls": ["An array of 2-3 URLs for detailed reviews from reputable tech sites."],
    "retail_urls": ["An array of 2-3 URLs for major online retailers selling the product."],
    "research_date": "{today}"
  }}
}}

Strictly return ONLY the JSON object and nothing else. Do not wrap it in markdown backticks.
"""

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_TRAILING_COMMA_RE = re.compile(r",(?=\s*[}\]])")


def clean_json_text(text: str) -> str:
    """Strip a markdown code fence and trailing commas before ``}``/``]``."""
    text = text.strip()
    match = _FENCE_RE.search(text)
    if match and match.group(1):
        text = match.group(1)
    return _TRAILING_COMMA_RE.sub("", text)


def merge_grounding_urls(record: ProductRecord, urls: list[str]) -> ProductRecord:
    """Append grounding URLs to review_urls unless already in either URL list.

    Duplicates already present inside the upstream record are left as-is.
    """
    info = record.source_info
    seen = set(info.review_urls) | set(info.retail_urls)
    extra: list[str] = []
    for url in urls:
        if url and url not in seen:
            seen.add(url)
            extra.append(url)
    if not extra:
        return record
    merged_info = info.model_copy(update={"review_urls": [*info.review_urls, *extra]})
    return record.model_copy(update={"source_info": merged_info})


def _first_candidate(body: dict[str, Any]) -> dict[str, Any] | None:
    candidates = body.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        return candidates[0]
    return None


def _response_text(body: dict[str, Any]) -> str:
    candidate = _first_candidate(body)
    if candidate is None:
        raise ResearchBackendError("Gemini returned no candidates")
    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        raise ResearchBackendError("Gemini candidate has no content parts")
    return "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict)).strip()


def _grounding_urls(body: dict[str, Any]) -> list[str]:
    candidate = _first_candidate(body) or {}
    metadata = candidate.get("groundingMetadata")
    chunks = metadata.get("groundingChunks") if isinstance(metadata, dict) else None
    if not isinstance(chunks, list):
        return []
    urls: list[str] = []
    for chunk in chunks:
        web = chunk.get("web") if isinstance(chunk, dict) else None
        uri = web.get("uri") if isinstance(web, dict) else None
        if isinstance(uri, str) and uri:
            urls.append(uri)
    return urls


class GeminiClient:
    """Research backend over the Gemini REST API.

    Args:
        api_key:  Defaults to ``settings.gemini_api_key``.
        model:    Defaults to ``settings.gemini_model``.
        base_url: Defaults to ``settings.gemini_base_url``.
        timeout:  Per-request timeout in seconds.
        _client:  Pre-built ``httpx.AsyncClient`` (inject for tests).
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        *,
        _client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.timeout = timeout or settings.gemini_timeout
        self._client = _client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def generate(
        self,
        prompt: str,
        *,
        response_schema: dict[str, Any] | None = None,
        grounded: bool = False,
    ) -> dict[str, Any]:
        """POST one generateContent request and return the decoded body."""
        client = await self._get_client()
        payload: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if response_schema is not None:
            payload["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }
        if grounded:
            payload["tools"] = [{"google_search": {}}]

        response = await client.post(
            f"/models/{self.model}:generateContent",
            json=payload,
            headers={"x-goog-api-key": self.api_key},
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ResearchBackendError(f"Gemini returned a {type(body).__name__} instead of a JSON object")
        logger.debug(
            "generate_complete",
            model=self.model,
            grounded=grounded,
            usage=body.get("usageMetadata"),
        )
        return body

    async def _string_list(self, prompt: str, schema: dict[str, Any], key: str) -> list[str]:
        body = await self.generate(prompt, response_schema=schema)
        data = json.loads(_response_text(body) or "{}")
        if not isinstance(data, dict):
            raise ResearchBackendError(f"Expected a JSON object with {key!r}, got {type(data).__name__}")
        items = data.get(key) or []
        if not isinstance(items, list):
            raise ResearchBackendError(f"Expected {key!r} to be a list, got {type(items).__name__}")
        return [str(item) for item in items]

    async def discover_categories(self, query: str) -> list[str]:
        prompt = (
            "Based on the following user query, identify a list of relevant and specific "
            f'product categories that could be researched. Focus on tangible products. Query: "{query}"'
        )
        try:
            categories = await self._string_list(prompt, _DISCOVERY_SCHEMA, "categories")
        except (httpx.HTTPError, ValueError, ResearchBackendError) as exc:
            logger.warning("discover_categories_failed", query=query[:80], error=str(exc))
            raise ResearchBackendError("Failed to discover product categories.") from exc
        logger.info("categories_discovered", query=query[:80], count=len(categories))
        return categories

    async def identify_products(self, category: str) -> list[str]:
        prompt = (
            f'List 5-10 specific, popular, and researchable product models/names for the category: "{category}". '
            "Provide only the names."
        )
        try:
            products = await self._string_list(prompt, _IDENTIFICATION_SCHEMA, "products")
        except (httpx.HTTPError, ValueError, ResearchBackendError) as exc:
            logger.warning("identify_products_failed", category=category, error=str(exc))
            raise ResearchBackendError(f"Failed to identify products for {category!r}.") from exc
        logger.info("products_identified", category=category, count=len(products))
        return products

    async def research_product(self, product_name: str, category: str) -> ProductRecord:
        prompt = _RESEARCH_PROMPT.format(name=product_name, category=category, today=today_str())
        try:
            body = await self.generate(prompt, grounded=True)
            text = clean_json_text(_response_text(body))
        except (httpx.HTTPError, ValueError, ResearchBackendError) as exc:
            logger.warning("research_request_failed", product=product_name, error=str(exc))
            raise ResearchBackendError(f'Failed to research product "{product_name}".') from exc

        try:
            record = ProductRecord.model_validate_json(text)
        except ValidationError as exc:
            logger.warning("research_parse_failed", product=product_name, errors=exc.error_count())
            raise ResearchBackendError(
                f'Failed to parse JSON response for "{product_name}". '
                "The model may have returned an invalid format."
            ) from exc

        record = merge_grounding_urls(record, _grounding_urls(body))
        logger.info("product_researched", product=product_name, product_id=record.product_id)
        return record
