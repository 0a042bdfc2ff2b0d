"""Product lookup over the catalog mirror with fallback chains and image normalization."""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Sequence

from porcelain_assistant.db import CatalogDB


_LOGGER = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/400x400/f3f4f6/9ca3af?text=RAK+Porcelain"


@dataclass(frozen=True)
class ProductResult:
    id: int
    name: str
    code: str
    description: str
    image_url: str
    product_url: str
    collection: str | None = None
    category: str | None = None
    material: str | None = None
    shape: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _first_image_url(images: list[Any]) -> str | None:
    first = images[0]
    if isinstance(first, str):
        return first
    if isinstance(first, dict):
        for key in ("publicUrl", "url"):
            value = first.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def extract_image_url(raw: Any) -> str:
    """Returns the first usable image URL from any stored image shape.

    Understands JSON text, lists of ``{"publicUrl"}``/``{"url"}`` objects or
    plain strings, a bare ``{"url"|"publicUrl"}`` object and the
    ``{"data": [{"attributes": {"url"}}]}`` wrapper. Anything else yields the
    placeholder.
    """
    value = raw
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="ignore")
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return PLACEHOLDER_IMAGE_URL
        try:
            value = json.loads(text)
        except ValueError:
            return PLACEHOLDER_IMAGE_URL

    if isinstance(value, list):
        if value:
            url = _first_image_url(value)
            if url:
                return url
        return PLACEHOLDER_IMAGE_URL

    if isinstance(value, dict):
        for key in ("url", "publicUrl"):
            candidate = value.get(key)
            if isinstance(candidate, str) and candidate:
                return candidate

        data = value.get("data")
        if isinstance(data, list) and data and isinstance(data[0], dict):
            attributes = data[0].get("attributes")
            if isinstance(attributes, dict):
                candidate = attributes.get("url")
                if isinstance(candidate, str) and candidate:
                    return candidate

    return PLACEHOLDER_IMAGE_URL


Strategy = tuple[str, Callable[[], list[ProductResult]]]


def first_non_empty(
    strategies: Sequence[Strategy],
    *,
    deadline: float | None = None,
) -> tuple[list[ProductResult], str | None]:
    """Runs strategies in order and returns the first non-empty result with its name.

    A failing strategy is logged and skipped. Once ``deadline`` (a
    ``time.monotonic`` value) has passed no further strategy starts.
    """
    for name, strategy in strategies:
        if deadline is not None and time.monotonic() >= deadline:
            _LOGGER.warning("Product fallback chain stopped before %r: request deadline reached.", name)
            break
        try:
            results = strategy()
        except Exception:
            _LOGGER.warning("Product strategy %r failed; trying the next one.", name, exc_info=True)
            continue
        if results:
            return results, name
    return [], None


class ProductResolver:
    def __init__(self, db: CatalogDB | None, *, site_base_url: str = "https://www.rakporcelain.com") -> None:
        self.db = db
        self.site_base_url = site_base_url.rstrip("/")

    def _product_url(self, row: dict[str, Any]) -> str:
        locale = str(row.get("locale") or "us-en")
        slug = row.get("product_code") or row.get("id")
        return f"{self.site_base_url}/{locale}/products/{slug}"

    def _to_result(
        self,
        row: dict[str, Any],
        *,
        collection: str | None = None,
        category: str | None = None,
    ) -> ProductResult:
        return ProductResult(
            id=int(row["id"]),
            name=str(row.get("product_name") or ""),
            code=str(row.get("product_code") or ""),
            description=str(row.get("product_description") or row.get("description") or ""),
            image_url=extract_image_url(row.get("product_images")),
            product_url=self._product_url(row),
            collection=collection,
            category=category,
            material=row.get("material"),
            shape=row.get("shape"),
        )

    def search_products(self, term: str, limit: int = 5) -> list[ProductResult]:
        if self.db is None:
            _LOGGER.info("Catalog database not configured; skipping product search.")
            return []
        cleaned = (term or "").strip()
        if not cleaned:
            return []
        try:
            rows = self.db.search_products(cleaned, limit)
        except sqlite3.Error:
            _LOGGER.warning("Product search for %r failed.", cleaned, exc_info=True)
            return []
        return [self._to_result(row) for row in rows]

    def get_products_by_category(self, name: str, limit: int = 5) -> list[ProductResult]:
        if self.db is None:
            return []
        try:
            category = self.db.find_category(name)
            if category is None:
                return self.search_products(name, limit)
            rows = self.db.products_in_category(int(category["id"]), limit)
        except sqlite3.Error:
            _LOGGER.warning("Category lookup for %r failed; falling back to text search.", name, exc_info=True)
            return self.search_products(name, limit)
        return [self._to_result(row, category=name) for row in rows]

    def get_products_by_collection(self, name: str, limit: int = 5) -> list[ProductResult]:
        if self.db is None:
            return []
        try:
            collection = self.db.find_collection(name)
            if collection is None:
                return self.search_products(name, limit)
            rows = self.db.products_in_collection(int(collection["id"]), limit)
        except sqlite3.Error:
            _LOGGER.warning("Collection lookup for %r failed; falling back to text search.", name, exc_info=True)
            return self.search_products(name, limit)
        return [self._to_result(row, collection=name) for row in rows]

    def get_products_by_ids(self, product_ids: Sequence[int]) -> list[ProductResult]:
        if self.db is None or not product_ids:
            return []
        try:
            rows = self.db.get_products_by_ids(product_ids)
        except sqlite3.Error:
            _LOGGER.warning("Bulk product lookup failed.", exc_info=True)
            return []
        return [self._to_result(row) for row in rows]
