"""Loads a catalog export (JSON or products CSV) into the sqlite mirror.

The JSON export is one object::

    {
      "categories": [{"id": 1, "name": "Plates"}],
      "sub_categories": [{"id": 10, "name": "Dinner Plates", "category_id": 1}],
      "collections": [{"id": 5, "name": "Ease"}],
      "products": [{"id": 100, "product_name": "...", "collection_ids": [5], "sub_category_ids": [10]}]
    }

A CSV export carries products only, one row each, with ``collection_ids`` and
``sub_category_ids`` as ``;``-separated id lists.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any

from porcelain_assistant.db import CatalogDB


_LOGGER = logging.getLogger(__name__)

_PRODUCT_FIELDS = (
    "id",
    "product_name",
    "product_code",
    "product_description",
    "description",
    "product_images",
    "locale",
    "material",
    "shape",
    "material_finish",
    "published_at",
    "updated_at",
)


def _id_list(value: Any) -> list[int]:
    if value is None:
        return []
    if isinstance(value, (int, float)):
        return [int(value)]
    if isinstance(value, str):
        value = [part for part in value.replace(",", ";").split(";") if part.strip()]
    if not isinstance(value, list):
        return []
    out: list[int] = []
    for item in value:
        try:
            out.append(int(str(item).strip()))
        except ValueError:
            continue
    return out


def _product_row(raw: dict[str, Any]) -> dict[str, Any] | None:
    name = str(raw.get("product_name") or "").strip()
    try:
        product_id = int(raw.get("id"))
    except (TypeError, ValueError):
        return None
    if not name:
        return None

    row = {key: raw[key] for key in _PRODUCT_FIELDS if key in raw and raw[key] != ""}
    row["id"] = product_id
    row["product_name"] = name
    return row


def read_export(path: Path) -> dict[str, list[dict[str, Any]]]:
    if path.suffix.lower() == ".csv":
        with path.open("r", encoding="utf-8", newline="") as handle:
            return {"products": [dict(row) for row in csv.DictReader(handle)]}

    parsed = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(parsed, list):
        return {"products": parsed}
    if not isinstance(parsed, dict):
        raise ValueError(f"Catalog export at {path} must be a JSON object or array.")
    return {
        key: [item for item in parsed.get(key) or [] if isinstance(item, dict)]
        for key in ("categories", "sub_categories", "collections", "products")
    }


def import_catalog(db: CatalogDB, export: dict[str, list[dict[str, Any]]]) -> dict[str, int]:
    """Writes categories, collections and products, then their link rows.

    Parents go in before links so the foreign keys hold. Products without an
    id or a name are skipped with a warning.
    """
    counts = {"categories": 0, "sub_categories": 0, "collections": 0, "products": 0, "links": 0, "skipped": 0}

    for category in export.get("categories", []):
        db.upsert_category(
            category_id=int(category["id"]),
            name=str(category["name"]),
            locale=str(category.get("locale") or "us-en"),
        )
        counts["categories"] += 1

    for sub_category in export.get("sub_categories", []):
        db.upsert_sub_category(
            sub_category_id=int(sub_category["id"]),
            name=str(sub_category["name"]),
            category_id=int(sub_category["category_id"]),
        )
        counts["sub_categories"] += 1

    for collection in export.get("collections", []):
        db.upsert_collection(
            collection_id=int(collection["id"]),
            name=str(collection.get("name") or collection.get("collection_name")),
            locale=str(collection.get("locale") or "us-en"),
        )
        counts["collections"] += 1

    rows: list[dict[str, Any]] = []
    links: list[tuple[int, list[int], list[int]]] = []
    for raw in export.get("products", []):
        row = _product_row(raw)
        if row is None:
            counts["skipped"] += 1
            _LOGGER.warning("Skipping catalog product without id or name: %r", raw.get("id"))
            continue
        rows.append(row)
        links.append((row["id"], _id_list(raw.get("collection_ids")), _id_list(raw.get("sub_category_ids"))))

    if rows:
        db.upsert_products(rows)
    counts["products"] = len(rows)

    for product_id, collection_ids, sub_category_ids in links:
        for collection_id in collection_ids:
            db.link_product_collection(product_id=product_id, collection_id=collection_id)
            counts["links"] += 1
        for sub_category_id in sub_category_ids:
            db.link_product_sub_category(product_id=product_id, sub_category_id=sub_category_id)
            counts["links"] += 1

    _LOGGER.info("Imported catalog: %s", counts)
    return counts
