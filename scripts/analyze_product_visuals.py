#!/usr/bin/env python3
"""Runs vision analysis on catalog product images and fills the visual vector store."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
import sys
import time
import urllib.error
import urllib.request

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from dotenv import load_dotenv
from porcelain_assistant.aesthetics import visual_profile
from porcelain_assistant.cohere_utils import CohereProvider, analyze_product_image
from porcelain_assistant.config import AssistantSettings
from porcelain_assistant.db import CatalogDB
from porcelain_assistant.errors import ProviderError
from porcelain_assistant.products import PLACEHOLDER_IMAGE_URL, extract_image_url
from porcelain_assistant.vector_store import VectorDocument, open_vector_stores


_LOGGER = logging.getLogger("analyze_product_visuals")

MAX_IMAGE_BYTES = 8 * 1024 * 1024


def fetch_image(url: str, timeout_seconds: float) -> bytes:
    request = urllib.request.Request(url, headers={"User-Agent": "rak-porcelain-assistant/1.0"})
    with urllib.request.urlopen(request, timeout=timeout_seconds) as response:
        payload = response.read(MAX_IMAGE_BYTES + 1)
    if len(payload) > MAX_IMAGE_BYTES:
        raise ValueError(f"Image at {url} is larger than {MAX_IMAGE_BYTES} bytes.")
    if not payload:
        raise ValueError(f"Image at {url} is empty.")
    return payload


def main() -> int:
    load_dotenv(ROOT_DIR / ".env")
    logging.basicConfig(level=os.getenv("PA_LOG_LEVEL", "INFO").upper())

    parser = argparse.ArgumentParser(description="Analyze product photos and embed visual profiles.")
    parser.add_argument("--limit", type=int, default=200, help="Maximum number of products to analyze.")
    parser.add_argument("--skip-existing", action="store_true", help="Skip products already in the visual store.")
    parser.add_argument("--delay", type=float, default=0.5, help="Seconds to wait between vision calls.")
    parser.add_argument("--image-timeout", type=float, default=20.0, help="Image download timeout in seconds.")
    args = parser.parse_args()

    settings = AssistantSettings.from_env(ROOT_DIR)
    if settings.db_path is None:
        print("PA_DB_PATH is empty; a catalog database is required.")
        return 1

    db = CatalogDB(settings.db_path)
    provider = CohereProvider.from_env()
    stores = open_vector_stores(settings.data_dir)

    analyzed = 0
    failed = 0
    for row in db.list_published_products(max(1, args.limit)):
        doc_id = f"visual-{int(row['id'])}"
        if args.skip_existing and stores.visual.get(doc_id) is not None:
            continue

        image_url = extract_image_url(row.get("product_images"))
        if image_url == PLACEHOLDER_IMAGE_URL:
            continue

        try:
            image_bytes = fetch_image(image_url, args.image_timeout)
            analysis = analyze_product_image(
                provider.client,
                image_bytes=image_bytes,
                model=provider.config.vision_model,
                product_name=str(row.get("product_name") or ""),
            )
            profile = visual_profile(row, analysis)
            embedding = provider.embed_batch([profile["content"]])[0]
        except (urllib.error.URLError, OSError, ValueError, ProviderError) as exc:
            failed += 1
            _LOGGER.warning("Visual analysis failed for product %s: %s", row["id"], exc)
            continue

        stores.visual.upsert(
            [
                VectorDocument(
                    id=profile["id"],
                    content=profile["content"],
                    embedding=embedding,
                    metadata=profile["metadata"],
                )
            ]
        )
        analyzed += 1
        print(f"analyzed {row.get('product_name')} ({analyzed} done, {failed} failed)")
        if args.delay > 0:
            time.sleep(args.delay)

    print(f"visual profiles written: {analyzed}, failures: {failed}")
    print(f"saved: {stores.visual.snapshot_path}")
    return 0 if analyzed or not failed else 1


if __name__ == "__main__":
    raise SystemExit(main())
