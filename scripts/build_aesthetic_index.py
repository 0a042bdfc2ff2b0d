#!/usr/bin/env python3
"""Builds rule-based aesthetic profiles for published catalog products and embeds them."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from dotenv import load_dotenv
from porcelain_assistant.aesthetics import aesthetic_profile
from porcelain_assistant.cohere_utils import CohereProvider
from porcelain_assistant.config import AssistantSettings
from porcelain_assistant.db import CatalogDB
from porcelain_assistant.vector_store import VectorDocument, open_vector_stores


def main() -> int:
    load_dotenv(ROOT_DIR / ".env")
    logging.basicConfig(level=os.getenv("PA_LOG_LEVEL", "INFO").upper())

    parser = argparse.ArgumentParser(description="Embed aesthetic trait profiles for catalog products.")
    parser.add_argument("--limit", type=int, default=1000, help="Maximum number of products to profile.")
    parser.add_argument("--batch-size", type=int, default=96, help="Texts per embedding request.")
    parser.add_argument("--clear", action="store_true", help="Empty the aesthetic store first.")
    args = parser.parse_args()

    settings = AssistantSettings.from_env(ROOT_DIR)
    if settings.db_path is None:
        print("PA_DB_PATH is empty; a catalog database is required.")
        return 1

    db = CatalogDB(settings.db_path)
    provider = CohereProvider.from_env()
    stores = open_vector_stores(settings.data_dir)
    if args.clear:
        stores.aesthetic.clear()

    profiles = [aesthetic_profile(row) for row in db.list_published_products(max(1, args.limit))]
    if not profiles:
        print("No published products with images found.")
        return 1

    batch_size = max(1, args.batch_size)
    for start in range(0, len(profiles), batch_size):
        batch = profiles[start : start + batch_size]
        embeddings = provider.embed_batch([profile["content"] for profile in batch])
        stores.aesthetic.upsert(
            VectorDocument(
                id=profile["id"],
                content=profile["content"],
                embedding=embedding,
                metadata=profile["metadata"],
            )
            for profile, embedding in zip(batch, embeddings)
        )
        print(f"profiled {min(start + batch_size, len(profiles))}/{len(profiles)} products")

    print(f"saved: {stores.aesthetic.snapshot_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
