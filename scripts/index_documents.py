#!/usr/bin/env python3
"""Chunks local text/markdown pages and upserts them into the content vector store."""

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
from porcelain_assistant.cohere_utils import CohereProvider
from porcelain_assistant.config import AssistantSettings
from porcelain_assistant.indexing import chunk_document, slugify
from porcelain_assistant.vector_store import VectorDocument, open_vector_stores


_LOGGER = logging.getLogger("index_documents")

SUPPORTED_SUFFIXES = {".md", ".markdown", ".txt"}


def iter_source_files(paths: list[Path]) -> list[Path]:
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(sorted(p for p in path.rglob("*") if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES))
        elif path.is_file():
            files.append(path)
        else:
            _LOGGER.warning("Skipping missing path %s", path)
    return files


def read_page(path: Path) -> tuple[str, str]:
    """Returns ``(title, text)``; the first markdown heading doubles as the title."""
    text = path.read_text(encoding="utf-8", errors="ignore")
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("#"):
            return stripped.lstrip("#").strip() or path.stem, text
        if stripped:
            break
    return path.stem.replace("-", " ").replace("_", " ").title(), text


def main() -> int:
    load_dotenv(ROOT_DIR / ".env")
    logging.basicConfig(level=os.getenv("PA_LOG_LEVEL", "INFO").upper())

    parser = argparse.ArgumentParser(description="Index local pages into the content vector store.")
    parser.add_argument("paths", nargs="+", type=Path, help="Files or directories of .md/.txt pages.")
    parser.add_argument(
        "--base-url",
        default="",
        help="URL prefix for indexed pages (defaults to <PA_SITE_BASE_URL>/us-en).",
    )
    parser.add_argument("--lang", default="en", help="Language tag stored with each chunk.")
    parser.add_argument("--batch-size", type=int, default=96, help="Texts per embedding request.")
    parser.add_argument("--clear", action="store_true", help="Empty the content store before indexing.")
    args = parser.parse_args()

    settings = AssistantSettings.from_env(ROOT_DIR)
    provider = CohereProvider.from_env()
    stores = open_vector_stores(settings.data_dir)
    if args.clear:
        stores.content.clear()

    base_url = (args.base_url or f"{settings.site_base_url}/us-en").rstrip("/")
    seen_hashes: set[str] = set()
    records = []
    for path in iter_source_files(args.paths):
        title, text = read_page(path)
        records.extend(
            chunk_document(
                url=f"{base_url}/{slugify(path.stem)}",
                title=title,
                text=text,
                heading=title,
                section=path.parent.name or None,
                lang=args.lang,
                seen_hashes=seen_hashes,
            )
        )

    if not records:
        print("No chunks to index.")
        return 1

    batch_size = max(1, args.batch_size)
    for start in range(0, len(records), batch_size):
        batch = records[start : start + batch_size]
        embeddings = provider.embed_batch([record["content"] for record in batch])
        total = stores.content.upsert(
            VectorDocument(
                id=record["id"],
                content=record["content"],
                embedding=embedding,
                metadata=record["metadata"],
            )
            for record, embedding in zip(batch, embeddings)
        )
        print(f"indexed {min(start + batch_size, len(records))}/{len(records)} chunks (store size {total})")

    print(f"saved: {stores.content.snapshot_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
