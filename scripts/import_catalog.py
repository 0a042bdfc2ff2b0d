#!/usr/bin/env python3
"""Loads a catalog export into the sqlite mirror the product resolver reads."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
import sqlite3
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from dotenv import load_dotenv
from porcelain_assistant.catalog_import import import_catalog, read_export
from porcelain_assistant.config import AssistantSettings
from porcelain_assistant.db import CatalogDB


_LOGGER = logging.getLogger("import_catalog")


def main(argv: list[str] | None = None) -> int:
    load_dotenv(ROOT_DIR / ".env")
    logging.basicConfig(level=os.getenv("PA_LOG_LEVEL", "INFO").upper())

    parser = argparse.ArgumentParser(description="Import products, categories and collections into the catalog DB.")
    parser.add_argument("exports", nargs="+", type=Path, help="JSON export files or product CSV files.")
    parser.add_argument("--db", type=Path, default=None, help="Catalog database path (defaults to PA_DB_PATH).")
    args = parser.parse_args(argv)

    db_path = args.db
    if db_path is None:
        db_path = AssistantSettings.from_env(ROOT_DIR).db_path
    if db_path is None:
        print("PA_DB_PATH is empty; pass --db to choose a catalog database.")
        return 1

    db = CatalogDB(db_path)
    failures = 0
    for export_path in args.exports:
        try:
            counts = import_catalog(db, read_export(export_path))
        except (OSError, ValueError, KeyError, sqlite3.Error) as exc:
            failures += 1
            _LOGGER.warning("Could not import %s: %s", export_path, exc)
            continue
        print(
            f"{export_path.name}: {counts['products']} products, {counts['categories']} categories, "
            f"{counts['sub_categories']} sub-categories, {counts['collections']} collections, "
            f"{counts['links']} links, {counts['skipped']} skipped"
        )

    print(f"catalog: {db.stats()}")
    print(f"saved: {db_path}")
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
