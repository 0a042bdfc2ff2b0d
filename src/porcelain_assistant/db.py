"""SQLite access layer for the product catalog mirror (products, categories, collections)."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence


_PRODUCT_COLUMNS = """
    p.id, p.product_name, p.product_code, p.product_description, p.description,
    p.product_images, p.locale, p.material, p.shape, p.material_finish
"""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _images_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value)


class CatalogDB:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS products (
                    id INTEGER PRIMARY KEY,
                    product_name TEXT NOT NULL,
                    product_code TEXT,
                    product_description TEXT,
                    description TEXT,
                    product_images TEXT,
                    locale TEXT NOT NULL DEFAULT 'us-en',
                    material TEXT,
                    shape TEXT,
                    published_at TEXT,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_products_updated ON products(updated_at);

                CREATE TABLE IF NOT EXISTS categories (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    locale TEXT NOT NULL DEFAULT 'us-en',
                    published_at TEXT
                );

                CREATE TABLE IF NOT EXISTS sub_categories (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    published_at TEXT
                );

                CREATE TABLE IF NOT EXISTS sub_categories_categories_links (
                    sub_category_id INTEGER NOT NULL,
                    category_id INTEGER NOT NULL,
                    PRIMARY KEY (sub_category_id, category_id),
                    FOREIGN KEY (sub_category_id) REFERENCES sub_categories(id) ON DELETE CASCADE,
                    FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS products_sub_category_links (
                    product_id INTEGER NOT NULL,
                    sub_category_id INTEGER NOT NULL,
                    PRIMARY KEY (product_id, sub_category_id),
                    FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE CASCADE,
                    FOREIGN KEY (sub_category_id) REFERENCES sub_categories(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS collections (
                    id INTEGER PRIMARY KEY,
                    collection_name TEXT NOT NULL,
                    locale TEXT NOT NULL DEFAULT 'us-en',
                    published_at TEXT
                );

                CREATE TABLE IF NOT EXISTS products_collection_links (
                    product_id INTEGER NOT NULL,
                    collection_id INTEGER NOT NULL,
                    PRIMARY KEY (product_id, collection_id),
                    FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE CASCADE,
                    FOREIGN KEY (collection_id) REFERENCES collections(id) ON DELETE CASCADE
                );
                """
            )

            # Older mirrors were created before finishes were synced.
            self._ensure_column(conn, "products", "material_finish", "TEXT")

    @staticmethod
    def _table_columns(conn: sqlite3.Connection, table_name: str) -> set[str]:
        rows = conn.execute(f"PRAGMA table_info({table_name})").fetchall()
        return {str(row[1]) for row in rows}

    def _ensure_column(
        self,
        conn: sqlite3.Connection,
        table_name: str,
        column_name: str,
        declaration: str,
    ) -> None:
        existing = self._table_columns(conn, table_name)
        if column_name in existing:
            return
        conn.execute(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {declaration}")

    def upsert_products(self, products: Sequence[dict[str, Any]]) -> None:
        timestamp = _utc_now()
        payload: list[tuple[Any, ...]] = []
        for product in products:
            payload.append(
                (
                    int(product["id"]),
                    product["product_name"],
                    product.get("product_code"),
                    product.get("product_description"),
                    product.get("description"),
                    _images_text(product.get("product_images")),
                    product.get("locale") or "us-en",
                    product.get("material"),
                    product.get("shape"),
                    product.get("material_finish"),
                    product.get("published_at", timestamp),
                    product.get("updated_at") or timestamp,
                )
            )

        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO products (
                    id, product_name, product_code, product_description, description,
                    product_images, locale, material, shape, material_finish,
                    published_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    product_name=excluded.product_name,
                    product_code=excluded.product_code,
                    product_description=excluded.product_description,
                    description=excluded.description,
                    product_images=excluded.product_images,
                    locale=excluded.locale,
                    material=excluded.material,
                    shape=excluded.shape,
                    material_finish=excluded.material_finish,
                    published_at=excluded.published_at,
                    updated_at=excluded.updated_at
                """,
                payload,
            )

    def upsert_category(self, *, category_id: int, name: str, locale: str = "us-en") -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO categories (id, name, locale, published_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET name=excluded.name, locale=excluded.locale
                """,
                (category_id, name, locale, _utc_now()),
            )

    def upsert_sub_category(self, *, sub_category_id: int, name: str, category_id: int) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO sub_categories (id, name, published_at)
                VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET name=excluded.name
                """,
                (sub_category_id, name, _utc_now()),
            )
            conn.execute(
                """
                INSERT OR IGNORE INTO sub_categories_categories_links (sub_category_id, category_id)
                VALUES (?, ?)
                """,
                (sub_category_id, category_id),
            )

    def link_product_sub_category(self, *, product_id: int, sub_category_id: int) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO products_sub_category_links (product_id, sub_category_id)
                VALUES (?, ?)
                """,
                (product_id, sub_category_id),
            )

    def upsert_collection(self, *, collection_id: int, name: str, locale: str = "us-en") -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO collections (id, collection_name, locale, published_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET collection_name=excluded.collection_name, locale=excluded.locale
                """,
                (collection_id, name, locale, _utc_now()),
            )

    def link_product_collection(self, *, product_id: int, collection_id: int) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO products_collection_links (product_id, collection_id)
                VALUES (?, ?)
                """,
                (product_id, collection_id),
            )

    def search_products(self, term: str, limit: int) -> list[dict[str, Any]]:
        pattern = _like_pattern(term.strip().lower())
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_PRODUCT_COLUMNS}
                FROM products p
                WHERE p.published_at IS NOT NULL
                  AND p.product_images IS NOT NULL
                  AND (
                    lower(p.product_name) LIKE ? ESCAPE '\\'
                    OR lower(coalesce(p.product_code, '')) LIKE ? ESCAPE '\\'
                    OR lower(coalesce(p.product_description, '')) LIKE ? ESCAPE '\\'
                    OR lower(coalesce(p.description, '')) LIKE ? ESCAPE '\\'
                    OR lower(coalesce(p.material, '')) LIKE ? ESCAPE '\\'
                    OR lower(coalesce(p.shape, '')) LIKE ? ESCAPE '\\'
                  )
                ORDER BY p.updated_at DESC, p.id DESC
                LIMIT ?
                """,
                (pattern, pattern, pattern, pattern, pattern, pattern, limit),
            ).fetchall()
        return [dict(row) for row in rows]

    def find_category(self, name: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT id, name, locale
                FROM categories
                WHERE lower(name) LIKE ? ESCAPE '\\'
                  AND published_at IS NOT NULL
                ORDER BY length(name) ASC, id ASC
                LIMIT 1
                """,
                (_like_pattern(name.strip().lower()),),
            ).fetchone()
        return dict(row) if row else None

    def products_in_category(self, category_id: int, limit: int) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT DISTINCT {_PRODUCT_COLUMNS}, p.updated_at
                FROM products p
                JOIN products_sub_category_links psc ON p.id = psc.product_id
                JOIN sub_categories_categories_links scc ON psc.sub_category_id = scc.sub_category_id
                WHERE scc.category_id = ?
                  AND p.published_at IS NOT NULL
                  AND p.product_images IS NOT NULL
                ORDER BY p.updated_at DESC, p.id DESC
                LIMIT ?
                """,
                (category_id, limit),
            ).fetchall()
        return [dict(row) for row in rows]

    def find_collection(self, name: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT id, collection_name, locale
                FROM collections
                WHERE lower(collection_name) LIKE ? ESCAPE '\\'
                  AND published_at IS NOT NULL
                ORDER BY length(collection_name) ASC, id ASC
                LIMIT 1
                """,
                (_like_pattern(name.strip().lower()),),
            ).fetchone()
        return dict(row) if row else None

    def products_in_collection(self, collection_id: int, limit: int) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_PRODUCT_COLUMNS}
                FROM products p
                JOIN products_collection_links pc ON p.id = pc.product_id
                WHERE pc.collection_id = ?
                  AND p.published_at IS NOT NULL
                  AND p.product_images IS NOT NULL
                ORDER BY p.updated_at DESC, p.id DESC
                LIMIT ?
                """,
                (collection_id, limit),
            ).fetchall()
        return [dict(row) for row in rows]

    def get_products_by_ids(self, product_ids: Sequence[int]) -> list[dict[str, Any]]:
        ids = [int(value) for value in product_ids]
        if not ids:
            return []
        placeholders = ", ".join(["?"] * len(ids))
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_PRODUCT_COLUMNS}
                FROM products p
                WHERE p.id IN ({placeholders})
                  AND p.published_at IS NOT NULL
                  AND p.product_images IS NOT NULL
                """,
                tuple(ids),
            ).fetchall()
        by_id = {int(row["id"]): dict(row) for row in rows}
        return [by_id[pid] for pid in ids if pid in by_id]

    def list_published_products(self, limit: int) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_PRODUCT_COLUMNS}
                FROM products p
                WHERE p.published_at IS NOT NULL
                  AND p.product_images IS NOT NULL
                ORDER BY p.id ASC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [dict(row) for row in rows]

    def stats(self) -> dict[str, int]:
        with self._connect() as conn:
            products = conn.execute("SELECT COUNT(*) FROM products").fetchone()[0]
            categories = conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0]
            collections = conn.execute("SELECT COUNT(*) FROM collections").fetchone()[0]
        return {
            "products": int(products),
            "categories": int(categories),
            "collections": int(collections),
        }
