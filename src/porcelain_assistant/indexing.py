"""Turns page text into content-store chunks."""

from __future__ import annotations

import re
from typing import Any

from porcelain_assistant.chunker import CHUNK_OVERLAP, CHUNK_SIZE, chunk_text


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug or "document"


def chunk_document(
    *,
    url: str,
    title: str,
    text: str,
    heading: str | None = None,
    section: str | None = None,
    lang: str | None = None,
    seen_hashes: set[str] | None = None,
    max_tokens: int = CHUNK_SIZE,
    overlap_tokens: int = CHUNK_OVERLAP,
) -> list[dict[str, Any]]:
    """Returns ``{"id", "content", "metadata"}`` records ready to embed.

    Chunks whose hash is already in ``seen_hashes`` are skipped; the set is
    updated in place so one indexing run never stores the same text twice.
    """
    chunks = chunk_text(text, max_tokens=max_tokens, overlap_tokens=overlap_tokens)
    slug = slugify(url)
    records: list[dict[str, Any]] = []

    for chunk in chunks:
        if seen_hashes is not None:
            if chunk.hash in seen_hashes:
                continue
            seen_hashes.add(chunk.hash)

        metadata: dict[str, Any] = {
            "url": url,
            "title": title,
            "chunkIndex": chunk.index,
            "totalChunks": len(chunks),
        }
        if heading:
            metadata["heading"] = heading
        if section:
            metadata["section"] = section
        if lang:
            metadata["lang"] = lang

        records.append(
            {
                "id": f"{slug}-chunk-{chunk.index}",
                "content": chunk.content,
                "metadata": metadata,
            }
        )
    return records
