"""In-memory exact cosine vector store with JSON snapshot persistence.

One implementation backs all three indexes the assistant keeps: website
content chunks, rule-based aesthetic profiles and vision-derived visual
profiles. Each store owns its snapshot file; nothing is shared between them.

The snapshot is a JSON object mapping document id to
``{"id", "content", "embedding", "metadata"}``. Loading then saving a
snapshot reproduces it exactly, which the seeding check relies on.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Sequence

import numpy as np

from porcelain_assistant.retrieval import cosine_similarity, top_k_cosine


_LOGGER = logging.getLogger(__name__)

CONTENT_SNAPSHOT = "vector-store.json"
AESTHETIC_SNAPSHOT = "aesthetic-vector-store.json"
VISUAL_SNAPSHOT = "visual-vector-store.json"


@dataclass(frozen=True)
class VectorDocument:
    id: str
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "embedding": list(self.embedding),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, doc_id: str, payload: dict[str, Any]) -> "VectorDocument":
        embedding = payload.get("embedding")
        if not isinstance(embedding, list):
            raise ValueError(f"Document {doc_id!r} has no embedding list.")
        metadata = payload.get("metadata")
        return cls(
            id=doc_id,
            content=str(payload.get("content") or ""),
            embedding=[float(value) for value in embedding],
            metadata=metadata if isinstance(metadata, dict) else {},
        )


@dataclass(frozen=True)
class VectorMatch:
    id: str
    content: str
    metadata: dict[str, Any]
    score: float


@dataclass(frozen=True)
class _DenseIndex:
    ids: list[str]
    matrix: np.ndarray | None
    norms: np.ndarray | None

    @property
    def dimension(self) -> int | None:
        if self.matrix is None or self.matrix.shape[0] == 0:
            return None
        return int(self.matrix.shape[1])


def _build_index(documents: dict[str, VectorDocument]) -> _DenseIndex:
    ids = list(documents.keys())
    if not ids:
        return _DenseIndex(ids=[], matrix=np.zeros((0, 0), dtype=np.float64), norms=np.zeros(0))

    lengths = {len(doc.embedding) for doc in documents.values()}
    if len(lengths) != 1:
        # Only reachable through a hand-edited snapshot; query falls back to a per-document scan.
        return _DenseIndex(ids=ids, matrix=None, norms=None)

    matrix = np.asarray([documents[doc_id].embedding for doc_id in ids], dtype=np.float64)
    if matrix.ndim != 2:
        matrix = matrix.reshape(len(ids), -1)
    norms = np.linalg.norm(matrix, axis=1)
    return _DenseIndex(ids=ids, matrix=matrix, norms=norms)


class VectorStore:
    """Brute-force nearest-neighbour store; fine for a few thousand documents."""

    def __init__(self, snapshot_path: Path | None, *, name: str = "vector-store") -> None:
        self.snapshot_path = snapshot_path
        self.name = name
        self._lock = threading.Lock()
        self._documents: dict[str, VectorDocument] = {}
        self._index = _build_index(self._documents)
        self._load()

    def _load(self) -> None:
        if self.snapshot_path is None or not self.snapshot_path.exists():
            return
        try:
            parsed = json.loads(self.snapshot_path.read_text(encoding="utf-8"))
        except Exception as exc:
            _LOGGER.warning("Could not load %s snapshot from %s: %s", self.name, self.snapshot_path, exc)
            return

        if not isinstance(parsed, dict):
            _LOGGER.warning("Ignoring %s snapshot at %s: expected a JSON object.", self.name, self.snapshot_path)
            return

        documents: dict[str, VectorDocument] = {}
        for doc_id, payload in parsed.items():
            if not isinstance(payload, dict):
                _LOGGER.warning("Skipping malformed %s document %r.", self.name, doc_id)
                continue
            try:
                documents[str(doc_id)] = VectorDocument.from_dict(str(doc_id), payload)
            except (TypeError, ValueError) as exc:
                _LOGGER.warning("Skipping malformed %s document %r: %s", self.name, doc_id, exc)

        self._documents = documents
        self._index = _build_index(documents)
        _LOGGER.info("Loaded %d documents into %s from %s", len(documents), self.name, self.snapshot_path)

    def _save(self, documents: dict[str, VectorDocument]) -> bool:
        if self.snapshot_path is None:
            return True
        try:
            payload = json.dumps({doc_id: doc.to_dict() for doc_id, doc in documents.items()})
            self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.snapshot_path.name}.",
                suffix=".tmp",
                dir=str(self.snapshot_path.parent),
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self.snapshot_path)
            finally:
                Path(tmp_name).unlink(missing_ok=True)
        except (OSError, TypeError, ValueError) as exc:
            _LOGGER.warning(
                "Could not save %s snapshot to %s; continuing in memory only: %s",
                self.name,
                self.snapshot_path,
                exc,
            )
            return False
        return True

    @staticmethod
    def _check_dimensions(documents: Sequence[VectorDocument], expected: int | None) -> None:
        for doc in documents:
            if expected is None:
                expected = len(doc.embedding)
            elif len(doc.embedding) != expected:
                raise ValueError(
                    f"Document {doc.id!r} has embedding dimension {len(doc.embedding)}; store expects {expected}."
                )

    def upsert(self, documents: Iterable[VectorDocument]) -> int:
        """Inserts or replaces documents by id and rewrites the snapshot.

        Returns the document count after the write. A snapshot failure is
        logged and leaves the in-memory state updated.
        """
        batch = list(documents)
        with self._lock:
            self._check_dimensions(batch, self._index.dimension)

            updated = dict(self._documents)
            for doc in batch:
                updated[doc.id] = doc

            self._documents = updated
            self._index = _build_index(updated)
            self._save(updated)
            return len(updated)

    def query(self, query_embedding: Sequence[float], top_k: int = 8) -> list[VectorMatch]:
        with self._lock:
            documents = self._documents
            index = self._index

        if not documents or top_k <= 0:
            return []

        dimension = index.dimension
        if dimension is not None and len(query_embedding) != dimension:
            # Every score is 0.0 here; usually a snapshot built with a different embed model.
            _LOGGER.warning(
                "Query embedding has dimension %d but %s holds %d-dimensional vectors; rebuild the snapshot.",
                len(query_embedding),
                self.name,
                dimension,
            )

        if index.matrix is not None and index.norms is not None:
            query_vector = np.asarray(list(query_embedding), dtype=np.float64)
            order, scores = top_k_cosine(query_vector, index.matrix, index.norms, top_k)
            ranked = [(index.ids[int(row)], float(score)) for row, score in zip(order, scores)]
        else:
            scored = [(doc_id, cosine_similarity(query_embedding, documents[doc_id].embedding)) for doc_id in index.ids]
            ranked = sorted(scored, key=lambda item: item[1], reverse=True)[:top_k]

        matches: list[VectorMatch] = []
        for doc_id, score in ranked:
            doc = documents[doc_id]
            matches.append(VectorMatch(id=doc.id, content=doc.content, metadata=doc.metadata, score=score))
        return matches

    def get(self, doc_id: str) -> VectorDocument | None:
        return self._documents.get(doc_id)

    def count(self) -> int:
        return len(self._documents)

    def clear(self) -> None:
        with self._lock:
            self._documents = {}
            self._index = _build_index(self._documents)
            self._save(self._documents)


@dataclass(frozen=True)
class VectorStores:
    content: VectorStore
    aesthetic: VectorStore
    visual: VectorStore

    def counts(self) -> dict[str, int]:
        return {
            "content": self.content.count(),
            "aesthetic": self.aesthetic.count(),
            "visual": self.visual.count(),
        }


def open_vector_stores(data_dir: Path) -> VectorStores:
    return VectorStores(
        content=VectorStore(data_dir / CONTENT_SNAPSHOT, name="content store"),
        aesthetic=VectorStore(data_dir / AESTHETIC_SNAPSHOT, name="aesthetic store"),
        visual=VectorStore(data_dir / VISUAL_SNAPSHOT, name="visual store"),
    )
