"""Cosine similarity helpers shared by the in-memory vector stores."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between ``a`` and ``b``.

    Vectors of different length, or where either side has zero norm, score
    ``0.0`` instead of raising.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0
    left = np.asarray(a, dtype=np.float64)
    right = np.asarray(b, dtype=np.float64)
    norm_product = float(np.linalg.norm(left)) * float(np.linalg.norm(right))
    if norm_product == 0.0 or not np.isfinite(norm_product):
        return 0.0
    score = float(np.dot(left, right)) / norm_product
    return score if np.isfinite(score) else 0.0


def cosine_scores(query: np.ndarray, matrix: np.ndarray, norms: np.ndarray) -> np.ndarray:
    """Scores every row of ``matrix`` against ``query``; zero-norm rows score 0."""
    if matrix.ndim != 2 or matrix.shape[0] == 0:
        return np.zeros(0, dtype=np.float64)
    if query.ndim != 1 or query.shape[0] != matrix.shape[1]:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    query_norm = float(np.linalg.norm(query))
    if query_norm == 0.0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    denominators = norms * query_norm
    dots = matrix @ query
    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    np.divide(dots, denominators, out=scores, where=denominators > 0)
    scores[~np.isfinite(scores)] = 0.0
    return scores


def top_k_cosine(
    query: np.ndarray,
    matrix: np.ndarray,
    norms: np.ndarray,
    k: int,
) -> tuple[np.ndarray, np.ndarray]:
    scores = cosine_scores(query, matrix, norms)
    if scores.shape[0] == 0 or k <= 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.float64)
    # Stable sort keeps insertion order among equal scores.
    order = np.argsort(-scores, kind="stable")[: min(int(k), scores.shape[0])]
    return order, scores[order]
