from __future__ import annotations

import math

import numpy as np
import pytest

from porcelain_assistant.retrieval import cosine_similarity, top_k_cosine


def test_cosine_is_symmetric():
    a = [0.3, -1.2, 4.0, 0.0]
    b = [2.0, 0.5, -0.25, 7.0]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_self_similarity_is_one():
    assert cosine_similarity([0.1, 0.2, 0.3], [0.1, 0.2, 0.3]) == pytest.approx(1.0)


def test_zero_vector_scores_exactly_zero():
    score = cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0])
    assert score == 0.0
    assert not math.isnan(score)


def test_mismatched_lengths_score_zero():
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([], []) == 0.0


def test_top_k_cosine_orders_by_score_and_truncates():
    matrix = np.asarray([[0.0, 1.0], [1.0, 0.0], [0.7, 0.7], [0.0, 0.0]])
    norms = np.linalg.norm(matrix, axis=1)

    order, scores = top_k_cosine(np.asarray([1.0, 0.0]), matrix, norms, 3)

    assert order.tolist() == [1, 2, 0]
    assert list(scores) == sorted(scores, reverse=True)
    assert scores[0] == pytest.approx(1.0)


def test_top_k_cosine_with_wrong_query_dimension_scores_zero():
    matrix = np.asarray([[1.0, 0.0], [0.0, 1.0]])
    order, scores = top_k_cosine(np.asarray([1.0, 0.0, 0.0]), matrix, np.linalg.norm(matrix, axis=1), 5)

    assert order.tolist() == [0, 1]
    assert scores.tolist() == [0.0, 0.0]
