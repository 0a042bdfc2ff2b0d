from __future__ import annotations

import pytest

from porcelain_assistant.chunker import chunk_text, content_hash, estimate_tokens


def _paragraphs(count: int) -> list[str]:
    return [f"Paragraph {idx} talks about porcelain plates and bowls for the table." for idx in range(count)]


def test_empty_text_yields_no_chunks():
    assert chunk_text("") == []
    assert chunk_text("   \n\n  \n") == []


def test_short_text_is_a_single_chunk():
    chunks = chunk_text("Dishwasher safe.\n\nMicrowave safe.")

    assert len(chunks) == 1
    assert chunks[0].index == 0
    assert chunks[0].content == "Dishwasher safe.\n\nMicrowave safe."
    assert chunks[0].hash == content_hash(chunks[0].content)


def test_chunks_cover_every_paragraph_in_order_without_overlap():
    paragraphs = _paragraphs(12)
    chunks = chunk_text("\n\n".join(paragraphs), max_tokens=60, overlap_tokens=0)

    assert len(chunks) > 1
    assert [chunk.index for chunk in chunks] == list(range(len(chunks)))
    assert "\n\n".join(chunk.content for chunk in chunks) == "\n\n".join(paragraphs)


def test_chunks_respect_the_token_bound_with_overlap():
    paragraphs = _paragraphs(20)
    chunks = chunk_text("\n\n".join(paragraphs), max_tokens=60, overlap_tokens=15)

    assert len(chunks) > 1
    assert all(estimate_tokens(chunk.content) <= 60 for chunk in chunks)
    for paragraph in paragraphs:
        assert any(paragraph in chunk.content for chunk in chunks)


def test_overlap_carries_trailing_words_into_next_chunk():
    paragraphs = _paragraphs(6)
    chunks = chunk_text("\n\n".join(paragraphs), max_tokens=40, overlap_tokens=10)

    assert len(chunks) > 1
    carried = chunks[1].content.split("\n\n")[0]
    assert carried not in paragraphs
    assert chunks[0].content.endswith(carried)


def test_oversized_paragraph_is_split_on_sentences():
    sentences = [f"Sentence number {idx} describes a glazed rim." for idx in range(30)]
    paragraph = " ".join(sentences)
    chunks = chunk_text(paragraph, max_tokens=50, overlap_tokens=0)

    assert len(chunks) > 1
    assert all(estimate_tokens(chunk.content) <= 50 for chunk in chunks)
    assert " ".join(chunk.content for chunk in chunks) == paragraph


def test_unsplittable_oversized_paragraph_becomes_one_chunk():
    paragraph = " ".join(["porcelain"] * 200)
    chunks = chunk_text(paragraph, max_tokens=50, overlap_tokens=10)

    assert len(chunks) == 1
    assert chunks[0].content == paragraph
    assert estimate_tokens(chunks[0].content) > 50


def test_invalid_max_tokens_is_rejected():
    with pytest.raises(ValueError):
        chunk_text("text", max_tokens=0)


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_content_hash_is_stable_and_base36():
    assert content_hash("") == "0"
    assert content_hash("a") == "2p"
    assert content_hash("same text") == content_hash("same text")
    assert content_hash("same text") != content_hash("other text")
