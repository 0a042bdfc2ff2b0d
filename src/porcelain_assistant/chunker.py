"""Paragraph- and sentence-aware text chunking with word overlap.

Token counts are estimated at four characters per token, so chunk edges are
approximate. A paragraph larger than the limit is split into sentences; a
paragraph (or sentence) that still exceeds the limit and cannot be split
further is emitted as one oversized chunk.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass


CHUNK_SIZE = 1000
CHUNK_OVERLAP = 200
CHARS_PER_TOKEN = 4

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass(frozen=True)
class TextChunk:
    content: str
    index: int
    hash: str


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def content_hash(text: str) -> str:
    """32-bit rolling string hash in base 36. Used for dedup only."""
    value = 0
    for ch in text:
        value = ((value << 5) - value + ord(ch)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000

    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return sign + "".join(reversed(digits))


def _join(head: str, unit: str, separator: str) -> str:
    return f"{head}{separator}{unit}" if head else unit


class _ChunkAccumulator:
    def __init__(self, max_tokens: int, overlap_tokens: int) -> None:
        self.max_tokens = max_tokens
        self.overlap_ratio = max(0.0, min(1.0, overlap_tokens / max_tokens))
        self.buffer = ""
        self.chunks: list[TextChunk] = []

    def _overlap(self) -> str:
        words = self.buffer.split()
        count = math.floor(len(words) * self.overlap_ratio)
        if count <= 0:
            return ""
        return " ".join(words[-count:])

    def close(self) -> None:
        content = self.buffer.strip()
        if content:
            self.chunks.append(TextChunk(content=content, index=len(self.chunks), hash=content_hash(content)))
        self.buffer = ""

    def add(self, unit: str, separator: str) -> None:
        candidate = _join(self.buffer, unit, separator)
        if not self.buffer or estimate_tokens(candidate) <= self.max_tokens:
            self.buffer = candidate
            return

        overlap = self._overlap()
        self.close()
        seeded = _join(overlap, unit, separator)
        # The carried overlap never pushes a fresh chunk over the limit.
        self.buffer = seeded if overlap and estimate_tokens(seeded) <= self.max_tokens else unit


def chunk_text(
    text: str,
    max_tokens: int = CHUNK_SIZE,
    overlap_tokens: int = CHUNK_OVERLAP,
) -> list[TextChunk]:
    if max_tokens <= 0:
        raise ValueError("max_tokens must be positive.")

    paragraphs = [part.strip() for part in _PARAGRAPH_SPLIT.split(text or "") if part.strip()]
    acc = _ChunkAccumulator(max_tokens, max(0, overlap_tokens))

    for paragraph in paragraphs:
        if estimate_tokens(paragraph) <= max_tokens:
            acc.add(paragraph, "\n\n")
            continue

        acc.close()
        for sentence in _SENTENCE_SPLIT.split(paragraph):
            sentence = sentence.strip()
            if sentence:
                acc.add(sentence, " ")

    acc.close()
    return acc.chunks
