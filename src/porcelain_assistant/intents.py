"""Keyword-based intent detection for shopping and aesthetic queries.

Both classifiers are pure functions of the message text and a vocabulary.
They lean towards recall: a false positive only costs one extra retrieval
attempt, a false negative drops product context the shopper asked for.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from porcelain_assistant.vocabulary import DEFAULT_VOCABULARY, IntentVocabulary


_NON_WORD = re.compile(r"[^\w\s]")


@dataclass(frozen=True)
class ProductIntent:
    has_product_intent: bool
    search_term: str | None = None
    category: str | None = None
    collection: str | None = None


@dataclass(frozen=True)
class AestheticSearchParams:
    colors: tuple[str, ...] = ()
    style: tuple[str, ...] = ()
    mood: tuple[str, ...] = ()
    setting: tuple[str, ...] = ()
    finish: tuple[str, ...] = ()
    cultural_influence: tuple[str, ...] = ()


@dataclass(frozen=True)
class AestheticIntent:
    has_aesthetic_intent: bool
    query: str | None = None
    params: AestheticSearchParams = field(default_factory=AestheticSearchParams)


def _longest_match(text: str, terms: tuple[str, ...]) -> str | None:
    matches = [term for term in terms if term and term in text]
    if not matches:
        return None
    return max(matches, key=len)


def _longest_word_match(text: str, terms: tuple[str, ...]) -> str | None:
    # Collection names are short words ("ease", "fire") that hide inside others.
    matches = [term for term in terms if term and re.search(rf"\b{re.escape(term)}\b", text)]
    if not matches:
        return None
    return max(matches, key=len)


def _fallback_search_term(text: str, vocabulary: IntentVocabulary) -> str:
    stop_words = set(vocabulary.stop_words)
    words = [
        word
        for word in _NON_WORD.sub(" ", text).split()
        if len(word) > 3 and word not in stop_words
    ]
    # "show me products" style queries still get a generic category.
    return " ".join(words[:2]) or vocabulary.default_search_term


def detect_product_intent(message: str, vocabulary: IntentVocabulary = DEFAULT_VOCABULARY) -> ProductIntent:
    text = (message or "").lower()
    if not any(keyword in text for keyword in vocabulary.product_keywords):
        return ProductIntent(has_product_intent=False)

    collection = _longest_word_match(text, vocabulary.collections)
    if collection:
        return ProductIntent(has_product_intent=True, search_term=collection, collection=collection)

    category = _longest_match(text, vocabulary.categories)
    if category:
        return ProductIntent(has_product_intent=True, search_term=category, category=category)

    return ProductIntent(has_product_intent=True, search_term=_fallback_search_term(text, vocabulary))


def _matching(text: str, terms: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(term for term in terms if term in text)


def extract_aesthetic_query(message: str, vocabulary: IntentVocabulary = DEFAULT_VOCABULARY) -> AestheticIntent:
    text = (message or "").lower()
    if not any(keyword in text for keyword in vocabulary.aesthetic_keywords):
        return AestheticIntent(has_aesthetic_intent=False)

    colors: list[str] = []
    for keyword, color in vocabulary.color_synonyms:
        if keyword in text and color not in colors:
            colors.append(color)

    params = AestheticSearchParams(
        colors=tuple(colors),
        style=_matching(text, vocabulary.style_keywords),
        mood=_matching(text, vocabulary.mood_keywords),
        setting=_matching(text, vocabulary.setting_keywords),
        finish=_matching(text, vocabulary.finish_keywords),
        cultural_influence=_matching(text, vocabulary.cultural_keywords),
    )
    return AestheticIntent(has_aesthetic_intent=True, query=message, params=params)
