"""Keyword tables driving the intent classifiers.

The tables are plain data so they can be reviewed, tested and extended
without touching the matching logic. ``load_vocabulary`` overlays a JSON file
on the defaults; any key it omits keeps the built-in list.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any


_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntentVocabulary:
    product_keywords: tuple[str, ...]
    collections: tuple[str, ...]
    categories: tuple[str, ...]
    stop_words: tuple[str, ...]
    default_search_term: str
    aesthetic_keywords: tuple[str, ...]
    color_synonyms: tuple[tuple[str, str], ...]
    style_keywords: tuple[str, ...]
    mood_keywords: tuple[str, ...]
    setting_keywords: tuple[str, ...]
    finish_keywords: tuple[str, ...]
    cultural_keywords: tuple[str, ...]


DEFAULT_VOCABULARY = IntentVocabulary(
    product_keywords=(
        # product nouns
        "product", "plate", "bowl", "cup", "dish", "saucer", "platter", "mug",
        "teapot", "coffee", "dinnerware", "serveware", "tableware", "porcelain",
        # shopping verbs
        "show", "see", "looking for", "need", "want", "buy", "purchase",
        "browse", "explore", "find", "search", "recommend", "suggest",
        # discovery questions
        "what do you have", "what products", "what items", "what options",
        "do you sell", "do you offer", "available", "stock", "top", "best",
        "popular", "featured", "new",
        # ranges
        "collection", "category", "range", "line", "series",
        "classic gourmet", "banquet", "ease", "neo fusion", "vintage",
        # specific items
        "dinner plate", "salad plate", "soup bowl", "coffee cup", "tea cup",
        "serving dish", "oval platter", "round plate", "square plate",
        # materials and features
        "white porcelain", "colored", "microwave safe", "dishwasher safe",
        "commercial", "hotel", "restaurant",
        # general discovery
        "catalog", "catalogue", "menu", "selection", "variety", "rak", "what", "tell",
    ),
    collections=(
        "classic gourmet", "banquet", "ease", "neo fusion", "vintage",
        "ivoris", "rondo", "shale", "trinidad", "metalfusion", "sketch",
        "woodart", "suggestions", "titan", "karbon", "genesis", "chef's cult",
        "fire", "stone", "charm", "chroma",
    ),
    categories=(
        "plate", "platter", "charger",
        "bowl", "soup bowl", "salad bowl", "pasta bowl", "rice bowl",
        "cup", "mug", "coffee cup", "tea cup", "espresso cup", "cappuccino cup",
        "saucer",
        "serving dish", "serving bowl", "serving platter", "tray",
        "teapot", "coffee pot", "creamer", "sugar bowl", "milk jug",
        "ramekin", "egg cup", "butter dish", "salt", "pepper",
    ),
    stop_words=("what", "show", "tell", "about", "have", "your"),
    default_search_term="plate",
    aesthetic_keywords=(
        # style
        "elegant", "sophisticated", "modern", "contemporary", "traditional",
        "minimalist", "rustic", "classic", "vintage", "timeless", "artistic",
        # mood
        "warm", "inviting", "bold", "serene", "playful", "refined", "casual",
        "formal", "luxury", "premium",
        # finish
        "glossy", "matte", "shiny", "textured", "smooth", "satin",
        # cultural
        "asian", "european", "middle eastern", "fusion", "japanese", "chinese",
        "french", "italian", "arabic",
        # setting
        "fine dining", "bistro", "hotel", "restaurant", "luxury hotel",
        "casual dining", "formal event",
    ),
    color_synonyms=(
        ("white", "white"),
        ("black", "black"),
        ("cream", "cream"),
        ("ivory", "ivory"),
        ("grey", "grey"),
        ("gray", "grey"),
        ("blue", "blue"),
        ("green", "green"),
    ),
    style_keywords=("modern", "contemporary", "traditional", "minimalist", "elegant", "rustic"),
    mood_keywords=("sophisticated", "warm", "bold", "serene", "inviting"),
    setting_keywords=("fine dining", "casual", "formal", "bistro", "hotel", "restaurant"),
    finish_keywords=("glossy", "matte", "satin", "textured"),
    cultural_keywords=(
        "asian", "european", "middle eastern", "fusion", "japanese", "chinese",
        "french", "italian", "arabic",
    ),
)


def _coerce_field(name: str, value: Any) -> Any:
    if name == "default_search_term":
        text = str(value or "").strip().lower()
        if not text:
            raise ValueError("default_search_term must be a non-empty string.")
        return text

    if name == "color_synonyms":
        if isinstance(value, dict):
            pairs = value.items()
        elif isinstance(value, list):
            pairs = value
        else:
            raise ValueError("color_synonyms must be an object or a list of pairs.")
        out: list[tuple[str, str]] = []
        for pair in pairs:
            keyword, color = pair
            out.append((str(keyword).strip().lower(), str(color).strip().lower()))
        return tuple(out)

    if not isinstance(value, list):
        raise ValueError(f"{name} must be a list of strings.")
    return tuple(str(item).strip().lower() for item in value if str(item).strip())


def load_vocabulary(path: Path | None, base: IntentVocabulary = DEFAULT_VOCABULARY) -> IntentVocabulary:
    """Overlays the JSON object at ``path`` on ``base``.

    A missing or unreadable file keeps ``base`` and logs a warning; unknown
    keys are ignored.
    """
    if path is None:
        return base
    if not path.exists() or not path.is_file():
        _LOGGER.warning("Vocabulary file %s not found; using built-in keyword tables.", path)
        return base

    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        _LOGGER.warning("Could not read vocabulary file %s: %s", path, exc)
        return base
    if not isinstance(parsed, dict):
        _LOGGER.warning("Vocabulary file %s must hold a JSON object.", path)
        return base

    known = {item.name for item in fields(IntentVocabulary)}
    overrides: dict[str, Any] = {}
    for key, value in parsed.items():
        if key not in known:
            continue
        try:
            overrides[key] = _coerce_field(key, value)
        except (TypeError, ValueError) as exc:
            _LOGGER.warning("Ignoring vocabulary override %r: %s", key, exc)
    return replace(base, **overrides)
