"""Retrieval-augmented chat orchestration over the catalog and website content."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from functools import partial
import logging
from pathlib import Path
import time
from typing import Any, Callable, Protocol, Sequence

from porcelain_assistant.aesthetics import describe_visual_analysis
from porcelain_assistant.cache import ResponseCache
from porcelain_assistant.cohere_utils import ChatCompletion, CohereProvider
from porcelain_assistant.config import AssistantSettings
from porcelain_assistant.db import CatalogDB
from porcelain_assistant.errors import GENERIC_FAILURE_MESSAGE, AssistantError, DeadlineExceededError
from porcelain_assistant.intents import (
    AestheticIntent,
    ProductIntent,
    detect_product_intent,
    extract_aesthetic_query,
)
from porcelain_assistant.products import ProductResolver, ProductResult, Strategy, first_non_empty
from porcelain_assistant.prompts import SYSTEM_PROMPT, build_user_prompt
from porcelain_assistant.seeding import ContentSeeder
from porcelain_assistant.vector_store import VectorMatch, VectorStore, VectorStores, open_vector_stores
from porcelain_assistant.vocabulary import DEFAULT_VOCABULARY, IntentVocabulary, load_vocabulary


_LOGGER = logging.getLogger(__name__)

INSUFFICIENT_CONTEXT_MESSAGE = (
    "I apologize, but I don't have enough information to answer your question. "
    "Please contact RAK Porcelain customer support for assistance."
)
EMPTY_QUERY_MESSAGE = "Please type a question about RAK Porcelain and I'll be happy to help."
MAX_SOURCES = 3
NO_IMAGE_MESSAGE = "Please upload a photo of the tableware you would like to match."
IMAGE_FALLBACK_QUERY = "porcelain tableware"
_HISTORY_ROLES = {"user", "assistant"}


class ChatProvider(Protocol):
    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: Sequence[str], input_type: str = "search_document") -> list[list[float]]: ...

    def complete(
        self,
        system_prompt: str,
        history: Sequence[dict[str, str]],
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> ChatCompletion: ...

    def analyze_image(self, image_bytes: bytes) -> dict[str, Any]: ...


def _clean_history(history: Sequence[Any] | None) -> list[dict[str, str]]:
    cleaned: list[dict[str, str]] = []
    for item in history or []:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if role in _HISTORY_ROLES and isinstance(content, str) and content.strip():
            cleaned.append({"role": role, "content": content})
    return cleaned


def _unique_sources(passages: Sequence[VectorMatch], limit: int = MAX_SOURCES) -> list[str]:
    sources: list[str] = []
    for passage in passages:
        url = passage.metadata.get("url")
        if isinstance(url, str) and url and url not in sources:
            sources.append(url)
        if len(sources) >= limit:
            break
    return sources


class ChatAssistant:
    def __init__(
        self,
        *,
        settings: AssistantSettings,
        provider: ChatProvider,
        stores: VectorStores,
        cache: ResponseCache,
        resolver: ProductResolver,
        vocabulary: IntentVocabulary = DEFAULT_VOCABULARY,
        seeder: ContentSeeder | None = None,
    ) -> None:
        self.settings = settings
        self.provider = provider
        self.stores = stores
        self.cache = cache
        self.resolver = resolver
        self.vocabulary = vocabulary
        self.seeder = seeder
        self._executor = ThreadPoolExecutor(
            max_workers=settings.worker_threads,
            thread_name_prefix="porcelain-assistant",
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _remaining_timeout(deadline: float) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise DeadlineExceededError("Request time budget was exceeded.")
        return remaining

    def _wait(self, operation: str, future: Future, deadline: float) -> Any:
        try:
            return future.result(timeout=self._remaining_timeout(deadline))
        except FutureTimeoutError as exc:
            future.cancel()
            raise DeadlineExceededError(f"{operation} did not finish within the request time budget.") from exc

    def _run_with_timeout(self, operation: str, fn: Callable[[], Any], deadline: float) -> Any:
        self._remaining_timeout(deadline)
        return self._wait(operation, self._executor.submit(fn), deadline)

    def _aesthetic_products(self, query_embedding: list[float]) -> list[ProductResult]:
        return self._products_from_stores(query_embedding, (self.stores.aesthetic, self.stores.visual))

    def _products_from_stores(self, query_embedding: list[float], stores: Sequence[VectorStore]) -> list[ProductResult]:
        """Ranks product ids across profile stores by best score, then bulk-loads them."""
        limit = self.settings.product_limit
        best: dict[int, float] = {}
        for store in stores:
            for match in store.query(query_embedding, limit):
                try:
                    product_id = int(match.metadata.get("productId"))
                except (TypeError, ValueError):
                    continue
                if product_id not in best or match.score > best[product_id]:
                    best[product_id] = match.score
        ranked = sorted(best, key=lambda product_id: best[product_id], reverse=True)[:limit]
        return self.resolver.get_products_by_ids(ranked)

    def _product_strategies(
        self,
        query_embedding: list[float],
        product_intent: ProductIntent,
        aesthetic_intent: AestheticIntent,
    ) -> list[Strategy]:
        """Ordered product lookups; the first non-empty one wins.

        Aesthetic matches come first and, when they return anything, the
        keyword lookups never run.
        """
        limit = self.settings.product_limit
        strategies: list[Strategy] = []
        if aesthetic_intent.has_aesthetic_intent:
            strategies.append(("aesthetic", partial(self._aesthetic_products, query_embedding)))
        if not product_intent.has_product_intent:
            return strategies

        if product_intent.collection:
            strategies.append(
                ("collection", partial(self.resolver.get_products_by_collection, product_intent.collection, limit))
            )
        if product_intent.category:
            strategies.append(
                ("category", partial(self.resolver.get_products_by_category, product_intent.category, limit))
            )
        tried = {product_intent.collection, product_intent.category}
        term = product_intent.search_term
        if term and term not in tried:
            strategies.append(("search", partial(self.resolver.search_products, term, limit)))
            tried.add(term)
        default_term = self.settings.default_product_term
        if default_term and default_term not in tried:
            strategies.append(("default", partial(self.resolver.search_products, default_term, limit)))
        return strategies

    def _resolve_products(
        self,
        query_embedding: list[float],
        product_intent: ProductIntent,
        aesthetic_intent: AestheticIntent,
        deadline: float,
    ) -> tuple[list[ProductResult], str | None]:
        strategies = self._product_strategies(query_embedding, product_intent, aesthetic_intent)
        if not strategies:
            return [], None
        return first_non_empty(strategies, deadline=deadline)

    @staticmethod
    def _failure(code: str) -> dict[str, Any]:
        return {
            "message": GENERIC_FAILURE_MESSAGE,
            "sources": [],
            "products": [],
            "cached": False,
            "error_code": code,
        }

    def answer(self, history: Sequence[Any] | None, query: str) -> dict[str, Any]:
        """Answers one user turn.

        Returns a payload with ``message``, ``sources``, ``products`` and
        ``cached``, plus ``usage`` and ``product_strategy`` when a completion
        ran. Failures come back as a generic message with ``error_code`` set;
        nothing is raised.
        """
        cleaned = (query or "").strip()
        if not cleaned:
            return {"message": EMPTY_QUERY_MESSAGE, "sources": [], "products": [], "cached": False}

        try:
            return self._answer(_clean_history(history), cleaned)
        except AssistantError as exc:
            _LOGGER.warning("Chat turn failed (%s): %s", exc.code, exc)
            return self._failure(exc.code)
        except Exception:
            _LOGGER.exception("Unexpected failure while answering %r", cleaned)
            return self._failure("internal_error")

    def _answer(self, history: list[dict[str, str]], query: str) -> dict[str, Any]:
        cached = self.cache.get(query)
        if cached is not None:
            return {
                "message": cached.message,
                "sources": cached.sources,
                "products": cached.products,
                "cached": True,
            }

        deadline = time.monotonic() + self.settings.request_timeout_seconds
        if self.seeder is not None and self.settings.auto_seed and not self.seeder.seeded:
            self._run_with_timeout("Content seeding", self.seeder.ensure_seeded, deadline)

        embedding_future = self._executor.submit(self.provider.embed, query)
        product_intent = detect_product_intent(query, self.vocabulary)
        aesthetic_intent = extract_aesthetic_query(query, self.vocabulary)
        query_embedding = self._wait("Query embedding", embedding_future, deadline)

        products_future = self._executor.submit(
            self._resolve_products,
            query_embedding,
            product_intent,
            aesthetic_intent,
            deadline,
        )
        passages = self.stores.content.query(query_embedding, self.settings.top_k)
        if not passages:
            products_future.cancel()
            _LOGGER.info("No grounding passages for %r; returning the fallback answer.", query)
            return {
                "message": INSUFFICIENT_CONTEXT_MESSAGE,
                "sources": [],
                "products": [],
                "cached": False,
            }

        products, strategy = self._wait("Product lookup", products_future, deadline)
        product_dicts = [product.to_dict() for product in products]
        if strategy:
            _LOGGER.info("Product strategy %r returned %d products.", strategy, len(products))

        user_prompt = build_user_prompt(
            query,
            [{"content": passage.content, "metadata": passage.metadata} for passage in passages],
            product_dicts,
        )
        completion: ChatCompletion = self._run_with_timeout(
            "Chat completion",
            partial(
                self.provider.complete,
                SYSTEM_PROMPT,
                history,
                user_prompt,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            ),
            deadline,
        )

        sources = _unique_sources(passages)
        self.cache.set(query, completion.text, sources, product_dicts)
        payload: dict[str, Any] = {
            "message": completion.text,
            "sources": sources,
            "products": product_dicts,
            "cached": False,
            "product_strategy": strategy,
        }
        if completion.usage:
            payload["usage"] = dict(completion.usage)
        return payload

    def search_by_image(self, image_bytes: bytes) -> dict[str, Any]:
        """Finds catalog products that look like an uploaded photo.

        The photo goes through vision analysis, the analysis text is embedded
        and matched against the visual profile store, and the best product ids
        are loaded from the catalog. A failed product lookup still returns the
        analysis with ``products: []``; vision or embedding failures come back
        with ``error_code`` like ``answer``.
        """
        if not image_bytes:
            return {"analysis": {}, "products": [], "message": NO_IMAGE_MESSAGE}

        try:
            return self._search_by_image(image_bytes)
        except AssistantError as exc:
            _LOGGER.warning("Image search failed (%s): %s", exc.code, exc)
            code = exc.code
        except Exception:
            _LOGGER.exception("Unexpected failure while matching an uploaded image")
            code = "internal_error"
        return {"analysis": {}, "products": [], "message": GENERIC_FAILURE_MESSAGE, "error_code": code}

    def _search_by_image(self, image_bytes: bytes) -> dict[str, Any]:
        deadline = time.monotonic() + self.settings.request_timeout_seconds
        analysis = self._run_with_timeout("Vision analysis", partial(self.provider.analyze_image, image_bytes), deadline)

        search_query = describe_visual_analysis(analysis) or IMAGE_FALLBACK_QUERY
        query_embedding = self._run_with_timeout(
            "Image query embedding",
            partial(self.provider.embed, search_query),
            deadline,
        )

        try:
            products = self._products_from_stores(query_embedding, (self.stores.visual,))
        except Exception:
            _LOGGER.warning("Visual product lookup failed; returning the analysis only.", exc_info=True)
            products = []

        styles = [style for style in analysis.get("aestheticStyle") or [] if isinstance(style, str) and style]
        style_text = " and ".join(styles) or "distinctive"
        if products:
            message = (
                f"Based on your image, I found {len(products)} similar products "
                f"that match the {style_text} style you're looking for."
            )
        else:
            message = (
                f"I analyzed your image and found it has a {style_text} aesthetic, "
                "but no matching products are in the catalog yet."
            )
        return {
            "analysis": analysis,
            "search_query": search_query,
            "products": [product.to_dict() for product in products],
            "message": message,
        }

    def stats(self) -> dict[str, Any]:
        details: dict[str, Any] = {
            "vector_stores": self.stores.counts(),
            "cache": {
                "size": len(self.cache),
                "max_size": self.cache.max_size,
                "ttl_seconds": self.cache.ttl_seconds,
            },
            "seeded": bool(self.seeder and self.seeder.seeded),
        }
        db = self.resolver.db
        details["catalog"] = db.stats() if db is not None else None
        return details


def build_assistant(
    settings: AssistantSettings | None = None,
    provider: ChatProvider | None = None,
    root_dir: Path | None = None,
) -> ChatAssistant:
    """Wires stores, cache, catalog and provider once per process.

    Raises ``ConfigurationError`` when no provider is given and
    ``COHERE_API_KEY`` is missing.
    """
    settings = settings or AssistantSettings.from_env(root_dir)
    provider = provider or CohereProvider.from_env()

    stores = open_vector_stores(settings.data_dir)
    db = CatalogDB(settings.db_path) if settings.db_path is not None else None
    if db is None:
        _LOGGER.warning("No catalog database configured; answers will not include products.")

    return ChatAssistant(
        settings=settings,
        provider=provider,
        stores=stores,
        cache=ResponseCache(ttl_seconds=settings.cache_ttl_seconds, max_size=settings.cache_max_size),
        resolver=ProductResolver(db, site_base_url=settings.site_base_url),
        vocabulary=load_vocabulary(settings.vocabulary_path),
        seeder=ContentSeeder(stores.content, provider),
    )
