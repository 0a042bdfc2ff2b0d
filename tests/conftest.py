from __future__ import annotations

from dataclasses import replace
import threading
import time
from pathlib import Path

import pytest

from porcelain_assistant.cache import ResponseCache
from porcelain_assistant.cohere_utils import ChatCompletion
from porcelain_assistant.config import AssistantSettings
from porcelain_assistant.db import CatalogDB
from porcelain_assistant.errors import ProviderError
from porcelain_assistant.products import ProductResolver
from porcelain_assistant.service import ChatAssistant
from porcelain_assistant.vector_store import VectorDocument, open_vector_stores


EMBED_KEYWORDS = (
    "porcelain",
    "dishwasher",
    "shipping",
    "warranty",
    "plate",
    "elegant",
    "minimalist",
    "hotel",
    "contact",
    "care",
)


def keyword_embedding(text: str) -> list[float]:
    lowered = text.lower()
    return [float(lowered.count(keyword)) for keyword in EMBED_KEYWORDS] + [1.0]


IMAGE_ANALYSIS = {
    "richVisualDescription": "An elegant minimalist white plate for hotel dining.",
    "aestheticStyle": ["elegant", "minimalist"],
    "colorPalette": ["white"],
    "intendedUse": ["hotel"],
}


class FakeProvider:
    """Deterministic stand-in for the Cohere provider that records every call."""

    def __init__(
        self,
        *,
        reply: str = "Our porcelain is dishwasher safe.",
        fail_embed: bool = False,
        fail_complete: bool = False,
        complete_delay: float = 0.0,
        embed_batch_delay: float = 0.0,
        analysis: dict | None = None,
        fail_analyze: bool = False,
    ) -> None:
        self.reply = reply
        self.fail_embed = fail_embed
        self.fail_complete = fail_complete
        self.complete_delay = complete_delay
        self.embed_batch_delay = embed_batch_delay
        self.analysis = analysis if analysis is not None else dict(IMAGE_ANALYSIS)
        self.fail_analyze = fail_analyze
        self.analyze_calls: list[bytes] = []
        self.embed_calls: list[str] = []
        self.embed_batch_calls: list[list[str]] = []
        self.complete_calls: list[dict] = []
        self._lock = threading.Lock()

    def embed(self, text: str) -> list[float]:
        with self._lock:
            self.embed_calls.append(text)
        if self.fail_embed:
            raise ProviderError("embedding endpoint unavailable")
        return keyword_embedding(text)

    def embed_batch(self, texts, input_type: str = "search_document") -> list[list[float]]:
        with self._lock:
            self.embed_batch_calls.append(list(texts))
        if self.embed_batch_delay:
            time.sleep(self.embed_batch_delay)
        return [keyword_embedding(text) for text in texts]

    def complete(self, system_prompt, history, user_prompt, *, temperature=0.3, max_tokens=1000) -> ChatCompletion:
        with self._lock:
            self.complete_calls.append(
                {
                    "system_prompt": system_prompt,
                    "history": list(history),
                    "user_prompt": user_prompt,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                }
            )
        if self.complete_delay:
            time.sleep(self.complete_delay)
        if self.fail_complete:
            raise ProviderError("chat endpoint unavailable")
        return ChatCompletion(text=self.reply, usage={"input_tokens": 120, "output_tokens": 24})

    def analyze_image(self, image_bytes: bytes) -> dict:
        with self._lock:
            self.analyze_calls.append(image_bytes)
        if self.fail_analyze:
            raise ProviderError("vision endpoint unavailable")
        return dict(self.analysis)


class ManualClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def catalog_db(tmp_path: Path) -> CatalogDB:
    db = CatalogDB(tmp_path / "catalog.db")
    db.upsert_products(
        [
            {
                "id": 1,
                "product_name": "Ease Dinner Plate",
                "product_code": "EAS-DP27",
                "product_description": "Flat coupe dinner plate in white porcelain.",
                "product_images": [{"publicUrl": "https://cdn.example.com/ease-plate.jpg"}],
                "material": "porcelain",
                "shape": "round",
                "updated_at": "2024-01-02T00:00:00+00:00",
            },
            {
                "id": 2,
                "product_name": "Ease Soup Bowl",
                "product_code": "EAS-SB16",
                "product_description": "Deep soup bowl with a rolled rim.",
                "product_images": '["https://cdn.example.com/ease-bowl.jpg"]',
                "material": "porcelain",
                "updated_at": "2024-01-03T00:00:00+00:00",
            },
            {
                "id": 3,
                "product_name": "Banquet Coupe Plate",
                "product_code": "BAN-CP30",
                "product_description": "Elegant minimalist plate for fine dining and hotel banquets.",
                "product_images": {"data": [{"attributes": {"url": "https://cdn.example.com/banquet.jpg"}}]},
                "updated_at": "2024-01-01T00:00:00+00:00",
            },
            {
                "id": 4,
                "product_name": "Unpublished Plate",
                "product_code": "UNP-01",
                "product_images": ["https://cdn.example.com/unpublished.jpg"],
                "published_at": None,
                "updated_at": "2024-02-01T00:00:00+00:00",
            },
            {
                "id": 5,
                "product_name": "Broken Image Plate",
                "product_code": "BRK-01",
                "product_description": "Square plate.",
                "product_images": "not json",
                "updated_at": "2023-12-01T00:00:00+00:00",
            },
            {
                "id": 6,
                "product_name": "Rondo Mug",
                "product_code": "RON-MG",
                "product_images": None,
                "updated_at": "2024-03-01T00:00:00+00:00",
            },
        ]
    )
    db.upsert_collection(collection_id=10, name="Ease")
    db.link_product_collection(product_id=1, collection_id=10)
    db.link_product_collection(product_id=2, collection_id=10)
    db.upsert_collection(collection_id=11, name="Banquet")
    db.link_product_collection(product_id=3, collection_id=11)

    db.upsert_category(category_id=20, name="Plates")
    db.upsert_sub_category(sub_category_id=200, name="Dinner Plates", category_id=20)
    for product_id in (1, 3, 5):
        db.link_product_sub_category(product_id=product_id, sub_category_id=200)
    return db


@pytest.fixture
def resolver(catalog_db: CatalogDB) -> ProductResolver:
    return ProductResolver(catalog_db, site_base_url="https://shop.example.com")


@pytest.fixture
def settings(tmp_path: Path) -> AssistantSettings:
    return AssistantSettings(
        data_dir=tmp_path / "data",
        db_path=tmp_path / "catalog.db",
        auto_seed=False,
        request_timeout_seconds=5.0,
        worker_threads=2,
    )


def add_passages(store, passages) -> None:
    store.upsert(
        VectorDocument(
            id=doc_id,
            content=content,
            embedding=keyword_embedding(content),
            metadata={"url": url, "title": doc_id},
        )
        for doc_id, content, url in passages
    )


CARE_PASSAGES = (
    ("care-1", "All porcelain is dishwasher safe. Follow the care guide.", "https://shop.example.com/care"),
    ("care-2", "Porcelain care: avoid abrasive cleaners.", "https://shop.example.com/care"),
    ("shipping-1", "Shipping takes 5-7 business days.", "https://shop.example.com/shipping"),
    ("warranty-1", "Warranty covers porcelain defects for one year.", "https://shop.example.com/warranty"),
    ("contact-1", "Contact our hotel sales team.", "https://shop.example.com/contact"),
)


@pytest.fixture
def make_assistant(settings, resolver, fake_provider):
    created: list[ChatAssistant] = []

    def _make(provider=None, *, passages=CARE_PASSAGES, seeder=None, **overrides) -> ChatAssistant:
        effective = replace(settings, **overrides) if overrides else settings
        stores = open_vector_stores(effective.data_dir)
        if passages:
            add_passages(stores.content, passages)
        assistant = ChatAssistant(
            settings=effective,
            provider=provider or fake_provider,
            stores=stores,
            cache=ResponseCache(ttl_seconds=effective.cache_ttl_seconds, max_size=effective.cache_max_size),
            resolver=resolver,
            seeder=seeder,
        )
        created.append(assistant)
        return assistant

    yield _make
    for assistant in created:
        assistant.close()
