"""Built-in website passages and the one-time seeding of the content store."""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol, Sequence

from porcelain_assistant.vector_store import VectorDocument, VectorStore


_LOGGER = logging.getLogger(__name__)

_SITE = "https://www.rakporcelain.com/us-en"


def _passage(doc_id: str, path: str, title: str, heading: str, section: str, content: str) -> dict[str, Any]:
    return {
        "id": doc_id,
        "content": content,
        "metadata": {
            "url": f"{_SITE}/{path}",
            "title": title,
            "heading": heading,
            "section": section,
            "lang": "en",
            "chunkIndex": 0,
            "totalChunks": 1,
        },
    }


SEED_CONTENT: tuple[dict[str, Any], ...] = (
    _passage(
        "rak-about-company",
        "about",
        "About RAK Porcelain",
        "About Us",
        "about",
        "RAK Porcelain is one of the world's largest porcelain manufacturers, headquartered in Ras Al "
        "Khaimah, United Arab Emirates. Established with a commitment to quality and innovation, RAK "
        "Porcelain has grown to serve customers in over 150 countries worldwide. The company operates "
        "state-of-the-art manufacturing facilities with advanced production technology. RAK Porcelain "
        "specializes in tabletop products for the hospitality industry, including hotels, restaurants, "
        "catering companies, as well as retail consumers. Our products combine traditional craftsmanship "
        "with modern design, meeting international standards including ISO 9001 certification.",
    ),
    _passage(
        "rak-products-overview",
        "products",
        "RAK Porcelain Products",
        "Our Products",
        "product",
        "RAK Porcelain offers an extensive range of products including dinnerware collections, serving "
        "dishes, bowls, plates, cups, and saucers. Our collections range from classic white porcelain to "
        "contemporary designs with various colors and patterns. Popular collections include Ease, Banquet, "
        "and Classic Gourmet. All products are made from high-quality porcelain that is durable, "
        "chip-resistant, and suitable for commercial use.",
    ),
    _passage(
        "rak-care-instructions",
        "care-instructions",
        "Care Instructions",
        "How to Care for Your RAK Porcelain",
        "care",
        "RAK Porcelain products are designed for durability and ease of care. All items are dishwasher "
        "safe and can withstand high temperatures. For best results, we recommend using a mild detergent "
        "and avoiding abrasive cleaners. Our porcelain is microwave safe and oven safe up to 250°C "
        "(482°F). To maintain the beauty of your porcelain, stack carefully with protective layers "
        "between pieces. With proper care, RAK Porcelain products will maintain their quality and "
        "appearance for years.",
    ),
    _passage(
        "rak-b2b-services",
        "b2b",
        "B2B & Wholesale",
        "Business Solutions",
        "b2b",
        "RAK Porcelain offers comprehensive B2B and wholesale solutions for hotels, restaurants, catering "
        "companies, and retailers. We provide custom branding options, volume discounts, and dedicated "
        "account management. Our wholesale program includes flexible ordering, competitive pricing, and "
        "reliable delivery schedules. For B2B inquiries, please contact our sales team at "
        "sales@rakporcelain.com or call +971 7 244 8777.",
    ),
    _passage(
        "rak-warranty-policy",
        "warranty",
        "Warranty Information",
        "Product Warranty",
        "warranty",
        "RAK Porcelain stands behind the quality of our products with a comprehensive warranty. All "
        "products are guaranteed against manufacturing defects for a period of one year from the date of "
        "purchase. Our porcelain is chip-resistant and designed for commercial use. In the unlikely event "
        "of a defect, we will replace the item free of charge. Normal wear and tear, improper use, or "
        "accidental damage are not covered by warranty.",
    ),
    _passage(
        "rak-shipping-info",
        "shipping",
        "Shipping Information",
        "Shipping & Delivery",
        "shipping",
        "RAK Porcelain US offers shipping throughout the United States. Standard shipping takes 5-7 "
        "business days. Expedited shipping options are available. We offer free shipping on orders over "
        "$500. All items are carefully packaged to ensure safe delivery. For large or commercial orders, "
        "freight shipping is available.",
    ),
    _passage(
        "rak-contact-info",
        "contact",
        "Contact Us",
        "Get in Touch",
        "contact",
        "Contact RAK Porcelain US: Customer Service - Email: customerservice@rakporcelain.com, Phone: "
        "+1 (800) 123-4567 (toll-free), Hours: Monday-Friday 9:00 AM - 5:00 PM EST. Sales Inquiries - "
        "Email: sales@rakporcelain.com. Headquarters in Ras Al Khaimah, United Arab Emirates, Phone: "
        "+971 7 244 8777.",
    ),
)


class BatchEmbedder(Protocol):
    def embed_batch(self, texts: Sequence[str], input_type: str = "search_document") -> list[list[float]]: ...


class ContentSeeder:
    """Fills an empty content store with the built-in passages, once per process.

    Concurrent callers block on the lock while one of them seeds. A store
    that already holds documents (for example from a snapshot) is left alone.
    Provider failures propagate and leave the seeder unseeded so the next
    request retries.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: BatchEmbedder,
        documents: Sequence[dict[str, Any]] = SEED_CONTENT,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.documents = tuple(documents)
        self._seeded = False
        self._lock = threading.Lock()

    @property
    def seeded(self) -> bool:
        return self._seeded

    def ensure_seeded(self) -> int:
        """Returns the number of documents written by this call."""
        if self._seeded:
            return 0
        with self._lock:
            if self._seeded:
                return 0
            existing = self.store.count()
            if existing > 0:
                _LOGGER.info("Content store already holds %d documents; skipping seed.", existing)
                self._seeded = True
                return 0
            if not self.documents:
                self._seeded = True
                return 0

            _LOGGER.info("Seeding content store with %d passages.", len(self.documents))
            embeddings = self.embedder.embed_batch([doc["content"] for doc in self.documents])
            written = self.store.upsert(
                VectorDocument(
                    id=doc["id"],
                    content=doc["content"],
                    embedding=embedding,
                    metadata=dict(doc.get("metadata") or {}),
                )
                for doc, embedding in zip(self.documents, embeddings)
            )
            self._seeded = True
            _LOGGER.info("Content store seeded with %d passages.", written)
            return written
