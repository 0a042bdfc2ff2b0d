#!/usr/bin/env python3
"""Runs intent routing and retrieval latency evaluation over a fixed query set."""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
import statistics
import sys
import time

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from dotenv import load_dotenv
from porcelain_assistant.intents import detect_product_intent, extract_aesthetic_query
from porcelain_assistant.service import ChatAssistant, build_assistant


DEFAULT_QUERIES = [
    "Show me your Ease collection plates",
    "I want something elegant and minimalist for fine dining",
    "Are your plates dishwasher safe?",
    "Do you offer wholesale pricing for hotels?",
    "modern matte bowls for a bistro",
    "How long does shipping take?",
    "white coupe plates",
    "What is the warranty on chipped items?",
]


def evaluate_query(assistant: ChatAssistant, query: str, top_k: int) -> dict:
    product_intent = detect_product_intent(query, assistant.vocabulary)
    aesthetic_intent = extract_aesthetic_query(query, assistant.vocabulary)

    start = time.perf_counter()
    embedding = assistant.provider.embed(query)
    embed_ms = (time.perf_counter() - start) * 1000.0

    start = time.perf_counter()
    passages = assistant.stores.content.query(embedding, top_k)
    content_ms = (time.perf_counter() - start) * 1000.0

    start = time.perf_counter()
    deadline = time.monotonic() + assistant.settings.request_timeout_seconds
    products, strategy = assistant._resolve_products(embedding, product_intent, aesthetic_intent, deadline)
    product_ms = (time.perf_counter() - start) * 1000.0

    return {
        "query": query,
        "product_intent": product_intent.has_product_intent,
        "search_term": product_intent.search_term,
        "collection": product_intent.collection,
        "category": product_intent.category,
        "aesthetic_intent": aesthetic_intent.has_aesthetic_intent,
        "product_strategy": strategy,
        "products": [product.name for product in products[:3]],
        "top_sources": [passage.metadata.get("url") for passage in passages[:3]],
        "top_score": round(passages[0].score, 4) if passages else None,
        "embed_latency_ms": round(embed_ms, 2),
        "content_latency_ms": round(content_ms, 2),
        "product_latency_ms": round(product_ms, 2),
    }


def evaluate(assistant: ChatAssistant, queries: list[str], top_k: int) -> dict:
    results = [evaluate_query(assistant, query, top_k) for query in queries]
    summary = {
        "queries": len(results),
        "embed_latency_ms_avg": round(statistics.mean(r["embed_latency_ms"] for r in results), 2),
        "content_latency_ms_avg": round(statistics.mean(r["content_latency_ms"] for r in results), 2),
        "product_latency_ms_avg": round(statistics.mean(r["product_latency_ms"] for r in results), 2),
        "product_intent_rate": round(sum(r["product_intent"] for r in results) / len(results), 4),
        "aesthetic_intent_rate": round(sum(r["aesthetic_intent"] for r in results) / len(results), 4),
        "grounded_rate": round(sum(1 for r in results if r["top_sources"]) / len(results), 4),
    }
    return {
        "summary": summary,
        "results": results,
    }


def main() -> int:
    load_dotenv(ROOT_DIR / ".env")
    logging.basicConfig(level=os.getenv("PA_LOG_LEVEL", "WARNING").upper())

    parser = argparse.ArgumentParser(description="Evaluate intent routing and retrieval for sample queries.")
    parser.add_argument("--top-k", type=int, default=5, help="Passages retrieved per query.")
    parser.add_argument(
        "--output",
        type=Path,
        default=ROOT_DIR / "docs" / "eval_last_run.json",
        help="Where to write JSON evaluation results.",
    )
    parser.add_argument(
        "--query",
        action="append",
        default=[],
        help="Custom query (can be passed multiple times).",
    )
    args = parser.parse_args()

    queries = args.query if args.query else DEFAULT_QUERIES
    assistant = build_assistant(root_dir=ROOT_DIR)
    try:
        if assistant.seeder is not None:
            assistant.seeder.ensure_seeded()
        payload = evaluate(assistant, queries, max(1, args.top_k))
    finally:
        assistant.close()

    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    summary = payload["summary"]
    print("Retrieval Evaluation")
    print(f"queries: {summary['queries']}")
    print(f"embed latency avg: {summary['embed_latency_ms_avg']} ms")
    print(f"content latency avg: {summary['content_latency_ms_avg']} ms")
    print(f"product latency avg: {summary['product_latency_ms_avg']} ms")
    print(f"product intent rate: {summary['product_intent_rate']}")
    print(f"aesthetic intent rate: {summary['aesthetic_intent_rate']}")
    print(f"grounded rate: {summary['grounded_rate']}")
    print(f"saved: {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
