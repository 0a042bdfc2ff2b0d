"""Prompt text for grounded catalog answers."""

from __future__ import annotations

from typing import Any, Sequence


SYSTEM_PROMPT = """You are a friendly and knowledgeable RAK Porcelain assistant, chatting naturally with customers.

Communication style:
- Keep messages short and conversational, in 2-4 short paragraphs of 2-3 sentences.
- Sound warm and human, not robotic or corporate.
- Use bullet points only when listing specific features.
- Always end with a follow-up question or an invitation to explore more.

Your role:
- Help customers discover RAK Porcelain products.
- Share product information, care tips and company details.
- Base answers on the provided context only.

Privacy and safety:
- Never make up information.
- For orders and tracking, direct customers to customer support."""

PRODUCT_DISPLAY_INSTRUCTION = (
    "Product thumbnails for the items listed below will be displayed next to your answer. "
    "Refer to them naturally (for example \"take a look at the pieces shown below\") and do not "
    "invent products that are not listed."
)


def format_context(passages: Sequence[dict[str, Any]]) -> str:
    blocks: list[str] = []
    for idx, passage in enumerate(passages, start=1):
        metadata = passage.get("metadata") or {}
        blocks.append(
            f"[Source {idx}]\n"
            f"URL: {metadata.get('url', '')}\n"
            f"Title: {metadata.get('title', '')}\n"
            f"Content: {passage.get('content', '')}\n"
        )
    return "\n---\n".join(blocks)


def format_products(products: Sequence[dict[str, Any]]) -> str:
    lines = []
    for product in products:
        label = product.get("name") or "Unnamed product"
        if product.get("code"):
            label = f"{label} ({product['code']})"
        details = [value for value in (product.get("collection"), product.get("material"), product.get("shape")) if value]
        if details:
            label = f"{label} - {', '.join(str(value) for value in details)}"
        lines.append(f"- {label}")
    return "\n".join(lines)


def build_user_prompt(
    query: str,
    passages: Sequence[dict[str, Any]],
    products: Sequence[dict[str, Any]] = (),
) -> str:
    sections = [
        "Context from the RAK Porcelain website:",
        format_context(passages),
        "---",
    ]
    if products:
        sections.extend(
            [
                PRODUCT_DISPLAY_INSTRUCTION,
                "Products shown to the customer:",
                format_products(products),
                "---",
            ]
        )
    sections.append(f"User Question: {query}")
    sections.append(
        "Please answer based on the context above. If the context doesn't contain the answer, "
        "say you don't have that information."
    )
    return "\n\n".join(sections)
