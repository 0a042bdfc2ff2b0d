"""Aesthetic and visual product profiles for the style-driven vector stores.

Aesthetic profiles come from rule-based trait extraction over product text;
visual profiles come from a vision model's analysis of the product image.
Both are embedded from a short natural-language description.
"""

from __future__ import annotations

from typing import Any

from porcelain_assistant.products import extract_image_url


_COLORS = ("white", "black", "cream", "ivory", "grey", "gray", "blue", "green", "red", "brown")


def extract_aesthetic_traits(product: dict[str, Any]) -> dict[str, Any]:
    name = str(product.get("product_name") or "").lower()
    desc = str(product.get("description") or product.get("product_description") or "").lower()
    combined = f"{name} {desc}"

    style: list[str] = []
    if "classic" in combined or "traditional" in combined:
        style.append("classic")
    if "modern" in combined or "contemporary" in combined:
        style.append("modern")
    if "minimalist" in combined or "simple" in combined:
        style.append("minimalist")
    if "elegant" in combined or "fine" in combined:
        style.append("elegant")
    if "rustic" in combined or "artisan" in combined:
        style.append("rustic")

    palette = [color for color in _COLORS if color in combined] or ["white"]

    if "glossy" in combined or "shiny" in combined or "glaze" in combined:
        finish = "glossy"
    elif "matte" in combined or "matt" in combined:
        finish = "matte"
    elif "satin" in combined:
        finish = "satin"
    else:
        finish = "glazed"

    use_case: list[str] = []
    if "hotel" in combined or "hospitality" in combined:
        use_case.append("hotel")
    if "restaurant" in combined or "commercial" in combined:
        use_case.append("restaurant")
    if "fine dining" in combined or "banquet" in combined:
        use_case.append("fine dining")
    if "casual" in combined or "everyday" in combined:
        use_case.append("casual dining")
    if not use_case:
        use_case = ["home", "restaurant"]

    edge_type = None
    if "rolled edge" in combined or "rolled rim" in combined:
        edge_type = "rolled"
    elif "plain" in combined:
        edge_type = "plain"

    if "classic" in style or "elegant" in style:
        aesthetic = "elegant"
    elif "modern" in style or "minimalist" in style:
        aesthetic = "contemporary"
    elif "rustic" in style:
        aesthetic = "rustic"
    else:
        aesthetic = "versatile"

    traits: dict[str, Any] = {
        "material": product.get("material") or "porcelain",
        "style": style,
        "colorPalette": palette,
        "finish": finish,
        "aesthetic": aesthetic,
        "useCase": use_case,
    }
    if product.get("material_finish"):
        traits["materialFinish"] = product["material_finish"]
    if edge_type:
        traits["edgeType"] = edge_type
    return traits


def describe_aesthetic_traits(traits: dict[str, Any]) -> str:
    parts: list[str] = []
    if traits.get("material"):
        parts.append(f"Made from {traits['material']}")
    if traits.get("materialFinish"):
        parts.append(f"with {traits['materialFinish']} finish")
    if traits.get("style"):
        parts.append(f"featuring {', '.join(traits['style'])} design")
    if traits.get("colorPalette"):
        parts.append(f"in {', '.join(traits['colorPalette'])} colors")
    if traits.get("aesthetic"):
        parts.append(f"perfect for {traits['aesthetic']} settings")
    if traits.get("useCase"):
        parts.append(f"ideal for {', '.join(traits['useCase'])}")
    if traits.get("edgeType"):
        parts.append(f"with {traits['edgeType']} edge")
    return ". ".join(parts) + "."


def aesthetic_profile(product: dict[str, Any]) -> dict[str, Any]:
    """Returns ``{"id", "content", "metadata"}`` for one catalog row, ready to embed."""
    traits = extract_aesthetic_traits(product)
    return {
        "id": f"aesthetic-{int(product['id'])}",
        "content": describe_aesthetic_traits(traits),
        "metadata": {
            "productId": int(product["id"]),
            "productName": product.get("product_name"),
            "productCode": product.get("product_code"),
            "traits": traits,
            "locale": product.get("locale"),
        },
    }


def _as_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def describe_visual_analysis(analysis: dict[str, Any]) -> str:
    parts: list[str] = []
    description = str(analysis.get("richVisualDescription") or "").strip()
    if description:
        parts.append(description)

    labelled = (
        ("Style", _as_list(analysis.get("aestheticStyle"))),
        ("Cultural inspiration", _as_list(analysis.get("culturalInspiration"))),
        ("Colors", _as_list(analysis.get("colorPalette"))),
        ("Finish", _as_list(analysis.get("finishGlazeType"))),
        ("Mood", _as_list(analysis.get("moodEmotionElicited"))),
        ("Cuisine", _as_list(analysis.get("culinaryCompatibility"))),
        ("Intended use", _as_list(analysis.get("intendedUse"))),
        ("Tags", _as_list(analysis.get("aestheticTagBundle"))),
    )
    for label, values in labelled:
        if values:
            parts.append(f"{label}: {', '.join(values)}.")
    return " ".join(parts)


def visual_profile(product: dict[str, Any], analysis: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": f"visual-{int(product['id'])}",
        "content": describe_visual_analysis(analysis),
        "metadata": {
            "productId": int(product["id"]),
            "productName": product.get("product_name"),
            "productCode": product.get("product_code"),
            "imageUrl": extract_image_url(product.get("product_images")),
            "analysis": analysis,
        },
    }
