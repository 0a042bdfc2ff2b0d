from __future__ import annotations

from porcelain_assistant.aesthetics import (
    aesthetic_profile,
    describe_aesthetic_traits,
    describe_visual_analysis,
    extract_aesthetic_traits,
    visual_profile,
)
from porcelain_assistant.products import PLACEHOLDER_IMAGE_URL


def test_traits_from_product_text():
    traits = extract_aesthetic_traits(
        {
            "product_name": "Classic Gourmet Plate",
            "description": "Elegant white glazed plate with a rolled rim for hotel banquets.",
            "material_finish": "glossy glaze",
        }
    )

    assert traits["material"] == "porcelain"
    assert traits["style"] == ["classic", "elegant"]
    assert traits["colorPalette"] == ["white"]
    assert traits["finish"] == "glossy"
    assert traits["aesthetic"] == "elegant"
    assert traits["useCase"] == ["hotel", "fine dining"]
    assert traits["edgeType"] == "rolled"
    assert traits["materialFinish"] == "glossy glaze"


def test_traits_defaults_for_sparse_product():
    traits = extract_aesthetic_traits({"product_name": "Bowl"})

    assert traits["style"] == []
    assert traits["colorPalette"] == ["white"]
    assert traits["finish"] == "glazed"
    assert traits["aesthetic"] == "versatile"
    assert traits["useCase"] == ["home", "restaurant"]
    assert "edgeType" not in traits


def test_describe_traits_reads_as_sentences():
    text = describe_aesthetic_traits(
        {
            "material": "porcelain",
            "style": ["modern"],
            "colorPalette": ["black", "grey"],
            "aesthetic": "contemporary",
            "useCase": ["restaurant"],
        }
    )

    assert text == (
        "Made from porcelain. featuring modern design. in black, grey colors. "
        "perfect for contemporary settings. ideal for restaurant."
    )


def test_aesthetic_profile_shape():
    profile = aesthetic_profile(
        {"id": 12, "product_name": "Matt Black Coupe", "product_code": "MBC-1", "locale": "us-en"}
    )

    assert profile["id"] == "aesthetic-12"
    assert profile["metadata"]["productId"] == 12
    assert profile["metadata"]["productCode"] == "MBC-1"
    assert profile["metadata"]["traits"]["finish"] == "matte"
    assert "black" in profile["content"]


def test_visual_description_and_profile():
    analysis = {
        "richVisualDescription": "A wide-rimmed plate with a speckled reactive glaze.",
        "aestheticStyle": ["rustic", "artisan"],
        "colorPalette": "sand",
        "moodEmotionElicited": [],
        "intendedUse": ["bistro"],
    }

    text = describe_visual_analysis(analysis)
    assert text == (
        "A wide-rimmed plate with a speckled reactive glaze. Style: rustic, artisan. "
        "Colors: sand. Intended use: bistro."
    )

    profile = visual_profile({"id": 5, "product_name": "Stone Plate", "product_images": "not json"}, analysis)
    assert profile["id"] == "visual-5"
    assert profile["content"] == text
    assert profile["metadata"]["imageUrl"] == PLACEHOLDER_IMAGE_URL
    assert profile["metadata"]["analysis"] is analysis
