# ------------------------------------------------------------
# Test: backend/tests/test_formatting.py
# Purpose: Saved-dream display text: section order, omission of empty sections.
# ------------------------------------------------------------
from __future__ import annotations

from conftest import FULL_DOC

from dreamstream.client.formatting import EN_LABELS, format_interpretation


def test_sections_in_fixed_order():
    text = format_interpretation(FULL_DOC)
    order = [
        "**Yhteenveto:**",
        "**Symbolit:**",
        "**Tunnemaailma:**",
        "**Yhteydet elämään:**",
        "**Avainviesti:**",
        "**Pohdittavaa:**",
    ]
    positions = [text.index(h) for h in order]
    assert positions == sorted(positions)
    assert text.startswith("**Yhteenveto:** Lentäminen kuvaa vapauden kaipuuta")
    assert "- **pilvet**: Kevyt mieli" in text
    assert "Päätunne: vapaus" in text


def test_empty_sections_are_omitted():
    doc = {"summary": "Uni", "symbols": [], "lifeConnections": [], "keyMessage": "Lepää"}
    assert format_interpretation(doc) == "**Yhteenveto:** Uni\n\n**Avainviesti:** Lepää"


def test_empty_document():
    assert format_interpretation(None) == ""
    assert format_interpretation({}) == ""


def test_english_labels():
    text = format_interpretation({"summary": "A dream"}, EN_LABELS)
    assert text == "**Summary:** A dream"
