# ------------------------------------------------------------
# Module: dreamstream/client/formatting.py
# Purpose: Flatten a (possibly partial) interpretation into stored display text.
# ------------------------------------------------------------

"""Display-string rendering for saved dreams.

Sections appear in a fixed order (summary, symbols, emotional analysis, life
connections, key message, reflection questions). Empty or missing sections
are omitted entirely; there are never empty headers.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from dreamstream.schemas.interpretation import PartialDocument

FI_LABELS: Mapping[str, str] = {
    "summary": "Yhteenveto",
    "symbols": "Symbolit",
    "emotions": "Tunnemaailma",
    "primary_emotion": "Päätunne",
    "life": "Yhteydet elämään",
    "key_message": "Avainviesti",
    "questions": "Pohdittavaa",
}

EN_LABELS: Mapping[str, str] = {
    "summary": "Summary",
    "symbols": "Symbols",
    "emotions": "Emotional landscape",
    "primary_emotion": "Primary emotion",
    "life": "Connections to life",
    "key_message": "Key message",
    "questions": "To reflect on",
}


def _items(doc: PartialDocument, key: str) -> list[Any]:
    v = doc.get(key)
    return [x for x in v if x] if isinstance(v, list) else []


def format_interpretation(
    doc: PartialDocument | None, labels: Mapping[str, str] = FI_LABELS
) -> str:
    if not doc:
        return ""
    sections: list[str] = []

    if doc.get("summary"):
        sections.append(f"**{labels['summary']}:** {doc['summary']}")

    symbols = [s for s in _items(doc, "symbols") if isinstance(s, dict) and s.get("symbol")]
    if symbols:
        lines = "\n".join(f"- **{s['symbol']}**: {s.get('meaning', '')}".rstrip() for s in symbols)
        sections.append(f"\n**{labels['symbols']}:**\n{lines}")

    ea = doc.get("emotionalAnalysis")
    if isinstance(ea, dict) and (ea.get("primaryEmotion") or ea.get("subconscious")):
        body = []
        if ea.get("primaryEmotion"):
            body.append(f"{labels['primary_emotion']}: {ea['primaryEmotion']}")
        if ea.get("subconscious"):
            body.append(str(ea["subconscious"]))
        sections.append(f"\n**{labels['emotions']}:**\n" + "\n".join(body))

    insights = [
        lc["insight"]
        for lc in _items(doc, "lifeConnections")
        if isinstance(lc, dict) and lc.get("insight")
    ]
    if insights:
        lines = "\n".join(f"- {i}" for i in insights)
        sections.append(f"\n**{labels['life']}:**\n{lines}")

    if doc.get("keyMessage"):
        sections.append(f"\n**{labels['key_message']}:** {doc['keyMessage']}")

    questions = [q for q in _items(doc, "reflectionQuestions") if isinstance(q, str)]
    if questions:
        lines = "\n".join(f"- {q}" for q in questions)
        sections.append(f"\n**{labels['questions']}:**\n{lines}")

    return "\n".join(sections)
