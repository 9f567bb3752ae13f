# ------------------------------------------------------------
# Module: dreamstream/storage/derive.py
# Purpose: Keyword heuristics deriving tags and mood for saved dreams.
# ------------------------------------------------------------

"""Derive display tags and a mood label from stored dream text.

Runs over `original text + formatted interpretation`, lower-cased. Keywords
are Finnish with a few English fallbacks; first matching mood rule wins.
"""

from __future__ import annotations

MAX_TAGS = 3

# tag -> trigger keywords (substring match)
THEMES: dict[str, tuple[str, ...]] = {
    "lentäminen": ("lennän", "lensin", "lentää", "flying", "taivaalla"),
    "vesi": ("meri", "järvi", "uida", "vesi", "aalto", "joki"),
    "putoaminen": ("putoan", "putosin", "putoaminen", "falling"),
    "jahtaaminen": ("jahtaa", "seuraa", "pakenin", "chase", "juoksen"),
    "perhe": ("äiti", "isä", "vanhemmat", "sisarus", "family"),
    "työ": ("työ", "toimisto", "pomo", "kokous", "work"),
    "koulu": ("koulu", "tentti", "opiskelu", "luokka", "school"),
    "eläimet": ("koira", "kissa", "lintu", "käärme", "eläin"),
    "kuolema": ("kuollut", "kuolema", "hautajaiset", "death"),
    "rakkaus": ("rakkaus", "suudelma", "rakastaa", "love"),
}

# (mood, trigger stems) in priority order
MOOD_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("anxious", ("ahdist", "pelko", "huoli")),
    ("happy", ("ilo", "onnelli", "positiiv")),
    ("sad", ("suru", "menetys", "ikävä")),
    ("peaceful", ("rauha", "tyyne", "vapau")),
    ("confused", ("hämment", "sekav", "epävarmuus")),
    ("nostalgic", ("nostalgi", "muisto", "menneis")),
)


def extract_tags(content: str, interpretation: str) -> list[str]:
    text = f"{content} {interpretation}".lower()
    tags = [tag for tag, words in THEMES.items() if any(w in text for w in words)]
    return tags[:MAX_TAGS]


def detect_mood(interpretation: str) -> str:
    text = interpretation.lower()
    for mood, stems in MOOD_RULES:
        if any(s in text for s in stems):
            return mood
    return "neutral"
