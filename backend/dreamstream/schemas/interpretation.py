# ------------------------------------------------------------
# Module: dreamstream/schemas/interpretation.py
# Purpose: Structural contract of one dream interpretation (prompting + validation).
# ------------------------------------------------------------

"""Interpretation schema shared by the producer and the client core.

Responsibilities
----------------
- Define the validated `InterpretationDocument` (camelCase on the wire).
- Provide the strict JSON Schema sent to the model as `response_format`.
- Provide `validate()` for terminal-frame validation (advisory, never raises).
- Describe the key tree used to prune half-typed keys from partial snapshots.

Notes
-----
- Wire enums are part of the public contract; renaming a value is a breaking change.
- While streaming, documents are plain dicts (DeepPartial); only the terminal
  snapshot is validated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

# DeepPartial<InterpretationDocument> as decoded from a frame.
PartialDocument = dict[str, Any]


class Mood(str, Enum):
    """Overall mood of the dream."""

    peaceful = "peaceful"
    happy = "happy"
    anxious = "anxious"
    sad = "sad"
    confused = "confused"
    nostalgic = "nostalgic"
    neutral = "neutral"
    excited = "excited"
    fearful = "fearful"


class Relevance(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


# Same three levels; kept separate because they mean different things.
class Confidence(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class LifeArea(str, Enum):
    work = "work"
    relationships = "relationships"
    personal_growth = "personal_growth"
    health = "health"
    creativity = "creativity"
    spirituality = "spirituality"
    family = "family"
    finances = "finances"


class _WireModel(BaseModel):
    # Accept camelCase from the wire, allow snake_case in code, ignore extras.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> PartialDocument:
        """Dump with camelCase keys and enum values, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DreamSymbol(_WireModel):
    symbol: str
    meaning: str
    relevance: Relevance


class EmotionalAnalysis(_WireModel):
    primary_emotion: str = Field(alias="primaryEmotion")
    secondary_emotions: list[str] = Field(alias="secondaryEmotions")
    subconscious: str
    jungian_perspective: str | None = Field(None, alias="jungianPerspective")


class LifeConnection(_WireModel):
    area: LifeArea
    insight: str
    action_suggestion: str | None = Field(None, alias="actionSuggestion")


class InterpretationDocument(_WireModel):
    """A complete, validated dream interpretation."""

    summary: str
    mood: Mood
    symbols: list[DreamSymbol] = Field(min_length=1, max_length=5)
    emotional_analysis: EmotionalAnalysis = Field(alias="emotionalAnalysis")
    life_connections: list[LifeConnection] = Field(
        alias="lifeConnections", min_length=1, max_length=3
    )
    key_message: str = Field(alias="keyMessage")
    reflection_questions: list[str] = Field(
        alias="reflectionQuestions", min_length=1, max_length=3
    )
    tags: list[str] = Field(min_length=1, max_length=5)
    confidence: Confidence

    # Tags are an ordered set: drop repeats, keep first occurrence.
    @field_validator("tags", mode="after")
    @classmethod
    def _dedupe_tags(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of `validate()`; `data` is set only when `success` is True."""

    success: bool
    data: InterpretationDocument | None = None
    errors: tuple[str, ...] = ()


def validate(candidate: Any) -> ValidationResult:
    """Validate a terminal snapshot; never raises (validation is advisory)."""
    try:
        doc = InterpretationDocument.model_validate(candidate)
    except ValidationError as e:
        msgs = tuple(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return ValidationResult(success=False, errors=msgs)
    return ValidationResult(success=True, data=doc)


# Fields that count towards client-side progress (8 in total).
def required_fields_filled(doc: PartialDocument | None) -> int:
    if not doc:
        return 0
    ea = doc.get("emotionalAnalysis")
    checks = (
        doc.get("summary"),
        doc.get("mood"),
        doc.get("symbols"),
        ea.get("primaryEmotion") if isinstance(ea, dict) else None,
        doc.get("lifeConnections"),
        doc.get("keyMessage"),
        doc.get("reflectionQuestions"),
        doc.get("tags"),
    )
    return sum(1 for c in checks if c)


REQUIRED_FIELD_COUNT = 8


# ---- Upstream structured-output contract ------------------------------------

def _enum(e: type[Enum]) -> list[str]:
    return [m.value for m in e]


# OpenAI strict mode: every property listed in `required`, no extra properties.
RESPONSE_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "summary": {
            "type": "string",
            "description": "Brief 1-2 sentence summary of the dream's meaning",
        },
        "mood": {
            "type": "string",
            "enum": _enum(Mood),
            "description": "Overall mood/emotion of the dream",
        },
        "symbols": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "symbol": {"type": "string", "description": "The dream symbol"},
                    "meaning": {"type": "string", "description": "Psychological meaning"},
                    "relevance": {"type": "string", "enum": _enum(Relevance)},
                },
                "required": ["symbol", "meaning", "relevance"],
            },
        },
        "emotionalAnalysis": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "primaryEmotion": {"type": "string"},
                "secondaryEmotions": {"type": "array", "items": {"type": "string"}},
                "subconscious": {"type": "string"},
                "jungianPerspective": {"type": "string"},
            },
            "required": [
                "primaryEmotion",
                "secondaryEmotions",
                "subconscious",
                "jungianPerspective",
            ],
        },
        "lifeConnections": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "area": {"type": "string", "enum": _enum(LifeArea)},
                    "insight": {"type": "string"},
                    "actionSuggestion": {"type": "string"},
                },
                "required": ["area", "insight", "actionSuggestion"],
            },
        },
        "keyMessage": {
            "type": "string",
            "description": "The main message or lesson from this dream",
        },
        "reflectionQuestions": {"type": "array", "items": {"type": "string"}},
        "tags": {"type": "array", "items": {"type": "string"}},
        "confidence": {"type": "string", "enum": _enum(Confidence)},
    },
    "required": [
        "summary",
        "mood",
        "symbols",
        "emotionalAnalysis",
        "lifeConnections",
        "keyMessage",
        "reflectionQuestions",
        "tags",
        "confidence",
    ],
}


def response_format() -> dict[str, Any]:
    """`response_format` payload for chat.completions structured outputs."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "dream_interpretation",
            "strict": True,
            "schema": RESPONSE_JSON_SCHEMA,
        },
    }


def allowed_keys(schema: dict[str, Any] = RESPONSE_JSON_SCHEMA) -> dict[str, Any]:
    """Key tree of the schema: {key: subtree | None}; list items share one subtree.

    Example: {"symbols": {"symbol": None, ...}, "summary": None, ...}
    """
    tree: dict[str, Any] = {}
    for key, prop in schema.get("properties", {}).items():
        if prop.get("type") == "object":
            tree[key] = allowed_keys(prop)
        elif prop.get("type") == "array" and prop["items"].get("type") == "object":
            tree[key] = allowed_keys(prop["items"])
        else:
            tree[key] = None
    return tree
