# ------------------------------------------------------------
# Module: dreamstream/client/state.py
# Purpose: Consumer state vocabulary: status, errors, snapshots, outcomes, progress.
# ------------------------------------------------------------

"""Value types of the client-side interpretation state machine.

    idle → submitted → streaming → {complete | error | cancelled}

`streaming` is re-entrant (one transition per snapshot frame). Every terminal
state may be followed by a new `submitted`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from dreamstream.schemas.interpretation import (
    REQUIRED_FIELD_COUNT,
    PartialDocument,
    required_fields_filled,
)
from dreamstream.storage.dreams_db import SavedDreamRecord

PROGRESS_FLOOR = 10
# 100 is reserved for `complete`.
PROGRESS_STREAMING_CAP = 99

INTERPRETATION_ERROR = "INTERPRETATION_ERROR"
EMPTY_RESPONSE = "EMPTY_RESPONSE"
STREAM_TIMEOUT = "STREAM_TIMEOUT"


class Status(str, Enum):
    idle = "idle"
    submitted = "submitted"
    streaming = "streaming"
    complete = "complete"
    error = "error"
    cancelled = "cancelled"

    @property
    def in_flight(self) -> bool:
        return self in (Status.submitted, Status.streaming)


@dataclass(frozen=True)
class DreamError:
    """User-facing failure: one readable message plus an optional machine code."""

    message: str
    code: str | None = None


def compute_progress(doc: PartialDocument | None) -> int:
    """Share of the 8 required fields present, floored at 10 (JS-style rounding)."""
    pct = required_fields_filled(doc) / REQUIRED_FIELD_COUNT * 100
    return max(PROGRESS_FLOOR, math.floor(pct + 0.5))


def is_complete(doc: PartialDocument | None) -> bool:
    """Loose UI gate: summary, mood, at least one symbol and keyMessage present."""
    if not doc:
        return False
    symbols = doc.get("symbols")
    return bool(
        doc.get("summary")
        and doc.get("mood")
        and isinstance(symbols, list)
        and len(symbols) > 0
        and doc.get("keyMessage")
    )


@dataclass(frozen=True)
class InterpretationSnapshot:
    """Immutable view handed to listeners after each state change."""

    status: Status
    generation: int
    interpretation: PartialDocument | None
    progress: int
    error: DreamError | None
    dream_content: str
    last_saved_dream: SavedDreamRecord | None

    @property
    def is_loading(self) -> bool:
        return self.status.in_flight

    @property
    def is_complete(self) -> bool:
        return is_complete(self.interpretation)


# ---- outcomes returned by interpret_dream() tasks ----------------------------

@dataclass(frozen=True)
class Completed:
    generation: int
    document: PartialDocument
    validated: bool


@dataclass(frozen=True)
class Failed:
    generation: int
    error: DreamError
    document: PartialDocument | None


@dataclass(frozen=True)
class Cancelled:
    generation: int


@dataclass(frozen=True)
class Ignored:
    reason: str


InterpretationOutcome = Completed | Failed | Cancelled | Ignored
