# ------------------------------------------------------------
# Module: dreamstream/llm/partial_json.py
# Purpose: Turn a growing JSON text into monotonically growing object snapshots.
# ------------------------------------------------------------

"""Partial-JSON snapshots for progressive structured output.

The model emits one JSON object token by token. After every delta the
accumulated text is repaired (closing open strings, arrays and objects) with
`json_repair` and pruned to the schema's key tree. A snapshot is published
only if it *extends* the previously published one, so consumers observe
append-only growth:

- dict: every previous key is still present and its value extends;
- list: at least as long, every previous item extends;
- str: the previous value is a prefix;
- anything else: equal, or previously missing/None.

An escape sequence cut in half by a delta boundary is dropped before repair.
At the end of the stream a strictly valid object wins over the repaired
snapshots.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from json_repair import repair_json

from dreamstream.schemas.interpretation import PartialDocument, allowed_keys

log = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*", re.I)
# A backslash (or `\u` with < 4 hex digits) cut off at the end of a delta.
_DANGLING_ESCAPE_RE = re.compile(r"(?<!\\)((?:\\\\)*)\\(?:u[0-9a-fA-F]{0,3})?$")
_KEY_TREE = allowed_keys()


def parse_partial(text: str, key_tree: dict[str, Any] = _KEY_TREE) -> PartialDocument | None:
    """Best-effort parse of a (possibly truncated) JSON object; None until one exists."""
    t = _object_text(text)
    if t is None:
        return None
    # Otherwise json_repair keeps the lone backslash as a literal character.
    t = _DANGLING_ESCAPE_RE.sub(r"\1", t)
    try:
        obj = repair_json(t, return_objects=True)
    except Exception:
        # Prefixes that json_repair cannot handle yet; the next delta may fix it.
        log.debug("partial_json.repair_failed len=%d", len(t), exc_info=True)
        return None
    if not isinstance(obj, dict):
        return None
    return prune(obj, key_tree)


def parse_complete(text: str, key_tree: dict[str, Any] = _KEY_TREE) -> PartialDocument | None:
    """Strict parse of the finished text; None unless it is one valid JSON object."""
    t = _object_text(text)
    if t is None:
        return None
    try:
        obj = json.loads(t)
    except json.JSONDecodeError:
        return None
    return prune(obj, key_tree) if isinstance(obj, dict) else None


def _object_text(text: str) -> str | None:
    t = _FENCE_RE.sub("", text or "", count=1).rstrip()
    if t.endswith("```"):
        t = t[:-3].rstrip()
    if "{" not in t:
        return None
    return t[t.index("{"):]


def prune(value: Any, tree: dict[str, Any] | None) -> Any:
    """Drop keys that are not part of the schema (e.g. half-typed property names)."""
    if tree is None:
        return value
    if isinstance(value, dict):
        return {k: prune(v, tree[k]) for k, v in value.items() if k in tree}
    if isinstance(value, list):
        return [prune(v, tree) for v in value if isinstance(v, dict)]
    return value


def extends(prev: Any, new: Any) -> bool:
    """True if `new` is an append-only growth of `prev`."""
    if prev is None:
        return True
    if isinstance(prev, dict):
        return isinstance(new, dict) and all(
            k in new and extends(v, new[k]) for k, v in prev.items()
        )
    if isinstance(prev, list):
        return (
            isinstance(new, list)
            and len(new) >= len(prev)
            and all(extends(p, n) for p, n in zip(prev, new))
        )
    if isinstance(prev, str):
        return isinstance(new, str) and new.startswith(prev)
    return prev == new


class SnapshotBuilder:
    """Accumulates text deltas and yields only growing snapshots."""

    def __init__(self, key_tree: dict[str, Any] = _KEY_TREE):
        self.key_tree = key_tree
        self.text = ""
        self.last: PartialDocument | None = None
        self.rejected = 0

    def feed(self, delta: str) -> PartialDocument | None:
        """Append a delta; return a new snapshot or None if nothing publishable changed."""
        if not delta:
            return None
        self.text += delta
        return self._offer(parse_partial(self.text, self.key_tree))

    def finish(self) -> PartialDocument | None:
        """Re-parse the complete text once; return a final snapshot if it adds anything.

        A strictly valid object is the authoritative result and is published
        even when an earlier repaired snapshot does not prefix it.
        """
        exact = parse_complete(self.text, self.key_tree)
        if exact is None:
            return self._offer(parse_partial(self.text, self.key_tree))
        if not exact or exact == self.last:
            return None
        if not extends(self.last, exact):
            log.debug("partial_json.final_not_extending rejected=%d", self.rejected)
        self.last = exact
        return exact

    def _offer(self, snap: PartialDocument | None) -> PartialDocument | None:
        if not snap or snap == self.last:
            return None
        if not extends(self.last, snap):
            self.rejected += 1
            return None
        self.last = snap
        return snap
