# ------------------------------------------------------------
# Test: backend/tests/test_partial_json.py
# Purpose: Growing JSON text -> append-only snapshots pruned to the schema keys.
# ------------------------------------------------------------
from __future__ import annotations

import json

import pytest

from conftest import FULL_DOC, char_deltas

from dreamstream.llm.partial_json import SnapshotBuilder, extends, parse_partial
from dreamstream.schemas.interpretation import allowed_keys


def _all_keys(value):
    if isinstance(value, dict):
        for k, v in value.items():
            yield k
            yield from _all_keys(v)
    elif isinstance(value, list):
        for v in value:
            yield from _all_keys(v)


def test_snapshots_grow_monotonically_to_the_full_document():
    builder = SnapshotBuilder()
    published = []
    for delta in char_deltas(FULL_DOC, size=5):
        snap = builder.feed(delta)
        if snap is not None:
            published.append(snap)
    final = builder.finish()
    if final is not None:
        published.append(final)

    assert len(published) > 5
    for prev, new in zip(published, published[1:]):
        assert extends(prev, new)
    assert published[-1] == FULL_DOC


def test_snapshots_never_contain_unknown_keys():
    known = set(_all_keys(allowed_keys())) | set(allowed_keys())
    builder = SnapshotBuilder()
    for delta in char_deltas(FULL_DOC, size=3):
        snap = builder.feed(delta)
        if snap is not None:
            assert set(_all_keys(snap)) <= known


def test_half_typed_key_is_pruned():
    assert parse_partial('{"summary": "Uni", "mo') == {"summary": "Uni"}


def test_no_object_yet():
    assert parse_partial("") is None
    assert parse_partial("  ") is None
    assert parse_partial("Tässä tulkinta:") is None


def test_code_fence_is_stripped():
    text = "```json\n" + json.dumps({"summary": "Uni", "mood": "sad"}) + "\n```"
    assert parse_partial(text) == {"summary": "Uni", "mood": "sad"}


def test_extends_rules():
    assert extends(None, {"summary": "a"})
    assert extends({"summary": "ab"}, {"summary": "abc", "mood": "sad"})
    assert not extends({"summary": "ab"}, {"summary": "ax"})
    assert not extends({"summary": "ab"}, {"mood": "sad"})
    assert extends({"tags": ["a"]}, {"tags": ["ab", "c"]})
    assert not extends({"tags": ["a", "b"]}, {"tags": ["a"]})
    assert not extends({"mood": "sad"}, {"mood": "happy"})


def test_builder_skips_empty_and_repeated_snapshots():
    builder = SnapshotBuilder()
    assert builder.feed("") is None
    assert builder.feed("Vastaus: ") is None
    assert builder.feed('{"summary": "Uni"') == {"summary": "Uni"}
    # Whitespace only: the repaired object is unchanged.
    assert builder.feed("  ") is None
    assert builder.finish() is None


ESCAPED_DOC = {
    **FULL_DOC,
    "summary": 'Hän sanoi "lennä" ja nousin',
    "keyMessage": "rivi\nuusi rivi",
    "emotionalAnalysis": {**FULL_DOC["emotionalAnalysis"], "subconscious": "kenoviiva \\ tässä"},
}


@pytest.mark.parametrize("size", [1, 2, 3, 7])
def test_escaped_strings_keep_growing(size):
    builder = SnapshotBuilder()
    published = []
    for delta in char_deltas(ESCAPED_DOC, size=size):
        snap = builder.feed(delta)
        if snap is not None:
            published.append(snap)
    final = builder.finish()
    if final is not None:
        published.append(final)

    for prev, new in zip(published, published[1:]):
        assert extends(prev, new)
    assert published[-1] == ESCAPED_DOC
    # Fields after the escapes still arrive progressively, not only at the end.
    assert any(s.get("keyMessage") for s in published[:-1])


def test_dangling_escape_is_not_published():
    assert parse_partial('{"summary": "Hän sanoi \\') == {"summary": "Hän sanoi "}
    assert parse_partial('{"summary": "a\\u00') == {"summary": "a"}
    # A complete escaped backslash stays.
    assert parse_partial('{"summary": "a\\\\') == {"summary": "a\\"}


def test_finish_prefers_the_exact_document():
    builder = SnapshotBuilder()
    builder.last = {"summary": "Hän sanoi \\"}
    text = json.dumps({"summary": 'Hän sanoi "x"'}, ensure_ascii=False)
    builder.text = text
    assert builder.finish() == {"summary": 'Hän sanoi "x"'}
