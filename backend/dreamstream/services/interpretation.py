# ------------------------------------------------------------
# Module: dreamstream/services/interpretation.py
# Purpose: Orchestrate prompt → upstream JSON stream → growing snapshots → SSE frames.
# ------------------------------------------------------------

"""Producer side of the progressive interpretation stream.

Responsibilities
----------------
- Open the upstream model stream eagerly (so early failures stay JSON errors).
- Convert text deltas into monotonically growing document snapshots.
- Serialize snapshots, the terminal sentinel, or an in-band error as SSE frames.

Notes
-----
- No persistence here; each connection is independent.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from dreamstream.core.errors import UpstreamError
from dreamstream.llm.partial_json import SnapshotBuilder
from dreamstream.llm.prompts import Language, build_prompt, system_prompt
from dreamstream.llm.protocols import StructuredStreamClient
from dreamstream.schemas.interpretation import PartialDocument
from dreamstream.transport.frames import encode_done, encode_error, encode_snapshot
from dreamstream.utils.logging_extras import log_adapter
from dreamstream.utils.timing import ms_since, now_ns

log = logging.getLogger(__name__)

GENERIC_FAILURE = "Unitulkinta epäonnistui. Yritä uudelleen."


def open_interpretation(
    dream: str,
    client: StructuredStreamClient,
    *,
    language: Language = "fi",
    cid: str | None = None,
) -> Iterator[str]:
    """Open the upstream stream now; return the SSE frame iterator for the response body.

    Raises
    ------
    UpstreamError
        If the model request cannot be opened (nothing has been sent yet).
    """
    lad = log_adapter(log, cid)
    try:
        deltas = client.stream_json(system_prompt(language), build_prompt(dream, language))
    except Exception as e:
        lad.exception("interpret.open failed model=%s", client.model)
        raise UpstreamError(GENERIC_FAILURE, details=str(e)[:300]) from e
    return sse_frames(iter_snapshots(deltas), lad)


def iter_snapshots(deltas: Iterator[str]) -> Iterator[PartialDocument]:
    """Yield one snapshot per growth of the object, then a final re-parse if it adds anything."""
    builder = SnapshotBuilder()
    for delta in deltas:
        snap = builder.feed(delta)
        if snap is not None:
            yield snap
    final = builder.finish()
    if final is not None:
        yield final
    if builder.rejected:
        log.debug("interpret.snapshots rejected_non_monotonic=%d", builder.rejected)


def sse_frames(
    snapshots: Iterator[PartialDocument], lad: logging.LoggerAdapter
) -> Iterator[str]:
    """Serialize snapshots; `[DONE]` on success, one error frame on mid-stream failure."""
    t0 = now_ns()
    frames = 0
    try:
        for snap in snapshots:
            if frames == 0:
                lad.info("interpret.stream first_frame ms=%.1f", ms_since(t0))
            frames += 1
            yield encode_snapshot(snap)
    except Exception as e:
        # Headers are committed; report in-band and close without [DONE].
        lad.exception("interpret.stream failed frames=%d", frames)
        yield encode_error(str(e) or GENERIC_FAILURE, code=UpstreamError.code)
        return
    lad.info("interpret.stream done frames=%d ms=%.1f", frames, ms_since(t0))
    yield encode_done()
