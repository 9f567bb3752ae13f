# ------------------------------------------------------------
# Module: dreamstream/transport/frames.py
# Purpose: SSE frame codec for partial-object snapshots (encode + incremental decode).
# ------------------------------------------------------------

"""Line-delimited event protocol carrying interpretation snapshots.

Wire format
-----------
Each frame is one SSE block, terminated by a blank line::

    data: {"summary": "..."}\\n\\n
    data: [DONE]\\n\\n

- A JSON object payload is a full snapshot of the document (never a diff).
- A JSON object with an ``error`` key is an in-band producer failure.
- ``[DONE]`` (not JSON) is the terminal sentinel.

Decoding
--------
`FrameDecoder.feed()` accepts arbitrary byte chunks. Bytes go through an
incremental UTF-8 decoder, the unterminated tail is kept in a buffer, and a
block is only emitted once its blank-line delimiter has arrived. Malformed
blocks are skipped with a warning; the stream continues.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any

from dreamstream.schemas.interpretation import PartialDocument

log = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE = "[DONE]"
MEDIA_TYPE = "text/event-stream"
# Proxy-safe headers for real-time delivery.
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@dataclass(frozen=True)
class SnapshotFrame:
    document: PartialDocument


@dataclass(frozen=True)
class ErrorFrame:
    message: str
    code: str | None = None


@dataclass(frozen=True)
class DoneFrame:
    pass


Frame = SnapshotFrame | ErrorFrame | DoneFrame


# ---- encoding ---------------------------------------------------------------

def _block(payload: str) -> str:
    return f"data: {payload}\n\n"


def encode_snapshot(document: PartialDocument) -> str:
    return _block(json.dumps(document, ensure_ascii=False))


def encode_error(message: str, code: str | None = None) -> str:
    body: dict[str, Any] = {"error": message}
    if code:
        body["code"] = code
    return _block(json.dumps(body, ensure_ascii=False))


def encode_done() -> str:
    return _block(DONE)


# ---- decoding ---------------------------------------------------------------

def parse_block(block: str) -> Frame | None:
    """Decode one complete SSE block; None for comments, empty or malformed blocks."""
    data_lines: list[str] = []
    for line in block.split("\n"):
        if not line.startswith(DATA_PREFIX):
            # ":" comments and event/id/retry fields carry nothing we use.
            continue
        value = line[len(DATA_PREFIX):]
        data_lines.append(value[1:] if value.startswith(" ") else value)
    if not data_lines:
        return None

    payload = "\n".join(data_lines).strip()
    if payload == DONE:
        return DoneFrame()
    try:
        obj = json.loads(payload)
    except json.JSONDecodeError:
        log.warning("sse.frame.malformed skipped payload=%r", payload[:120])
        return None
    if not isinstance(obj, dict):
        log.warning("sse.frame.not_object skipped type=%s", type(obj).__name__)
        return None
    if "error" in obj:
        code = obj.get("code")
        return ErrorFrame(message=str(obj["error"]), code=str(code) if code else None)
    return SnapshotFrame(document=obj)


class FrameDecoder:
    """Incremental buffering decoder: bytes/str chunks in, complete frames out."""

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buf = ""
        self._pending_cr = False

    def feed(self, chunk: bytes | str) -> list[Frame]:
        """Add a chunk; return every frame completed by it, in arrival order."""
        text = self._utf8.decode(chunk) if isinstance(chunk, (bytes, bytearray)) else chunk
        self._buf += self._normalize(text)

        frames: list[Frame] = []
        while True:
            idx = self._buf.find("\n\n")
            if idx < 0:
                break
            block, self._buf = self._buf[:idx], self._buf[idx + 2:]
            frame = parse_block(block)
            if frame is not None:
                frames.append(frame)
        return frames

    def flush(self) -> list[Frame]:
        """End of input: decode a trailing block that never got its delimiter."""
        tail = self._buf + self._normalize(self._utf8.decode(b"", final=True))
        if self._pending_cr:
            tail += "\n"
            self._pending_cr = False
        self._buf = ""
        frame = parse_block(tail.strip("\n")) if tail.strip() else None
        return [frame] if frame is not None else []

    def _normalize(self, text: str) -> str:
        # CRLF / CR -> LF; a CR at a chunk edge may be the first half of CRLF.
        if self._pending_cr:
            text = "\r" + text
            self._pending_cr = False
        if text.endswith("\r"):
            text = text[:-1]
            self._pending_cr = True
        return text.replace("\r\n", "\n").replace("\r", "\n")
