# ------------------------------------------------------------
# Module: dreamstream/llm/protocols.py
# Purpose: Minimal protocol for structured-output streaming LLM clients.
# ------------------------------------------------------------

"""Typed protocol for the upstream model used by the producer.

Decouples the streaming endpoint from a specific provider SDK; tests plug in
a scripted fake that yields canned deltas.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol


class StructuredStreamClient(Protocol):
    """Contract: open a JSON-mode completion and yield raw text deltas."""

    provider: str
    model: str

    def stream_json(self, system: str, prompt: str) -> Iterator[str]:
        """Open the upstream stream and return an iterator of text deltas.

        Notes
        -----
        - The upstream request must be issued *before* returning, so connection,
          auth and model errors raise here (while a JSON error response is still
          possible) rather than on first iteration.
        - Errors during iteration propagate to the caller.
        """
        ...
