# ------------------------------------------------------------
# Module: dreamstream/core/errors.py
# Purpose: Typed request-level exceptions rendered as {error, code} JSON bodies.
# ------------------------------------------------------------

"""Exception types for the interpretation endpoint.

Raised before any frame is written; once streaming has started, failures are
reported in-band as an error frame instead (headers are already committed).

Responsibilities
----------------
- Provide a base `InterpretationError` carrying a stable machine `code`.
- Map each failure mode to an HTTP status.
"""

from __future__ import annotations


class InterpretationError(Exception):
    """Base class for request-level interpretation failures."""

    code = "INTERPRETATION_ERROR"
    status_code = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> dict[str, str]:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class MissingApiKeyError(InterpretationError):
    """Upstream model credential is not configured."""

    code = "MISSING_API_KEY"
    status_code = 500


class MissingDreamError(InterpretationError):
    """Request body has no usable dream text."""

    code = "MISSING_DREAM"
    status_code = 400


class UpstreamError(InterpretationError):
    """The model call failed before the first frame could be sent."""
