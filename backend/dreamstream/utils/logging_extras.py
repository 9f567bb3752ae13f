# ------------------------------------------------------------
# Module: dreamstream/utils/logging_extras.py
# Purpose: Correlation-id aware logger adapters for streams and generations.
# ------------------------------------------------------------

"""Logger adapters that tag every record with a correlation id.

Used by the streaming endpoint (one id per connection) and by the client
interpreter (one id per generation) so interleaved log lines stay traceable.

Notes
-----
- The id is prepended to the message (`[cid] ...`) because the stdout format
  from `configure_logging()` has no `%(cid)s` field.
- Per-call `extra=` is merged with the adapter's context, not replaced.
"""

import logging


class CidAdapter(logging.LoggerAdapter):
    """`LoggerAdapter` that prefixes messages with `[cid]` when one is set."""

    def process(self, msg, kwargs):
        cid = self.extra.get("cid")
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return (f"[{cid}] {msg}" if cid else msg), kwargs


def log_adapter(logger: logging.Logger, cid: str | None) -> logging.LoggerAdapter:
    """Wrap `logger` with an optional correlation id.

    >>> lad = log_adapter(logging.getLogger(__name__), cid="gen-3")
    >>> lad.info("interpret.start")   # -> "[gen-3] interpret.start"
    """
    return CidAdapter(logger, {"cid": cid} if cid else {})
