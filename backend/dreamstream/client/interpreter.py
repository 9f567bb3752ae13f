# ------------------------------------------------------------
# Module: dreamstream/client/interpreter.py
# Purpose: Consumer state machine + request lifecycle control + save-once hook.
# ------------------------------------------------------------

"""Client core for progressive structured dream interpretation.

Responsibilities
----------------
- Own the single "current interpretation" state and expose it to the UI layer.
- Apply snapshot frames in arrival order and derive progress / completeness.
- Guarantee at most one request affects state: every submission mints a
  generation token; handlers bound to an older token are no-ops.
- Cancel cooperatively (task cancellation); never report an abort as an error.
- Validate the terminal snapshot (advisory) and persist exactly once per
  completed generation, off the interpretation path.

Notes
-----
- Single event loop. State is only mutated synchronously between awaits,
  so frames of one network chunk are applied in one uninterrupted pass.
- `interpret_dream()` returns a task resolving to a tagged outcome instead of
  invoking finish/error callbacks.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import aclosing

import httpx

from dreamstream.client.formatting import format_interpretation
from dreamstream.client.state import (
    EMPTY_RESPONSE,
    INTERPRETATION_ERROR,
    PROGRESS_FLOOR,
    PROGRESS_STREAMING_CAP,
    Cancelled,
    Completed,
    DreamError,
    Failed,
    Ignored,
    InterpretationOutcome,
    InterpretationSnapshot,
    Status,
    compute_progress,
    is_complete,
)
from dreamstream.client.transport import StreamTransport, TransportError
from dreamstream.core.config import Settings, settings as _settings
from dreamstream.schemas.interpretation import PartialDocument, validate
from dreamstream.storage.dreams_db import DreamStore, SavedDreamRecord, SqliteDreamStore
from dreamstream.transport.frames import DoneFrame, ErrorFrame, Frame, SnapshotFrame
from dreamstream.utils.logging_extras import log_adapter

log = logging.getLogger(__name__)

DEFAULT_FAILURE = "Unitulkinta epäonnistui"

Listener = Callable[[InterpretationSnapshot], None]
SavedListener = Callable[[SavedDreamRecord], None]


class StructuredDreamInterpreter:
    """Caller-facing surface over one evolving interpretation."""

    def __init__(
        self,
        transport: StreamTransport,
        store: DreamStore | None = None,
        *,
        auto_save: bool = True,
    ):
        self.transport = transport
        self.store = store
        self.auto_save = auto_save

        self._status = Status.idle
        self._generation = 0
        self._document: PartialDocument | None = None
        self._progress = 0
        self._error: DreamError | None = None
        self._dream_content = ""
        self._last_saved: SavedDreamRecord | None = None

        self._task: asyncio.Task | None = None
        self._started_generation = 0
        self._listeners: list[Listener] = []
        self._saved_listeners: list[SavedListener] = []
        self._persisted: set[int] = set()
        self._save_tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings = _settings,
        *,
        http: httpx.AsyncClient | None = None,
        store: DreamStore | None = None,
        auto_save: bool = True,
    ) -> StructuredDreamInterpreter:
        transport = StreamTransport.from_settings(settings, http)
        if store is None and auto_save:
            store = SqliteDreamStore(settings.DREAMS_DB)
        return cls(transport, store, auto_save=auto_save)

    # ---- read surface --------------------------------------------------------

    @property
    def interpretation(self) -> PartialDocument | None:
        return self._document

    @property
    def is_loading(self) -> bool:
        return self._status.in_flight

    @property
    def error(self) -> DreamError | None:
        return self._error

    @property
    def dream_content(self) -> str:
        return self._dream_content

    @property
    def is_complete(self) -> bool:
        return is_complete(self._document)

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def last_saved_dream(self) -> SavedDreamRecord | None:
        return self._last_saved

    @property
    def status(self) -> Status:
        return self._status

    @property
    def generation(self) -> int:
        return self._generation

    def snapshot(self) -> InterpretationSnapshot:
        return InterpretationSnapshot(
            status=self._status,
            generation=self._generation,
            interpretation=self._document,
            progress=self._progress,
            error=self._error,
            dream_content=self._dream_content,
            last_saved_dream=self._last_saved,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` with a snapshot after every state change; returns unsubscribe."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def on_dream_saved(self, listener: SavedListener) -> Callable[[], None]:
        self._saved_listeners.append(listener)
        return lambda: self._saved_listeners.remove(listener)

    # ---- actions -------------------------------------------------------------

    def interpret_dream(self, text: str) -> asyncio.Future[InterpretationOutcome]:
        """Submit a dream; must be called from the running event loop.

        - Blank text, or the same text as an in-flight request, is ignored.
        - Different text while in flight supersedes the active request.
        """
        dream = (text or "").strip()
        if not dream:
            return self._resolved(Ignored("blank"))
        if self.is_loading and dream == self._dream_content:
            log.debug("interpret.ignored duplicate generation=%d", self._generation)
            return self._resolved(Ignored("duplicate"))

        # Supersede: abort the old read, then mint a fresh token.
        self._abort_active()
        self._generation += 1
        generation = self._generation

        self._dream_content = dream
        self._document = None
        self._error = None
        self._progress = PROGRESS_FLOOR
        self._status = Status.submitted
        self._notify()

        self._task = asyncio.create_task(
            self._run(generation, dream), name=f"interpret-{generation}"
        )
        return self._task

    def cancel_interpretation(self) -> None:
        """Abort the in-flight request; no-op when idle or already terminal."""
        if not self._status.in_flight:
            return
        self._abort_active()
        self._status = Status.cancelled
        log.info("interpret.cancelled generation=%d", self._generation)
        self._notify()

    def reset(self) -> None:
        """Cancel, then return every field to its initial value."""
        self.cancel_interpretation()
        # Invalidates pending saves' claim on last_saved_dream.
        self._generation += 1
        self._status = Status.idle
        self._document = None
        self._error = None
        self._progress = 0
        self._dream_content = ""
        self._last_saved = None
        self._notify()

    async def drain(self) -> None:
        """Wait for background saves to finish."""
        while self._save_tasks:
            await asyncio.gather(*list(self._save_tasks))

    async def aclose(self) -> None:
        task = self._task
        self.cancel_interpretation()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        await self.drain()
        await self.transport.aclose()

    # ---- request lifecycle ---------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._status.in_flight

    def _abort_active(self) -> None:
        task, self._task = self._task, None
        # An unstarted task is left alone: it sees the stale token on entry and
        # resolves to Cancelled, which a pre-start cancel() would skip.
        if (
            task is not None
            and not task.done()
            and self._started_generation == self._generation
        ):
            task.cancel()

    async def _run(self, generation: int, dream: str) -> InterpretationOutcome:
        if not self._is_current(generation):
            return Cancelled(generation)
        self._started_generation = generation
        lad = log_adapter(log, f"gen-{generation}")
        lad.info("interpret.start dream_len=%d", len(dream))
        try:
            async with aclosing(
                self.transport.frames(dream, cid=f"gen-{generation}")
            ) as batches:
                async for batch in batches:
                    outcome = self._apply_batch(generation, dream, batch)
                    if outcome is not None:
                        return outcome
            if not self._is_current(generation):
                return Cancelled(generation)
            # Closed without [DONE]: closure is terminal too.
            return self._finish(generation, dream)
        except asyncio.CancelledError:
            if self._is_current(generation):
                # Not ours (e.g. loop shutdown): record it, then propagate.
                self._status = Status.cancelled
                self._notify()
                raise
            lad.debug("interpret.aborted")
            return Cancelled(generation)
        except TransportError as e:
            return self._fail(generation, DreamError(e.message, e.code))
        except httpx.HTTPError as e:
            lad.warning("interpret.transport_error %s", e)
            return self._fail(generation, DreamError(DEFAULT_FAILURE, INTERPRETATION_ERROR))
        except Exception:
            lad.exception("interpret.read_failed")
            return self._fail(generation, DreamError(DEFAULT_FAILURE, INTERPRETATION_ERROR))

    def _apply_batch(
        self, generation: int, dream: str, batch: list[Frame]
    ) -> InterpretationOutcome | None:
        """Apply every frame of one chunk synchronously; stop at a terminal frame."""
        for frame in batch:
            if not self._is_current(generation):
                return Cancelled(generation)
            if isinstance(frame, SnapshotFrame):
                self._apply_snapshot(frame.document)
            elif isinstance(frame, ErrorFrame):
                return self._fail(
                    generation, DreamError(frame.message, frame.code or INTERPRETATION_ERROR)
                )
            elif isinstance(frame, DoneFrame):
                return self._finish(generation, dream)
        return None

    def _apply_snapshot(self, document: PartialDocument) -> None:
        # Whole-object replacement, never a field-level merge.
        self._document = document
        self._status = Status.streaming
        self._progress = max(
            self._progress, min(PROGRESS_STREAMING_CAP, compute_progress(document))
        )
        self._notify()

    def _finish(self, generation: int, dream: str) -> InterpretationOutcome:
        document = self._document
        if not document:
            return self._fail(generation, DreamError("Tyhjä vastaus", EMPTY_RESPONSE))

        result = validate(document)
        if result.success:
            document = result.data.to_wire()
        else:
            # Advisory only: the best-effort document is still shown as complete.
            log.warning(
                "interpret.validation_failed generation=%d errors=%s",
                generation,
                "; ".join(result.errors[:5]),
            )
        self._document = document
        self._status = Status.complete
        self._progress = 100
        self._notify()

        self._schedule_save(generation, dream, document)
        return Completed(generation, document, validated=result.success)

    def _fail(self, generation: int, error: DreamError) -> InterpretationOutcome:
        if not self._is_current(generation):
            return Cancelled(generation)
        # Partial document is kept on screen next to the error.
        self._status = Status.error
        self._error = error
        log.warning(
            "interpret.failed generation=%d code=%s message=%s",
            generation,
            error.code,
            error.message,
        )
        self._notify()
        return Failed(generation, error, self._document)

    # ---- persistence hook ----------------------------------------------------

    def _schedule_save(self, generation: int, dream: str, document: PartialDocument) -> None:
        if not self.auto_save or self.store is None or generation in self._persisted:
            return
        self._persisted.add(generation)
        formatted = format_interpretation(document)
        task = asyncio.create_task(self._save(generation, dream, formatted))
        self._save_tasks.add(task)
        task.add_done_callback(self._save_tasks.discard)

    async def _save(self, generation: int, dream: str, formatted: str) -> SavedDreamRecord | None:
        try:
            record = await asyncio.to_thread(self.store.save, dream, formatted)
        except Exception:
            # A failed save never turns a finished interpretation into an error.
            log.exception("interpret.save failed generation=%d", generation)
            return None

        if generation == self._generation:
            self._last_saved = record
            self._notify()
        for listener in list(self._saved_listeners):
            try:
                listener(record)
            except Exception:
                log.exception("interpret.saved_listener failed")
        return record

    # ---- helpers -------------------------------------------------------------

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                log.exception("interpret.listener failed")

    @staticmethod
    def _resolved(outcome: InterpretationOutcome) -> asyncio.Future[InterpretationOutcome]:
        fut = asyncio.get_running_loop().create_future()
        fut.set_result(outcome)
        return fut
