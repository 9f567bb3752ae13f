# ------------------------------------------------------------
# Tool: ops/tools/interpret_dream.py
# Purpose: Stream one interpretation from a running backend and print progress.
# ------------------------------------------------------------

"""
Directions:

uvicorn dreamstream.main:app --reload
python ops/tools/interpret_dream.py "Lensin pilvien yläpuolella"
python ops/tools/interpret_dream.py --no-save --base-url http://127.0.0.1:8000 "..."

Exit code 0 on complete, 1 on error/cancel, 2 if the backend is not ready.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import requests

from dreamstream.client.formatting import format_interpretation
from dreamstream.client.interpreter import StructuredDreamInterpreter
from dreamstream.client.state import Completed, InterpretationSnapshot
from dreamstream.client.transport import INTERPRET_PATH
from dreamstream.core.config import Settings
from dreamstream.core.logging import configure_logging


def probe(base_url: str) -> dict:
    """GET the interpretation endpoint's readiness payload."""
    resp = requests.get(base_url.rstrip("/") + INTERPRET_PATH, timeout=10)
    return resp.json()


async def run(dream: str, settings: Settings, save: bool) -> int:
    interpreter = StructuredDreamInterpreter.from_settings(settings, auto_save=save)
    last = {"progress": -1}

    def show(snap: InterpretationSnapshot) -> None:
        if snap.progress != last["progress"]:
            last["progress"] = snap.progress
            print(f"[{snap.status.value:<9}] {snap.progress:3d}%", file=sys.stderr)

    interpreter.subscribe(show)
    interpreter.on_dream_saved(lambda rec: print(f"saved {rec.id}", file=sys.stderr))
    try:
        outcome = await interpreter.interpret_dream(dream)
        await interpreter.drain()
    finally:
        await interpreter.aclose()

    if isinstance(outcome, Completed):
        if not outcome.validated:
            print("(interpretation did not pass schema validation)", file=sys.stderr)
        print(format_interpretation(outcome.document))
        return 0
    if interpreter.error:
        print(f"error: {interpreter.error.message} ({interpreter.error.code})", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[0] if __doc__ else None)
    ap.add_argument("dream", help="free-text dream narration")
    ap.add_argument("--base-url", default=None, help="backend URL (default: API_BASE_URL)")
    ap.add_argument("--db", type=Path, default=None, help="SQLite file for saved dreams")
    ap.add_argument("--no-save", action="store_true", help="do not persist the result")
    ap.add_argument("--idle-timeout", type=float, default=None, help="abort stalled streams")
    args = ap.parse_args(argv)

    overrides: dict = {}
    if args.base_url:
        overrides["API_BASE_URL"] = args.base_url
    if args.db:
        overrides["DREAMS_DB"] = args.db
    if args.idle_timeout:
        overrides["STREAM_IDLE_TIMEOUT_S"] = args.idle_timeout
    settings = Settings.from_env(**overrides)
    configure_logging(settings)

    try:
        health = probe(settings.API_BASE_URL)
    except (requests.RequestException, ValueError) as e:
        print(f"backend unreachable: {e}", file=sys.stderr)
        return 2
    if health.get("status") != "ready":
        print(f"backend not ready: {health}", file=sys.stderr)
        return 2

    return asyncio.run(run(args.dream, settings, save=not args.no_save))


if __name__ == "__main__":
    sys.exit(main())
