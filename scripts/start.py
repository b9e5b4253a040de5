#!/usr/bin/env python3
"""
Container entry point: run the release step, then hand the process over to
gunicorn serving app.wsgi:app.

Environment:
    PORT             listen port (default 8080)
    WEB_CONCURRENCY  gunicorn workers (default 2)
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

logger = logging.getLogger("fms.start")

DEFAULT_PORT = 8080
DEFAULT_WORKERS = 2


def _env_int(name: str, default: int, *, low: int, high: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    value = int(raw)
    if not low <= value <= high:
        raise ValueError(f"{name}={raw} is outside {low}-{high}")
    return value


def gunicorn_argv(port: int, workers: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", "60",
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper(), format="%(levelname)s %(name)s: %(message)s")

    try:
        port = _env_int("PORT", DEFAULT_PORT, low=1, high=65535)
        workers = _env_int("WEB_CONCURRENCY", DEFAULT_WORKERS, low=1, high=64)
    except ValueError as e:
        logger.error("Bad startup setting: %s", e)
        sys.exit(1)

    from scripts.release import run_release

    try:
        run_release()
    except Exception:
        logger.exception("Release step failed; not starting the web server")
        sys.exit(1)

    argv = gunicorn_argv(port, workers)
    logger.info("exec %s", " ".join(argv))
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
