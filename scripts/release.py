"""
Release step: bring the schema to the target revision, then optionally load
demo data.

    python scripts/release.py                 # upgrade to head
    python scripts/release.py --seed          # ...and seed demo data
    python scripts/release.py --revision a1f3c9d2e7b4

SEED_SAMPLE_DATA=1 has the same effect as --seed (used by scripts/start.py).
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

logger = logging.getLogger("fms.release")


class ReleaseError(RuntimeError):
    pass


def release_database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise ReleaseError("DATABASE_URL is not set; refusing to migrate an implicit SQLite file.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise ReleaseError("ENV=production needs a Postgres DATABASE_URL, got sqlite.")
    return db_url


def alembic_config(db_url: str):
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def seed_requested(flag: bool = False) -> bool:
    return flag or (os.environ.get("SEED_SAMPLE_DATA") or "").strip().lower() in ("1", "true", "yes")


def run_release(*, revision: str = "head", seed: bool = False) -> None:
    db_url = release_database_url()

    from alembic import command

    logger.info("Migrating to %s", revision)
    command.upgrade(alembic_config(db_url), revision)

    if seed_requested(seed):
        from scripts.init_db import seed_sample_data

        seed_sample_data(database_url=db_url)
    logger.info("Release finished")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run database migrations for a release.")
    parser.add_argument("--revision", default="head", help="Alembic revision to upgrade to (default: head)")
    parser.add_argument("--seed", action="store_true", help="Load demo data after migrating")
    args = parser.parse_args(argv)

    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper(), format="%(levelname)s %(name)s: %(message)s")
    try:
        run_release(revision=args.revision, seed=args.seed)
    except ReleaseError as e:
        logger.error("%s", e)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
