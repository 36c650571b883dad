"""
Release phase: migrate the schema, then run the idempotent seeds.

Env:
  DATABASE_URL          required
  ENV=production        refuses sqlite
  SEED_DEMO_CATALOG=1   also load the demo categories/products

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def release_database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against sqlite in production. Point DATABASE_URL at Postgres.")
    return db_url


def upgrade_schema(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def run_release() -> None:
    db_url = release_database_url()
    print("=== Storefront release start ===", flush=True)

    print("Running Alembic migrations...", flush=True)
    upgrade_schema(db_url)

    print("Seeding permissions/roles/admin...", flush=True)
    from scripts.init_db import seed_only

    seed_only(database_url=db_url)

    if (os.environ.get("SEED_DEMO_CATALOG") or "").strip() == "1":
        from scripts.seed_catalog import seed_catalog

        seed_catalog(database_url=db_url)
    print("=== Storefront release done ===", flush=True)


if __name__ == "__main__":
    run_release()
