from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.storefront.db import create_db_engine

DEFAULT_DATABASE_URL = "sqlite:///storefront.db"


def resolve_database_url(database_url: str | None = None) -> str:
    return (database_url or os.environ.get("DATABASE_URL") or DEFAULT_DATABASE_URL).strip()


@contextmanager
def script_session(database_url: str | None = None) -> Iterator[Session]:
    """
    Session for release/seed scripts, which run without building the Flask app.
    Commits on success; the engine is disposed either way.
    """
    engine = create_db_engine(resolve_database_url(database_url))
    s = Session(bind=engine, autoflush=False, expire_on_commit=False)
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
