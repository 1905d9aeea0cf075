from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from launchbot.settings import get_settings

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # Queries run from worker threads (asyncio.to_thread)
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,
        "pool_timeout": 30,
        "connect_args": {"connect_timeout": 10, "application_name": "launchbot"},
    }


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    url = get_settings().sqlalchemy_database_url
    return create_engine(url, future=True, echo=False, **_engine_kwargs(url))


@lru_cache(maxsize=1)
def _session_factory() -> sessionmaker[Session]:
    return sessionmaker(bind=get_engine(), autoflush=False, future=True)


def create_session() -> Session:
    """Open a session outside a ``with`` block. The caller closes it."""
    return _session_factory()()


@contextmanager
def db_transaction() -> Iterator[Session]:
    """Session that commits when the block exits cleanly and rolls back otherwise.

    Usage:
        with db_transaction() as session:
            seed_demo_data(session)
    """
    session = create_session()
    try:
        yield session
        session.commit()
    except Exception as e:
        logger.warning("Database transaction failed, rolling back: %s", e)
        session.rollback()
        raise
    finally:
        session.close()
