"""Database engine builder.

Every process (API, scheduler, alembic) builds its engine here so pool and
dialect settings stay identical.

- Default: NullPool (external pooler such as pgbouncer/Supabase in front)
- ENV: EMK_DB_POOL=nullpool|queuepool (default: nullpool)
- SQLite URLs (tests, local tooling) get check_same_thread=False, and
  in-memory SQLite gets a StaticPool so all sessions share one database
"""

import logging
import os
import re
from typing import Any

from sqlalchemy import Engine, NullPool, QueuePool, StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


def _mask_password(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r"://([^:]+):([^@]+)@", r"://\1:***@", url)


def _pool_kwargs(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in {"sqlite://", "sqlite:///"}:
            kwargs["poolclass"] = StaticPool
        return kwargs

    pool_mode = os.getenv("EMK_DB_POOL", "nullpool").lower()
    if pool_mode == "queuepool":
        return {
            "poolclass": QueuePool,
            "pool_size": int(os.getenv("EMK_DB_POOL_SIZE", "5")),
            "max_overflow": int(os.getenv("EMK_DB_MAX_OVERFLOW", "5")),
            "pool_pre_ping": True,
        }
    if pool_mode != "nullpool":
        raise ValueError(f"EMK_DB_POOL must be 'nullpool' or 'queuepool', got '{pool_mode}'")
    return {"poolclass": NullPool}


def build_engine(url: str, **overrides: Any) -> Engine:
    """Create a SQLAlchemy engine with the project pool policy.

    Args:
        url: Database URL
        **overrides: Extra create_engine kwargs (take precedence)

    Returns:
        Configured Engine
    """
    kwargs = _pool_kwargs(url)
    kwargs.update(overrides)
    engine = create_engine(url, **kwargs)
    logger.info(
        "Database engine created",
        extra={
            "event": "db.engine.created",
            "url": _mask_password(url),
            "pool": kwargs.get("poolclass", QueuePool).__name__,
        },
    )
    return engine


def build_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    """Create the session factory bound to ``engine``."""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
