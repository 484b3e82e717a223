"""Alembic environment for the eMarketer schema.

The URL comes from DATABASE_URL_MIGRATIONS when set (a direct, non-pooled
connection for DDL), otherwise from the same accessor the API uses, so
production fails fast on a missing DATABASE_URL here too.
"""

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context

sys.path.insert(0, str(Path(__file__).parent.parent / "apps" / "api"))

from emarketer_api.config.env import get_database_url  # noqa: E402
from emarketer_api.db.engine import build_engine  # noqa: E402
from emarketer_api.db.models import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

database_url = os.getenv("DATABASE_URL_MIGRATIONS") or get_database_url()
config.set_main_option("sqlalchemy.url", database_url)

# SQLite cannot ALTER most constraints in place
render_as_batch = database_url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Emit SQL for the pending revisions without connecting."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=render_as_batch,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply pending revisions over an engine built like the API's."""
    engine = build_engine(database_url)

    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                render_as_batch=render_as_batch,
            )

            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
