from __future__ import annotations

import os
import sys

from sqlalchemy import create_engine, pool

from alembic import context

# env.py lives in orderflow/alembic/; repo root must be importable
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from orderflow.app.config import Config  # noqa: E402
from orderflow.app.db.base import Base  # noqa: E402
from orderflow.app.db.models import models_v1  # noqa: F401,E402  (registers tables)
from orderflow.app.logging_config import configure_logging  # noqa: E402

alembic_config = context.config
app_config = Config()
configure_logging(app_config)

target_metadata = Base.metadata


def _database_url() -> str:
    # DATABASE_URL from the environment wins over alembic.ini
    if "DATABASE_URL" in os.environ:
        return app_config.DATABASE_URL
    return alembic_config.get_main_option("sqlalchemy.url") or app_config.DATABASE_URL


def run_migrations_offline() -> None:
    url = _database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _database_url()
    connect_args = {}
    if not url.startswith("sqlite"):
        # migrations run without the request statement_timeout
        connect_args["connect_timeout"] = app_config.DB_POOL_TIMEOUT_SECONDS

    engine = create_engine(url, poolclass=pool.NullPool, connect_args=connect_args)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                render_as_batch=connection.dialect.name == "sqlite",
            )

            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
