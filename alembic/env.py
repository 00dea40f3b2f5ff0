from logging.config import fileConfig
import os
from pathlib import Path
from dotenv import load_dotenv

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context

from BarangayAPI.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _get_database_url() -> str:
    """Return the DB URL the app itself would use, normalized for psycopg2.

    - DATABASE_URL wins, then HEROKU_DATABASE_URL, then sqlalchemy.url from the ini file.
    - On Heroku (DYNO set), sslmode=require is appended unless already specified.
    """
    if not os.getenv("DYNO"):
        root = Path(__file__).resolve().parents[1]
        dev = root / ".env.development"
        default = root / ".env"
        if dev.exists():
            load_dotenv(dev)
        elif default.exists():
            load_dotenv(default)

    url = (
        os.getenv("DATABASE_URL")
        or os.getenv("HEROKU_DATABASE_URL")
        or config.get_main_option("sqlalchemy.url", "")
    )
    if url.strip().endswith("://"):
        url = ""
    if not url:
        raise RuntimeError(
            "No database URL found. Set DATABASE_URL or sqlalchemy.url in alembic.ini"
        )

    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg2://", 1)

    if os.getenv("DYNO") and url.startswith("postgresql") and "sslmode=" not in url:
        sep = "&" if "?" in url else "?"
        url = f"{url}{sep}sslmode=require"

    return url


def run_migrations_offline() -> None:
    context.configure(
        url=_get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section, {}) or {}
    configuration["sqlalchemy.url"] = _get_database_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        # render_as_batch lets ALTERs run on SQLite during local development
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
