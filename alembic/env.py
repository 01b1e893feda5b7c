"""
Alembic environment for the SchoolPay schema
"""

from logging.config import fileConfig
from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context
from dotenv import load_dotenv

load_dotenv()

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from schoolpay.infrastructure.database import Base
from schoolpay.infrastructure.settings import get_settings

# Registers every model on Base.metadata
import schoolpay.models  # noqa: F401

target_metadata = Base.metadata


def get_url() -> str:
    """DATABASE_URL from the app settings (env / .env); alembic.ini is only a placeholder"""
    return get_settings().DATABASE_URL or config.get_main_option("sqlalchemy.url")


def _configure_kwargs(url: str) -> dict:
    # Enum and partial-index changes must show up in autogenerate diffs
    kwargs = {"target_metadata": target_metadata, "compare_type": True}
    if url.startswith("sqlite"):
        kwargs["render_as_batch"] = True
    return kwargs


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting"""
    url = get_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_url()
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(url))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
