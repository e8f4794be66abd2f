# alembic/env.py
# Migraciones de las tablas de layouts (slot_configurations / slot_configuration_versions)
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

from app.core.settings import settings
from app.db.base import Base
import app.models.slots  # noqa: F401  registra las tablas en Base.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# alembic.ini deja la URL vacía: siempre manda DATABASE_URL (normalizada a psycopg2)
DB_URL = settings.SQLALCHEMY_DATABASE_URL


def _context_options(dialect_name: str) -> dict:
    return {
        "target_metadata": target_metadata,
        # los Enum no nativos y los JSON/JSONB deben compararse por tipo en autogenerate
        "compare_type": True,
        # SQLite no soporta ALTER de constraints: batch mode recrea la tabla
        "render_as_batch": dialect_name == "sqlite",
    }


def run_migrations_offline() -> None:
    """Genera el SQL sin conectarse (alembic upgrade --sql)."""
    context.configure(
        url=DB_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(DB_URL.split(":", 1)[0].split("+", 1)[0]),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        {"sqlalchemy.url": DB_URL},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **_context_options(connection.dialect.name))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
