from __future__ import annotations

import logging
import os
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from kitchen_auth.core import config

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"
SECURITY_PREFIX = "[SECURITY]"


def _current_env() -> str:
    return os.getenv("ENVIRONMENT", os.getenv("ENV", config.ENV)).strip().lower()


def _is_production(env: str) -> bool:
    return env in {"prod", "production"}


def validate_database_environment(database_url: str | None = None) -> None:
    database_url = database_url if database_url is not None else config.DATABASE_URL
    if _is_production(_current_env()) and database_url.startswith("sqlite"):
        logger.critical("%s SQLite is forbidden in production", MIGRATIONS_PREFIX)
        raise RuntimeError("SQLite is forbidden in production environment")


def validate_secrets_environment(secrets: dict[str, str] | None = None) -> None:
    """Refuse to boot in production while any signing secret is a development default."""
    secrets = secrets if secrets is not None else config.DEVELOPMENT_DEFAULT_SECRETS
    weak = sorted(name for name, value in secrets.items() if not value or value.startswith("default-"))
    if not weak:
        return
    if _is_production(_current_env()):
        logger.critical("%s development secrets configured in production: %s", SECURITY_PREFIX, ", ".join(weak))
        raise RuntimeError("Development default secrets are forbidden in production environment")
    logger.warning("%s using development default secrets: %s", SECURITY_PREFIX, ", ".join(weak))


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    if _current_env() == "test":
        logger.info("%s skipped migration check in test environment", MIGRATIONS_PREFIX)
        return

    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, alembic_config_path)
        raise RuntimeError("alembic config not found")

    alembic_cfg = Config(str(alembic_config_path))
    script_directory = ScriptDirectory.from_config(alembic_cfg)
    expected_heads = set(script_directory.get_heads())

    with engine.connect() as connection:
        inspector = inspect(connection)
        if "alembic_version" not in inspector.get_table_names():
            logger.critical("%s alembic_version table missing", MIGRATIONS_PREFIX)
            raise RuntimeError("Database has no migration state")

        current_rows = connection.exec_driver_sql("SELECT version_num FROM alembic_version").fetchall()

    current_heads = {row[0] for row in current_rows if row and row[0]}
    if current_heads != expected_heads:
        logger.critical(
            "%s pending migration detected current=%s expected=%s",
            MIGRATIONS_PREFIX,
            sorted(current_heads),
            sorted(expected_heads),
        )
        raise RuntimeError("Pending migrations detected")

    logger.info("%s migration state verified", MIGRATIONS_PREFIX)
