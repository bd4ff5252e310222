"""Application lifecycle management for startup and shutdown tasks.

The FastAPI lifespan below configures logging, validates the SQLite path,
opens the database and (optionally) creates the schema. Shutdown disposes
the engine.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from melodia.config import Settings, get_settings
from melodia.domain.exceptions import ConfigurationError
from melodia.infrastructure.observability import configure_logging
from melodia.infrastructure.persistence import Database

logger = logging.getLogger(__name__)


# Hey future me, this runs BEFORE the engine exists. SQLite needs to create -journal/-wal
# files next to the .db file, so the parent directory must exist AND be writable. The .db
# file itself is NOT pre-created; SQLite initializes it on first connect.
def _validate_sqlite_path(settings: Settings) -> None:
    """Make sure a file-backed SQLite database can be created where the URL points."""
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        if db_path.parent and str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug("Ensured SQLite parent directory exists: %s", db_path.parent)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}. "
            "Update DATABASE_URL or adjust directory permissions."
        ) from exc

    try:
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in database directory '{db_path.parent}': {exc}. "
            "SQLite requires write permissions to create database and journal files."
        ) from exc


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup: logging, SQLite path check, database, optional create_all.
    Shutdown: database engine disposal.

    Settings come from ``app.state.settings`` when the app factory got explicit
    settings (tests), otherwise from the environment.
    """
    settings: Settings = getattr(app.state, "settings", None) or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s (%s)", settings.app_name, settings.environment)

    try:
        _validate_sqlite_path(settings)

        db = Database(settings)
        app.state.db = db
        logger.info("Database initialized: %s", settings.database.url)

        if settings.create_tables_on_startup:
            await db.create_tables()
            logger.info("Database tables created from model metadata")

        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")
        db = getattr(app.state, "db", None)
        if db is not None:
            try:
                await db.close()
                logger.info("Database connection closed")
            except Exception as e:
                logger.exception("Error closing database: %s", e)
