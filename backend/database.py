"""
Database lifecycle and request-scoped access.

The store is constructed explicitly during application startup and kept
on ``app.state``; routers receive it through FastAPI dependencies instead
of a module-level global.

Typical usage:
    from database import get_database

    @router.get("/{note_id}")
    async def get_note(note_id: int, db: NotesDatabase = Depends(get_database)):
        return await db.notes.get_by_id(note_id)
"""

import logging

from fastapi import Request

from config import Settings
from sqlite_db import NotesDatabase

logger = logging.getLogger(__name__)


async def connect_db(settings: Settings) -> NotesDatabase:
    """Open the store described by settings.

    Called once during application startup (main.py lifespan).
    Creates the database file and schema if they don't exist.
    """
    logger.info(f"Connecting to SQLite database: {settings.database_path}")
    db = NotesDatabase(settings.database_path, default_tag_color=settings.default_tag_color)
    await db.connect()
    logger.info("SQLite database connected successfully")
    return db


async def close_db(db: NotesDatabase) -> None:
    """Close the database connection gracefully.

    Called during application shutdown.
    """
    await db.close()
    logger.info("Database connection closed")


def get_database(request: Request) -> NotesDatabase:
    """FastAPI dependency returning the application's store.

    Raises:
        RuntimeError: If the lifespan hasn't opened the store yet.
    """
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise RuntimeError("Database not initialized. Call connect_db() first.")
    return db


def get_settings_dep(request: Request) -> Settings:
    """FastAPI dependency returning the settings the app was built with."""
    return request.app.state.settings
