"""
SQLite persistence layer for folders, notes, tags and images.

One explicitly constructed NotesDatabase owns a single aiosqlite
connection. Statements are grouped per entity and reached as attributes:

    db = NotesDatabase("data/notes.db")
    await db.connect()
    folder_id = await db.folders.create("Work", None, "💼")
    note_id = await db.notes.create("Standup", "<p>...</p>", "daily", folder_id)
    await db.close()

Architecture:
  - Every operation is one parameterized statement (or a short batch of
    them), taking positional arguments in placeholder order.
  - Writes go through transaction(): an asyncio lock serializes them and
    the batch is committed or rolled back as a unit. Reads take the same
    lock, so they only ever see committed state. Never call fetch_all/
    fetch_one inside a transaction() block; use the yielded connection.
  - Any sqlite3.Error surfaces as StoreError.
  - The Tag table plus note_tags is the source of truth for tagging;
    notes.tags is a derived comma-separated copy kept in sync on write.
"""

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Set, Union

import aiosqlite

from config import DEFAULT_TAG_COLOR
from exceptions import StoreError
from utils.image_refs import extract_image_ids
from utils.validators import join_tags, parse_tags

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

# ============================================================
# Schema
# ============================================================

_SCHEMA = """
CREATE TABLE IF NOT EXISTS folders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    parent_id INTEGER,
    icon TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (parent_id) REFERENCES folders (id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS notes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    folder_id INTEGER,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    tags TEXT,
    is_archived BOOLEAN DEFAULT 0,
    version INTEGER NOT NULL DEFAULT 1,
    FOREIGN KEY (folder_id) REFERENCES folders (id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    color TEXT DEFAULT '#3B82F6'
);

CREATE TABLE IF NOT EXISTS note_tags (
    note_id INTEGER,
    tag_id INTEGER,
    FOREIGN KEY (note_id) REFERENCES notes (id) ON DELETE CASCADE,
    FOREIGN KEY (tag_id) REFERENCES tags (id) ON DELETE CASCADE,
    PRIMARY KEY (note_id, tag_id)
);

CREATE TABLE IF NOT EXISTS images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT,
    mime TEXT NOT NULL,
    data BLOB NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""

# Column-add migrations for stores created by older versions.
# Each one fails with "duplicate column name" once applied.
_MIGRATIONS = [
    ("notes.folder_id",
     "ALTER TABLE notes ADD COLUMN folder_id INTEGER REFERENCES folders (id) ON DELETE SET NULL"),
    ("folders.icon", "ALTER TABLE folders ADD COLUMN icon TEXT"),
    ("notes.version", "ALTER TABLE notes ADD COLUMN version INTEGER NOT NULL DEFAULT 1"),
]

_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_folders_parent ON folders (parent_id);
CREATE INDEX IF NOT EXISTS idx_notes_folder ON notes (folder_id);
CREATE INDEX IF NOT EXISTS idx_notes_updated ON notes (updated_at);
CREATE INDEX IF NOT EXISTS idx_note_tags_tag ON note_tags (tag_id);
"""


def _now() -> str:
    """Server timestamp, microsecond precision so updated_at ordering is stable."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def _write_note_tags(conn: aiosqlite.Connection, note_id: int,
                           names: Sequence[str], color: str) -> None:
    """Replace a note's join rows, creating missing tags on the way."""
    await conn.execute("DELETE FROM note_tags WHERE note_id = ?", (note_id,))
    for name in names:
        await conn.execute(
            "INSERT OR IGNORE INTO tags (name, color) VALUES (?, ?)", (name, color)
        )
        await conn.execute(
            """
            INSERT OR IGNORE INTO note_tags (note_id, tag_id)
            SELECT ?, id FROM tags WHERE name = ?
            """,
            (note_id, name),
        )


# LIKE prefilter; _embedding_note_ids confirms the id is a real image reference
_IMAGE_CANDIDATES_SQL = "SELECT id, content FROM notes WHERE content LIKE ?"


def _embedding_note_ids(rows: Iterable[Any], image_id: int) -> List[int]:
    return [row["id"] for row in rows if image_id in extract_image_ids(row["content"])]


class _Operations:
    """Shared plumbing for the per-entity statement groups."""

    def __init__(self, db: "NotesDatabase"):
        self._db = db


# ============================================================
# Folder operations
# ============================================================

class FolderOperations(_Operations):

    async def create(self, name: str, parent_id: Optional[int], icon: Optional[str]) -> int:
        now = _now()
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO folders (name, parent_id, icon, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (name, parent_id, icon, now, now),
            )
            return cursor.lastrowid

    async def get_all(self) -> List[Row]:
        return await self._db.fetch_all("SELECT * FROM folders ORDER BY name, id")

    async def get_by_id(self, folder_id: int) -> Optional[Row]:
        return await self._db.fetch_one("SELECT * FROM folders WHERE id = ?", (folder_id,))

    async def get_by_parent(self, parent_id: int) -> List[Row]:
        return await self._db.fetch_all(
            "SELECT * FROM folders WHERE parent_id = ? ORDER BY name, id", (parent_id,)
        )

    async def get_descendant_ids(self, folder_id: int) -> Set[int]:
        """Ids of every folder below folder_id (children, grandchildren, ...)."""
        rows = await self._db.fetch_all(
            """
            WITH RECURSIVE subtree(id) AS (
                SELECT id FROM folders WHERE parent_id = ?
                UNION
                SELECT f.id FROM folders f JOIN subtree s ON f.parent_id = s.id
            )
            SELECT id FROM subtree
            """,
            (folder_id,),
        )
        return {row["id"] for row in rows}

    async def update(self, name: str, parent_id: Optional[int], icon: Optional[str],
                     folder_id: int) -> int:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                """
                UPDATE folders
                SET name = ?, parent_id = ?, icon = ?, updated_at = ?
                WHERE id = ?
                """,
                (name, parent_id, icon, _now(), folder_id),
            )
            return cursor.rowcount

    async def delete(self, folder_id: int) -> int:
        """Delete a folder. Child folders cascade, member notes become unfiled."""
        async with self._db.transaction() as conn:
            cursor = await conn.execute("DELETE FROM folders WHERE id = ?", (folder_id,))
            return cursor.rowcount


# ============================================================
# Note operations
# ============================================================

class NoteOperations(_Operations):

    async def create(self, title: str, content: str, tags: str,
                     folder_id: Optional[int]) -> int:
        names = parse_tags(tags)
        now = _now()
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO notes (title, content, tags, folder_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (title, content, join_tags(names), folder_id, now, now),
            )
            note_id = cursor.lastrowid
            await _write_note_tags(conn, note_id, names, self._db.default_tag_color)
            return note_id

    async def get_all(self) -> List[Row]:
        return await self.find()

    async def get_by_id(self, note_id: int) -> Optional[Row]:
        return await self._db.fetch_one("SELECT * FROM notes WHERE id = ?", (note_id,))

    async def update(self, title: str, content: str, tags: str, folder_id: Optional[int],
                     note_id: int, expected_version: Optional[int] = None) -> int:
        """Update a note; with expected_version, only if it is still current.

        Returns the number of rows changed (0 when the note is missing or
        its version moved on).
        """
        names = parse_tags(tags)
        sql = """
            UPDATE notes
            SET title = ?, content = ?, tags = ?, folder_id = ?,
                updated_at = ?, version = version + 1
            WHERE id = ?
        """
        params: List[Any] = [title, content, join_tags(names), folder_id, _now(), note_id]
        if expected_version is not None:
            sql += " AND version = ?"
            params.append(expected_version)

        async with self._db.transaction() as conn:
            cursor = await conn.execute(sql, params)
            changed = cursor.rowcount
            if changed:
                await _write_note_tags(conn, note_id, names, self._db.default_tag_color)
            return changed

    async def delete(self, note_id: int) -> int:
        async with self._db.transaction() as conn:
            cursor = await conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            return cursor.rowcount

    async def search(self, title_pattern: str, content_pattern: str) -> List[Row]:
        """Substring match on title or content, e.g. search("%todo%", "%todo%")."""
        return await self._db.fetch_all(
            """
            SELECT * FROM notes
            WHERE (title LIKE ? OR content LIKE ?) AND is_archived = 0
            ORDER BY updated_at DESC, id DESC
            """,
            (title_pattern, content_pattern),
        )

    async def archive(self, note_id: int) -> int:
        return await self._set_archived(note_id, True)

    async def unarchive(self, note_id: int) -> int:
        return await self._set_archived(note_id, False)

    async def _set_archived(self, note_id: int, archived: bool) -> int:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "UPDATE notes SET is_archived = ? WHERE id = ?", (int(archived), note_id)
            )
            return cursor.rowcount

    async def get_in_folder(self, folder_id: int) -> List[Row]:
        return await self.find(folder_id=folder_id)

    async def get_unfiled(self) -> List[Row]:
        return await self.find(unfiled=True)

    async def get_archived(self) -> List[Row]:
        return await self.find(archived=True)

    async def find(self, folder_id: Optional[int] = None, unfiled: bool = False,
                   tag: Optional[str] = None, pattern: Optional[str] = None,
                   archived: bool = False) -> List[Row]:
        """Combined listing filter; every condition given must hold.

        Args:
            folder_id: Only notes filed directly in this folder.
            unfiled: Only notes without a folder.
            tag: Only notes joined to the tag with this name.
            pattern: Substring that must occur in the title or content.
            archived: List archived notes instead of active ones.
        """
        conditions = ["n.is_archived = ?"]
        params: List[Any] = [1 if archived else 0]

        if folder_id is not None:
            conditions.append("n.folder_id = ?")
            params.append(folder_id)
        if unfiled:
            conditions.append("n.folder_id IS NULL")
        if tag is not None:
            conditions.append(
                """n.id IN (
                    SELECT nt.note_id FROM note_tags nt
                    JOIN tags t ON nt.tag_id = t.id
                    WHERE t.name = ?
                )"""
            )
            params.append(tag)
        if pattern:
            like = f"%{_escape_like(pattern)}%"
            conditions.append("(n.title LIKE ? ESCAPE '\\' OR n.content LIKE ? ESCAPE '\\')")
            params.extend([like, like])

        sql = (
            f"SELECT n.* FROM notes n WHERE {' AND '.join(conditions)} "
            "ORDER BY n.updated_at DESC, n.id DESC"
        )
        return await self._db.fetch_all(sql, params)

    async def find_referencing_image(self, image_id: int) -> List[int]:
        """Ids of notes (archived included) whose body embeds the image."""
        rows = await self._db.fetch_all(_IMAGE_CANDIDATES_SQL, (f"%id={image_id}%",))
        return _embedding_note_ids(rows, image_id)


# ============================================================
# Tag operations
# ============================================================

class TagOperations(_Operations):

    async def create(self, name: str, color: str) -> Optional[int]:
        """INSERT OR IGNORE; returns the new id, or None when the name exists."""
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "INSERT OR IGNORE INTO tags (name, color) VALUES (?, ?)", (name, color)
            )
            return cursor.lastrowid if cursor.rowcount else None

    async def get_all(self) -> List[Row]:
        return await self._db.fetch_all("SELECT * FROM tags ORDER BY name")

    async def get_by_id(self, tag_id: int) -> Optional[Row]:
        return await self._db.fetch_one("SELECT * FROM tags WHERE id = ?", (tag_id,))

    async def get_by_name(self, name: str) -> Optional[Row]:
        return await self._db.fetch_one("SELECT * FROM tags WHERE name = ?", (name,))

    async def get_for_note(self, note_id: int) -> List[Row]:
        return await self._db.fetch_all(
            """
            SELECT t.* FROM tags t
            JOIN note_tags nt ON t.id = nt.tag_id
            WHERE nt.note_id = ?
            ORDER BY t.name
            """,
            (note_id,),
        )

    async def get_notes_by_tag(self, name: str) -> List[Row]:
        return await self._db.notes.find(tag=name)

    async def get_notes_by_tag_name(self, name: str) -> List[Row]:
        """Legacy lookup: substring match on the denormalized tags string."""
        return await self._db.fetch_all(
            """
            SELECT * FROM notes
            WHERE tags LIKE ? ESCAPE '\\' AND is_archived = 0
            ORDER BY updated_at DESC, id DESC
            """,
            (f"%{_escape_like(name)}%",),
        )

    async def set_for_note(self, note_id: int, names: Iterable[str]) -> None:
        """Replace a note's tags, keeping notes.tags in sync with the join."""
        names = parse_tags(join_tags(names))
        async with self._db.transaction() as conn:
            await conn.execute(
                "UPDATE notes SET tags = ? WHERE id = ?", (join_tags(names), note_id)
            )
            await _write_note_tags(conn, note_id, names, self._db.default_tag_color)

    async def delete(self, tag_id: int) -> int:
        """Delete a tag and strip its name from every note that carried it."""
        async with self._db.transaction() as conn:
            async with conn.execute("SELECT name FROM tags WHERE id = ?", (tag_id,)) as cur:
                row = await cur.fetchone()
            if row is None:
                return 0
            name = row[0]

            async with conn.execute(
                """
                SELECT n.id, n.tags FROM notes n
                JOIN note_tags nt ON nt.note_id = n.id
                WHERE nt.tag_id = ?
                """,
                (tag_id,),
            ) as cur:
                carriers = await cur.fetchall()

            for note_id, tags in carriers:
                remaining = [t for t in parse_tags(tags) if t != name]
                await conn.execute(
                    "UPDATE notes SET tags = ? WHERE id = ?", (join_tags(remaining), note_id)
                )

            cursor = await conn.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
            return cursor.rowcount


# ============================================================
# Image operations
# ============================================================

class ImageOperations(_Operations):

    async def create(self, filename: Optional[str], mime: str, data: bytes) -> int:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "INSERT INTO images (filename, mime, data, created_at) VALUES (?, ?, ?, ?)",
                (filename, mime, data, _now()),
            )
            return cursor.lastrowid

    async def get_by_id(self, image_id: int) -> Optional[Row]:
        return await self._db.fetch_one(
            "SELECT id, filename, mime, data FROM images WHERE id = ?", (image_id,)
        )

    async def delete(self, image_id: int) -> int:
        async with self._db.transaction() as conn:
            cursor = await conn.execute("DELETE FROM images WHERE id = ?", (image_id,))
            return cursor.rowcount

    async def delete_if_unreferenced(self, image_id: int) -> int:
        """Delete the image unless some note embeds it, in one write batch.

        Returns:
            1 when the row was deleted, 0 when it is still referenced or
            was already gone.
        """
        async with self._db.transaction() as conn:
            async with conn.execute(_IMAGE_CANDIDATES_SQL, (f"%id={image_id}%",)) as cursor:
                referencing = _embedding_note_ids(await cursor.fetchall(), image_id)
            if referencing:
                logger.debug(f"Image {image_id} still used by notes {referencing}")
                return 0
            cursor = await conn.execute("DELETE FROM images WHERE id = ?", (image_id,))
            return cursor.rowcount


# ============================================================
# Database
# ============================================================

class NotesDatabase:
    """Single-file SQLite store with per-entity operation groups.

    Attributes:
        folders: FolderOperations
        notes: NoteOperations
        tags: TagOperations
        images: ImageOperations
    """

    def __init__(self, db_path: Union[str, Path], default_tag_color: str = DEFAULT_TAG_COLOR):
        self._db_path = str(db_path)
        self.default_tag_color = default_tag_color
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

        self.folders = FolderOperations(self)
        self.notes = NoteOperations(self)
        self.tags = TagOperations(self)
        self.images = ImageOperations(self)

    @property
    def path(self) -> str:
        return self._db_path

    async def connect(self) -> None:
        """Open the SQLite connection and bring the schema up to date."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = await aiosqlite.connect(self._db_path, timeout=30.0)
            self._conn.row_factory = aiosqlite.Row
            # WAL gives readers a consistent view while a write is in flight
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA foreign_keys=ON")
            await self._conn.execute("PRAGMA busy_timeout=5000")
        except sqlite3.Error as e:
            raise StoreError("Could not open database", detail=str(e)) from e
        logger.info(f"SQLite database connected: {self._db_path}")
        await self.init_schema()

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite database closed")

    def _get_conn(self):
        """Get the connection (context manager compatible)."""
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return _ConnContext(self._conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialized write batch: committed on success, rolled back on error."""
        async with self._lock:
            async with self._get_conn() as conn:
                try:
                    yield conn
                    await conn.commit()
                except sqlite3.Error as e:
                    await conn.rollback()
                    logger.error(f"SQLite write failed: {e}")
                    raise StoreError(detail=str(e)) from e
                except BaseException:
                    await conn.rollback()
                    raise

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        """Run a query outside any write batch; uncommitted rows are never visible."""
        try:
            async with self._lock, self._get_conn() as conn:
                async with conn.execute(sql, params) as cursor:
                    rows = await cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"SQLite read failed: {e}")
            raise StoreError(detail=str(e)) from e
        return [dict(row) for row in rows]

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        try:
            async with self._lock, self._get_conn() as conn:
                async with conn.execute(sql, params) as cursor:
                    row = await cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"SQLite read failed: {e}")
            raise StoreError(detail=str(e)) from e
        return dict(row) if row else None

    async def init_schema(self) -> None:
        """Create tables, apply column migrations, backfill tag joins.

        Idempotent: safe to run on every start and on demand.
        """
        async with self._lock:
            async with self._get_conn() as conn:
                try:
                    await conn.executescript(_SCHEMA)

                    for label, statement in _MIGRATIONS:
                        try:
                            await conn.execute(statement)
                            logger.info(f"Migration applied: {label}")
                        except sqlite3.OperationalError as e:
                            if "duplicate column" not in str(e).lower():
                                raise
                            logger.debug(f"Migration not needed: {label}")

                    await conn.executescript(_INDEXES)
                    backfilled = await self._backfill_note_tags(conn)
                    await conn.commit()
                except sqlite3.Error as e:
                    await conn.rollback()
                    logger.error(f"Schema initialization failed: {e}")
                    raise StoreError("Failed to initialize database", detail=str(e)) from e

        if backfilled:
            logger.info(f"Backfilled tag links for {backfilled} note(s)")
        logger.info("Database schema ready")

    async def _backfill_note_tags(self, conn: aiosqlite.Connection) -> int:
        """Create tag rows and join rows for names only present in notes.tags."""
        async with conn.execute(
            "SELECT id, tags FROM notes WHERE tags IS NOT NULL AND tags != ''"
        ) as cursor:
            rows = await cursor.fetchall()

        touched = 0
        for note_id, tags in rows:
            names = parse_tags(tags)
            async with conn.execute(
                """
                SELECT t.name FROM tags t
                JOIN note_tags nt ON nt.tag_id = t.id
                WHERE nt.note_id = ?
                """,
                (note_id,),
            ) as cursor:
                linked = {r[0] for r in await cursor.fetchall()}
            missing = [n for n in names if n not in linked]
            if not missing:
                continue
            for name in missing:
                await conn.execute(
                    "INSERT OR IGNORE INTO tags (name, color) VALUES (?, ?)",
                    (name, self.default_tag_color),
                )
                await conn.execute(
                    """
                    INSERT OR IGNORE INTO note_tags (note_id, tag_id)
                    SELECT ?, id FROM tags WHERE name = ?
                    """,
                    (note_id, name),
                )
            touched += 1
        return touched

    async def ping(self) -> bool:
        """Verify the connection is alive."""
        await self.fetch_one("SELECT 1 AS ok")
        return True


class _ConnContext:
    """Async context manager wrapper for the shared connection."""

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def __aenter__(self) -> aiosqlite.Connection:
        return self._conn

    async def __aexit__(self, *args):
        pass  # Connection stays open, managed by NotesDatabase
