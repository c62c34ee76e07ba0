"""
Notes router.
Handles CRUD operations for notes.

Note bodies are opaque HTML from the rich-text editor (or Markdown on
older notes) and pass through untouched. Every write reports the old and
new body to the image reaper so images dropped from a note are cleaned
up after the grace period.

Updates accept the version a client last saw (If-Match header or
``version`` field). A stale version is rejected with 409; without one
the last write wins.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Response, status

from database import get_database
from exceptions import ConflictError, NotFoundError, ValidationError
from models.note import NoteCreate, NoteResponse, NoteUpdate
from models.tag import TagResponse
from services.image_reaper import ImageReaper, get_reaper
from sqlite_db import NotesDatabase
from utils.validators import require_text

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_or_404(db: NotesDatabase, note_id: int) -> dict:
    note = await db.notes.get_by_id(note_id)
    if not note:
        raise NotFoundError("Note not found")
    return note


async def _check_folder(db: NotesDatabase, folder_id: Optional[int]) -> None:
    if folder_id is not None and not await db.folders.get_by_id(folder_id):
        raise ValidationError("Folder not found")


def _etag(note: dict) -> str:
    return f'"{note["version"]}"'


def _expected_version(if_match: Optional[str], body_version: Optional[int]) -> Optional[int]:
    """Version the client based its edit on; If-Match wins over the body."""
    if if_match is None:
        return body_version
    value = if_match.strip()
    if value == "*":
        return None
    if value.startswith("W/"):
        value = value[2:]
    try:
        return int(value.strip('"'))
    except ValueError:
        raise ValidationError(f"Invalid If-Match header: {if_match!r}")


@router.get("", response_model=List[NoteResponse])
async def list_notes(
    folder_id: Optional[int] = Query(None, description="Only notes in this folder"),
    no_folder: bool = Query(False, description="Only notes without a folder"),
    tag: Optional[str] = Query(None, description="Only notes carrying this tag"),
    q: Optional[str] = Query(None, description="Substring search in title/content"),
    archived: bool = Query(False, description="List archived notes instead"),
    db: NotesDatabase = Depends(get_database),
) -> list:
    """
    List notes, most recently updated first.

    Filters combine: folder_id=3&tag=work returns notes in folder 3
    tagged "work". A folder with no notes yields an empty list.
    """
    return await db.notes.find(
        folder_id=folder_id,
        unfiled=no_folder,
        tag=tag.strip() if tag else None,
        pattern=q,
        archived=archived,
    )


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    data: NoteCreate,
    response: Response,
    db: NotesDatabase = Depends(get_database),
    reaper: ImageReaper = Depends(get_reaper),
) -> dict:
    """Create a note. Only title is required."""
    title = require_text(data.title, "Title")
    folder_id = data.folder_id or None
    await _check_folder(db, folder_id)
    content = data.content or ""

    note_id = await db.notes.create(title, content, data.tags or "", folder_id)
    reaper.note_changed(None, content)

    note = await db.notes.get_by_id(note_id)
    response.headers["ETag"] = _etag(note)
    logger.info(f"Note created: {note_id} (folder={folder_id})")
    return note


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: int,
    response: Response,
    db: NotesDatabase = Depends(get_database),
) -> dict:
    """Get a specific note by ID."""
    note = await _get_or_404(db, note_id)
    response.headers["ETag"] = _etag(note)
    return note


@router.put("/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: int,
    data: NoteUpdate,
    response: Response,
    if_match: Optional[str] = Header(None),
    db: NotesDatabase = Depends(get_database),
    reaper: ImageReaper = Depends(get_reaper),
) -> dict:
    """Update a note's title, content, tags and folder.

    content and tags fall back to empty strings when omitted; folder_id
    is only changed when the field is present in the body.
    """
    title = require_text(data.title, "Title")
    existing = await _get_or_404(db, note_id)

    if "folder_id" in data.model_fields_set:
        folder_id = data.folder_id or None
        await _check_folder(db, folder_id)
    else:
        folder_id = existing["folder_id"]

    expected = _expected_version(if_match, data.version)
    if expected is not None and expected != existing["version"]:
        raise ConflictError("Note was modified by another session")

    content = data.content or ""
    changed = await db.notes.update(title, content, data.tags or "", folder_id, note_id, expected)
    if not changed:
        # Lost a race between the read above and the write
        if await db.notes.get_by_id(note_id) is None:
            raise NotFoundError("Note not found")
        raise ConflictError("Note was modified by another session")

    reaper.note_changed(existing["content"], content)

    note = await db.notes.get_by_id(note_id)
    response.headers["ETag"] = _etag(note)
    return note


@router.delete("/{note_id}")
async def delete_note(
    note_id: int,
    db: NotesDatabase = Depends(get_database),
    reaper: ImageReaper = Depends(get_reaper),
) -> dict:
    """Delete a note. Images only it referenced are reaped later."""
    note = await _get_or_404(db, note_id)
    await db.notes.delete(note_id)
    reaper.note_changed(note["content"], None)
    logger.info(f"Note deleted: {note_id}")
    return {"message": "Note deleted successfully"}


@router.post("/{note_id}/archive", response_model=NoteResponse)
async def archive_note(
    note_id: int,
    db: NotesDatabase = Depends(get_database),
) -> dict:
    """Hide a note from the regular listings."""
    if not await db.notes.archive(note_id):
        raise NotFoundError("Note not found")
    return await db.notes.get_by_id(note_id)


@router.post("/{note_id}/unarchive", response_model=NoteResponse)
async def unarchive_note(
    note_id: int,
    db: NotesDatabase = Depends(get_database),
) -> dict:
    """Bring an archived note back into the listings."""
    if not await db.notes.unarchive(note_id):
        raise NotFoundError("Note not found")
    return await db.notes.get_by_id(note_id)


@router.get("/{note_id}/tags", response_model=List[TagResponse])
async def list_note_tags(
    note_id: int,
    db: NotesDatabase = Depends(get_database),
) -> list:
    """Tags linked to a note."""
    await _get_or_404(db, note_id)
    return await db.tags.get_for_note(note_id)
