"""
Folders router.
Handles CRUD operations for the folder tree notes are filed into.

Folders nest through parent_id. A folder can't be moved under itself or
one of its descendants; deleting a folder takes its subtree with it and
leaves the notes that were filed there unfiled.
"""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from database import get_database
from exceptions import NotFoundError, ValidationError
from models.folder import FolderCreate, FolderResponse, FolderUpdate
from sqlite_db import NotesDatabase
from utils.validators import require_text

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_or_404(db: NotesDatabase, folder_id: int) -> dict:
    folder = await db.folders.get_by_id(folder_id)
    if not folder:
        raise NotFoundError("Folder not found")
    return folder


async def _check_parent(db: NotesDatabase, parent_id: Optional[int],
                        folder_id: Optional[int] = None) -> None:
    """Validate a parent reference before it reaches the foreign key.

    Args:
        db: Store.
        parent_id: Requested parent, None for a root folder.
        folder_id: Folder being moved (None when creating).
    """
    if parent_id is None:
        return
    if not await db.folders.get_by_id(parent_id):
        raise ValidationError("Parent folder not found")
    if folder_id is None:
        return
    if parent_id == folder_id or parent_id in await db.folders.get_descendant_ids(folder_id):
        raise ValidationError("A folder cannot be moved into itself or its subfolders")


@router.get("", response_model=List[FolderResponse])
async def list_folders(
    sort: Literal["name", "created_at", "updated_at"] = Query("name"),
    order: Literal["asc", "desc"] = Query("asc"),
    db: NotesDatabase = Depends(get_database),
) -> list:
    """List all folders, sorted by name unless asked otherwise."""
    folders = await db.folders.get_all()
    if sort != "name" or order != "asc":
        key = (lambda f: f["name"].lower()) if sort == "name" else (lambda f: f[sort] or "")
        folders.sort(key=key, reverse=(order == "desc"))
    return folders


@router.post("", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(
    data: FolderCreate,
    db: NotesDatabase = Depends(get_database),
) -> dict:
    """Create a folder, optionally nested under parent_id."""
    name = require_text(data.name, "Folder name")
    parent_id = data.parent_id or None
    await _check_parent(db, parent_id)

    folder_id = await db.folders.create(name, parent_id, data.icon or None)
    logger.info(f"Folder created: {folder_id} ({name!r}, parent={parent_id})")
    return await db.folders.get_by_id(folder_id)


@router.get("/{folder_id}", response_model=FolderResponse)
async def get_folder(
    folder_id: int,
    db: NotesDatabase = Depends(get_database),
) -> dict:
    """Get a specific folder by ID."""
    return await _get_or_404(db, folder_id)


@router.get("/{folder_id}/children", response_model=List[FolderResponse])
async def list_child_folders(
    folder_id: int,
    db: NotesDatabase = Depends(get_database),
) -> list:
    """Direct subfolders of a folder, sorted by name."""
    await _get_or_404(db, folder_id)
    return await db.folders.get_by_parent(folder_id)


@router.put("/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: int,
    data: FolderUpdate,
    db: NotesDatabase = Depends(get_database),
) -> dict:
    """Rename, move or change the icon of a folder."""
    name = require_text(data.name, "Folder name")
    await _get_or_404(db, folder_id)
    parent_id = data.parent_id or None
    await _check_parent(db, parent_id, folder_id)

    if not await db.folders.update(name, parent_id, data.icon or None, folder_id):
        raise NotFoundError("Folder not found")
    return await db.folders.get_by_id(folder_id)


@router.delete("/{folder_id}")
async def delete_folder(
    folder_id: int,
    db: NotesDatabase = Depends(get_database),
) -> dict:
    """
    Delete a folder and all of its subfolders.
    Notes filed anywhere in the subtree are kept, with folder_id cleared.
    """
    if not await db.folders.delete(folder_id):
        raise NotFoundError("Folder not found")
    logger.info(f"Folder deleted: {folder_id}")
    return {"success": True}
