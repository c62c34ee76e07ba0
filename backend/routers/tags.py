"""
Tags router.

The listing merges two sources: rows of the tags table, and names parsed
out of every active note's comma-separated ``tags`` string. Names only
seen in strings (notes written before tag links existed) are reported
with a null id and the default color. Each entry carries the number of
active notes whose tag string contains it.
"""

import logging
from collections import Counter
from typing import List, Literal

from fastapi import APIRouter, Depends, Query, Response, status

from config import Settings
from database import get_database, get_settings_dep
from exceptions import NotFoundError, ValidationError
from models.tag import TagCreate, TagResponse, TagWithCount
from sqlite_db import NotesDatabase
from utils.validators import parse_tags, require_text, validate_color

logger = logging.getLogger(__name__)
router = APIRouter()


def _merge_tags(table_tags: List[dict], notes: List[dict], default_color: str) -> List[dict]:
    """Combine tag rows with names used in note tag strings, with counts.

    Args:
        table_tags: Rows from the tags table.
        notes: Active notes; only their ``tags`` string is read.
        default_color: Color for names that have no tags row.

    Returns:
        One entry per distinct name: table rows first (in the given
        order), then string-only names in first-seen order.
    """
    counts: Counter = Counter()
    for note in notes:
        counts.update(parse_tags(note.get("tags")))

    merged = []
    known = set()
    for tag in table_tags:
        known.add(tag["name"])
        merged.append({
            "id": tag["id"],
            "name": tag["name"],
            "color": tag["color"] or default_color,
            "count": counts[tag["name"]],
        })
    for name in counts:
        if name not in known:
            merged.append({"id": None, "name": name, "color": default_color, "count": counts[name]})
    return merged


@router.get("", response_model=List[TagWithCount])
async def list_tags(
    sort: Literal["name", "count"] = Query("name"),
    order: Literal["asc", "desc"] = Query("asc"),
    db: NotesDatabase = Depends(get_database),
    settings: Settings = Depends(get_settings_dep),
) -> list:
    """List every tag in use or defined, with note counts."""
    tags = _merge_tags(await db.tags.get_all(), await db.notes.get_all(), settings.default_tag_color)
    if sort == "count":
        tags.sort(key=lambda t: (t["count"], t["name"].lower()), reverse=(order == "desc"))
    else:
        tags.sort(key=lambda t: t["name"].lower(), reverse=(order == "desc"))
    return tags


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    data: TagCreate,
    response: Response,
    db: NotesDatabase = Depends(get_database),
    settings: Settings = Depends(get_settings_dep),
) -> dict:
    """
    Create a tag.

    Creating a name that already exists is not an error: the existing
    tag is returned unchanged with 200 instead of 201. Names may not
    contain commas, since notes store their tags comma-separated.
    """
    name = require_text(data.name, "Tag name")
    if "," in name:
        raise ValidationError("Tag name cannot contain commas")
    color = validate_color(data.color or settings.default_tag_color)

    tag_id = await db.tags.create(name, color)
    if tag_id is None:
        response.status_code = status.HTTP_200_OK
        existing = await db.tags.get_by_name(name)
        return existing

    logger.info(f"Tag created: {tag_id} ({name!r})")
    return {"id": tag_id, "name": name, "color": color}


@router.delete("/{tag_id}")
async def delete_tag(
    tag_id: int,
    db: NotesDatabase = Depends(get_database),
) -> dict:
    """Delete a tag and remove it from the notes that carried it."""
    if not await db.tags.delete(tag_id):
        raise NotFoundError("Tag not found")
    logger.info(f"Tag deleted: {tag_id}")
    return {"success": True}
