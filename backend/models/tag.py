"""
Tag model definitions.

Tags live in their own table (unique name, display color) and are linked
to notes through note_tags. A note's comma-separated ``tags`` string is a
copy of its linked names; names found only in such strings show up in
listings with a null id.
"""

from typing import Optional

from pydantic import BaseModel

from config import DEFAULT_TAG_COLOR


class TagCreate(BaseModel):
    """Schema for creating a tag. name and color are checked by the router;
    a missing or null color gets the configured default."""
    name: Optional[str] = None
    color: Optional[str] = None


class TagResponse(BaseModel):
    """Tag row returned in API responses."""
    id: Optional[int]
    name: str
    color: str = DEFAULT_TAG_COLOR


class TagWithCount(TagResponse):
    """Tag listing entry with the number of active notes carrying it."""
    count: int = 0
