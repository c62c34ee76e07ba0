"""
Folder model definitions.

Folders form a tree through parent_id (null = root). Deleting a folder
removes its whole subtree; notes filed anywhere in it become unfiled.
"""

from typing import Optional

from pydantic import BaseModel

from models.base import TimestampedResponse


class FolderCreate(BaseModel):
    """Schema for creating a folder. name is checked by the router."""
    name: Optional[str] = None
    parent_id: Optional[int] = None
    icon: Optional[str] = None


class FolderUpdate(BaseModel):
    """Schema for updating a folder (full replacement of name/parent/icon)."""
    name: Optional[str] = None
    parent_id: Optional[int] = None
    icon: Optional[str] = None


class FolderResponse(TimestampedResponse):
    """Folder data returned in API responses."""
    id: int
    name: str
    parent_id: Optional[int] = None
    icon: Optional[str] = None
