"""
Pydantic models package.
Each module contains models for a specific domain.
"""

from models.folder import FolderCreate, FolderUpdate, FolderResponse
from models.note import NoteCreate, NoteUpdate, NoteResponse
from models.tag import TagCreate, TagResponse, TagWithCount
from models.image import ImageUploadJSON, ImageCreated

__all__ = [
    "FolderCreate", "FolderUpdate", "FolderResponse",
    "NoteCreate", "NoteUpdate", "NoteResponse",
    "TagCreate", "TagResponse", "TagWithCount",
    "ImageUploadJSON", "ImageCreated",
]
