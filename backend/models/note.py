"""
Note model definitions.
Represents a note: title, rich-text body, optional folder and tags.

Notes support:
- HTML bodies produced by the rich-text editor (legacy notes hold Markdown)
- Filing into at most one folder via folder_id
- Tags, sent and returned as a comma-separated string
- Archiving, which hides a note from the regular listings
- A version counter for optimistic concurrency on updates
"""

from typing import Annotated, Any, List, Optional, Union

from pydantic import AfterValidator, BaseModel, field_validator

from models.base import TimestampedResponse
from utils.validators import join_tags


def _tags_to_string(value: Any) -> Any:
    # Accept ["a", "b"] as well as "a, b"
    if isinstance(value, list):
        return join_tags(str(v) for v in value)
    return value


TagsField = Annotated[Optional[Union[str, List[str]]], AfterValidator(_tags_to_string)]


class NoteCreate(BaseModel):
    """Schema for creating a new note."""
    title: Optional[str] = None
    content: Optional[str] = None
    tags: TagsField = None
    folder_id: Optional[int] = None


class NoteUpdate(BaseModel):
    """Schema for updating a note.

    folder_id left out of the request body keeps the note where it is;
    an explicit null moves it out of its folder.
    """
    title: Optional[str] = None
    content: Optional[str] = None
    tags: TagsField = None
    folder_id: Optional[int] = None
    version: Optional[int] = None


class NoteResponse(TimestampedResponse):
    """Note data returned in API responses."""
    id: int
    title: str
    content: str
    folder_id: Optional[int] = None
    tags: str = ""
    is_archived: bool = False
    version: int = 1

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value: Any) -> Any:
        return value or ""
