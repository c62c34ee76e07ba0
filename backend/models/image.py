"""
Image model definitions.

Image bytes are stored in SQLite and served back from /api/images?id=N,
the URL the editor embeds in note bodies.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageUploadJSON(BaseModel):
    """JSON upload body: ``{filename?, mime, dataBase64}``."""
    model_config = ConfigDict(populate_by_name=True)

    filename: Optional[str] = None
    mime: Optional[str] = None
    data_base64: Optional[str] = Field(None, alias="dataBase64")


class ImageCreated(BaseModel):
    id: int
