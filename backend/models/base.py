"""
Shared pieces for response models built from SQLite rows.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, field_validator


class TimestampedResponse(BaseModel):
    """Response with the server-set created_at/updated_at columns.

    SQLite hands timestamps back as text, either our own
    ``YYYY-MM-DD HH:MM:SS.ffffff`` or CURRENT_TIMESTAMP's
    ``YYYY-MM-DD HH:MM:SS`` on rows written by older versions.
    """
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_sqlite_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        return value
