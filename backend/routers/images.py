"""
Images router.

Stores images pasted or uploaded into the editor. Bytes live in the
images table and are served back from ``/api/images?id=N``, which is the
URL the editor writes into the note body.

Uploads come in two shapes:
  - application/json: ``{"filename": "a.png", "mime": "image/png", "dataBase64": "..."}``
  - multipart/form-data with a ``file`` field
"""

import base64
import binascii
import logging
from typing import Optional
from urllib.parse import quote

import pydantic
from fastapi import APIRouter, Depends, Query, Request, Response, status
from starlette.datastructures import UploadFile

from config import Settings
from database import get_database, get_settings_dep
from exceptions import NotFoundError, PayloadTooLargeError, UnsupportedMediaError, ValidationError
from models.image import ImageCreated, ImageUploadJSON
from services.image_reaper import ImageReaper, get_reaper
from sqlite_db import NotesDatabase

logger = logging.getLogger(__name__)
router = APIRouter()


def _parse_id(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        raise ValidationError("Missing id")
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Invalid id: {raw!r}")


def _decode_base64(payload: str) -> bytes:
    """Decode base64, tolerating a ``data:<mime>;base64,`` prefix and line breaks."""
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("dataBase64 is not valid base64")


# Framing headroom for the JSON or multipart envelope
_BODY_OVERHEAD = 64 * 1024


def _check_declared_length(request: Request, max_bytes: int) -> None:
    """Reject bodies whose Content-Length cannot hold an image under the limit.

    Allows 3/2 of the limit, enough for base64 (4/3) even with line breaks.
    Runs before the body is read; the decoded size is checked again after.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes * 3 // 2 + _BODY_OVERHEAD:
        raise PayloadTooLargeError(
            f"Image too large. Max size: {max_bytes // (1024 * 1024)} MB"
        )


def _content_disposition(filename: Optional[str]) -> str:
    name = filename or "image"
    fallback = name.encode("ascii", "ignore").decode().replace('"', "").replace("\\", "") or "image"
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(name)}"


async def _read_json_upload(request: Request) -> tuple:
    try:
        body = await request.json()
        payload = ImageUploadJSON.model_validate(body)
    except (ValueError, pydantic.ValidationError):
        raise ValidationError("Missing mime or data")
    if not payload.mime or not payload.data_base64:
        raise ValidationError("Missing mime or data")
    return payload.filename or None, payload.mime, _decode_base64(payload.data_base64)


async def _read_multipart_upload(request: Request) -> tuple:
    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise ValidationError("Missing file")
    data = await upload.read()
    return upload.filename or None, upload.content_type or "application/octet-stream", data


@router.post("", response_model=ImageCreated, status_code=status.HTTP_201_CREATED)
async def upload_image(
    request: Request,
    db: NotesDatabase = Depends(get_database),
    settings: Settings = Depends(get_settings_dep),
) -> dict:
    """Store an uploaded image and return its id.

    Raises:
        ValidationError: Required fields missing or bad base64 (400).
        PayloadTooLargeError: Over max_image_bytes (413).
        UnsupportedMediaError: Neither JSON nor multipart (415).
    """
    _check_declared_length(request, settings.max_image_bytes)

    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        filename, mime, data = await _read_json_upload(request)
    elif "multipart/form-data" in content_type:
        filename, mime, data = await _read_multipart_upload(request)
    else:
        raise UnsupportedMediaError("Unsupported content type")

    if len(data) > settings.max_image_bytes:
        raise PayloadTooLargeError(
            f"Image too large. Max size: {settings.max_image_bytes // (1024 * 1024)} MB"
        )

    image_id = await db.images.create(filename, mime, data)
    logger.info(f"Image stored: {image_id} ({filename or 'unnamed'}, {mime}, {len(data)} bytes)")
    return {"id": image_id}


@router.get("")
async def get_image(
    id: Optional[str] = Query(None),
    db: NotesDatabase = Depends(get_database),
    settings: Settings = Depends(get_settings_dep),
) -> Response:
    """Serve stored image bytes with their mime type.

    Images never change once stored, so they are cacheable forever.
    """
    image = await db.images.get_by_id(_parse_id(id))
    if not image:
        raise NotFoundError("Not found")
    return Response(
        content=image["data"],
        media_type=image["mime"],
        headers={
            "Content-Disposition": _content_disposition(image["filename"]),
            "Cache-Control": f"public, max-age={settings.image_cache_max_age}, immutable",
        },
    )


@router.delete("")
async def delete_image(
    id: Optional[str] = Query(None),
    db: NotesDatabase = Depends(get_database),
    reaper: ImageReaper = Depends(get_reaper),
) -> dict:
    """Delete an image. Succeeds whether or not the id existed."""
    image_id = _parse_id(id)
    reaper.cancel([image_id])
    await db.images.delete(image_id)
    return {"ok": True}
