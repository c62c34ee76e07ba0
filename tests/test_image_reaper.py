"""Tests for ImageReaper timers against a real store."""

import anyio
import pytest

from services.image_reaper import ImageReaper

pytestmark = pytest.mark.anyio

GRACE = 0.05


def _img(image_id):
    return f'<img src="/api/images?id={image_id}">'


async def _store_image(db):
    return await db.images.create("a.png", "image/png", b"png")


async def test_removed_id_is_scheduled(db):
    reaper = ImageReaper(db, grace_period=GRACE)
    reaper.note_changed(_img(1) + _img(2), _img(2))
    assert reaper.pending == {1}
    reaper.shutdown()


async def test_reappearing_id_cancels_timer(db):
    image_id = await _store_image(db)
    reaper = ImageReaper(db, grace_period=GRACE)

    reaper.note_changed(_img(image_id), "")
    reaper.note_changed("", _img(image_id))
    assert reaper.pending == set()

    await anyio.sleep(GRACE * 4)
    assert await db.images.get_by_id(image_id) is not None


async def test_unreferenced_image_deleted_after_grace_period(db):
    image_id = await _store_image(db)
    reaper = ImageReaper(db, grace_period=GRACE)

    reaper.schedule([image_id])
    assert await db.images.get_by_id(image_id) is not None

    await anyio.sleep(GRACE * 4)
    assert await db.images.get_by_id(image_id) is None
    assert reaper.pending == set()


async def test_referenced_image_kept_when_timer_fires(db):
    image_id = await _store_image(db)
    await db.notes.create("still uses it", _img(image_id), "", None)
    reaper = ImageReaper(db, grace_period=GRACE)

    reaper.schedule([image_id])
    await anyio.sleep(GRACE * 4)
    assert await db.images.get_by_id(image_id) is not None


async def test_schedule_twice_keeps_one_timer(db):
    reaper = ImageReaper(db, grace_period=GRACE)
    reaper.schedule([7])
    reaper.schedule([7])
    assert reaper.pending == {7}
    reaper.shutdown()


async def test_shutdown_drops_pending(db):
    image_id = await _store_image(db)
    reaper = ImageReaper(db, grace_period=GRACE)

    reaper.schedule([image_id])
    reaper.shutdown()
    assert reaper.pending == set()

    await anyio.sleep(GRACE * 4)
    assert await db.images.get_by_id(image_id) is not None


async def test_note_committed_while_timer_fires_keeps_image(db):
    image_id = await _store_image(db)
    reaper = ImageReaper(db, grace_period=GRACE)

    async with db.transaction() as conn:
        reaper.schedule([image_id])
        # Timer fires while this batch holds the store
        await anyio.sleep(GRACE * 2)
        await conn.execute(
            "INSERT INTO notes (title, content) VALUES (?, ?)", ("late", _img(image_id))
        )

    await anyio.sleep(GRACE * 2)
    assert await db.notes.find_referencing_image(image_id) != []
    assert await db.images.get_by_id(image_id) is not None
