"""
Image reaper.

Deletes stored images that dropped out of note content, after a grace
period. Every note write reports its old and new body; ids that vanished
get a timer, ids that show up again (undo, cut and paste into another
note) cancel theirs. When a timer fires the reaper checks once more that
no note embeds the image before deleting the row.

Typical usage:
    # In FastAPI lifespan:
    reaper = ImageReaper(db, grace_period=5.0)
    ...
    reaper.note_changed(old_note["content"], new_content)
    # On shutdown:
    reaper.shutdown()
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional, Set

from fastapi import Request

from exceptions import StoreError
from sqlite_db import NotesDatabase
from utils.image_refs import extract_image_ids

logger = logging.getLogger(__name__)


class ImageReaper:
    """Per-image cancelable deletion timers on the running event loop.

    Args:
        db: Store used to re-check references and delete images.
        grace_period: Seconds to wait before deleting an unreferenced image.
    """

    def __init__(self, db: NotesDatabase, grace_period: float) -> None:
        self._db = db
        self._grace_period = grace_period
        self._timers: Dict[int, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> Set[int]:
        """Image ids currently waiting for their grace period to elapse."""
        return set(self._timers)

    def note_changed(self, old_content: Optional[str], new_content: Optional[str]) -> None:
        """Diff two versions of a note body and (re)schedule deletions."""
        old_ids = extract_image_ids(old_content)
        new_ids = extract_image_ids(new_content)
        self.cancel(new_ids)
        self.schedule(old_ids - new_ids)

    def schedule(self, image_ids: Iterable[int]) -> None:
        loop = asyncio.get_running_loop()
        for image_id in image_ids:
            if image_id in self._timers:
                continue
            self._timers[image_id] = loop.call_later(
                self._grace_period, self._fire, image_id
            )
            logger.debug(f"Image {image_id} scheduled for deletion in {self._grace_period}s")

    def cancel(self, image_ids: Iterable[int]) -> None:
        for image_id in image_ids:
            timer = self._timers.pop(image_id, None)
            if timer is not None:
                timer.cancel()
                logger.debug(f"Image {image_id} referenced again, deletion cancelled")

    def shutdown(self) -> None:
        """Drop every pending timer and in-flight deletion."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    def _fire(self, image_id: int) -> None:
        self._timers.pop(image_id, None)
        task = asyncio.get_running_loop().create_task(self._reap(image_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _reap(self, image_id: int) -> None:
        try:
            # Check and delete share one write batch so a note committed in
            # between cannot lose its image
            deleted = await self._db.images.delete_if_unreferenced(image_id)
        except StoreError as e:
            logger.error(f"Failed to reap image {image_id}: {e.detail or e.message}")
            return
        if deleted:
            logger.info(f"Deleted unreferenced image {image_id}")


def get_reaper(request: Request) -> ImageReaper:
    """FastAPI dependency returning the application's reaper."""
    return request.app.state.reaper
