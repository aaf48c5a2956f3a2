"""
Orphan Image Sweep

Image writes happen before the menu row commits, and are not rolled back
with it. A failed or crashed request can therefore leave a file that no
menu references. This module finds and removes such files.

Files younger than the grace period are left alone: they may belong to a
request that has written its image and not yet committed.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pojang.repositories import MenuRepository
from pojang.services.storage.base import BaseImageStorage

logger = logging.getLogger(__name__)


async def find_orphan_images(
    db: AsyncSession,
    storage: BaseImageStorage,
    grace_seconds: int,
    now: Optional[datetime] = None,
) -> list[str]:
    """
    List stored images that no menu references and that are old enough.

    Soft-deleted menus still count as references.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=grace_seconds)

    referenced = await MenuRepository(db).image_locations()
    referenced.add(storage.default_location())

    orphans = []
    for location in await storage.list_locations():
        if location in referenced:
            continue
        modified = await storage.modified_at(location)
        if modified is None or modified > cutoff:
            continue
        orphans.append(location)
    return orphans


async def sweep_orphan_images(
    db: AsyncSession,
    storage: BaseImageStorage,
    grace_seconds: int,
    now: Optional[datetime] = None,
) -> list[str]:
    """
    Delete orphaned images. Returns the locations actually removed.

    An image rewritten after the cutoff, for example by a menu that now
    points at it, is kept even though it was listed as an orphan.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=grace_seconds)

    removed = []
    for location in await find_orphan_images(db, storage, grace_seconds, now):
        if await storage.delete(location, not_after=cutoff):
            removed.append(location)
    logger.info(f"Orphan image sweep removed {len(removed)} file(s)")
    return removed
