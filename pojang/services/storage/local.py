"""
Local Filesystem Image Storage

Writes menu images under IMAGE_PATH on the local disk.

Concurrency:
    Two requests uploading the same filename would interleave their
    writes. Each file gets its own ``filelock`` lock so writers of one
    name serialize; the last writer wins. Reads take no lock.

    Lock files live in a ``.locks`` subdirectory. Image names are chosen
    by clients, so a lock file next to the images could collide with an
    uploaded image of the same name.

Version: 1.0.0
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout

from pojang.exceptions import InvalidImageInput
from pojang.services.storage.base import (
    IMAGE_NOT_AVAILABLE,
    BaseImageStorage,
    ImageResource,
)

logger = logging.getLogger(__name__)

LOCK_DIR = ".locks"
LOCK_SUFFIX = ".lock"


class LocalImageStorage(BaseImageStorage):
    """
    Disk-backed image storage.

    Attributes:
        base_path: Directory images are written to
        default_image_name: Placeholder filename
        lock_timeout: Seconds to wait for a per-file lock
    """

    def __init__(self, base_path: str, default_image_name: str, lock_timeout: float = 10):
        super().__init__(base_path, default_image_name)
        self.lock_timeout = lock_timeout

    @property
    def provider_name(self) -> str:
        return "local"

    @property
    def lock_path(self) -> Path:
        return self.base_path / LOCK_DIR

    def _ensure_base_dir(self) -> None:
        """Create the image and lock directories if needed."""
        if not self.lock_path.exists():
            self.lock_path.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created image directory: {self.base_path}")

    def _lock_for(self, path: Path) -> FileLock:
        return FileLock(str(self.lock_path / (path.name + LOCK_SUFFIX)), timeout=self.lock_timeout)

    def _write(self, location: str, content: bytes) -> None:
        self._ensure_base_dir()
        path = Path(location)
        try:
            with self._lock_for(path):
                path.write_bytes(content)
        except Timeout:
            logger.error(f"Timed out waiting for lock on {path}")
            raise InvalidImageInput(IMAGE_NOT_AVAILABLE)
        except OSError as e:
            logger.error(f"Could not write image {path}: {e}")
            raise InvalidImageInput(IMAGE_NOT_AVAILABLE)

    async def save(self, filename: str, content: bytes) -> str:
        location = self.location_for(filename)
        await asyncio.to_thread(self._write, location, content)
        logger.info(f"Stored image {location} ({len(content)} bytes)")
        return location

    async def load(self, location: str) -> ImageResource:
        path = self.resolve(location)
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.warning(f"Image {location} unavailable: {e}")
            raise InvalidImageInput(IMAGE_NOT_AVAILABLE)
        return ImageResource(
            location=location,
            content=content,
            media_type=self.guess_media_type(location),
        )

    async def list_locations(self) -> list[str]:
        if not self.base_path.exists():
            return []
        return sorted(
            str(self.base_path / path.name)
            for path in self.base_path.iterdir()
            if path.is_file()
        )

    @staticmethod
    def _mtime(path: Path) -> datetime:
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    def _delete(self, path: Path, not_after: Optional[datetime]) -> bool:
        self._ensure_base_dir()
        with self._lock_for(path):
            if not path.exists():
                return False
            # Rewritten since the caller decided to delete it
            if not_after is not None and self._mtime(path) > not_after:
                logger.info(f"Kept {path}: written after {not_after.isoformat()}")
                return False
            path.unlink()
        return True

    async def delete(self, location: str, not_after: Optional[datetime] = None) -> bool:
        path = self.resolve(location)
        try:
            removed = await asyncio.to_thread(self._delete, path, not_after)
        except Timeout:
            logger.warning(f"Skipped deleting {location}: file is being written")
            return False
        if removed:
            logger.info(f"Deleted image {location}")
        return removed

    async def modified_at(self, location: str) -> Optional[datetime]:
        path = self.resolve(location)
        try:
            return await asyncio.to_thread(self._mtime, path)
        except FileNotFoundError:
            return None

    async def health_check(self) -> bool:
        try:
            self._ensure_base_dir()
        except OSError as e:
            logger.error(f"Image directory unavailable: {e}")
            return False
        return self.base_path.is_dir()
