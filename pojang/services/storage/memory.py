"""
In-Memory Image Storage

Keeps images in a dictionary. Used by the test suite and, when
IMAGE_STORAGE=memory, for local development without a writable disk.
Contents vanish with the process.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pojang.exceptions import InvalidImageInput
from pojang.services.storage.base import (
    IMAGE_NOT_AVAILABLE,
    BaseImageStorage,
    ImageResource,
)

logger = logging.getLogger(__name__)


class InMemoryImageStorage(BaseImageStorage):
    """Dictionary-backed image storage."""

    def __init__(self, base_path: str, default_image_name: str):
        super().__init__(base_path, default_image_name)
        self._images: dict[str, bytes] = {}
        self._modified: dict[str, datetime] = {}

    @property
    def provider_name(self) -> str:
        return "memory"

    async def save(self, filename: str, content: bytes) -> str:
        location = self.location_for(filename)
        self._images[location] = bytes(content)
        self._modified[location] = datetime.now(timezone.utc)
        logger.debug(f"Stored image {location} in memory")
        return location

    async def load(self, location: str) -> ImageResource:
        self.resolve(location)
        if location not in self._images:
            raise InvalidImageInput(IMAGE_NOT_AVAILABLE)
        return ImageResource(
            location=location,
            content=self._images[location],
            media_type=self.guess_media_type(location),
        )

    async def list_locations(self) -> list[str]:
        return sorted(self._images)

    async def delete(self, location: str, not_after: Optional[datetime] = None) -> bool:
        modified = self._modified.get(location)
        if not_after is not None and modified is not None and modified > not_after:
            return False
        self._modified.pop(location, None)
        return self._images.pop(location, None) is not None

    async def modified_at(self, location: str) -> Optional[datetime]:
        return self._modified.get(location)

    async def health_check(self) -> bool:
        return True

    def set_modified_at(self, location: str, when: datetime) -> None:
        """Backdate an image; lets callers exercise age-based sweeps."""
        if location in self._images:
            self._modified[location] = when
