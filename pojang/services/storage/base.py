"""
Image Storage Abstract Base Class

Defines the interface contract for menu image storage. Both the local
filesystem storage and the in-memory storage implement these methods, so
the menu service behaves the same whichever is configured.

Design Pattern: Strategy Pattern
    - The backend is chosen at startup from IMAGE_STORAGE
    - Tests run against the in-memory backend without touching disk

Version: 1.0.0
"""

import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from pojang.exceptions import InvalidImageInput

MALFORMED_LOCATION = "Url Form Is Not Valid"
IMAGE_NOT_AVAILABLE = "Image Not Available"


@dataclass
class ImageResource:
    """
    A stored image ready to be streamed back to a client.

    Attributes:
        location: Stored location as recorded on the menu
        content: Raw image bytes
        media_type: MIME type guessed from the filename
    """
    location: str
    content: bytes
    media_type: str = "application/octet-stream"

    @property
    def filename(self) -> str:
        return Path(self.location).name

    @property
    def size(self) -> int:
        return len(self.content)


class BaseImageStorage(ABC):
    """
    Abstract base class for image storage backends.

    Locations handed out by ``save`` and ``default_location`` are the
    base path joined with a bare filename. That string is what menus keep
    in ``image_url``.
    """

    def __init__(self, base_path: str, default_image_name: str):
        self.base_path = Path(base_path)
        self.default_image_name = default_image_name

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the storage backend.

        Returns:
            str: Backend name (e.g., "local", "memory")
        """
        pass

    @abstractmethod
    async def save(self, filename: str, content: bytes) -> str:
        """
        Write an image under its original filename.

        An existing image with the same name is overwritten.

        Args:
            filename: Name the client gave the file
            content: Raw image bytes

        Returns:
            str: Location to record on the menu

        Raises:
            InvalidImageInput: If the image cannot be written
        """
        pass

    @abstractmethod
    async def load(self, location: str) -> ImageResource:
        """
        Read a stored image back.

        Raises:
            InvalidImageInput: If the location is malformed or unreadable
        """
        pass

    @abstractmethod
    async def list_locations(self) -> list[str]:
        """Locations of every stored image."""
        pass

    @abstractmethod
    async def delete(self, location: str, not_after: Optional[datetime] = None) -> bool:
        """
        Remove a stored image.

        Args:
            location: Stored location
            not_after: If given, keep the image when it was written after
                this instant

        Returns:
            bool: False if nothing was removed
        """
        pass

    @abstractmethod
    async def modified_at(self, location: str) -> Optional[datetime]:
        """Last write time of a stored image, None if it does not exist."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the backend is usable.

        Returns:
            bool: True if images can be written
        """
        pass

    # =========================================================================
    # SHARED HELPERS
    # =========================================================================

    def default_location(self) -> str:
        """Placeholder used for menus created without an image."""
        return str(self.base_path / self.default_image_name)

    def location_for(self, filename: str) -> str:
        """
        Location for a client filename.

        Directory components are dropped so a client cannot write outside
        the base path.
        """
        name = Path(filename.replace("\\", "/")).name.strip() if filename else ""
        if not name or name in (".", ".."):
            raise InvalidImageInput(IMAGE_NOT_AVAILABLE)
        return str(self.base_path / name)

    def resolve(self, location: str) -> Path:
        """
        Turn a recorded location back into a path under the base path.

        Raises:
            InvalidImageInput: If the location is empty, contains a NUL
                byte, or points outside the base path
        """
        if not location or "\x00" in location:
            raise InvalidImageInput(MALFORMED_LOCATION)
        path = Path(location)
        base = self.base_path.resolve()
        resolved = path.resolve()
        if resolved.parent != base:
            raise InvalidImageInput(MALFORMED_LOCATION)
        return resolved

    @staticmethod
    def guess_media_type(location: str) -> str:
        media_type, _ = mimetypes.guess_type(location)
        return media_type or "application/octet-stream"
