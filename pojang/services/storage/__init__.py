"""
Image Storage Factory

Provides a single entry point for obtaining the image storage instance.
Selects local disk or in-memory storage from the IMAGE_STORAGE setting.

Usage:
    from pojang.services.storage import get_image_storage

    storage = get_image_storage()
    location = await storage.save("bibimbap.jpg", content)

Version: 1.0.0
"""

import logging
from functools import lru_cache

from pojang.core.config import ImageStorageBackend, get_settings
from pojang.services.storage.base import BaseImageStorage, ImageResource
from pojang.services.storage.local import LocalImageStorage
from pojang.services.storage.memory import InMemoryImageStorage

logger = logging.getLogger(__name__)


@lru_cache()
def get_image_storage() -> BaseImageStorage:
    """
    Get the configured image storage instance.

    The instance is cached so every request shares the same backend
    (and, for the in-memory backend, the same contents).

    Returns:
        BaseImageStorage: Configured storage backend
    """
    settings = get_settings()

    if settings.image_storage == ImageStorageBackend.MEMORY:
        logger.info("Image Storage: Using InMemoryImageStorage")
        return InMemoryImageStorage(
            base_path=settings.image_path,
            default_image_name=settings.default_image_name,
        )

    logger.info(f"Image Storage: Using LocalImageStorage ({settings.image_path})")
    return LocalImageStorage(
        base_path=settings.image_path,
        default_image_name=settings.default_image_name,
        lock_timeout=settings.image_lock_timeout,
    )


def reset_image_storage() -> None:
    """
    Clear the cached storage instance.

    The next call to get_image_storage() builds a new one from settings.
    """
    get_image_storage.cache_clear()
    logger.debug("Image storage cache cleared")


__all__ = [
    "get_image_storage",
    "reset_image_storage",
    "BaseImageStorage",
    "ImageResource",
    "LocalImageStorage",
    "InMemoryImageStorage",
]
