"""
Celery Tasks
Background maintenance for menu images.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from pojang.celery_worker import celery_app
from pojang.core.config import get_settings
from pojang.database import async_session_maker, engine
from pojang.services.storage import get_image_storage
from pojang.services.storage.janitor import sweep_orphan_images

logger = logging.getLogger(__name__)


async def _sweep(grace_seconds: int) -> list[str]:
    try:
        async with async_session_maker() as session:
            return await sweep_orphan_images(session, get_image_storage(), grace_seconds)
    finally:
        # Pooled connections are bound to this event loop
        await engine.dispose()


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=30,
    autoretry_for=(OSError,),
    retry_backoff=True
)
def sweep_orphan_images_task(self, grace_seconds: Optional[int] = None) -> dict:
    """
    Delete stored images that no menu references.

    Args:
        grace_seconds: Minimum image age; defaults to the configured value

    Returns:
        dict: Removed locations and timing
    """
    task_id = self.request.id
    grace = grace_seconds if grace_seconds is not None else get_settings().orphan_image_grace_seconds

    logger.info(f"Task {task_id}: sweeping orphan images older than {grace}s")
    start_time = time.time()

    removed = asyncio.run(_sweep(grace))

    elapsed = round(time.time() - start_time, 3)
    logger.info(f"Task {task_id}: removed {len(removed)} image(s) in {elapsed}s")
    return {
        'task_id': task_id,
        'removed': removed,
        'processing_time_seconds': elapsed,
    }


@celery_app.task(name="pojang.tasks.worker_health")
def health_check() -> dict:
    """Report whether this worker can reach the image storage it sweeps."""
    storage = get_image_storage()
    storage_ok = asyncio.run(storage.health_check())
    return {
        'status': 'healthy' if storage_ok else 'degraded',
        'image_storage': storage.provider_name,
        'checked_at': datetime.now(timezone.utc).isoformat(),
    }
