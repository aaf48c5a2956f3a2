"""
Celery Worker Configuration

Redis is both broker and result backend. The worker only runs image
maintenance, so its limits come from Settings rather than being tuned here.

Start a worker (and beat, when ORPHAN_SWEEP_INTERVAL_SECONDS is set):
    celery -A pojang.celery_worker worker --loglevel=info
    celery -A pojang.celery_worker beat --loglevel=info
"""

from celery import Celery

from pojang.core.config import Settings, get_settings

SWEEP_TASK = "pojang.tasks.sweep_orphan_images_task"


def beat_schedule(settings: Settings) -> dict:
    """Periodic sweep entry, or nothing when the interval is 0."""
    if settings.orphan_sweep_interval_seconds <= 0:
        return {}
    return {
        "sweep-orphan-images": {
            "task": SWEEP_TASK,
            "schedule": float(settings.orphan_sweep_interval_seconds),
        },
    }


def create_celery_app(settings: Settings) -> Celery:
    app = Celery(
        "pojang_worker",
        broker=settings.redis_url,
        backend=settings.redis_url,
        include=["pojang.tasks"],
    )
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        worker_concurrency=settings.worker_concurrency,
        worker_prefetch_multiplier=1,
        task_time_limit=settings.task_time_limit,
        result_expires=settings.result_expires,
        # Requeue a sweep whose worker died
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        broker_connection_retry_on_startup=True,
        beat_schedule=beat_schedule(settings),
    )
    return app


celery_app = create_celery_app(get_settings())


if __name__ == "__main__":
    celery_app.start()
