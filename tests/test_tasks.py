from pojang import tasks
from pojang.celery_worker import beat_schedule, create_celery_app
from pojang.core.config import get_settings


def test_sweep_task_reports_removed_images(monkeypatch):
    calls = []

    async def fake_sweep(grace_seconds):
        calls.append(grace_seconds)
        return ["images/orphan.jpg"]

    monkeypatch.setattr(tasks, "_sweep", fake_sweep)

    result = tasks.sweep_orphan_images_task.apply(kwargs={"grace_seconds": 5}).get()

    assert calls == [5]
    assert result["removed"] == ["images/orphan.jpg"]
    assert result["processing_time_seconds"] >= 0


def test_sweep_task_defaults_to_configured_grace(monkeypatch):
    calls = []

    async def fake_sweep(grace_seconds):
        calls.append(grace_seconds)
        return []

    monkeypatch.setattr(tasks, "_sweep", fake_sweep)

    tasks.sweep_orphan_images_task.apply().get()

    assert calls == [get_settings().orphan_image_grace_seconds]


def test_worker_health_reports_image_storage():
    result = tasks.health_check.apply().get()

    assert result["status"] == "healthy"
    assert result["image_storage"] == "memory"


def test_beat_schedule_is_off_by_default():
    assert beat_schedule(get_settings()) == {}


def test_beat_schedule_runs_sweep_on_configured_interval():
    settings = get_settings().model_copy(update={"orphan_sweep_interval_seconds": 900})

    schedule = beat_schedule(settings)

    assert schedule["sweep-orphan-images"]["task"] == tasks.sweep_orphan_images_task.name
    assert schedule["sweep-orphan-images"]["schedule"] == 900.0


def test_worker_limits_come_from_settings():
    settings = get_settings().model_copy(update={"worker_concurrency": 3, "task_time_limit": 42})

    app = create_celery_app(settings)

    assert app.conf.worker_concurrency == 3
    assert app.conf.task_time_limit == 42
