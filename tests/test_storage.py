import os
import time
from datetime import datetime, timedelta, timezone

import pytest

from pojang.exceptions import InvalidImageInput
from pojang.models import Menu
from pojang.services.storage import InMemoryImageStorage, LocalImageStorage
from pojang.services.storage import janitor
from pojang.services.storage.janitor import find_orphan_images, sweep_orphan_images


@pytest.fixture
def local_storage(tmp_path):
    return LocalImageStorage(
        base_path=str(tmp_path / "images"),
        default_image_name="no_image.jpg",
        lock_timeout=1,
    )


# =============================================================================
# LOCAL STORAGE
# =============================================================================

async def test_local_save_creates_directory_and_file(local_storage):
    location = await local_storage.save("bibimbap.jpg", b"first")

    assert location == str(local_storage.base_path / "bibimbap.jpg")
    assert (local_storage.base_path / "bibimbap.jpg").read_bytes() == b"first"


async def test_local_save_overwrites_same_name(local_storage):
    await local_storage.save("bibimbap.jpg", b"a much longer first version")
    location = await local_storage.save("bibimbap.jpg", b"short")

    resource = await local_storage.load(location)
    assert resource.content == b"short"
    assert resource.media_type == "image/jpeg"


async def test_local_listing_ignores_lock_files(local_storage):
    await local_storage.save("a.jpg", b"a")
    await local_storage.save("b.png", b"b")

    names = [os.path.basename(location) for location in await local_storage.list_locations()]

    assert names == ["a.jpg", "b.png"]


async def test_image_named_like_a_lock_file_survives_writes(local_storage):
    lock_named = await local_storage.save("a.jpg.lock", b"referenced image")
    await local_storage.save("a.jpg", b"another menu")
    await local_storage.save("a.jpg", b"another menu again")

    assert (await local_storage.load(lock_named)).content == b"referenced image"
    assert lock_named in await local_storage.list_locations()


async def test_deleting_image_keeps_lock_named_image(local_storage):
    lock_named = await local_storage.save("a.jpg.lock", b"referenced image")
    plain = await local_storage.save("a.jpg", b"orphan")

    assert await local_storage.delete(plain) is True
    assert (await local_storage.load(lock_named)).content == b"referenced image"


async def test_lock_directory_is_not_an_image_location(local_storage):
    await local_storage.save("a.jpg", b"a")

    with pytest.raises(InvalidImageInput, match="Url Form Is Not Valid"):
        await local_storage.load(str(local_storage.lock_path / "a.jpg.lock"))
    with pytest.raises(InvalidImageInput):
        await local_storage.save(".locks", b"x")


async def test_local_load_missing_file(local_storage):
    with pytest.raises(InvalidImageInput, match="Image Not Available"):
        await local_storage.load(local_storage.default_location())


@pytest.mark.parametrize("location", ["", "/etc/passwd", "images/../../secret.jpg", "a\x00b.jpg"])
async def test_local_load_malformed_location(local_storage, location):
    with pytest.raises(InvalidImageInput, match="Url Form Is Not Valid"):
        await local_storage.load(location)


@pytest.mark.parametrize("filename", ["", "..", "dir/..", "   "])
async def test_save_rejects_empty_filenames(local_storage, filename):
    with pytest.raises(InvalidImageInput):
        await local_storage.save(filename, b"x")


async def test_local_delete_and_modified_at(local_storage):
    location = await local_storage.save("gone.jpg", b"x")

    assert await local_storage.modified_at(location) is not None
    assert await local_storage.delete(location) is True
    assert await local_storage.delete(location) is False
    assert await local_storage.modified_at(location) is None


async def test_local_health_check(local_storage):
    assert await local_storage.health_check() is True
    assert local_storage.base_path.is_dir()


# =============================================================================
# IN-MEMORY STORAGE
# =============================================================================

async def test_memory_round_trip():
    storage = InMemoryImageStorage(base_path="images", default_image_name="no_image.jpg")

    location = await storage.save("windows\\path\\kimchi.gif", b"gif")

    assert location == storage.location_for("kimchi.gif")
    assert (await storage.load(location)).media_type == "image/gif"
    assert await storage.delete(location) is True
    with pytest.raises(InvalidImageInput):
        await storage.load(location)


# =============================================================================
# ORPHAN SWEEP
# =============================================================================

def _age(path, seconds):
    past = time.time() - seconds
    os.utime(path, (past, past))


async def test_sweep_removes_only_old_unreferenced_images(db, world, local_storage):
    referenced = await local_storage.save("referenced.jpg", b"r")
    deleted_menu_image = await local_storage.save("deleted.jpg", b"d")
    orphan = await local_storage.save("orphan.jpg", b"o")
    fresh = await local_storage.save("fresh.jpg", b"f")
    placeholder = await local_storage.save("no_image.jpg", b"p")

    menu = await db.get(Menu, world.m1)
    menu.image_url = referenced
    other = await db.get(Menu, world.m3)
    other.image_url = deleted_menu_image
    other.soft_delete()
    await db.commit()

    for location in (referenced, deleted_menu_image, orphan, placeholder):
        _age(location, 7200)

    assert await find_orphan_images(db, local_storage, grace_seconds=3600) == [orphan]

    removed = await sweep_orphan_images(db, local_storage, grace_seconds=3600)

    assert removed == [orphan]
    remaining = await local_storage.list_locations()
    assert sorted(remaining) == sorted([referenced, deleted_menu_image, fresh, placeholder])


async def test_sweep_honours_grace_period_in_memory(db, world):
    storage = InMemoryImageStorage(base_path="images", default_image_name="no_image.jpg")
    location = await storage.save("stray.jpg", b"s")
    now = datetime.now(timezone.utc)

    assert await find_orphan_images(db, storage, grace_seconds=60, now=now) == []

    storage.set_modified_at(location, now - timedelta(minutes=5))
    assert await find_orphan_images(db, storage, grace_seconds=60, now=now) == [location]


async def test_sweep_keeps_referenced_image_named_like_a_lock(db, world, local_storage):
    referenced = await local_storage.save("a.jpg.lock", b"referenced image")
    orphan = await local_storage.save("a.jpg", b"orphan")
    menu = await db.get(Menu, world.m1)
    menu.image_url = referenced
    await db.commit()
    _age(referenced, 7200)
    _age(orphan, 7200)

    removed = await sweep_orphan_images(db, local_storage, grace_seconds=3600)

    assert removed == [orphan]
    assert (await local_storage.load(referenced)).content == b"referenced image"


async def test_sweep_keeps_orphan_rewritten_before_delete(db, world, local_storage, monkeypatch):
    stale = await local_storage.save("x.jpg", b"stale")
    _age(stale, 7200)
    real_find = janitor.find_orphan_images

    async def find_then_reupload(*args, **kwargs):
        orphans = await real_find(*args, **kwargs)
        # A menu registers x.jpg again while the sweep is running
        await local_storage.save("x.jpg", b"new menu image")
        return orphans

    monkeypatch.setattr(janitor, "find_orphan_images", find_then_reupload)

    removed = await sweep_orphan_images(db, local_storage, grace_seconds=3600)

    assert removed == []
    assert (await local_storage.load(stale)).content == b"new menu image"


async def test_delete_with_cutoff_keeps_newer_image(local_storage):
    location = await local_storage.save("recent.jpg", b"r")
    cutoff = datetime.now(timezone.utc) - timedelta(hours=1)

    assert await local_storage.delete(location, not_after=cutoff) is False
    assert await local_storage.delete(location, not_after=datetime.now(timezone.utc) + timedelta(seconds=1)) is True


async def test_memory_delete_with_cutoff():
    storage = InMemoryImageStorage(base_path="images", default_image_name="no_image.jpg")
    location = await storage.save("recent.jpg", b"r")
    cutoff = datetime.now(timezone.utc) - timedelta(hours=1)

    assert await storage.delete(location, not_after=cutoff) is False
    storage.set_modified_at(location, cutoff - timedelta(minutes=1))
    assert await storage.delete(location, not_after=cutoff) is True
