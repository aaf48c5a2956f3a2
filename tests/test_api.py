"""
End-to-end tests through the FastAPI app.

Each request runs on its own event loop inside TestClient, so the test
database is a file with NullPool and every request opens a new session.
"""

import asyncio

import pytest
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from pojang.core.config import get_settings
from pojang.database import Base, get_db
from pojang.exceptions import MenuOptionMismatch, OrderNotFound, StoreIdMismatch
from pojang.main import app, get_pageable, get_storage, status_code_for
from pojang.schemas import Pageable, SortDirection
from pojang.services.storage import InMemoryImageStorage

from tests.factories import (
    CUSTOMER_EMAIL,
    OTHER_CUSTOMER_EMAIL,
    OTHER_OWNER_EMAIL,
    OWNER_EMAIL,
    seed_world,
)


@pytest.fixture
def api(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    session_maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    storage = InMemoryImageStorage(base_path="images", default_image_name="no_image.jpg")

    async def setup():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        return await seed_world(session_maker)

    world = asyncio.run(setup())

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage

    yield TestClient(app), world, storage

    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


def _as(email):
    return {"X-Member-Email": email}


def _order(client, world, total=21000, email=CUSTOMER_EMAIL):
    return client.post(
        f"/api/stores/{world.s1}/orders",
        json={
            "selected_menus": [
                {"menu_id": world.m1, "quantity": 2, "selected_menu_options": [world.o1]}
            ],
            "total_price": total,
        },
        headers=_as(email),
    )


# =============================================================================
# MENUS
# =============================================================================

def test_owner_registers_menu_and_fetches_its_image(api):
    client, world, storage = api

    response = client.post(
        f"/api/stores/{world.s1}/menus",
        data={"name": "Gimbap", "price": "4500", "description": "Rolled rice"},
        files={"image": ("gimbap.jpg", b"jpeg-bytes", "image/jpeg")},
        headers=_as(OWNER_EMAIL),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["store_id"] == world.s1
    assert body["image_url"] == storage.location_for("gimbap.jpg")

    image = client.get(f"/api/stores/{world.s1}/menus/{body['id']}/image")
    assert image.status_code == 200
    assert image.content == b"jpeg-bytes"
    assert image.headers["content-type"] == "image/jpeg"


def test_menu_without_image_gets_placeholder(api):
    client, world, storage = api

    response = client.post(
        f"/api/stores/{world.s1}/menus",
        data={"name": "Gimbap", "price": "4500"},
        headers=_as(OWNER_EMAIL),
    )

    assert response.status_code == 201
    assert response.json()["image_url"] == storage.default_location()


def test_menu_registration_requires_owner(api):
    client, world, _ = api

    response = client.post(
        f"/api/stores/{world.s1}/menus",
        data={"name": "Gimbap", "price": "4500"},
        headers=_as(CUSTOMER_EMAIL),
    )

    assert response.status_code == 403
    assert response.json()["error"] == "NotStoreOwner"


def test_menu_registration_requires_identity(api):
    client, world, _ = api

    response = client.post(f"/api/stores/{world.s1}/menus", data={"name": "Gimbap", "price": "4500"})

    assert response.status_code == 401


def test_menu_registration_validates_price(api):
    client, world, _ = api

    response = client.post(
        f"/api/stores/{world.s1}/menus",
        data={"name": "Gimbap", "price": "-1"},
        headers=_as(OWNER_EMAIL),
    )

    assert response.status_code == 422


def test_updating_menu_through_another_store_is_rejected(api):
    client, world, storage = api

    response = client.put(
        f"/api/stores/{world.s2}/menus/{world.m1}",
        data={"name": "Hacked", "price": "1"},
        files={"image": ("hacked.jpg", b"x", "image/jpeg")},
        headers=_as(OTHER_OWNER_EMAIL),
    )

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "StoreIdMismatch",
        "detail": StoreIdMismatch.default_message,
    }
    assert asyncio.run(storage.list_locations()) == []


def test_deleted_menu_disappears(api):
    client, world, _ = api

    deleted = client.delete(f"/api/stores/{world.s1}/menus/{world.m3}", headers=_as(OWNER_EMAIL))
    assert deleted.status_code == 200
    assert deleted.json()["success"] is True

    listing = client.get(f"/api/stores/{world.s1}/menus")
    assert [menu["id"] for menu in listing.json()["menus"]] == [world.m1]

    image = client.get(f"/api/stores/{world.s1}/menus/{world.m3}/image")
    assert image.status_code == 404
    assert image.json()["error"] == "MenuNotFound"


def test_missing_image_file_is_reported(api):
    client, world, _ = api

    response = client.get(f"/api/stores/{world.s1}/menus/{world.m1}/image")

    assert response.status_code == 400
    assert response.json()["detail"] == "Image Not Available"


def test_menu_listing_paging_and_sort(api):
    client, world, _ = api

    response = client.get(
        f"/api/stores/{world.s1}/menus", params={"size": 1, "sort": "price", "direction": "asc"}
    )

    body = response.json()
    assert body["total"] == 2
    assert [menu["name"] for menu in body["menus"]] == ["Eomuk"]

    invalid = client.get(f"/api/stores/{world.s1}/menus", params={"sort": "store_id"})
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "InvalidPageRequest"


def test_menu_options_endpoints(api):
    client, world, _ = api

    created = client.post(
        f"/api/stores/{world.s1}/menus/{world.m3}/options",
        json={"name": "Extra broth", "price": 300},
        headers=_as(OWNER_EMAIL),
    )
    assert created.status_code == 201

    options = client.get(f"/api/stores/{world.s1}/menus/{world.m3}/options")
    assert [(o["name"], o["price"]) for o in options.json()] == [("Extra broth", 300)]


# =============================================================================
# ORDERS
# =============================================================================

def test_order_total_is_recomputed(api):
    client, world, _ = api

    rejected = _order(client, world, total=20000)
    assert rejected.status_code == 400
    assert rejected.json()["error"] == "InvalidTotalPrice"

    accepted = _order(client, world, total=21000)
    assert accepted.status_code == 201
    body = accepted.json()
    assert body["success"] is True
    assert body["total_price"] == 21000
    assert body["order_status"] == "placed"


def test_order_with_menu_of_another_store_is_forbidden(api):
    client, world, _ = api

    response = client.post(
        f"/api/stores/{world.s1}/orders",
        json={"selected_menus": [{"menu_id": world.m2, "quantity": 1}], "total_price": 8000},
        headers=_as(CUSTOMER_EMAIL),
    )

    assert response.status_code == 403
    assert response.json()["error"] == "StoreMenuMismatch"


def test_empty_cart_is_invalid(api):
    client, world, _ = api

    response = client.post(
        f"/api/stores/{world.s1}/orders",
        json={"selected_menus": [], "total_price": 0},
        headers=_as(CUSTOMER_EMAIL),
    )

    assert response.status_code == 422


def test_cancel_twice_conflicts(api):
    client, world, _ = api
    order_id = _order(client, world).json()["order_id"]
    url = f"/api/stores/{world.s1}/orders/{order_id}/cancel"

    first = client.patch(url, headers=_as(CUSTOMER_EMAIL))
    assert first.status_code == 200
    assert first.json()["order_status"] == "canceled"

    second = client.patch(url, headers=_as(CUSTOMER_EMAIL))
    assert second.status_code == 409
    assert second.json()["error"] == "OrderAlreadyCanceled"


def test_order_detail_is_private_to_its_member(api):
    client, world, _ = api
    order_id = _order(client, world).json()["order_id"]
    url = f"/api/stores/{world.s1}/orders/{order_id}"

    mine = client.get(url, headers=_as(CUSTOMER_EMAIL))
    assert mine.status_code == 200
    assert mine.json()["order_menus"][0]["menu_name"] == "Tteokbokki"

    theirs = client.get(url, headers=_as(OTHER_CUSTOMER_EMAIL))
    assert theirs.status_code == 403
    assert theirs.json()["error"] == "MemberOrderMismatch"

    missing = client.get(f"/api/stores/{world.s1}/orders/9999", headers=_as(CUSTOMER_EMAIL))
    assert missing.status_code == 404


def test_only_owner_lists_orders(api):
    client, world, _ = api
    _order(client, world)

    as_customer = client.get(f"/api/stores/{world.s1}/orders", headers=_as(CUSTOMER_EMAIL))
    assert as_customer.status_code == 403

    as_owner = client.get(f"/api/stores/{world.s1}/orders", headers=_as(OWNER_EMAIL))
    assert as_owner.status_code == 200
    assert as_owner.json()["total"] == 1


def test_confirm_then_count(api):
    client, world, _ = api
    order_id = _order(client, world).json()["order_id"]
    _order(client, world)

    before = client.get(f"/api/stores/{world.s1}/orders/count")
    assert before.json()["count"] == 0

    confirmed = client.patch(
        f"/api/stores/{world.s1}/orders/{order_id}/confirm", headers=_as(OWNER_EMAIL)
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["order_status"] == "confirm"

    again = client.patch(
        f"/api/stores/{world.s1}/orders/{order_id}/confirm", headers=_as(OWNER_EMAIL)
    )
    assert again.status_code == 409

    after = client.get(f"/api/stores/{world.s1}/orders/count")
    assert after.json() == {"store_id": world.s1, "store_name": "Pojang Pocha", "count": 1}


# =============================================================================
# ERROR MAPPING
# =============================================================================

@pytest.mark.parametrize(
    "exc, status",
    [(OrderNotFound(), 404), (StoreIdMismatch(), 400), (MenuOptionMismatch(), 403)],
)
def test_status_code_for_uses_most_specific_class(exc, status):
    assert status_code_for(exc) == status


# =============================================================================
# PAGE SIZE BOUNDS
# =============================================================================

def test_page_size_above_limit_is_unprocessable(api):
    client, world, _ = api

    response = client.get(f"/api/stores/{world.s1}/menus", params={"size": get_settings().max_page_size + 1})

    assert response.status_code == 422


def test_page_size_follows_configured_maximum(monkeypatch):
    monkeypatch.setattr(get_settings(), "max_page_size", 200)

    assert Pageable(size=150).size == 150
    with pytest.raises(ValidationError):
        Pageable(size=201)


def test_pageable_dependency_rejects_instead_of_crashing(monkeypatch):
    monkeypatch.setattr(get_settings(), "max_page_size", 5)

    with pytest.raises(RequestValidationError):
        get_pageable(page=0, size=50, sort="id", direction=SortDirection.ASC)
