"""
Demo Data Seeding Script

Creates a demo store owner, a customer, one store and a few menus with
options so the API can be tried by hand. Member and store management live
outside this service, so the rows are written straight to the database.

Run from project root: python scripts/seed.py [--placeholder path/to/no_image.jpg]

The placeholder image every image-less menu points at is written through
the configured image storage if it is not there yet.

Version: 1.0.0
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pojang import models  # noqa: F401
from pojang.database import async_session_maker, engine, init_db
from pojang.models import Member, MemberRole, Menu, MenuOption, Store
from pojang.services.storage import BaseImageStorage, get_image_storage

# 1x1 transparent GIF
PLACEHOLDER_IMAGE = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff!\xf9\x04\x01\x00"
    b"\x00\x00\x00,\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x02D\x01\x00;"
)

DEMO_MENUS = [
    {"name": "Tteokbokki", "price": 10000, "description": "Spicy rice cakes",
     "options": [("Extra cheese", 1000), ("Boiled egg", 500)]},
    {"name": "Eomuk", "price": 5000, "description": "Fish cake skewers in broth",
     "options": [("Extra broth", 0)]},
    {"name": "Hotteok", "price": 3000, "description": "Sweet filled pancake",
     "options": []},
]


async def ensure_placeholder(storage: BaseImageStorage, content: bytes = PLACEHOLDER_IMAGE) -> str:
    """Write the placeholder image unless one is already stored."""
    location = storage.default_location()
    if await storage.modified_at(location) is None:
        await storage.save(storage.default_image_name, content)
        print(f"   🖼️  Placeholder written to {location}")
    return location


async def seed(
    session_maker: async_sessionmaker[AsyncSession],
    storage: BaseImageStorage,
    owner_email: str,
    customer_email: str,
    store_name: str,
    placeholder_content: bytes = PLACEHOLDER_IMAGE,
) -> int:
    """Insert the demo rows unless the owner already exists. Returns the store id."""
    placeholder = await ensure_placeholder(storage, placeholder_content)

    async with session_maker() as session:
        existing = await session.execute(select(Member).where(Member.email == owner_email))
        owner = existing.scalar_one_or_none()
        if owner is not None:
            store = (
                await session.execute(select(Store).where(Store.member_id == owner.id))
            ).scalars().first()
            print(f"⚠️  {owner_email} already seeded (store #{store.id if store else '?'})")
            return store.id if store else 0

        owner = Member(email=owner_email, nickname="demo-owner", role=MemberRole.OWNER)
        customer = Member(email=customer_email, nickname="demo-customer", role=MemberRole.USER)
        session.add_all([owner, customer])
        await session.flush()

        store = Store(name=store_name, member_id=owner.id)
        session.add(store)
        await session.flush()

        for entry in DEMO_MENUS:
            menu = Menu(
                name=entry["name"],
                description=entry["description"],
                price=entry["price"],
                image_url=placeholder,
                store_id=store.id,
            )
            session.add(menu)
            await session.flush()
            for name, price in entry["options"]:
                session.add(MenuOption(name=name, price=price, menu_id=menu.id))
            print(f"   🍽️  {menu.name} ({menu.price}) + {len(entry['options'])} option(s)")

        await session.commit()
        return store.id


async def main(args: argparse.Namespace) -> int:
    print("=" * 70)
    print("🌱 SEEDING DEMO DATA")
    print("=" * 70)
    placeholder_content: Optional[bytes] = (
        Path(args.placeholder).read_bytes() if args.placeholder else None
    )
    try:
        await init_db()
        store_id = await seed(
            async_session_maker,
            get_image_storage(),
            args.owner,
            args.customer,
            args.store,
            placeholder_content or PLACEHOLDER_IMAGE,
        )
    finally:
        await engine.dispose()

    print("\n" + "=" * 70)
    print(f"✅ Store #{store_id} ready")
    print(f"   Owner header:    X-Member-Email: {args.owner}")
    print(f"   Customer header: X-Member-Email: {args.customer}")
    print(f"   Menus:           GET /api/stores/{store_id}/menus")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--owner", default="owner@pojang.kr", help="Owner email")
    parser.add_argument("--customer", default="customer@pojang.kr", help="Customer email")
    parser.add_argument("--store", default="Pojang Pocha", help="Store name")
    parser.add_argument("--placeholder", help="Image file to store as the placeholder")
    sys.exit(asyncio.run(main(parser.parse_args())))
