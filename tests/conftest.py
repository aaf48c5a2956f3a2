import os

# Must be set before pojang modules build their settings and engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("IMAGE_STORAGE", "memory")
os.environ.setdefault("IMAGE_PATH", "images")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from pojang.database import Base
from pojang.services.storage import InMemoryImageStorage

from tests.factories import seed_world


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pojang.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def world(session_maker):
    return await seed_world(session_maker)


@pytest.fixture
def storage():
    return InMemoryImageStorage(base_path="images", default_image_name="no_image.jpg")
