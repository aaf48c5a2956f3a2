"""
Menu Service

Creates, updates and soft-deletes a store's menus, manages the menu image,
and lists what a store currently sells.

Every operation addressed by (store_id, menu_id) checks that the menu
really belongs to that store before touching it.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from pojang.exceptions import (
    InvalidImageInput,
    MenuNotFound,
    StoreNotFound,
)
from pojang.models import Menu, MenuOption, Store
from pojang.repositories import MenuOptionRepository, MenuRepository, StoreRepository
from pojang.schemas import (
    MenuListResponse,
    MenuOptionRequest,
    MenuOptionResponse,
    MenuRequest,
    MenuResponse,
    Pageable,
)
from pojang.services.access import ensure_store_id
from pojang.services.storage import BaseImageStorage, ImageResource
from pojang.services.storage.base import IMAGE_NOT_AVAILABLE

logger = logging.getLogger(__name__)


class MenuService:
    """Menu business logic for one database session."""

    def __init__(self, db: AsyncSession, storage: BaseImageStorage):
        self.db = db
        self.storage = storage
        self.stores = StoreRepository(db)
        self.menus = MenuRepository(db)
        self.options = MenuOptionRepository(db)

    # =========================================================================
    # MENUS
    # =========================================================================

    async def create_menu(self, store_id: int, request: MenuRequest) -> MenuResponse:
        """
        Register a menu for a store.

        The image, if any, is written before the row is committed. Without
        one the menu points at the placeholder image.
        """
        store = await self._find_store(store_id)

        if request.image is not None:
            logger.info(f"Attaching image {request.image.filename} to new menu")
            image_url = await self.storage.save(request.image.filename, request.image.content)
        else:
            image_url = self.storage.default_location()

        menu = Menu(
            name=request.name,
            description=request.description,
            price=request.price,
            image_url=image_url,
            is_deleted=False,
            store_id=store.id,
        )
        self.menus.save(menu)
        await self.db.commit()
        await self.db.refresh(menu)

        logger.info(f"Menu #{menu.id} created for store #{store.id}")
        return MenuResponse.from_entity(menu)

    async def update_menu(self, store_id: int, menu_id: int, request: MenuRequest) -> MenuResponse:
        """
        Replace a menu's name, description, price and image.

        An image is always required here: every menu already has one (the
        placeholder at worst), and an update rewrites it.
        """
        store = await self._find_store(store_id)
        menu = await self._find_menu(menu_id)
        ensure_store_id(menu, store.id)

        if request.image is None:
            raise InvalidImageInput(IMAGE_NOT_AVAILABLE)

        image_url = await self.storage.save(request.image.filename, request.image.content)
        menu.update(
            name=request.name,
            description=request.description,
            price=request.price,
            image_url=image_url,
        )
        await self.db.commit()
        await self.db.refresh(menu)

        logger.info(f"Menu #{menu.id} updated")
        return MenuResponse.from_entity(menu)

    async def delete_menu(self, store_id: int, menu_id: int) -> None:
        """Soft-delete a menu. The row and its image stay."""
        menu = await self._find_menu(menu_id)
        ensure_store_id(menu, store_id)

        menu.soft_delete()
        await self.db.commit()

        logger.info(f"Menu #{menu.id} marked deleted")

    async def find_image(self, store_id: int, menu_id: int) -> ImageResource:
        menu = await self._find_menu(menu_id)
        ensure_store_id(menu, store_id)
        if menu.is_deleted:
            raise MenuNotFound()

        return await self.storage.load(menu.image_url)

    async def find_menus(self, store_id: int, pageable: Pageable) -> MenuListResponse:
        store = await self._find_store(store_id)
        menus, total = await self.menus.find_active_by_store(store.id, pageable)

        return MenuListResponse(
            total=total,
            page=pageable.page,
            size=pageable.size,
            menus=[MenuResponse.from_entity(menu) for menu in menus],
        )

    # =========================================================================
    # MENU OPTIONS
    # =========================================================================

    async def add_menu_option(
        self,
        store_id: int,
        menu_id: int,
        request: MenuOptionRequest,
    ) -> MenuOptionResponse:
        menu = await self._find_menu(menu_id)
        ensure_store_id(menu, store_id)
        if menu.is_deleted:
            raise MenuNotFound()

        option = MenuOption(name=request.name, price=request.price, menu_id=menu.id)
        self.options.save(option)
        await self.db.commit()
        await self.db.refresh(option)
        await self.db.refresh(menu)

        logger.info(f"Option #{option.id} added to menu #{menu.id}")
        return MenuOptionResponse.model_validate(option)

    async def find_menu_options(self, store_id: int, menu_id: int) -> list[MenuOptionResponse]:
        menu = await self._find_menu(menu_id)
        ensure_store_id(menu, store_id)

        options = await self.options.find_by_menu(menu.id)
        return [MenuOptionResponse.model_validate(option) for option in options]

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def _find_store(self, store_id: int) -> Store:
        store = await self.stores.find_by_id(store_id)
        if store is None:
            raise StoreNotFound()
        return store

    async def _find_menu(self, menu_id: int) -> Menu:
        menu = await self.menus.find_by_id(menu_id)
        if menu is None:
            raise MenuNotFound()
        return menu
