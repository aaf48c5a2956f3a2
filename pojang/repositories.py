"""
Persistence Gateways

Thin async repositories over the SQLAlchemy session, one per entity.
Lookups return ``None`` when a row is missing; the services decide which
failure that becomes. Nothing here commits.
"""

from typing import Optional, Sequence, Type

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from pojang.exceptions import InvalidPageRequest
from pojang.models import Member, Menu, MenuOption, Order, OrderStatus, Store
from pojang.schemas import Pageable, SortDirection


def _apply_page(
    query: Select,
    model: Type,
    pageable: Pageable,
    sortable: Sequence[str],
) -> Select:
    """Add ORDER BY / OFFSET / LIMIT for a page request."""
    if pageable.sort not in sortable:
        raise InvalidPageRequest(
            f"Cannot sort by '{pageable.sort}'. Options: {list(sortable)}"
        )
    column = getattr(model, pageable.sort)
    column = column.desc() if pageable.direction == SortDirection.DESC else column.asc()
    # id as tie-breaker keeps pages stable
    return query.order_by(column, model.id.asc()).offset(pageable.offset).limit(pageable.size)


class StoreRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, store_id: int) -> Optional[Store]:
        return await self.db.get(Store, store_id)

    def save(self, store: Store) -> Store:
        self.db.add(store)
        return store


class MemberRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, member_id: int) -> Optional[Member]:
        return await self.db.get(Member, member_id)

    async def find_by_email(self, email: str) -> Optional[Member]:
        result = await self.db.execute(select(Member).where(Member.email == email))
        return result.scalar_one_or_none()

    def save(self, member: Member) -> Member:
        self.db.add(member)
        return member


class MenuRepository:
    SORTABLE = ("id", "name", "price", "created_at")

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, menu_id: int) -> Optional[Menu]:
        """Load a menu whether or not it is soft-deleted."""
        return await self.db.get(Menu, menu_id)

    async def find_active_by_store(
        self,
        store_id: int,
        pageable: Pageable,
    ) -> tuple[list[Menu], int]:
        """One page of a store's non-deleted menus, plus the total count."""
        condition = (Menu.store_id == store_id) & (Menu.is_deleted.is_(False))

        total_result = await self.db.execute(
            select(func.count(Menu.id)).where(condition)
        )
        total = total_result.scalar() or 0

        query = _apply_page(select(Menu).where(condition), Menu, pageable, self.SORTABLE)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def image_locations(self) -> set[str]:
        """Every image location referenced by any menu, deleted or not."""
        result = await self.db.execute(select(Menu.image_url).distinct())
        return set(result.scalars().all())

    def save(self, menu: Menu) -> Menu:
        self.db.add(menu)
        return menu


class MenuOptionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, option_id: int) -> Optional[MenuOption]:
        return await self.db.get(MenuOption, option_id)

    async def find_by_menu(self, menu_id: int) -> list[MenuOption]:
        result = await self.db.execute(
            select(MenuOption).where(MenuOption.menu_id == menu_id).order_by(MenuOption.id)
        )
        return list(result.scalars().all())

    def save(self, option: MenuOption) -> MenuOption:
        self.db.add(option)
        return option


class OrderRepository:
    SORTABLE = ("id", "ordered_at", "total_price", "order_status")

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, order_id: int) -> Optional[Order]:
        return await self.db.get(Order, order_id)

    async def find_by_store(
        self,
        store_id: int,
        pageable: Pageable,
    ) -> tuple[list[Order], int]:
        total_result = await self.db.execute(
            select(func.count(Order.id)).where(Order.store_id == store_id)
        )
        total = total_result.scalar() or 0

        query = _apply_page(
            select(Order).where(Order.store_id == store_id), Order, pageable, self.SORTABLE
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def count_by_store_and_status(self, store_id: int, status: OrderStatus) -> int:
        result = await self.db.execute(
            select(func.count(Order.id)).where(
                Order.store_id == store_id,
                Order.order_status == status,
            )
        )
        return result.scalar() or 0

    def save(self, order: Order) -> Order:
        self.db.add(order)
        return order
