"""
Order Service

Places orders from a cart, cancels and confirms them, and answers order
queries for customers and store owners.

Price check:
    The client sends the total it computed. The service recomputes it from
    the persisted menu and option prices and rejects the whole order on any
    difference. Nothing is written before that check passes.

Status workflow:
    PLACED ──confirm──▶ CONFIRM
       │                   │
       └──────cancel───────┴──▶ CANCELED (terminal)
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from pojang.exceptions import (
    InvalidOrderStatus,
    MemberNotFound,
    MenuNotFound,
    MenuOptionNotFound,
    OrderAlreadyCanceled,
    OrderNotFound,
    StoreNotFound,
)
from pojang.models import Member, Menu, MenuOption, Order, OrderStatus, Store
from pojang.pricing import PricedLine, verify_total_price
from pojang.repositories import (
    MemberRepository,
    MenuOptionRepository,
    MenuRepository,
    OrderRepository,
    StoreRepository,
)
from pojang.schemas import (
    CountResponse,
    CreateOrderResponse,
    OrderListResponse,
    OrderRequest,
    OrderResponse,
    Pageable,
    SelectedMenuRequest,
)
from pojang.services.access import (
    ensure_menu_sold_by,
    ensure_option_of_menu,
    ensure_order_of_member,
    ensure_order_of_store,
    ensure_store_owner,
)

logger = logging.getLogger(__name__)


class OrderService:
    """Order business logic for one database session."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.members = MemberRepository(db)
        self.stores = StoreRepository(db)
        self.menus = MenuRepository(db)
        self.options = MenuOptionRepository(db)
        self.orders = OrderRepository(db)

    # =========================================================================
    # CUSTOMER OPERATIONS
    # =========================================================================

    async def create_order(
        self,
        store_id: int,
        request: OrderRequest,
        member_email: str,
    ) -> CreateOrderResponse:
        """
        Place an order after re-pricing every selected menu server-side.

        Raises:
            MemberNotFound, StoreNotFound, MenuNotFound, MenuOptionNotFound
            StoreMenuMismatch: A menu belongs to another store
            MenuOptionMismatch: An option belongs to another menu
            InvalidTotalPrice: The claimed total differs from the real one
        """
        member = await self._find_member(member_email)
        store = await self._find_store(store_id)

        lines = [await self._price_line(store, selected) for selected in request.selected_menus]
        verify_total_price(lines, request.total_price)

        order = Order.place(member, store, lines)
        self.orders.save(order)
        await self.db.commit()
        await self.db.refresh(order)

        logger.info(
            f"Order #{order.id} placed by member #{member.id} at store #{store.id} "
            f"({len(lines)} line(s), total {order.total_price})"
        )
        return CreateOrderResponse.from_entity(order)

    async def cancel_order(self, store_id: int, order_id: int, member_email: str) -> OrderResponse:
        member = await self._find_member(member_email)
        order = await self._find_order(order_id)
        store = await self._find_store(store_id)
        ensure_order_of_member(order, member)
        ensure_order_of_store(order, store)

        if order.is_canceled:
            raise OrderAlreadyCanceled()

        order.cancel()
        await self.db.commit()
        await self.db.refresh(order)

        logger.info(f"Order #{order.id} canceled by member #{member.id}")
        return OrderResponse.from_entity(order)

    async def get_order_detail(self, store_id: int, order_id: int, member_email: str) -> OrderResponse:
        member = await self._find_member(member_email)
        order = await self._find_order(order_id)
        store = await self._find_store(store_id)
        ensure_order_of_member(order, member)
        ensure_order_of_store(order, store)

        return OrderResponse.from_entity(order)

    # =========================================================================
    # OWNER OPERATIONS
    # =========================================================================

    async def get_orders(self, store_id: int, pageable: Pageable, member_email: str) -> OrderListResponse:
        """One page of the store's orders. Only the store owner may look."""
        store = await self._find_store(store_id)
        owner = await self._find_member(member_email)
        ensure_store_owner(owner, store)

        orders, total = await self.orders.find_by_store(store.id, pageable)
        return OrderListResponse(
            total=total,
            page=pageable.page,
            size=pageable.size,
            orders=[OrderResponse.from_entity(order) for order in orders],
        )

    async def confirm_order(self, store_id: int, order_id: int, member_email: str) -> OrderResponse:
        """Accept a placed order on behalf of the store."""
        owner = await self._find_member(member_email)
        order = await self._find_order(order_id)
        store = await self._find_store(store_id)
        ensure_store_owner(owner, store)
        ensure_order_of_store(order, store)

        if order.is_canceled:
            raise OrderAlreadyCanceled()
        if order.order_status != OrderStatus.PLACED:
            raise InvalidOrderStatus(
                f"Order #{order.id} is {order.order_status.value}, only placed orders can be confirmed"
            )

        order.confirm()
        await self.db.commit()
        await self.db.refresh(order)

        logger.info(f"Order #{order.id} confirmed by store #{store.id}")
        return OrderResponse.from_entity(order)

    async def get_count(self, store_id: int) -> CountResponse:
        """Number of confirmed orders of a store."""
        store = await self._find_store(store_id)
        count = await self.orders.count_by_store_and_status(store.id, OrderStatus.CONFIRM)
        return CountResponse.from_store(store, count)

    # =========================================================================
    # PRICING
    # =========================================================================

    async def _price_line(self, store: Store, selected: SelectedMenuRequest) -> PricedLine:
        """Resolve one cart line from persisted data, checking ownership."""
        menu = await self._find_menu(selected.menu_id)
        if menu.is_deleted:
            raise MenuNotFound()
        ensure_menu_sold_by(menu, store)

        options = []
        for option_id in selected.selected_menu_options or []:
            option = await self._find_menu_option(option_id)
            ensure_option_of_menu(option, menu)
            logger.debug(f"Option #{option.id} price: {option.price}")
            options.append(option)

        return PricedLine(menu=menu, quantity=selected.quantity, options=tuple(options))

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def _find_member(self, email: str) -> Member:
        member = await self.members.find_by_email(email)
        if member is None:
            raise MemberNotFound()
        return member

    async def _find_store(self, store_id: int) -> Store:
        store = await self.stores.find_by_id(store_id)
        if store is None:
            raise StoreNotFound()
        return store

    async def _find_order(self, order_id: int) -> Order:
        order = await self.orders.find_by_id(order_id)
        if order is None:
            raise OrderNotFound()
        return order

    async def _find_menu(self, menu_id: int) -> Menu:
        menu = await self.menus.find_by_id(menu_id)
        if menu is None:
            raise MenuNotFound()
        return menu

    async def _find_menu_option(self, option_id: int) -> MenuOption:
        option = await self.options.find_by_id(option_id)
        if option is None:
            raise MenuOptionNotFound()
        return option
