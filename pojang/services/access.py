"""
Ownership Checks

Plain predicates over already-loaded entities. The principal is always
passed in by the caller; nothing here reads request-scoped state. The
``ensure_*`` helpers raise the matching typed failure.
"""

from pojang.exceptions import (
    MemberOrderMismatch,
    MenuOptionMismatch,
    NotStoreOwner,
    StoreIdMismatch,
    StoreMenuMismatch,
    StoreOrderMismatch,
)
from pojang.models import Member, Menu, MenuOption, Order, Store


# =============================================================================
# PREDICATES
# =============================================================================

def owns_store(member: Member, store: Store) -> bool:
    return store.member_id == member.id


def menu_in_store(menu: Menu, store_id: int) -> bool:
    return menu.store_id == store_id


def option_of_menu(option: MenuOption, menu: Menu) -> bool:
    return option.menu_id == menu.id


def order_of_member(order: Order, member: Member) -> bool:
    return order.member_id == member.id


def order_of_store(order: Order, store: Store) -> bool:
    return order.store_id == store.id


# =============================================================================
# ENFORCEMENT
# =============================================================================

def ensure_store_id(menu: Menu, store_id: int) -> None:
    """The menu addressed under ``store_id`` must really be that store's."""
    if not menu_in_store(menu, store_id):
        raise StoreIdMismatch()


def ensure_menu_sold_by(menu: Menu, store: Store) -> None:
    if not menu_in_store(menu, store.id):
        raise StoreMenuMismatch()


def ensure_option_of_menu(option: MenuOption, menu: Menu) -> None:
    if not option_of_menu(option, menu):
        raise MenuOptionMismatch()


def ensure_order_of_member(order: Order, member: Member) -> None:
    if not order_of_member(order, member):
        raise MemberOrderMismatch()


def ensure_order_of_store(order: Order, store: Store) -> None:
    if not order_of_store(order, store):
        raise StoreOrderMismatch()


def ensure_store_owner(member: Member, store: Store) -> None:
    if not owns_store(member, store):
        raise NotStoreOwner(f"{member.email} is not the owner of {store.name}")
