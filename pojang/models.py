"""
SQLAlchemy Database Models

Stores, their menus and menu options, the members that own stores or
place orders, and the orders themselves with their menu lines.

Version: 1.0.0
"""

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from pojang.database import Base

if TYPE_CHECKING:
    from pojang.pricing import PricedLine


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemberRole(str, enum.Enum):
    """Who a member is to the platform."""
    OWNER = "owner"
    USER = "user"


class OrderStatus(str, enum.Enum):
    """
    Order status workflow.

    PLACED -> CONFIRM -> CANCELED, or PLACED -> CANCELED.
    Nothing leaves CANCELED.
    """
    PLACED = "placed"
    CONFIRM = "confirm"
    CANCELED = "canceled"


# Options a customer picked for one order line
order_menu_options = Table(
    "order_menu_options",
    Base.metadata,
    Column("order_menu_id", Integer, ForeignKey("order_menus.id"), primary_key=True),
    Column("menu_option_id", Integer, ForeignKey("menu_options.id"), primary_key=True),
)


class Member(Base):
    """A registered account. The email is the authenticated identity."""
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    nickname = Column(String(50), nullable=True)
    role = Column(Enum(MemberRole), default=MemberRole.USER, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self):
        return f"<Member #{self.id} - {self.email} - {self.role.value}>"


class Store(Base):
    """A store, owned by exactly one member."""
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self):
        return f"<Store #{self.id} - {self.name}>"


class Menu(Base):
    """
    A purchasable item of a store.

    Menus are never removed from the table. Deleting one only sets
    ``is_deleted`` so historical order lines keep pointing at a valid row.
    """
    __tablename__ = "menus"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False)
    image_url = Column(String(500), nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    options = relationship(
        "MenuOption",
        back_populates="menu",
        lazy="selectin",
        order_by="MenuOption.id",
    )

    def update(self, name: str, description: Optional[str], price: int, image_url: str) -> "Menu":
        """Overwrite the mutable fields in place."""
        self.name = name
        self.description = description
        self.price = price
        self.image_url = image_url
        return self

    def soft_delete(self) -> None:
        self.is_deleted = True

    def __repr__(self):
        return f"<Menu #{self.id} - {self.name} - {self.price}>"


class MenuOption(Base):
    """An add-on for a menu with its own price increment."""
    __tablename__ = "menu_options"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False, default=0)
    menu_id = Column(Integer, ForeignKey("menus.id"), nullable=False, index=True)

    menu = relationship("Menu", back_populates="options")

    def __repr__(self):
        return f"<MenuOption #{self.id} - {self.name} - +{self.price}>"


class Order(Base):
    """
    A customer's purchase from one store.

    Built in one step by ``Order.place`` from fully resolved lines.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    total_price = Column(Integer, nullable=False)
    order_status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PLACED,
        nullable=False,
        index=True
    )

    ordered_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    order_menus = relationship(
        "OrderMenu",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderMenu.id",
    )

    @classmethod
    def place(cls, member: Member, store: Store, lines: Iterable["PricedLine"]) -> "Order":
        """
        Build a PLACED order with one OrderMenu per priced line.

        The total is the sum of the line subtotals, so callers must have
        verified the client's claimed total against the same lines.
        """
        lines = list(lines)
        return cls(
            member_id=member.id,
            store_id=store.id,
            total_price=sum(line.subtotal for line in lines),
            order_status=OrderStatus.PLACED,
            order_menus=[
                OrderMenu(menu=line.menu, quantity=line.quantity, options=list(line.options))
                for line in lines
            ],
        )

    @property
    def is_canceled(self) -> bool:
        return self.order_status == OrderStatus.CANCELED

    def cancel(self) -> None:
        self.order_status = OrderStatus.CANCELED

    def confirm(self) -> None:
        self.order_status = OrderStatus.CONFIRM

    def __repr__(self):
        return f"<Order #{self.id} - store {self.store_id} - {self.order_status.value}>"


class OrderMenu(Base):
    """One line of an order: a menu, a quantity, the chosen options."""
    __tablename__ = "order_menus"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    quantity = Column(Integer, nullable=False)
    menu_id = Column(Integer, ForeignKey("menus.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    order = relationship("Order", back_populates="order_menus")
    menu = relationship("Menu", lazy="selectin")
    options = relationship(
        "MenuOption",
        secondary=order_menu_options,
        lazy="selectin",
        order_by="MenuOption.id",
    )

    @property
    def subtotal(self) -> int:
        return self.menu.price * self.quantity + sum(option.price for option in self.options)

    def __repr__(self):
        return f"<OrderMenu #{self.id} - menu {self.menu_id} x{self.quantity}>"
