"""
Pydantic Schemas for Request/Response Validation

Request payloads the services accept and the response projections they
return, plus the page request used by listings.

Version: 1.0.0
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pojang.core.config import get_settings
from pojang.models import Menu, Order, OrderMenu, Store


# =============================================================================
# ENUMS
# =============================================================================

class OrderStatusEnum(str, Enum):
    PLACED = "placed"
    CONFIRM = "confirm"
    CANCELED = "canceled"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# =============================================================================
# PAGINATION
# =============================================================================

class Pageable(BaseModel):
    """
    Zero-based page request. Ordering is applied by the repositories.

    ``size`` is bounded by ``max_page_size`` from settings, the same bound
    the HTTP layer applies to the query parameter.
    """
    page: int = Field(default=0, ge=0, examples=[0])
    size: int = Field(default_factory=lambda: get_settings().default_page_size, ge=1, examples=[10])
    sort: str = Field(default="id", max_length=50, examples=["price"])
    direction: SortDirection = Field(default=SortDirection.ASC)

    @field_validator("size")
    @classmethod
    def within_max_page_size(cls, v: int) -> int:
        limit = get_settings().max_page_size
        if v > limit:
            raise ValueError(f"size must be at most {limit}")
        return v

    @property
    def offset(self) -> int:
        return self.page * self.size


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class ImageUpload(BaseModel):
    """Raw image bytes with the name the client gave the file."""
    filename: str = Field(..., min_length=1, max_length=255, examples=["tteokbokki.jpg"])
    content: bytes
    content_type: Optional[str] = Field(None, examples=["image/jpeg"])


class MenuRequest(BaseModel):
    """Request schema for creating or updating a menu."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Tteokbokki"])
    description: Optional[str] = Field(None, max_length=1000, examples=["Spicy rice cakes"])
    price: int = Field(..., ge=0, examples=[10000])
    image: Optional[ImageUpload] = None


class MenuOptionRequest(BaseModel):
    """Request schema for adding an option to a menu."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Extra cheese"])
    price: int = Field(default=0, ge=0, examples=[1000])


class SelectedMenuRequest(BaseModel):
    """One cart line: a menu, how many, and which option ids."""
    menu_id: int = Field(..., ge=1, examples=[1])
    quantity: int = Field(..., ge=1, le=99, examples=[2])
    selected_menu_options: Optional[List[int]] = Field(None, examples=[[1]])

    @field_validator("selected_menu_options")
    @classmethod
    def dedupe_options(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        """An option is either selected for a line or not."""
        if v is None:
            return v
        return list(dict.fromkeys(v))


class OrderRequest(BaseModel):
    """Request schema for placing an order."""
    selected_menus: List[SelectedMenuRequest] = Field(..., min_length=1)
    total_price: int = Field(..., ge=0, examples=[21000])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class MenuOptionResponse(BaseModel):
    """Response schema for a menu option."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    menu_id: int
    name: str
    price: int


class MenuResponse(BaseModel):
    """Response schema for a single menu."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    store_id: int
    name: str
    description: Optional[str]
    price: int
    image_url: str
    options: List[MenuOptionResponse] = []

    @classmethod
    def from_entity(cls, menu: Menu) -> "MenuResponse":
        return cls.model_validate(menu)


class MenuListResponse(BaseModel):
    """Response for one page of a store's menus."""
    total: int
    page: int
    size: int
    menus: List[MenuResponse]


class OrderMenuResponse(BaseModel):
    """One line of an order."""
    id: int
    menu_id: int
    menu_name: str
    menu_price: int
    quantity: int
    options: List[MenuOptionResponse]

    @classmethod
    def from_entity(cls, order_menu: OrderMenu) -> "OrderMenuResponse":
        return cls(
            id=order_menu.id,
            menu_id=order_menu.menu_id,
            menu_name=order_menu.menu.name,
            menu_price=order_menu.menu.price,
            quantity=order_menu.quantity,
            options=[MenuOptionResponse.model_validate(o) for o in order_menu.options],
        )


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    id: int
    member_id: int
    store_id: int
    total_price: int
    order_status: OrderStatusEnum
    ordered_at: datetime
    order_menus: List[OrderMenuResponse]

    @classmethod
    def from_entity(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            member_id=order.member_id,
            store_id=order.store_id,
            total_price=order.total_price,
            order_status=order.order_status.value,
            ordered_at=order.ordered_at,
            order_menus=[OrderMenuResponse.from_entity(line) for line in order.order_menus],
        )


class CreateOrderResponse(BaseModel):
    """Response after successfully placing an order."""
    success: bool = True
    message: str = "Order placed successfully!"
    order_id: int
    store_id: int
    total_price: int
    order_status: OrderStatusEnum
    ordered_at: datetime

    @classmethod
    def from_entity(cls, order: Order) -> "CreateOrderResponse":
        return cls(
            order_id=order.id,
            store_id=order.store_id,
            total_price=order.total_price,
            order_status=order.order_status.value,
            ordered_at=order.ordered_at,
        )


class OrderListResponse(BaseModel):
    """Response for one page of a store's orders."""
    total: int
    page: int
    size: int
    orders: List[OrderResponse]


class CountResponse(BaseModel):
    """Number of confirmed orders of a store."""
    store_id: int
    store_name: str
    count: int

    @classmethod
    def from_store(cls, store: Store, count: int) -> "CountResponse":
        return cls(store_id=store.id, store_name=store.name, count=count)


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    broker: str
    image_storage: str
    timestamp: datetime
