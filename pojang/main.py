"""
FastAPI Application Entry Point

Pojang Ordering Backend - thin HTTP adapter over the menu and order
services. Authentication happens upstream; the gateway forwards the
authenticated member's email in the X-Member-Email header.

Endpoints:
    - /api/stores/{store_id}/menus: Menu registration, update, deletion, listing
    - /api/stores/{store_id}/menus/{menu_id}/image: Menu image
    - /api/stores/{store_id}/menus/{menu_id}/options: Menu options
    - /api/stores/{store_id}/orders: Order placement, listing, count
    - /api/stores/{store_id}/orders/{order_id}: Detail, cancel, confirm
    - /health: System health check

Version: 1.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

import redis
import uvicorn
from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pojang import models  # noqa: F401  registers tables on Base.metadata
from pojang.core.config import get_settings, setup_logging
from pojang.database import engine, get_db, init_db
from pojang.exceptions import (
    AccessDenied,
    EntityNotFound,
    InvalidImageInput,
    InvalidOrderStatus,
    InvalidPageRequest,
    InvalidTotalPrice,
    MemberNotFound,
    OrderAlreadyCanceled,
    PojangError,
    StoreIdMismatch,
    StoreNotFound,
)
from pojang.repositories import MemberRepository, StoreRepository
from pojang.schemas import (
    CountResponse,
    CreateOrderResponse,
    ErrorResponse,
    HealthResponse,
    ImageUpload,
    MenuListResponse,
    MenuOptionRequest,
    MenuOptionResponse,
    MenuRequest,
    MenuResponse,
    OrderListResponse,
    OrderRequest,
    OrderResponse,
    Pageable,
    SortDirection,
)
from pojang.services import MenuService, OrderService
from pojang.services.access import ensure_store_owner
from pojang.services.storage import BaseImageStorage, get_image_storage

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("Database initialized")

    storage = get_image_storage()
    logger.info(f"Image Storage: {storage.provider_name} ({storage.base_path})")

    problems = settings.validate_production_config()
    if problems:
        logger.warning(f"Development-only settings outside development: {problems}")

    logger.info("Application ready!")

    yield  # Application runs

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Food-ordering backend: store owners register menus, customers "
        "place orders, prices are recomputed server-side."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_storage() -> BaseImageStorage:
    return get_image_storage()


def get_menu_service(
    db: AsyncSession = Depends(get_db),
    storage: BaseImageStorage = Depends(get_storage),
) -> MenuService:
    return MenuService(db, storage)


def get_order_service(db: AsyncSession = Depends(get_db)) -> OrderService:
    return OrderService(db)


def get_principal(
    x_member_email: Optional[str] = Header(None, alias="X-Member-Email"),
) -> str:
    """Email of the member the upstream gateway authenticated."""
    if not x_member_email:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_member_email


async def require_store_owner(
    store_id: int,
    principal: str = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Menu mutations are reserved to the member who owns the store."""
    store = await StoreRepository(db).find_by_id(store_id)
    if store is None:
        raise StoreNotFound()
    member = await MemberRepository(db).find_by_email(principal)
    if member is None:
        raise MemberNotFound()
    ensure_store_owner(member, store)
    return principal


def get_pageable(
    page: int = Query(0, ge=0),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    sort: str = Query("id", max_length=50),
    direction: SortDirection = Query(SortDirection.ASC),
) -> Pageable:
    try:
        return Pageable(page=page, size=size, sort=sort, direction=direction)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_context=False))


async def _read_image(image: Optional[UploadFile]) -> Optional[ImageUpload]:
    """Multipart file to ImageUpload; an empty file field counts as none."""
    if image is None or not image.filename:
        return None
    content = await image.read()
    return ImageUpload(filename=image.filename, content=content, content_type=image.content_type)


def _menu_request(
    name: str,
    description: Optional[str],
    price: int,
    image: Optional[ImageUpload],
) -> MenuRequest:
    try:
        return MenuRequest(name=name, description=description, price=price, image=image)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_context=False))


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    storage: BaseImageStorage = Depends(get_storage),
) -> HealthResponse:
    """Verify database, broker and image storage are usable."""

    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    broker_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except Exception as e:
        broker_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    storage_status = "healthy" if await storage.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, broker_status, storage_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        broker=broker_status,
        image_storage=storage_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@app.post(
    "/api/stores/{store_id}/menus",
    response_model=MenuResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Menus"],
)
async def create_menu(
    store_id: int,
    name: str = Form(...),
    price: int = Form(...),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    _owner: str = Depends(require_store_owner),
    service: MenuService = Depends(get_menu_service),
) -> MenuResponse:
    """Register a menu. Without an image the placeholder is used."""
    request = _menu_request(name, description, price, await _read_image(image))
    return await service.create_menu(store_id, request)


@app.put(
    "/api/stores/{store_id}/menus/{menu_id}",
    response_model=MenuResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Menus"],
)
async def update_menu(
    store_id: int,
    menu_id: int,
    name: str = Form(...),
    price: int = Form(...),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    _owner: str = Depends(require_store_owner),
    service: MenuService = Depends(get_menu_service),
) -> MenuResponse:
    request = _menu_request(name, description, price, await _read_image(image))
    return await service.update_menu(store_id, menu_id, request)


@app.delete(
    "/api/stores/{store_id}/menus/{menu_id}",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Menus"],
)
async def delete_menu(
    store_id: int,
    menu_id: int,
    _owner: str = Depends(require_store_owner),
    service: MenuService = Depends(get_menu_service),
) -> dict[str, Any]:
    await service.delete_menu(store_id, menu_id)
    return {"success": True, "message": f"Menu #{menu_id} deleted"}


@app.get(
    "/api/stores/{store_id}/menus/{menu_id}/image",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Menus"],
)
async def find_image(
    store_id: int,
    menu_id: int,
    service: MenuService = Depends(get_menu_service),
) -> Response:
    resource = await service.find_image(store_id, menu_id)
    return Response(content=resource.content, media_type=resource.media_type)


@app.get(
    "/api/stores/{store_id}/menus",
    response_model=MenuListResponse,
    tags=["Menus"],
)
async def find_menus(
    store_id: int,
    pageable: Pageable = Depends(get_pageable),
    service: MenuService = Depends(get_menu_service),
) -> MenuListResponse:
    return await service.find_menus(store_id, pageable)


@app.post(
    "/api/stores/{store_id}/menus/{menu_id}/options",
    response_model=MenuOptionResponse,
    status_code=201,
    tags=["Menus"],
)
async def add_menu_option(
    store_id: int,
    menu_id: int,
    request: MenuOptionRequest,
    _owner: str = Depends(require_store_owner),
    service: MenuService = Depends(get_menu_service),
) -> MenuOptionResponse:
    return await service.add_menu_option(store_id, menu_id, request)


@app.get(
    "/api/stores/{store_id}/menus/{menu_id}/options",
    response_model=list[MenuOptionResponse],
    tags=["Menus"],
)
async def find_menu_options(
    store_id: int,
    menu_id: int,
    service: MenuService = Depends(get_menu_service),
) -> list[MenuOptionResponse]:
    return await service.find_menu_options(store_id, menu_id)


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/stores/{store_id}/orders",
    response_model=CreateOrderResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def create_order(
    store_id: int,
    request: OrderRequest,
    principal: str = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> CreateOrderResponse:
    logger.info(f"Creating order at store #{store_id} for {principal}")
    return await service.create_order(store_id, request, principal)


@app.get(
    "/api/stores/{store_id}/orders/count",
    response_model=CountResponse,
    tags=["Orders"],
)
async def get_count(
    store_id: int,
    service: OrderService = Depends(get_order_service),
) -> CountResponse:
    return await service.get_count(store_id)


@app.get(
    "/api/stores/{store_id}/orders",
    response_model=OrderListResponse,
    responses={403: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_orders(
    store_id: int,
    pageable: Pageable = Depends(get_pageable),
    principal: str = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    return await service.get_orders(store_id, pageable, principal)


@app.get(
    "/api/stores/{store_id}/orders/{order_id}",
    response_model=OrderResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order_detail(
    store_id: int,
    order_id: int,
    principal: str = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return await service.get_order_detail(store_id, order_id, principal)


@app.patch(
    "/api/stores/{store_id}/orders/{order_id}/cancel",
    response_model=OrderResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def cancel_order(
    store_id: int,
    order_id: int,
    principal: str = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return await service.cancel_order(store_id, order_id, principal)


@app.patch(
    "/api/stores/{store_id}/orders/{order_id}/confirm",
    response_model=OrderResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def confirm_order(
    store_id: int,
    order_id: int,
    principal: str = Depends(get_principal),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return await service.confirm_order(store_id, order_id, principal)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

# Most specific class wins (looked up along the exception's MRO)
ERROR_STATUS_CODES: dict[type, int] = {
    EntityNotFound: 404,
    StoreIdMismatch: 400,
    AccessDenied: 403,
    InvalidTotalPrice: 400,
    OrderAlreadyCanceled: 409,
    InvalidOrderStatus: 409,
    InvalidImageInput: 400,
    InvalidPageRequest: 400,
}


def status_code_for(exc: PojangError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 400


@app.exception_handler(PojangError)
async def domain_exception_handler(request: Request, exc: PojangError) -> JSONResponse:
    """Map a rejected operation to its status code."""
    status_code = status_code_for(exc)
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code} ({exc.message})")

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=exc.code, detail=exc.message).model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


def run() -> None:
    """Start the development server."""
    uvicorn.run(
        "pojang.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
