"""
                        Services Module

Business logic over the persistence gateways.

Services:
    - menu_service: menus, menu options and menu images
    - order_service: placing, canceling, confirming and querying orders
    - access: ownership predicates shared by services and the HTTP layer
    - storage: image storage backends and the orphan image sweep
"""

from pojang.services.menu_service import MenuService
from pojang.services.order_service import OrderService

__all__ = ["MenuService", "OrderService"]
