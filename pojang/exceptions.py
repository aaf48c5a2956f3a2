"""
Domain Failures

Every failure here rejects the single in-flight operation. None of them is
transient, so nothing retries on them. The HTTP layer maps each class to a
status code (see ``pojang.main``).
"""

from typing import Optional


class PojangError(Exception):
    """Base class for all rejections raised by the services."""

    default_message = "Request rejected"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        """Machine-readable name of the failure."""
        return type(self).__name__


# =============================================================================
# NOT FOUND
# =============================================================================

class EntityNotFound(PojangError):
    default_message = "Entity not found"


class StoreNotFound(EntityNotFound):
    default_message = "Store not found"


class MemberNotFound(EntityNotFound):
    default_message = "Member not found"


class MenuNotFound(EntityNotFound):
    default_message = "Menu not found"


class MenuOptionNotFound(EntityNotFound):
    default_message = "Menu option not found"


class OrderNotFound(EntityNotFound):
    default_message = "Order not found"


# =============================================================================
# OWNERSHIP
# =============================================================================

class OwnershipMismatch(PojangError):
    default_message = "Entity does not belong to the requested owner"


class StoreIdMismatch(OwnershipMismatch):
    """The menu exists but belongs to another store than the one requested."""
    default_message = "Store id does not match the menu's store"


class AccessDenied(OwnershipMismatch):
    default_message = "Access denied"


class StoreMenuMismatch(AccessDenied):
    default_message = "The menu is not sold by this store"


class MenuOptionMismatch(AccessDenied):
    default_message = "The option does not belong to the selected menu"


class MemberOrderMismatch(AccessDenied):
    default_message = "The order was not placed by this member"


class StoreOrderMismatch(AccessDenied):
    default_message = "The order was not placed at this store"


class NotStoreOwner(AccessDenied):
    default_message = "Only the store owner may do this"


# =============================================================================
# STATE & INPUT
# =============================================================================

class InvalidTotalPrice(PojangError):
    default_message = "Total price does not match the menus ordered"

    def __init__(self, claimed: Optional[int] = None, calculated: Optional[int] = None):
        self.claimed = claimed
        self.calculated = calculated
        super().__init__()


class OrderAlreadyCanceled(PojangError):
    default_message = "Order is already canceled"


class InvalidOrderStatus(PojangError):
    default_message = "Order cannot move to the requested status"


class InvalidImageInput(PojangError):
    default_message = "Image Not Available"


class InvalidPageRequest(PojangError):
    default_message = "Invalid page request"
