"""
Order Price Calculation

Server-side price recomputation for a cart. Client-supplied unit prices are
never used; every figure comes from the persisted Menu and MenuOption rows.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from pojang.exceptions import InvalidTotalPrice

if TYPE_CHECKING:
    from pojang.models import Menu, MenuOption

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricedLine:
    """
    A fully resolved cart line.

    Attributes:
        menu: Persisted menu the customer selected
        quantity: Number of portions
        options: Persisted options for the line, counted once each
    """
    menu: "Menu"
    quantity: int
    options: tuple["MenuOption", ...] = field(default_factory=tuple)

    @property
    def subtotal(self) -> int:
        """Menu price times quantity plus each option price once."""
        return self.menu.price * self.quantity + sum(option.price for option in self.options)


def calculate_total(lines: Iterable[PricedLine]) -> int:
    return sum(line.subtotal for line in lines)


def verify_total_price(lines: Iterable[PricedLine], claimed_total: int) -> int:
    """
    Compare the client's claimed total with the recomputed one.

    Args:
        lines: Resolved cart lines
        claimed_total: Total the client sent

    Returns:
        The calculated total (equal to the claim)

    Raises:
        InvalidTotalPrice: If the two differ in any way
    """
    calculated = calculate_total(lines)
    if calculated != claimed_total:
        logger.warning(
            f"Rejected total price: claimed {claimed_total}, calculated {calculated}"
        )
        raise InvalidTotalPrice(claimed=claimed_total, calculated=calculated)
    return calculated
