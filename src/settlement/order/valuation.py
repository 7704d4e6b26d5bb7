"""Short-ship valuation policies.

How much a never-shipped unit is worth is a product decision that has not
been made. Until it is, the default policy refuses to value anything, which
makes completion fatal only for orders that actually have pending quantity.
"""

from abc import ABC, abstractmethod

from settlement.config import get_settings
from settlement.exceptions import ConfigurationError
from settlement.order.order import InventoryUnit, Order


class ShortShipValuation(ABC):
    name: str

    @abstractmethod
    def value(self, order: Order, units: list[InventoryUnit]) -> float:
        """Value of ``units``, which will never ship, as a positive amount."""


class UnresolvedValuation(ShortShipValuation):
    name = "unresolved"

    def value(self, order: Order, units: list[InventoryUnit]) -> float:
        if not units:
            return 0.0
        raise NotImplementedError(
            f"Order {order.number} has {len(units)} unit(s) that will never ship and no short-ship "
            "valuation has been configured (SETTLEMENT_SHORT_SHIP_VALUATION)"
        )


class UnitPriceValuation(ShortShipValuation):
    """Each never-shipped unit is worth its line item's unit price."""

    name = "unit_price"

    def value(self, order: Order, units: list[InventoryUnit]) -> float:
        return round(sum(order.line_item(u.line_item_id).price for u in units), 2)


_VALUATIONS = {v.name: v for v in (UnresolvedValuation, UnitPriceValuation)}


def short_ship_valuation(name: str | None = None) -> ShortShipValuation:
    name = name or get_settings().short_ship_valuation
    try:
        return _VALUATIONS[name]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown short-ship valuation {name!r}; expected one of {sorted(_VALUATIONS)}"
        ) from None
