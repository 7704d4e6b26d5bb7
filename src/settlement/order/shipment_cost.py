"""Shipment cost extraction.

The platform prices shipments at checkout, while ROP charges an average and
decides the real parcels later. Before settlement rewrites the shipment
set, each shipment's cost is moved into one order-level adjustment so
deleting or recreating shipments never triggers a re-price.

Where a shipment's cost lives depends on the platform's cost model:

* ``field``: the shipment's cost field plus any adjustments sourced from
  the shipment (shipping tax and the like);
* ``adjustment``: only the adjustments sourced from the shipment; the
  cost field is not authoritative.

The model is chosen once from settings, not per shipment.
"""

from abc import ABC, abstractmethod

import structlog

from settlement.catalog.advisory import AdvisoryMethodResolver
from settlement.config import get_settings
from settlement.exceptions import ConfigurationError
from settlement.order.order import Order, Shipment

logger = structlog.get_logger(__name__)


class ShipmentCostModel(ABC):
    """Reads the cost currently carried by a shipment."""

    name: str
    # Whether the shipment cost field is money the order is charged
    counts_cost_field: bool

    @abstractmethod
    def cost_of(self, order: Order, shipment: Shipment) -> float: ...

    def ship_total(self, order: Order) -> float:
        """What the order's shipment cost fields contribute to its total."""
        if not self.counts_cost_field:
            return 0.0
        return round(sum(s.cost or 0.0 for s in order.shipments), 2)


class FieldCostModel(ShipmentCostModel):
    name = "field"
    counts_cost_field = True

    def cost_of(self, order: Order, shipment: Shipment) -> float:
        return round((shipment.cost or 0.0) + order.shipment_adjustment_total(shipment.number), 2)


class AdjustmentCostModel(ShipmentCostModel):
    name = "adjustment"
    counts_cost_field = False

    def cost_of(self, order: Order, shipment: Shipment) -> float:
        return order.shipment_adjustment_total(shipment.number)


_COST_MODELS = {model.name: model for model in (FieldCostModel, AdjustmentCostModel)}


def cost_model_for(name: str | None = None) -> ShipmentCostModel:
    """Return the cost model called ``name`` (default: from settings)."""
    name = name or get_settings().cost_model
    try:
        return _COST_MODELS[name]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown shipment cost model {name!r}; expected one of {sorted(_COST_MODELS)}"
        ) from None


class ShipmentCostExtractor:
    """Moves every positive shipment cost on an order into one order adjustment.

    Running it twice is harmless: extracted shipments carry no cost and
    contribute nothing the second time.
    """

    def __init__(
        self,
        resolver: AdvisoryMethodResolver,
        cost_model: ShipmentCostModel | None = None,
        partial_ship_name: str | None = None,
        label: str | None = None,
    ) -> None:
        settings = get_settings()
        self.resolver = resolver
        self.cost_model = cost_model or cost_model_for()
        self.partial_ship_name = partial_ship_name or settings.partial_ship_name
        self.label = label or settings.shipping_label

    def extract(self, order: Order) -> float:
        """Extract shipment costs from ``order`` and return the amount moved."""
        total = 0.0
        extracted = []
        for shipment in list(order.shipments):
            cost = self.cost_model.cost_of(order, shipment)
            if cost <= 0:
                continue

            method = self.resolver.resolve(self.partial_ship_name)
            order.neutralize_shipment_cost(shipment.number, str(method.id))
            total += cost
            extracted.append(shipment.number)

        total = round(total, 2)
        if total > 0:
            order.book_shipping_adjustment(total, self.label, extracted)
            logger.info(
                "Extracted shipment costs",
                order_number=order.number,
                amount=total,
                shipments=extracted,
                cost_model=self.cost_model.name,
            )
        return total
