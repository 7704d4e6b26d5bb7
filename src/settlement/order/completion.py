"""Order completion: command and handler.

ROP marks an order complete once nothing more will ship. Shipping cost is
extracted, shipments that never shipped are discarded, and whatever is
still pending is compensated with a short-ship adjustment. Payment
settlement follows separately, outside this unit of work.
"""

import structlog
from protean import handle
from protean.fields import Boolean, String
from protean.utils.globals import current_domain

from settlement.catalog.advisory import AdvisoryMethodResolver
from settlement.domain import settlement
from settlement.order.order import Order
from settlement.order.shipment_cost import ShipmentCostExtractor
from settlement.order.valuation import short_ship_valuation

logger = structlog.get_logger(__name__)


def finalize_shipments(order: Order) -> float:
    """Discard unshipped shipments and book short-ship compensation.

    Compensation already booked by an earlier completion is netted out, so
    completing an order twice books nothing new. Returns the amount booked.
    """
    discarded = order.discard_unshipped_shipments()
    if discarded:
        logger.info("Discarded unshipped shipments", order_number=order.number, shipments=discarded)

    pending = order.pending_units()
    value = short_ship_valuation().value(order, pending)
    owed = round(value - order.short_ship_total(), 2)
    if owed <= 0:
        return 0.0

    order.book_short_ship(owed, pending_units=len(pending))
    logger.info(
        "Booked short-ship adjustment",
        order_number=order.number,
        amount=-owed,
        pending_units=len(pending),
    )
    return owed


@settlement.command(part_of="Order")
class MarkComplete:
    """ROP will ship nothing more for this order."""

    order_number = String(required=True, max_length=50)
    use_any_method = Boolean(default=False)
    partial_ship_name = String(max_length=255)
    no_auto_shipping_methods = Boolean(default=False)


@settlement.command_handler(part_of=Order)
class CompletionHandler:
    @handle(MarkComplete)
    def mark_complete(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_by_number(command.order_number)

        resolver = AdvisoryMethodResolver(
            use_any_method=bool(command.use_any_method),
            auto_create=not command.no_auto_shipping_methods,
        )
        ShipmentCostExtractor(resolver, partial_ship_name=command.partial_ship_name).extract(order)
        booked = finalize_shipments(order)

        repo.add(order)
        return booked
