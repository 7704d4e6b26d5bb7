"""Order domain events: facts recorded while settling an order against ROP.

All events are past tense and versioned.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from settlement.domain import settlement


@settlement.event(part_of="Order")
class OrderPlaced:
    """The platform recorded a new order awaiting fulfillment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    line_item_count = Integer(required=True)
    unit_count = Integer(required=True)
    placed_at = DateTime(required=True)


@settlement.event(part_of="Order")
class ShippingCostExtracted:
    """Per-shipment costs were moved into a single order-level adjustment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    shipment_numbers = Text(required=True)  # JSON list of shipment numbers
    extracted_at = DateTime(required=True)


@settlement.event(part_of="Order")
class PackageShipped:
    """A package reported by ROP became a shipped shipment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    shipment_number = String(required=True)
    stock_location_id = Identifier(required=True)
    shipping_method_id = Identifier()
    tracking = String()
    unit_count = Integer(required=True)
    pruned_shipments = Text()  # JSON list of shipment numbers left empty and removed
    shipped_at = DateTime(required=True)


@settlement.event(part_of="Order")
class UnshippedShipmentsDiscarded:
    """ROP declared shipping finished; shipments that never shipped were removed."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    shipment_numbers = Text(required=True)  # JSON list of shipment numbers
    discarded_at = DateTime(required=True)


@settlement.event(part_of="Order")
class ShortShipAdjusted:
    """Quantity that will never ship was compensated with a negative adjustment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    pending_units = Integer(required=True)
    adjusted_at = DateTime(required=True)


@settlement.event(part_of="Order")
class RefundAdjusted:
    """A refund reported by ROP was booked as a negative adjustment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    refund_id = String()
    adjusted_at = DateTime(required=True)
