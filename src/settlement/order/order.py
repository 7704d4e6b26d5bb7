"""Order aggregate (CQRS): the local record ROP settles against.

The order owns its line items, inventory units, shipments, shipping rates
and adjustments. Settlement rewrites the shipment set to match what ROP
actually shipped, so every mutation here keeps one rule intact: per line
item, units held by live shipments plus unassigned units equal the ordered
quantity. Units are moved between shipments, never created or destroyed.

Shipment lifecycle:
    PENDING (building) → READY → SHIPPED
    {PENDING, READY} → CANCELED

Inventory unit lifecycle:
    PENDING → SHIPPED → RETURNED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
)

from settlement.domain import settlement
from settlement.order.events import (
    OrderPlaced,
    PackageShipped,
    RefundAdjusted,
    ShippingCostExtracted,
    ShortShipAdjusted,
    UnshippedShipmentsDiscarded,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ShipmentState(Enum):
    PENDING = "Pending"
    READY = "Ready"
    SHIPPED = "Shipped"
    CANCELED = "Canceled"


class InventoryUnitState(Enum):
    PENDING = "Pending"
    SHIPPED = "Shipped"
    RETURNED = "Returned"


class AdjustmentSource(Enum):
    SHIPMENT = "Shipment"
    SHIPPING = "Shipping"
    SHORT_SHIP = "Short_Ship"
    REFUND = "Refund"


_SHIPMENT_TRANSITIONS = {
    ShipmentState.PENDING: {ShipmentState.READY, ShipmentState.SHIPPED, ShipmentState.CANCELED},
    ShipmentState.READY: {ShipmentState.PENDING, ShipmentState.SHIPPED, ShipmentState.CANCELED},
    ShipmentState.SHIPPED: set(),  # terminal for settlement
    ShipmentState.CANCELED: set(),  # terminal
}

SHORT_SHIP_LABEL = "Short Shipped"
REFUND_LABEL = "Refund"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@settlement.entity(part_of="Order")
class LineItem:
    """A product and ordered quantity. Settlement never changes line items."""

    sku = String(required=True, max_length=100)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)


@settlement.entity(part_of="Order")
class InventoryUnit:
    """One unit of a line item, held by at most one shipment."""

    line_item_id = Identifier(required=True)
    state = String(
        max_length=50,
        choices=InventoryUnitState,
        default=InventoryUnitState.PENDING.value,
    )
    shipment_number = String(max_length=50)  # None while unassigned

    def is_shipped(self) -> bool:
        return self.state == InventoryUnitState.SHIPPED.value

    def is_returned(self) -> bool:
        return self.state == InventoryUnitState.RETURNED.value


@settlement.entity(part_of="Order")
class Shipment:
    """A parcel leaving (or planned to leave) a stock location."""

    number = String(required=True, max_length=50)
    stock_location_id = Identifier(required=True)
    cost = Float(default=0.0)
    shipping_method_id = Identifier()
    tracking = String(max_length=255)
    state = String(
        max_length=50,
        choices=ShipmentState,
        default=ShipmentState.PENDING.value,
    )
    shipped_at = DateTime()
    created_at = DateTime()

    def is_shipped(self) -> bool:
        return self.state == ShipmentState.SHIPPED.value


@settlement.entity(part_of="Order")
class ShippingRate:
    """A platform-computed rate offered for a shipment."""

    shipment_number = String(required=True, max_length=50)
    shipping_method_id = Identifier()
    cost = Float(default=0.0)
    selected = Boolean(default=False)


@settlement.entity(part_of="Order")
class Adjustment:
    """A signed monetary entry on the order.

    Adjustments sourced from a shipment (``source_type`` SHIPMENT,
    ``source_id`` the shipment number) carry that shipment's cost or tax;
    the others are order-level.
    """

    label = String(required=True, max_length=255)
    amount = Float(required=True)
    mandatory = Boolean(default=False)
    source_type = String(max_length=50, choices=AdjustmentSource)
    source_id = String(max_length=255)
    created_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@settlement.aggregate
class Order:
    number = String(required=True, max_length=50, unique=True)
    line_items = HasMany(LineItem)
    inventory_units = HasMany(InventoryUnit)
    shipments = HasMany(Shipment)
    shipping_rates = HasMany(ShippingRate)
    adjustments = HasMany(Adjustment)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def inventory_units_match_ordered_quantity(self):
        live = {s.number for s in self.shipments if s.state != ShipmentState.CANCELED.value}
        for line_item in self.line_items:
            held = [
                u
                for u in self.inventory_units
                if str(u.line_item_id) == str(line_item.id)
                and (u.shipment_number is None or u.shipment_number in live)
            ]
            if len(held) != line_item.quantity:
                raise ValidationError(
                    {
                        "inventory_units": [
                            f"Line item {line_item.id} holds {len(held)} unit(s) but {line_item.quantity} were ordered"
                        ]
                    }
                )

    @invariant.post
    def shipment_numbers_are_unique(self):
        numbers = [s.number for s in self.shipments]
        if len(numbers) != len(set(numbers)):
            raise ValidationError({"shipments": ["Shipment numbers must be unique within an order"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, number: str, items_data: list[dict]):
        """Record a new order with one pending, unassigned unit per ordered quantity.

        Args:
            number: External reference number shared with ROP.
            items_data: List of dicts with sku, quantity, price and optionally id.
        """
        now = datetime.now(UTC)
        order = cls(number=number, created_at=now, updated_at=now)
        with atomic_change(order):
            for item_data in items_data:
                line_item = LineItem(**item_data)
                order.add_line_items(line_item)
                for _ in range(line_item.quantity):
                    order.add_inventory_units(
                        InventoryUnit(
                            line_item_id=str(line_item.id),
                            state=InventoryUnitState.PENDING.value,
                        )
                    )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=number,
                line_item_count=len(order.line_items),
                unit_count=len(order.inventory_units),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Money
    # -------------------------------------------------------------------
    def item_total(self) -> float:
        return round(sum(li.price * li.quantity for li in self.line_items), 2)

    def ship_total(self, cost_model=None) -> float:
        """Shipment cost as the configured cost model counts it."""
        if cost_model is None:
            from settlement.order.shipment_cost import cost_model_for

            cost_model = cost_model_for()
        return cost_model.ship_total(self)

    def adjustment_total(self) -> float:
        return round(sum(a.amount for a in self.adjustments), 2)

    def total(self, cost_model=None) -> float:
        return round(self.item_total() + self.ship_total(cost_model) + self.adjustment_total(), 2)

    def shipment_adjustment_total(self, shipment_number: str) -> float:
        """Sum of adjustments sourced from one shipment (its cost or tax)."""
        return round(sum(a.amount for a in self._shipment_adjustments(shipment_number)), 2)

    def short_ship_total(self) -> float:
        """Absolute value of short-ship compensation booked so far."""
        return round(
            abs(sum(a.amount for a in self.adjustments if a.source_type == AdjustmentSource.SHORT_SHIP.value)),
            2,
        )

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def line_item(self, line_item_id) -> LineItem:
        item = next((li for li in self.line_items if str(li.id) == str(line_item_id)), None)
        if item is None:
            raise ObjectNotFoundError(f"Line item {line_item_id} does not exist on order {self.number}")
        return item

    def shipment(self, number: str) -> Shipment | None:
        return next((s for s in self.shipments if s.number == number), None)

    def has_shipment(self, number: str) -> bool:
        return self.shipment(number) is not None

    def units_on(self, shipment_number: str) -> list[InventoryUnit]:
        return [u for u in self.inventory_units if u.shipment_number == shipment_number]

    def units_for(self, line_item_id) -> list[InventoryUnit]:
        return [u for u in self.inventory_units if str(u.line_item_id) == str(line_item_id)]

    def pending_units(self) -> list[InventoryUnit]:
        return [u for u in self.inventory_units if u.state == InventoryUnitState.PENDING.value]

    def has_refund(self, refund_id: str) -> bool:
        return any(
            a.source_type == AdjustmentSource.REFUND.value and a.source_id == refund_id for a in self.adjustments
        )

    def _shipment_adjustments(self, shipment_number: str) -> list[Adjustment]:
        return [
            a
            for a in self.adjustments
            if a.source_type == AdjustmentSource.SHIPMENT.value and a.source_id == shipment_number
        ]

    def _reusable_units_by_line_item(self) -> dict[str, list[InventoryUnit]]:
        grouped: dict[str, list[InventoryUnit]] = {}
        for unit in self.inventory_units:
            if unit.is_shipped() or unit.is_returned():
                continue
            grouped.setdefault(str(unit.line_item_id), []).append(unit)
        return grouped

    # -------------------------------------------------------------------
    # Shipment helpers
    # -------------------------------------------------------------------
    def _transition_shipment(self, shipment: Shipment, target: ShipmentState) -> None:
        current = ShipmentState(shipment.state)
        if target not in _SHIPMENT_TRANSITIONS.get(current, set()):
            raise ValidationError(
                {"status": [f"Shipment {shipment.number} cannot transition from {current.value} to {target.value}"]}
            )
        shipment.state = target.value

    def _clear_shipping_rates(self, shipment_number: str) -> None:
        for rate in [r for r in self.shipping_rates if r.shipment_number == shipment_number]:
            self.remove_shipping_rates(rate)

    def _clear_shipment_adjustments(self, shipment_number: str) -> None:
        for adjustment in self._shipment_adjustments(shipment_number):
            self.remove_adjustments(adjustment)

    def _destroy_shipment(self, shipment: Shipment) -> None:
        self._clear_shipping_rates(shipment.number)
        self._clear_shipment_adjustments(shipment.number)
        self.remove_shipments(shipment)

    def _prune_empty_shipments(self) -> list[str]:
        pruned = []
        for shipment in list(self.shipments):
            if not self.units_on(shipment.number):
                self._destroy_shipment(shipment)
                pruned.append(shipment.number)
        return pruned

    # -------------------------------------------------------------------
    # Platform-side construction
    # -------------------------------------------------------------------
    def build_shipment(
        self,
        number: str,
        stock_location_id: str,
        cost: float = 0.0,
        shipping_method_id: str | None = None,
        unit_ids: list[str] | None = None,
        state: str = ShipmentState.READY.value,
    ) -> Shipment:
        """Create a checkout-time shipment holding the given (default: all unassigned) units."""
        if self.has_shipment(number):
            raise ValidationError({"number": [f"Shipment {number} already exists on order {self.number}"]})

        with atomic_change(self):
            shipment = Shipment(
                number=number,
                stock_location_id=stock_location_id,
                cost=cost,
                shipping_method_id=shipping_method_id,
                state=state,
                created_at=datetime.now(UTC),
            )
            self.add_shipments(shipment)
            for unit in self.inventory_units:
                if unit_ids is None:
                    if unit.shipment_number is None and unit.state == InventoryUnitState.PENDING.value:
                        unit.shipment_number = number
                elif str(unit.id) in unit_ids:
                    unit.shipment_number = number
            self.updated_at = datetime.now(UTC)
        return shipment

    def add_shipping_rate(
        self,
        shipment_number: str,
        cost: float,
        shipping_method_id: str | None = None,
        selected: bool = True,
    ) -> ShippingRate:
        if not self.has_shipment(shipment_number):
            raise ValidationError({"shipment_number": [f"Shipment {shipment_number} not found"]})
        rate = ShippingRate(
            shipment_number=shipment_number,
            shipping_method_id=shipping_method_id,
            cost=cost,
            selected=selected,
        )
        self.add_shipping_rates(rate)
        return rate

    def add_adjustment(
        self,
        label: str,
        amount: float,
        mandatory: bool = False,
        source_type: str | None = None,
        source_id: str | None = None,
    ) -> Adjustment:
        adjustment = Adjustment(
            label=label,
            amount=round(amount, 2),
            mandatory=mandatory,
            source_type=source_type,
            source_id=source_id,
            created_at=datetime.now(UTC),
        )
        self.add_adjustments(adjustment)
        self.updated_at = datetime.now(UTC)
        return adjustment

    # -------------------------------------------------------------------
    # Shipment cost extraction
    # -------------------------------------------------------------------
    def neutralize_shipment_cost(self, shipment_number: str, shipping_method_id: str) -> None:
        """Strip a shipment of everything that carries its cost and tag it advisory."""
        shipment = self.shipment(shipment_number)
        if shipment is None:
            raise ValidationError({"shipment_number": [f"Shipment {shipment_number} not found"]})

        with atomic_change(self):
            self._clear_shipment_adjustments(shipment_number)
            self._clear_shipping_rates(shipment_number)
            shipment.cost = 0.0
            shipment.shipping_method_id = shipping_method_id
            self.updated_at = datetime.now(UTC)

    def book_shipping_adjustment(self, amount: float, label: str, shipment_numbers: list[str]) -> Adjustment:
        """Record extracted shipping cost as one non-mandatory order adjustment."""
        if amount <= 0:
            raise ValidationError({"amount": ["Extracted shipping cost must be positive"]})

        now = datetime.now(UTC)
        adjustment = self.add_adjustment(
            label=label,
            amount=amount,
            mandatory=False,
            source_type=AdjustmentSource.SHIPPING.value,
        )
        self.raise_(
            ShippingCostExtracted(
                order_id=str(self.id),
                order_number=self.number,
                amount=adjustment.amount,
                shipment_numbers=json.dumps(shipment_numbers),
                extracted_at=now,
            )
        )
        return adjustment

    # -------------------------------------------------------------------
    # Packages
    # -------------------------------------------------------------------
    def ship_package(
        self,
        number: str,
        stock_location_id: str,
        contents: list[dict],
        tracking: str | None = None,
        shipped_at: datetime | None = None,
        shipping_method_id: str | None = None,
    ) -> Shipment | None:
        """Materialise one ROP package as a shipped shipment.

        Units of each listed line item that are neither shipped nor returned
        move onto the new shipment in first-available order; requested
        quantity beyond what is available is ignored. Shipments left without
        units afterwards are destroyed. Returns None when a shipment with
        this number already exists.
        """
        if self.has_shipment(number):
            return None

        requested = [
            (self.line_item(entry["line_item_id"]), max(int(entry.get("quantity") or 0), 0)) for entry in contents
        ]
        now = datetime.now(UTC)
        shipped_at = shipped_at or now

        with atomic_change(self):
            shipment = Shipment(
                number=number,
                stock_location_id=stock_location_id,
                state=ShipmentState.PENDING.value,
                created_at=shipped_at,
            )
            self.add_shipments(shipment)

            reusable = self._reusable_units_by_line_item()
            for line_item, quantity in requested:
                available = reusable.get(str(line_item.id), [])
                moved, reusable[str(line_item.id)] = available[:quantity], available[quantity:]
                for unit in moved:
                    unit.shipment_number = number

            self._clear_shipping_rates(number)
            shipment.cost = 0.0
            shipment.shipping_method_id = shipping_method_id
            shipment.tracking = tracking

            self._transition_shipment(shipment, ShipmentState.SHIPPED)
            shipment.shipped_at = shipped_at
            units = self.units_on(number)
            for unit in units:
                unit.state = InventoryUnitState.SHIPPED.value

            pruned = self._prune_empty_shipments()
            self.updated_at = now

        self.raise_(
            PackageShipped(
                order_id=str(self.id),
                order_number=self.number,
                shipment_number=number,
                stock_location_id=str(stock_location_id),
                shipping_method_id=str(shipping_method_id) if shipping_method_id else None,
                tracking=tracking or "",
                unit_count=len(units),
                pruned_shipments=json.dumps(pruned),
                shipped_at=shipped_at,
            )
        )
        return shipment

    # -------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------
    def discard_unshipped_shipments(self) -> list[str]:
        """Cancel and delete every shipment that never shipped.

        Units they held become unassigned and stay pending.
        """
        unshipped = [s for s in self.shipments if not s.is_shipped()]
        if not unshipped:
            return []

        now = datetime.now(UTC)
        discarded = []
        with atomic_change(self):
            for shipment in unshipped:
                if shipment.state != ShipmentState.CANCELED.value:
                    self._transition_shipment(shipment, ShipmentState.CANCELED)
                for unit in self.units_on(shipment.number):
                    unit.shipment_number = None
                self._destroy_shipment(shipment)
                discarded.append(shipment.number)
            self.updated_at = now

        self.raise_(
            UnshippedShipmentsDiscarded(
                order_id=str(self.id),
                order_number=self.number,
                shipment_numbers=json.dumps(discarded),
                discarded_at=now,
            )
        )
        return discarded

    def book_short_ship(self, amount: float, pending_units: int) -> Adjustment:
        """Compensate never-shipped quantity with a negative adjustment of ``amount``."""
        if amount <= 0:
            raise ValidationError({"amount": ["Short-ship value must be positive"]})

        now = datetime.now(UTC)
        adjustment = self.add_adjustment(
            label=SHORT_SHIP_LABEL,
            amount=-amount,
            mandatory=False,
            source_type=AdjustmentSource.SHORT_SHIP.value,
        )
        self.raise_(
            ShortShipAdjusted(
                order_id=str(self.id),
                order_number=self.number,
                amount=adjustment.amount,
                pending_units=pending_units,
                adjusted_at=now,
            )
        )
        return adjustment

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def book_refund(self, amount: float, refund_id: str | None = None, label: str = REFUND_LABEL) -> Adjustment | None:
        """Book ROP's refund amount as a negative adjustment.

        Returns None when a refund with the same ``refund_id`` was already booked.
        """
        if amount is None or amount <= 0:
            raise ValidationError({"refund_amount": ["Refund amount must be positive"]})
        if refund_id and self.has_refund(refund_id):
            return None

        now = datetime.now(UTC)
        adjustment = self.add_adjustment(
            label=label,
            amount=-amount,
            mandatory=False,
            source_type=AdjustmentSource.REFUND.value,
            source_id=refund_id,
        )
        self.raise_(
            RefundAdjusted(
                order_id=str(self.id),
                order_number=self.number,
                amount=adjustment.amount,
                refund_id=refund_id or "",
                adjusted_at=now,
            )
        )
        return adjustment


@settlement.repository(part_of=Order)
class OrderRepository:
    def get_by_number(self, number: str) -> Order:
        """Load an order by its external reference number.

        Raises ObjectNotFoundError when no such order exists.
        """
        record = self._dao.find_by(number=number)
        return self.get(record.id)
