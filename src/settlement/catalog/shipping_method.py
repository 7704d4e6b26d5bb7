"""Shipping catalog: ShippingMethod and ShippingCategory aggregates.

An *advisory* shipping method is a placeholder whose calculator never
prices anything: it marks a shipment or a cost as decided by ROP rather
than computed by the platform.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, String

from settlement.domain import settlement


class Calculator(Enum):
    ADVISORY = "Advisory"
    FLAT_RATE = "Flat_Rate"
    PER_ITEM = "Per_Item"
    PRICE_SACK = "Price_Sack"


@settlement.aggregate
class ShippingCategory:
    name = String(required=True, max_length=255)
    created_at = DateTime()

    @classmethod
    def create(cls, name: str):
        return cls(name=name, created_at=datetime.now(UTC))


@settlement.aggregate
class ShippingMethod:
    name = String(required=True, max_length=255)
    admin_name = String(max_length=255)
    calculator = String(
        max_length=50,
        choices=Calculator,
        default=Calculator.FLAT_RATE.value,
    )
    shipping_category_id = Identifier()
    created_at = DateTime()

    @classmethod
    def create(
        cls,
        name: str,
        calculator: str = Calculator.FLAT_RATE.value,
        shipping_category_id: str | None = None,
        admin_name: str | None = None,
    ):
        return cls(
            name=name,
            admin_name=admin_name if admin_name is not None else name,
            calculator=calculator,
            shipping_category_id=shipping_category_id,
            created_at=datetime.now(UTC),
        )

    @classmethod
    def create_advisory(cls, name: str, shipping_category_id: str):
        """Create a placeholder method for ROP-decided shipping."""
        return cls.create(
            name=name,
            admin_name=name,
            calculator=Calculator.ADVISORY.value,
            shipping_category_id=shipping_category_id,
        )

    def is_advisory(self) -> bool:
        return self.calculator == Calculator.ADVISORY.value


@settlement.repository(part_of=ShippingMethod)
class ShippingMethodRepository:
    def find_by_admin_name(self, admin_name: str) -> list[ShippingMethod]:
        """All methods registered under ``admin_name``, oldest first."""
        methods = self._dao.query.filter(admin_name=admin_name).all().items
        return sorted(methods, key=lambda m: (m.created_at or datetime.min.replace(tzinfo=UTC), str(m.id)))


@settlement.repository(part_of=ShippingCategory)
class ShippingCategoryRepository:
    def default(self) -> ShippingCategory | None:
        """The catalog's default category: the first one ever created."""
        categories = self._dao.query.all().items
        if not categories:
            return None
        return min(categories, key=lambda c: (c.created_at or datetime.min.replace(tzinfo=UTC), str(c.id)))
