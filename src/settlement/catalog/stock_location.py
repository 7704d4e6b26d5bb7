"""StockLocation aggregate: warehouses ROP ships from.

Settlement only ever looks locations up by name; managing them belongs to
the platform.
"""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, String

from settlement.domain import settlement


@settlement.aggregate
class StockLocation:
    name = String(required=True, max_length=255, unique=True)
    active = Boolean(default=True)
    created_at = DateTime()

    @classmethod
    def create(cls, name: str, active: bool = True):
        return cls(name=name, active=active, created_at=datetime.now(UTC))


@settlement.repository(part_of=StockLocation)
class StockLocationRepository:
    def find_by_name(self, name: str) -> StockLocation | None:
        """Find a stock location by its exact name."""
        results = self._dao.query.filter(name=name).all()
        if not results.items:
            return None
        return results.first
