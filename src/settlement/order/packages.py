"""Package application: command and handler.

Applies the packages ROP reports as shipped. The whole batch runs in one
unit of work: a package that cannot be applied rolls back the call, and a
retry is safe because each package is idempotent by shipment number.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, String, Text
from protean.utils.globals import current_domain

from settlement.catalog.advisory import AdvisoryMethodResolver
from settlement.catalog.stock_location import StockLocation
from settlement.domain import settlement
from settlement.exceptions import ConfigurationError
from settlement.order.order import Order
from settlement.order.shipment_cost import ShipmentCostExtractor

logger = structlog.get_logger(__name__)

SHIPMENT_NUMBER_PREFIX = "P"


def shipment_number_for(package_id) -> str:
    """Shipment number for a ROP package id; the same package always maps to the same number."""
    return f"{SHIPMENT_NUMBER_PREFIX}{int(package_id)}"


def _invalid(message: str) -> ValidationError:
    return ValidationError({"packages": [message]})


def _parse_date(value) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            raise _invalid(f"Package date {value!r} is not an ISO 8601 timestamp") from None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _parse_contents(package_id, contents) -> list[dict]:
    if contents in (None, ""):
        return []
    if not isinstance(contents, list):
        raise _invalid(f"Package {package_id} contents must be a list")

    parsed = []
    for entry in contents:
        if not isinstance(entry, dict) or entry.get("line_item_id") in (None, ""):
            raise _invalid(f"Package {package_id} has a content line without a line_item_id")
        try:
            quantity = int(entry.get("quantity") or 0)
        except (TypeError, ValueError):
            raise _invalid(f"Package {package_id} quantity {entry.get('quantity')!r} is not a number") from None
        parsed.append({"line_item_id": str(entry["line_item_id"]), "quantity": quantity})
    return parsed


def read_package(package) -> dict:
    """Check one package reported by ROP and return it in normalised form.

    Raises ValidationError keyed ``packages`` for anything malformed.
    """
    if not isinstance(package, dict):
        raise _invalid(f"Package must be an object, got {type(package).__name__}")
    try:
        number = shipment_number_for(package["id"])
    except KeyError:
        raise _invalid("Package is missing its id") from None
    except (TypeError, ValueError):
        raise _invalid(f"Package id {package['id']!r} is not a number") from None

    return {
        "number": number,
        "shipcode": str(package.get("shipcode") or ""),
        "tracking": str(package.get("tracking") or ""),
        "from": str(package.get("from") or ""),
        "date": _parse_date(package.get("date")),
        "contents": _parse_contents(package["id"], package.get("contents")),
    }


def apply_package(order: Order, package: dict, resolver: AdvisoryMethodResolver) -> bool:
    """Apply one ROP package to ``order``. Returns False if it was already applied."""
    package = read_package(package)
    number = package["number"]
    if order.has_shipment(number):
        logger.info("Package already applied", order_number=order.number, shipment_number=number)
        return False

    location_name = package["from"]
    location = current_domain.repository_for(StockLocation).find_by_name(location_name)
    if location is None:
        raise ConfigurationError(f"Stock location to ship from not present: {location_name}")

    method = resolver.resolve(package["shipcode"])
    shipment = order.ship_package(
        number=number,
        stock_location_id=str(location.id),
        contents=package["contents"],
        tracking=package["tracking"],
        shipped_at=package["date"],
        shipping_method_id=str(method.id),
    )
    logger.info(
        "Package applied",
        order_number=order.number,
        shipment_number=number,
        stock_location=location_name,
        units=len(order.units_on(number)),
        kept=shipment is not None and order.has_shipment(number),
    )
    return True


def _decode_packages(raw) -> list:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raise _invalid("Packages are not valid JSON") from None
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise _invalid("Packages must be a list")
    return raw


@settlement.command(part_of="Order")
class AddPackages:
    """Record packages ROP has shipped for an order."""

    order_number = String(required=True, max_length=50)
    packages = Text(required=True)  # JSON list of package dicts
    use_any_method = Boolean(default=False)
    partial_ship_name = String(max_length=255)
    no_auto_shipping_methods = Boolean(default=False)


@settlement.command_handler(part_of=Order)
class PackageHandler:
    @handle(AddPackages)
    def add_packages(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_by_number(command.order_number)

        resolver = AdvisoryMethodResolver(
            use_any_method=bool(command.use_any_method),
            auto_create=not command.no_auto_shipping_methods,
        )
        ShipmentCostExtractor(resolver, partial_ship_name=command.partial_ship_name).extract(order)

        packages = _decode_packages(command.packages)
        applied = sum(1 for package in packages if apply_package(order, package, resolver))

        repo.add(order)
        return applied
