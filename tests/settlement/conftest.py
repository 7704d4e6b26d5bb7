from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain

_SETTLEMENT_ENV_VARS = (
    "SETTLEMENT_API_TOKEN",
    "SETTLEMENT_COST_MODEL",
    "SETTLEMENT_SHORT_SHIP_VALUATION",
    "SETTLEMENT_SHIPPING_LABEL",
    "SETTLEMENT_PARTIAL_SHIP_NAME",
    "PAYMENT_GATEWAY",
)

WAREHOUSE = "Main Warehouse"


@pytest.fixture(scope="session")
def settlement_bed():
    from settlement.domain import settlement

    bed = DomainFixture(settlement)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(settlement_bed):
    with settlement_bed.domain_context():
        yield

        # Orders, payments and the catalog never leak between tests
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def _fresh_runtime(monkeypatch):
    """Start every test from default settings and a fresh fake gateway."""
    from settlement.config import reset_settings
    from settlement.gateway import reset_gateway

    for name in _SETTLEMENT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    reset_gateway()
    yield
    reset_settings()
    reset_gateway()


@pytest.fixture()
def gateway():
    from settlement.gateway import set_gateway
    from settlement.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def warehouse():
    from settlement.catalog.stock_location import StockLocation

    location = StockLocation.create(WAREHOUSE)
    current_domain.repository_for(StockLocation).add(location)
    return location


@pytest.fixture()
def shipping_category():
    from settlement.catalog.shipping_method import ShippingCategory

    category = ShippingCategory.create("Default")
    current_domain.repository_for(ShippingCategory).add(category)
    return category


@pytest.fixture()
def catalog(warehouse, shipping_category):
    return {"warehouse": warehouse, "shipping_category": shipping_category}


@pytest.fixture()
def place_order(warehouse):
    """Persist an order; optionally with a checkout shipment holding every unit."""
    from settlement.order.order import AdjustmentSource, Order

    def _place(number="R100", items=None, shipment_cost=None, shipment_tax=None, adjustments=()):
        items = items or [{"id": "li-1", "sku": "SKU-1", "quantity": 3, "price": 10.0}]
        order = Order.create(number, items)
        if shipment_cost is not None:
            order.build_shipment("H1", str(warehouse.id), cost=shipment_cost)
            order.add_shipping_rate("H1", shipment_cost)
        if shipment_tax:
            order.add_adjustment(
                "Shipping tax",
                shipment_tax,
                source_type=AdjustmentSource.SHIPMENT.value,
                source_id="H1",
            )
        for label, amount in adjustments:
            order.add_adjustment(label, amount)

        repo = current_domain.repository_for(Order)
        repo.add(order)
        return repo.get_by_number(number)

    return _place


@pytest.fixture()
def add_payment():
    """Persist a payment; successive payments get strictly increasing creation times."""
    from settlement.payment.payment import Payment

    created = [datetime.now(UTC)]

    def _add(order, amount, state="pending", credited_total=0.0, response_code=None):
        payment = Payment.create(
            order_id=str(order.id),
            order_number=order.number,
            amount=amount,
            response_code=response_code,
            state=state,
        )
        created[0] += timedelta(seconds=1)
        payment.created_at = created[0]
        payment.credited_total = credited_total
        current_domain.repository_for(Payment).add(payment)
        return payment

    return _add


@pytest.fixture()
def reload_order():
    from settlement.order.order import Order

    def _reload(number="R100"):
        return current_domain.repository_for(Order).get_by_number(number)

    return _reload


@pytest.fixture()
def reload_payment():
    from settlement.payment.payment import Payment

    def _reload(payment):
        return current_domain.repository_for(Payment).get(payment.id)

    return _reload
