"""Shared BDD fixtures and step definitions for ROP settlement."""

import pytest
from protean.utils.globals import current_domain
from pytest_bdd import given, parsers, then, when
from settlement.catalog.shipping_method import Calculator, ShippingMethod
from settlement.config import reset_settings
from settlement.order.order import AdjustmentSource
from settlement.payment.payment import PaymentState
from settlement.payment.settlement import SettlementFlags, outstanding_balance
from settlement.reconciliation import add_packages, add_refund, mark_complete


@pytest.fixture()
def payments():
    """Payments created by the scenario, keyed by their transaction id."""
    return {}


def _package(package_id, quantity, line_item_id, shipcode="UPS Ground"):
    return {
        "id": package_id,
        "shipcode": shipcode,
        "tracking": f"TRK{package_id}",
        "from": "Main Warehouse",
        "contents": [{"line_item_id": line_item_id, "quantity": quantity}],
    }


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given('the "Main Warehouse" stock location and a default shipping category')
def _catalog(catalog):
    return catalog


@given("short-shipped units are valued at their unit price")
def _unit_price_valuation(monkeypatch):
    monkeypatch.setenv("SETTLEMENT_SHORT_SHIP_VALUATION", "unit_price")
    reset_settings()


@given(
    parsers.cfparse(
        'an order "{number}" with {quantity:d} units of "{line_item_id}" at {price:f} '
        "and a shipment costing {cost:f}"
    ),
    target_fixture="order",
)
def _order_with_shipment(place_order, number, quantity, line_item_id, price, cost):
    return place_order(
        number=number,
        items=[{"id": line_item_id, "sku": line_item_id.upper(), "quantity": quantity, "price": price}],
        shipment_cost=cost,
    )


@given(
    parsers.cfparse('an order "{number}" with {quantity:d} units of "{line_item_id}" at {price:f}'),
    target_fixture="order",
)
def _order(place_order, number, quantity, line_item_id, price):
    return place_order(
        number=number,
        items=[{"id": line_item_id, "sku": line_item_id.upper(), "quantity": quantity, "price": price}],
    )


@given(parsers.cfparse('ROP has shipped package {package_id:d} with {quantity:d} units of "{line_item_id}"'))
def _shipped_package(order, package_id, quantity, line_item_id):
    add_packages(order.number, [_package(package_id, quantity, line_item_id)])


@given(parsers.cfparse('a pending payment of {amount:f} with transaction "{txn}"'))
def _pending_payment(order, add_payment, payments, amount, txn):
    payments[txn] = add_payment(order, amount, response_code=txn)


@given(parsers.cfparse('a completed payment of {amount:f} with transaction "{txn}"'))
def _completed_payment(order, add_payment, payments, amount, txn):
    payments[txn] = add_payment(order, amount, state=PaymentState.COMPLETED.value, response_code=txn)


@given(parsers.cfparse('the gateway declines transaction "{txn}"'))
def _declining_gateway(gateway, txn):
    gateway.fail_for(txn, "Declined by issuer")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('ROP ships package {package_id:d} with {quantity:d} units of "{line_item_id}" via "{shipcode}"'))
def _ship_package(order, package_id, quantity, line_item_id, shipcode):
    add_packages(order.number, [_package(package_id, quantity, line_item_id, shipcode)])


@when("ROP marks the order complete", target_fixture="result")
def _mark_complete(order):
    return mark_complete(order.number)


@when(parsers.cfparse('ROP marks the order complete with "{flag}"'), target_fixture="result")
def _mark_complete_with(order, gateway, flag):
    return mark_complete(order.number, flags=SettlementFlags(**{flag: True}))


@when(parsers.cfparse('ROP reports a refund of {amount:f} with "{flag}"'), target_fixture="result")
def _report_refund(order, gateway, amount, flag):
    return add_refund(order.number, amount, refund_id="rf-bdd", flags=SettlementFlags(**{flag: True}))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order has shipments "{numbers}"'))
def _shipments(reload_order, order, numbers):
    expected = sorted(n.strip() for n in numbers.split(","))
    assert sorted(s.number for s in reload_order(order.number).shipments) == expected


@then(parsers.cfparse("{count:d} units are pending"))
def _pending(reload_order, order, count):
    assert len(reload_order(order.number).pending_units()) == count


@then(parsers.cfparse("the order total is {total:f}"))
def _total(reload_order, order, total):
    assert reload_order(order.number).total() == pytest.approx(total)


@then(parsers.cfparse("a short-ship reduction of {amount:f} is booked"))
def _short_ship_booked(reload_order, order, amount):
    adjustments = [
        a for a in reload_order(order.number).adjustments if a.source_type == AdjustmentSource.SHORT_SHIP.value
    ]
    assert sum(a.amount for a in adjustments) == pytest.approx(-amount)


@then("no short-ship adjustment is booked")
def _no_short_ship(reload_order, order):
    assert reload_order(order.number).short_ship_total() == 0.0


@then(parsers.cfparse('an advisory shipping method named "{name}" exists'))
def _advisory_method(name):
    methods = current_domain.repository_for(ShippingMethod).find_by_admin_name(name)
    assert [m.calculator for m in methods] == [Calculator.ADVISORY.value]


@then(parsers.cfparse('payment "{txn}" is "{state}"'))
def _payment_state(reload_payment, payments, txn, state):
    assert reload_payment(payments[txn]).state == state


@then(parsers.cfparse('payment "{txn}" has been credited {amount:f}'))
def _payment_credited(reload_payment, payments, txn, amount):
    assert reload_payment(payments[txn]).credited_total == pytest.approx(amount)


@then(parsers.cfparse("the outstanding balance is {balance:f}"))
def _balance(order, balance):
    assert outstanding_balance(order.number) == pytest.approx(balance)


@then("no settlement errors are reported")
def _no_errors(result):
    assert result["errors"] == []


@then(parsers.cfparse("{count:d} settlement error is reported"))
def _error_count(result, count):
    assert len(result["errors"]) == count
