"""Application tests for completing an order."""

import pytest
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from settlement.order.completion import MarkComplete
from settlement.order.order import SHORT_SHIP_LABEL, AdjustmentSource
from settlement.payment.payment import PaymentState
from settlement.payment.settlement import SettlementFlags
from settlement.reconciliation import SettlementOptions, add_packages, mark_complete


def _package(package_id=1001, quantity=3):
    return {
        "id": package_id,
        "shipcode": "UPS Ground",
        "tracking": "1Z999",
        "from": "Main Warehouse",
        "contents": [{"line_item_id": "li-1", "quantity": quantity}],
    }


def _use_unit_price_valuation(monkeypatch):
    from settlement.config import reset_settings

    monkeypatch.setenv("SETTLEMENT_SHORT_SHIP_VALUATION", "unit_price")
    reset_settings()


class TestMarkCompleteFullyShipped:
    def test_nothing_to_finalize(self, catalog, place_order, reload_order, gateway):
        place_order()
        add_packages("R100", [_package()])

        result = mark_complete("R100")

        order = reload_order()
        assert result == {"errors": [], "status": []}
        assert [s.number for s in order.shipments] == ["P1001"]
        assert order.short_ship_total() == 0.0
        assert gateway.calls == []

    def test_captures_payment_after_completion(self, catalog, place_order, reload_order, add_payment, gateway):
        order = place_order()
        payment = add_payment(order, 30.0)
        add_packages("R100", [_package()])

        result = mark_complete("R100", flags=SettlementFlags(ok_capture=True))

        assert result["errors"] == []
        assert result["status"] == [
            {"id": str(payment.id), "state": PaymentState.COMPLETED.value, "amount": 30.0, "credit": 0.0}
        ]

    def test_extracts_remaining_shipment_cost(self, catalog, place_order, reload_order, monkeypatch):
        _use_unit_price_valuation(monkeypatch)
        place_order(shipment_cost=6.0)

        mark_complete("R100", options=SettlementOptions(partial_ship_name="Held by ROP"))

        order = reload_order()
        assert [a.amount for a in order.adjustments if a.source_type == AdjustmentSource.SHIPPING.value] == [6.0]


class TestMarkCompleteShortShipped:
    def test_unresolved_valuation_is_fatal_and_rolls_back(self, catalog, place_order, reload_order):
        place_order(shipment_cost=6.0)
        add_packages("R100", [_package(quantity=2)])

        with pytest.raises(NotImplementedError):
            mark_complete("R100")

        order = reload_order()
        assert order.has_shipment("H1")
        assert len(order.units_on("H1")) == 1

    def test_discards_unshipped_and_books_short_ship(self, catalog, place_order, reload_order, monkeypatch):
        _use_unit_price_valuation(monkeypatch)
        place_order(shipment_cost=6.0)
        add_packages("R100", [_package(quantity=2)])

        mark_complete("R100")

        order = reload_order()
        assert [s.number for s in order.shipments] == ["P1001"]
        assert len(order.pending_units()) == 1
        short = [a for a in order.adjustments if a.source_type == AdjustmentSource.SHORT_SHIP.value]
        assert len(short) == 1
        assert short[0].amount == -10.0
        assert short[0].label == SHORT_SHIP_LABEL
        # 30 items + 6 shipping - 10 short-shipped
        assert order.total() == 26.0

    def test_completing_twice_books_once(self, catalog, place_order, reload_order, monkeypatch):
        _use_unit_price_valuation(monkeypatch)
        place_order()
        add_packages("R100", [_package(quantity=1)])

        mark_complete("R100")
        mark_complete("R100")

        assert reload_order().short_ship_total() == 20.0

    def test_short_ship_reduces_capture(self, catalog, place_order, add_payment, reload_payment, monkeypatch, gateway):
        _use_unit_price_valuation(monkeypatch)
        order = place_order()
        payment = add_payment(order, 30.0)
        add_packages("R100", [_package(quantity=2)])

        result = mark_complete("R100", flags=SettlementFlags(ok_capture=True, ok_partial_capture=True))

        assert result["errors"] == []
        captured = reload_payment(payment)
        assert captured.state == PaymentState.COMPLETED.value
        assert captured.amount == 20.0


class TestMarkCompleteErrors:
    def test_unknown_order(self, catalog):
        with pytest.raises(ObjectNotFoundError):
            mark_complete("R404")

    def test_command_returns_booked_amount(self, catalog, place_order, monkeypatch):
        _use_unit_price_valuation(monkeypatch)
        place_order()

        booked = current_domain.process(MarkComplete(order_number="R100"), asynchronous=False)

        assert booked == 30.0
