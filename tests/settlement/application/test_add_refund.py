"""Application tests for booking ROP refunds."""

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain
from settlement.order.order import REFUND_LABEL, AdjustmentSource
from settlement.order.refund import AddRefund
from settlement.payment.payment import PaymentState
from settlement.payment.settlement import SettlementFlags
from settlement.reconciliation import add_refund


def _refunds(order):
    return [a for a in order.adjustments if a.source_type == AdjustmentSource.REFUND.value]


class TestAddRefund:
    def test_books_reported_amount(self, place_order, reload_order):
        place_order()

        result = add_refund("R100", 12.5, refund_id="rf-1")

        order = reload_order()
        assert result == {"errors": [], "status": []}
        refunds = _refunds(order)
        assert len(refunds) == 1
        assert refunds[0].amount == -12.5
        assert refunds[0].label == REFUND_LABEL
        assert order.total() == 17.5

    def test_same_refund_is_booked_once(self, place_order, reload_order):
        place_order()
        add_refund("R100", 12.5, refund_id="rf-1")
        add_refund("R100", 12.5, refund_id="rf-1")

        assert len(_refunds(reload_order())) == 1

    def test_credits_captured_payment(self, place_order, add_payment, reload_payment, gateway):
        order = place_order()
        payment = add_payment(order, 30.0, state=PaymentState.COMPLETED.value, response_code="auth-1")

        result = add_refund("R100", 10.0, refund_id="rf-1", flags=SettlementFlags(ok_refund=True))

        assert result["errors"] == []
        assert result["status"] == [
            {"id": str(payment.id), "state": PaymentState.COMPLETED.value, "amount": 30.0, "credit": 10.0}
        ]
        assert reload_payment(payment).credited_total == 10.0
        assert gateway.calls == [{"method": "credit", "transaction_id": "auth-1", "amount": 10.0}]

    def test_refund_without_flag_leaves_payments_alone(self, place_order, add_payment, gateway):
        order = place_order()
        add_payment(order, 30.0, state=PaymentState.COMPLETED.value)

        result = add_refund("R100", 10.0)

        assert result["status"][0]["credit"] == 0.0
        assert gateway.calls == []

    def test_command_returns_adjustment_id(self, place_order, reload_order):
        place_order()
        adjustment_id = current_domain.process(AddRefund(order_number="R100", refund_amount=5.0), asynchronous=False)
        assert adjustment_id == str(_refunds(reload_order())[0].id)


class TestAddRefundErrors:
    def test_unknown_order(self):
        with pytest.raises(ObjectNotFoundError):
            add_refund("R404", 5.0)

    def test_non_positive_amount(self, place_order, reload_order):
        place_order()
        with pytest.raises(ValidationError):
            add_refund("R100", 0.0)
        assert len(_refunds(reload_order())) == 0
