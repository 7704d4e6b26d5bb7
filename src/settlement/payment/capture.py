"""Partial capture strategies.

Some gateways capture an arbitrary amount of an authorisation; others only
capture whatever the payment says it is worth. The strategy is picked once
per payment from the gateway's ``supports_partial_capture`` flag.
"""

from protean.utils.globals import current_domain

from settlement.gateway.port import PaymentGateway
from settlement.payment.actions import CapturePayment
from settlement.payment.payment import Payment


class AmountCapture:
    """Ask the gateway to capture ``amount`` directly."""

    adjust_amount = False

    def capture(self, payment: Payment, amount: float) -> dict:
        return current_domain.process(
            CapturePayment(payment_id=str(payment.id), amount=amount, adjust_amount=self.adjust_amount),
            asynchronous=False,
        )


class AdjustAmountCapture(AmountCapture):
    """Shrink the payment to ``amount`` first, then capture it in full."""

    adjust_amount = True


def capture_strategy_for(gateway: PaymentGateway) -> AmountCapture:
    return AmountCapture() if gateway.supports_partial_capture else AdjustAmountCapture()
