"""Domain events for the Payment aggregate.

One event per gateway-backed action, success or failure, so every
settlement attempt leaves an audit trail even when the call as a whole
reports errors.
"""

from protean.fields import DateTime, Float, Identifier, String

from settlement.domain import settlement


@settlement.event(part_of="Payment")
class PaymentCaptured:
    """The gateway captured the payment (in full or for the outstanding balance)."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    gateway_transaction_id = String()
    captured_at = DateTime(required=True)


@settlement.event(part_of="Payment")
class PaymentVoided:
    """The authorisation was released without capture."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    gateway_transaction_id = String()
    voided_at = DateTime(required=True)


@settlement.event(part_of="Payment")
class PaymentCredited:
    """Part of a captured payment was returned to the customer."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    credited_total = Float(required=True)
    gateway_transaction_id = String()
    credited_at = DateTime(required=True)


@settlement.event(part_of="Payment")
class PaymentActionFailed:
    """A capture, void or credit was declined by the gateway."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_number = String(required=True)
    action = String(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)
