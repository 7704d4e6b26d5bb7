"""Gateway-backed payment actions: commands and handler.

Each action is processed as its own command, so it commits in its own unit
of work. The handler never raises for a declined action: the failure is
recorded on the payment and reported back to the caller, which decides
what to do with it.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Float, Identifier
from protean.utils.globals import current_domain

from settlement.domain import settlement
from settlement.gateway import get_gateway
from settlement.payment.payment import Payment, PaymentAction

logger = structlog.get_logger(__name__)


@settlement.command(part_of="Payment")
class CapturePayment:
    """Capture a pending payment, in full unless ``amount`` is given."""

    payment_id = Identifier(required=True)
    amount = Float()
    adjust_amount = Boolean(default=False)


@settlement.command(part_of="Payment")
class VoidPayment:
    payment_id = Identifier(required=True)


@settlement.command(part_of="Payment")
class CreditPayment:
    payment_id = Identifier(required=True)
    amount = Float(required=True)


def _outcome(payment: Payment, action: str, result) -> dict:
    if not result.success:
        reason = result.failure_reason or "Gateway declined"
        payment.record_failure(action, reason)
        logger.warning(
            "Payment action declined",
            payment_id=str(payment.id),
            order_number=payment.order_number,
            action=action,
            reason=reason,
        )
        return {"success": False, "failure_reason": reason}

    logger.info(
        "Payment action succeeded",
        payment_id=str(payment.id),
        order_number=payment.order_number,
        action=action,
        state=payment.state,
        amount=payment.amount,
    )
    return {"success": True, "failure_reason": None}


@settlement.command_handler(part_of=Payment)
class PaymentActionHandler:
    @handle(CapturePayment)
    def capture_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        gateway = get_gateway()

        amount = payment.amount if command.amount is None else round(command.amount, 2)
        if command.adjust_amount:
            payment.adjust_amount(amount)
            result = gateway.capture(payment.transaction_id)
        else:
            result = gateway.capture(payment.transaction_id, command.amount)

        if result.success:
            payment.record_capture(amount, result.gateway_transaction_id)
        outcome = _outcome(payment, PaymentAction.CAPTURE.value, result)
        repo.add(payment)
        return outcome

    @handle(VoidPayment)
    def void_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)

        result = get_gateway().void(payment.transaction_id)
        if result.success:
            payment.record_void(result.gateway_transaction_id)
        outcome = _outcome(payment, PaymentAction.VOID.value, result)
        repo.add(payment)
        return outcome

    @handle(CreditPayment)
    def credit_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)

        amount = round(command.amount, 2)
        result = get_gateway().credit(payment.transaction_id, amount)
        if result.success:
            payment.record_credit(amount, result.gateway_transaction_id)
        outcome = _outcome(payment, PaymentAction.CREDIT.value, result)
        repo.add(payment)
        return outcome
