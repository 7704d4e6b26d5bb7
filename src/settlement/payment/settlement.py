"""Payment settlement.

Runs after an order mutation has committed and walks the order's payments
through four phases, each enabled by its own caller flag:

1. capture: while the balance is positive, capture pending payments that
   fit inside it;
2. partial capture: while the balance is positive, capture the balance
   from a pending payment larger than it;
3. void: while nothing is owed, void pending payments;
4. refund: while the order is overpaid, credit completed payments.

The balance is re-read after every action. Within a phase a payment is
attempted at most once, whether the attempt succeeds or fails, so every
phase ends after at most one action per payment. A declined action is
reported in ``errors`` and never stops the remaining payments.
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from settlement.exceptions import GatewayError
from settlement.gateway import get_gateway
from settlement.order.order import Order
from settlement.payment.actions import CapturePayment, CreditPayment, VoidPayment
from settlement.payment.capture import capture_strategy_for
from settlement.payment.payment import Payment, PaymentAction

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SettlementFlags:
    ok_capture: bool = False
    ok_partial_capture: bool = False
    ok_void: bool = False
    ok_refund: bool = False


def outstanding_balance(order_number: str) -> float:
    """Order total minus what completed payments currently hold."""
    order = current_domain.repository_for(Order).get_by_number(order_number)
    payments = current_domain.repository_for(Payment).find_by_order(order_number)
    held = sum(p.net_amount() for p in payments if p.is_completed())
    return round(order.total() - held, 2)


def payment_status(payment: Payment) -> dict:
    return {
        "id": str(payment.id),
        "state": payment.state,
        "amount": payment.amount,
        "credit": abs(payment.credited_total or 0.0),
    }


class PaymentSettlement:
    """Settles one order's payments against its outstanding balance."""

    def __init__(self, order_number: str, flags: SettlementFlags) -> None:
        self.order_number = order_number
        self.flags = flags
        self.errors: list[str] = []

    def _payments(self) -> list[Payment]:
        return current_domain.repository_for(Payment).find_by_order(self.order_number)

    def run(self) -> dict:
        if self.flags.ok_capture:
            self._run_phase(
                "capture",
                lambda balance: balance > 0,
                lambda p, balance: p.is_pending() and 0 < p.amount <= balance,
                self._capture,
            )
        if self.flags.ok_partial_capture:
            self._run_phase(
                "partial_capture",
                lambda balance: balance > 0,
                lambda p, balance: p.is_pending() and p.amount > 0 and p.amount > balance,
                self._partial_capture,
            )
        if self.flags.ok_void:
            self._run_phase(
                "void",
                lambda balance: balance <= 0,
                lambda p, balance: p.is_pending() and p.amount > 0,
                self._void,
            )
        if self.flags.ok_refund:
            self._run_phase(
                "refund",
                lambda balance: balance < 0,
                lambda p, balance: p.can_credit(),
                self._refund,
            )

        status = [payment_status(p) for p in self._payments() if p.amount]
        return {"errors": list(self.errors), "status": status}

    def _run_phase(
        self,
        phase: str,
        applies: Callable[[float], bool],
        eligible: Callable[[Payment, float], bool],
        action: Callable[[Payment, float], None],
    ) -> None:
        attempted: set[str] = set()
        while True:
            balance = outstanding_balance(self.order_number)
            if not applies(balance):
                break

            payment = next(
                (p for p in self._payments() if str(p.id) not in attempted and eligible(p, balance)),
                None,
            )
            if payment is None:
                break

            attempted.add(str(payment.id))
            logger.info(
                "Settling payment",
                order_number=self.order_number,
                payment_id=str(payment.id),
                phase=phase,
                balance=balance,
            )
            self._rescue_gateway_error(action, payment, balance)

    def _rescue_gateway_error(self, action, payment: Payment, balance: float) -> None:
        try:
            action(payment, balance)
        except GatewayError as exc:
            logger.warning(
                "Payment settlement action failed",
                order_number=self.order_number,
                payment_id=exc.payment_id,
                action=exc.action,
                error=str(exc),
            )
            self.errors.append(str(exc))

    @staticmethod
    def _check(outcome: dict, payment: Payment, action: str) -> None:
        if not outcome["success"]:
            raise GatewayError(
                f"Payment {payment.id}: {action} failed: {outcome['failure_reason']}",
                payment_id=str(payment.id),
                action=action,
            )

    def _capture(self, payment: Payment, balance: float) -> None:
        outcome = current_domain.process(CapturePayment(payment_id=str(payment.id)), asynchronous=False)
        self._check(outcome, payment, PaymentAction.CAPTURE.value)

    def _partial_capture(self, payment: Payment, balance: float) -> None:
        outcome = capture_strategy_for(get_gateway()).capture(payment, balance)
        self._check(outcome, payment, PaymentAction.CAPTURE.value)

    def _void(self, payment: Payment, balance: float) -> None:
        outcome = current_domain.process(VoidPayment(payment_id=str(payment.id)), asynchronous=False)
        self._check(outcome, payment, PaymentAction.VOID.value)

    def _refund(self, payment: Payment, balance: float) -> None:
        amount = round(min(payment.credit_allowance(), -balance), 2)
        outcome = current_domain.process(
            CreditPayment(payment_id=str(payment.id), amount=amount),
            asynchronous=False,
        )
        self._check(outcome, payment, PaymentAction.CREDIT.value)
