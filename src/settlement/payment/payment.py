"""Payment aggregate (CQRS): a checkout-time authorisation against an order.

Payments are their own transactional boundary: settlement acts on them one
at a time, after the order mutation has committed, so one payment's
gateway failure never rolls back another's success or the order itself.

State Machine:
    CHECKOUT → PENDING | INVALID
    PENDING → PROCESSING → COMPLETED
    {PENDING, PROCESSING} → FAILED | VOID

Credits do not change the state of a completed payment; they accumulate
in ``credited_total`` up to the captured amount.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String

from settlement.domain import settlement
from settlement.payment.events import (
    PaymentActionFailed,
    PaymentCaptured,
    PaymentCredited,
    PaymentVoided,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PaymentState(Enum):
    CHECKOUT = "checkout"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    VOID = "void"
    INVALID = "invalid"


class PaymentAction(Enum):
    CAPTURE = "capture"
    VOID = "void"
    CREDIT = "credit"


_VALID_TRANSITIONS = {
    PaymentState.CHECKOUT: {PaymentState.PENDING, PaymentState.INVALID},
    PaymentState.PENDING: {
        PaymentState.PROCESSING,
        PaymentState.COMPLETED,
        PaymentState.FAILED,
        PaymentState.VOID,
    },
    PaymentState.PROCESSING: {PaymentState.COMPLETED, PaymentState.FAILED, PaymentState.VOID},
    PaymentState.COMPLETED: set(),
    PaymentState.FAILED: set(),  # Terminal
    PaymentState.VOID: set(),  # Terminal
    PaymentState.INVALID: set(),  # Terminal
}

# A failed credit leaves the captured payment as it was.
_FAILING_ACTIONS = {PaymentAction.CAPTURE.value, PaymentAction.VOID.value}


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@settlement.aggregate
class Payment:
    order_id = Identifier(required=True)
    order_number = String(required=True, max_length=50)
    amount = Float(required=True)
    state = String(
        max_length=50,
        choices=PaymentState,
        default=PaymentState.PENDING.value,
    )
    response_code = String(max_length=255)  # gateway transaction id of the authorisation
    credited_total = Float(default=0.0)
    failure_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        order_id: str,
        order_number: str,
        amount: float,
        response_code: str | None = None,
        state: str = PaymentState.PENDING.value,
    ):
        """Record a checkout-time payment for an order."""
        now = datetime.now(UTC)
        return cls(
            order_id=order_id,
            order_number=order_number,
            amount=round(amount, 2),
            state=state,
            response_code=response_code,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def transaction_id(self) -> str:
        return self.response_code or str(self.id)

    def is_pending(self) -> bool:
        return self.state == PaymentState.PENDING.value

    def is_completed(self) -> bool:
        return self.state == PaymentState.COMPLETED.value

    def credit_allowance(self) -> float:
        return round((self.amount or 0.0) - (self.credited_total or 0.0), 2)

    def can_credit(self) -> bool:
        return self.is_completed() and self.credit_allowance() > 0

    def net_amount(self) -> float:
        """What this payment contributes towards the order total once captured."""
        return self.credit_allowance()

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: PaymentState) -> None:
        current = PaymentState(self.state)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"state": [f"Cannot transition from {current.value} to {target.value}"]})

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def adjust_amount(self, amount: float) -> None:
        """Shrink an uncaptured payment so a plain capture takes only ``amount``."""
        if not self.is_pending():
            raise ValidationError({"amount": ["Only a pending payment's amount can be adjusted"]})
        if amount <= 0:
            raise ValidationError({"amount": ["Payment amount must be positive"]})
        self.amount = round(amount, 2)
        self.updated_at = datetime.now(UTC)

    def record_capture(self, amount: float, gateway_transaction_id: str | None = None) -> None:
        self._assert_can_transition(PaymentState.COMPLETED)
        if amount <= 0 or round(amount, 2) > round(self.amount, 2):
            raise ValidationError({"amount": [f"Cannot capture {amount} of a {self.amount} payment"]})

        now = datetime.now(UTC)
        self.amount = round(amount, 2)
        self.state = PaymentState.COMPLETED.value
        self.failure_reason = None
        self.updated_at = now
        self.raise_(
            PaymentCaptured(
                payment_id=str(self.id),
                order_number=self.order_number,
                amount=self.amount,
                gateway_transaction_id=gateway_transaction_id,
                captured_at=now,
            )
        )

    def record_void(self, gateway_transaction_id: str | None = None) -> None:
        self._assert_can_transition(PaymentState.VOID)

        now = datetime.now(UTC)
        self.state = PaymentState.VOID.value
        self.updated_at = now
        self.raise_(
            PaymentVoided(
                payment_id=str(self.id),
                order_number=self.order_number,
                amount=self.amount,
                gateway_transaction_id=gateway_transaction_id,
                voided_at=now,
            )
        )

    def record_credit(self, amount: float, gateway_transaction_id: str | None = None) -> None:
        if not self.can_credit():
            raise ValidationError({"state": [f"Payment in state {self.state} cannot be credited"]})
        if amount <= 0 or round(amount, 2) > self.credit_allowance():
            raise ValidationError(
                {"amount": [f"Credit {amount} exceeds the allowance of {self.credit_allowance()}"]}
            )

        now = datetime.now(UTC)
        self.credited_total = round((self.credited_total or 0.0) + amount, 2)
        self.updated_at = now
        self.raise_(
            PaymentCredited(
                payment_id=str(self.id),
                order_number=self.order_number,
                amount=round(amount, 2),
                credited_total=self.credited_total,
                gateway_transaction_id=gateway_transaction_id,
                credited_at=now,
            )
        )

    def record_failure(self, action: str, reason: str) -> None:
        """Remember a declined gateway action; captures and voids fail the payment."""
        now = datetime.now(UTC)
        if action in _FAILING_ACTIONS:
            self._assert_can_transition(PaymentState.FAILED)
            self.state = PaymentState.FAILED.value
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(
            PaymentActionFailed(
                payment_id=str(self.id),
                order_number=self.order_number,
                action=action,
                reason=reason,
                failed_at=now,
            )
        )


@settlement.repository(part_of=Payment)
class PaymentRepository:
    def find_by_order(self, order_number: str) -> list[Payment]:
        """All payments recorded against an order, oldest first."""
        payments = self._dao.query.filter(order_number=order_number).all().items
        return sorted(payments, key=lambda p: (p.created_at, str(p.id)))
