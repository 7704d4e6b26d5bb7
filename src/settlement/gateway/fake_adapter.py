"""Configurable fake payment gateway for development and testing.

No external calls are made. The gateway can be told to fail every action,
or only the actions against particular transactions, which is how tests
exercise one payment failing while the others settle.
"""

from uuid import uuid4

from settlement.gateway.port import GatewayResult, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, supports_partial_capture: bool = True) -> None:
        self.supports_partial_capture = supports_partial_capture
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway declined"
        self.failing_transactions: dict[str, str] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway declined") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def fail_for(self, transaction_id: str, reason: str = "Gateway declined") -> None:
        """Fail every action against one transaction."""
        self.failing_transactions[transaction_id] = reason

    def _result(self, transaction_id: str, status: str) -> GatewayResult:
        if transaction_id in self.failing_transactions:
            return GatewayResult(
                success=False,
                gateway_status="failed",
                failure_reason=self.failing_transactions[transaction_id],
            )
        if not self.should_succeed:
            return GatewayResult(success=False, gateway_status="failed", failure_reason=self.failure_reason)
        return GatewayResult(
            success=True,
            gateway_transaction_id=f"fake_txn_{uuid4().hex[:12]}",
            gateway_status=status,
        )

    def capture(self, transaction_id: str, amount: float | None = None) -> GatewayResult:
        self.calls.append({"method": "capture", "transaction_id": transaction_id, "amount": amount})
        return self._result(transaction_id, "captured")

    def void(self, transaction_id: str) -> GatewayResult:
        self.calls.append({"method": "void", "transaction_id": transaction_id})
        return self._result(transaction_id, "voided")

    def credit(self, transaction_id: str, amount: float) -> GatewayResult:
        self.calls.append({"method": "credit", "transaction_id": transaction_id, "amount": amount})
        return self._result(transaction_id, "credited")
