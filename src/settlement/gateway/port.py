"""Payment gateway port (abstract interface).

Settlement only ever acts on payments that were authorised at checkout, so
the surface is the three follow-up actions: capture, void and credit.
Adapters also declare whether they can capture less than the authorised
amount in one call.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class GatewayResult:
    """Result of a gateway action."""

    success: bool
    gateway_transaction_id: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    #: True when ``capture`` accepts an amount below the authorised one.
    supports_partial_capture: bool = False

    @abstractmethod
    def capture(self, transaction_id: str, amount: float | None = None) -> GatewayResult:
        """Capture an authorised payment, in full or (if supported) for ``amount``."""
        ...

    @abstractmethod
    def void(self, transaction_id: str) -> GatewayResult:
        """Release an authorisation without capturing it."""
        ...

    @abstractmethod
    def credit(self, transaction_id: str, amount: float) -> GatewayResult:
        """Return ``amount`` of a captured payment to the customer."""
        ...
