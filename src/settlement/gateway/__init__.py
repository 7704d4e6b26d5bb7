"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations. The
adapter is picked by the PAYMENT_GATEWAY setting; only the fake adapter
ships today.
"""

from settlement.config import get_settings
from settlement.exceptions import ConfigurationError
from settlement.gateway.fake_adapter import FakeGateway
from settlement.gateway.port import PaymentGateway

_ADAPTERS = {"fake": FakeGateway}

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building the configured one on first use."""
    global _current_gateway
    if _current_gateway is None:
        name = get_settings().payment_gateway
        try:
            _current_gateway = _ADAPTERS[name]()
        except KeyError:
            raise ConfigurationError(f"Unknown payment gateway {name!r}") from None
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
