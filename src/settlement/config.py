"""Runtime settings for the settlement domain, read from the environment.

Settings are loaded once and cached; tests that change environment
variables call reset_settings() afterwards.
"""

import os
from dataclasses import dataclass

DEFAULT_SHIPPING_LABEL = "Standard Shipping"
DEFAULT_PARTIAL_SHIP_NAME = "Partially shipped"


@dataclass(frozen=True)
class Settings:
    environment: str
    api_token: str | None
    cost_model: str
    short_ship_valuation: str
    shipping_label: str
    partial_ship_name: str
    payment_gateway: str

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


_current_settings: Settings | None = None


def _load_settings() -> Settings:
    return Settings(
        environment=os.environ.get("PROTEAN_ENV", "development"),
        api_token=os.environ.get("SETTLEMENT_API_TOKEN") or None,
        cost_model=os.environ.get("SETTLEMENT_COST_MODEL", "field"),
        short_ship_valuation=os.environ.get("SETTLEMENT_SHORT_SHIP_VALUATION", "unresolved"),
        shipping_label=os.environ.get("SETTLEMENT_SHIPPING_LABEL", DEFAULT_SHIPPING_LABEL),
        partial_ship_name=os.environ.get("SETTLEMENT_PARTIAL_SHIP_NAME", DEFAULT_PARTIAL_SHIP_NAME),
        payment_gateway=os.environ.get("PAYMENT_GATEWAY", "fake"),
    )


def get_settings() -> Settings:
    """Return the current settings, loading them from the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = _load_settings()
    return _current_settings


def reset_settings() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    global _current_settings
    _current_settings = None
