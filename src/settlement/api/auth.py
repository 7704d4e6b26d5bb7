"""Caller authorisation for settlement endpoints.

ROP authenticates with a shared token in ``X-Settlement-Token``. When no
token is configured (development and test) every caller is allowed.
"""

import hmac

import structlog
from fastapi import Header, HTTPException

from settlement.config import get_settings

logger = structlog.get_logger(__name__)


async def authorize_caller(x_settlement_token: str | None = Header(default=None)) -> None:
    expected = get_settings().api_token
    if expected is None:
        return
    if x_settlement_token is None or not hmac.compare_digest(x_settlement_token, expected):
        logger.warning("Rejected settlement caller", token_present=x_settlement_token is not None)
        raise HTTPException(status_code=403, detail="Caller may not update this order")
