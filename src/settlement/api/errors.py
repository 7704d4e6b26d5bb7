"""HTTP mapping for settlement errors.

Protean's own handlers cover ValidationError (400) and
ObjectNotFoundError (404); the rest are settlement's.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from settlement.exceptions import ConfigurationError, GatewayError

logger = structlog.get_logger(__name__)


async def _configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.warning("Settlement configuration error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=422, content={"error": str(exc)})


async def _not_implemented(request: Request, exc: NotImplementedError) -> JSONResponse:
    logger.error("Settlement operation not implemented", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=501, content={"error": str(exc)})


async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    logger.error("Unhandled gateway error", path=request.url.path, payment_id=exc.payment_id, error=str(exc))
    return JSONResponse(status_code=502, content={"error": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    """Register every settlement error handler on ``app``."""
    register_exception_handlers(app)
    app.add_exception_handler(ConfigurationError, _configuration_error)
    app.add_exception_handler(NotImplementedError, _not_implemented)
    app.add_exception_handler(GatewayError, _gateway_error)
