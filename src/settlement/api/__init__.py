"""Settlement API: FastAPI router and error handlers."""

from settlement.api.errors import register_error_handlers
from settlement.api.routes import settlement_router

__all__ = ["register_error_handlers", "settlement_router"]
