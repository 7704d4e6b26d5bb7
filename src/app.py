"""Settlement FastAPI application.

Web server for the calls ROP makes when it has shipped, finished or
refunded an order. Commands are processed synchronously; every ROP call
runs inside the settlement domain's context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from settlement.api import register_error_handlers, settlement_router
from settlement.config import get_settings
from settlement.domain import settlement

# Initialized at import time so every uvicorn worker shares one registry.
settlement.init()

ROP_PREFIX = "/retailops"


def create_app() -> FastAPI:
    app = FastAPI(
        title="ROP Settlement API",
        description="Reconciles ROP fulfillment, refunds and payments with local orders",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the settlement domain context for ROP calls."""
        if not request.url.path.startswith(ROP_PREFIX):
            # Health check, docs, etc.
            return await call_next(request)
        with settlement.domain_context():
            return await call_next(request)

    app.include_router(settlement_router)
    register_error_handlers(app)

    @app.get("/health")
    async def health():
        settings = get_settings()
        return JSONResponse(
            content={
                "status": "ok",
                "domain": settlement.name,
                "environment": settings.environment,
                "payment_gateway": settings.payment_gateway,
            }
        )

    return app


app = create_app()
