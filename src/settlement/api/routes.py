"""FastAPI routes for ROP settlement calls."""

from fastapi import APIRouter, Depends, HTTPException

from settlement import reconciliation
from settlement.api.auth import authorize_caller
from settlement.api.schemas import (
    AddPackagesRequest,
    AddRefundRequest,
    AdvisoryOptions,
    ConfigureGatewayRequest,
    GatewayConfigResponse,
    MarkCompleteRequest,
    SettlementFlagsSchema,
    SettlementResultResponse,
)
from settlement.config import get_settings
from settlement.gateway import get_gateway
from settlement.gateway.fake_adapter import FakeGateway
from settlement.payment.settlement import SettlementFlags

settlement_router = APIRouter(
    prefix="/retailops/settlement",
    tags=["settlement"],
    dependencies=[Depends(authorize_caller)],
)


def _options(body: AdvisoryOptions) -> reconciliation.SettlementOptions:
    return reconciliation.SettlementOptions(
        use_any_method=body.use_any_method,
        partial_ship_name=body.partial_ship_name,
        no_auto_shipping_methods=body.no_auto_shipping_methods,
    )


def _flags(body: SettlementFlagsSchema) -> SettlementFlags:
    return SettlementFlags(
        ok_capture=body.ok_capture,
        ok_partial_capture=body.ok_partial_capture,
        ok_void=body.ok_void,
        ok_refund=body.ok_refund,
    )


@settlement_router.post("/add_packages")
async def add_packages(body: AddPackagesRequest) -> dict:
    """Record packages ROP shipped for an order."""
    reconciliation.add_packages(
        body.order_refnum,
        [package.to_package() for package in body.packages],
        options=_options(body),
    )
    return {}


@settlement_router.post("/mark_complete", response_model=SettlementResultResponse)
async def mark_complete(body: MarkCompleteRequest) -> SettlementResultResponse:
    """Finalize shipments for an order, then settle its payments."""
    result = reconciliation.mark_complete(body.order_refnum, flags=_flags(body), options=_options(body))
    return SettlementResultResponse(**result)


@settlement_router.post("/add_refund", response_model=SettlementResultResponse)
async def add_refund(body: AddRefundRequest) -> SettlementResultResponse:
    """Book a refund ROP issued, then settle the order's payments."""
    result = reconciliation.add_refund(
        body.order_refnum,
        body.refund_amount,
        refund_id=body.refund_id,
        flags=_flags(body),
        options=_options(body),
    )
    return SettlementResultResponse(**result)


@settlement_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if get_settings().is_production:
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    if body.supports_partial_capture is not None:
        gateway.supports_partial_capture = body.supports_partial_capture
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
        supports_partial_capture=gateway.supports_partial_capture,
    )
