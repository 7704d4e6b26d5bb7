"""Pydantic request/response schemas for the settlement API.

These are the wire contracts ROP calls with, kept separate from internal
Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class PackageContentSchema(BaseModel):
    line_item_id: str
    quantity: int = Field(ge=0)


class PackageSchema(BaseModel):
    """One parcel ROP shipped. ``from`` names the stock location it left."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    shipcode: str
    tracking: str | None = None
    contents: list[PackageContentSchema] = Field(default_factory=list)
    from_location: str = Field(alias="from")
    date: datetime | None = None

    def to_package(self) -> dict:
        return {
            "id": self.id,
            "shipcode": self.shipcode,
            "tracking": self.tracking,
            "contents": [c.model_dump() for c in self.contents],
            "from": self.from_location,
            "date": self.date.isoformat() if self.date else None,
        }


class AdvisoryOptions(BaseModel):
    use_any_method: bool = False
    partial_ship_name: str | None = None
    no_auto_shipping_methods: bool = False


class SettlementFlagsSchema(AdvisoryOptions):
    ok_capture: bool = False
    ok_partial_capture: bool = False
    ok_void: bool = False
    ok_refund: bool = False


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class AddPackagesRequest(AdvisoryOptions):
    order_refnum: str
    packages: list[PackageSchema] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_refnum": "R123456789",
                    "packages": [
                        {
                            "id": 1001,
                            "shipcode": "UPS Ground",
                            "tracking": "1Z999AA10123456784",
                            "from": "Main Warehouse",
                            "date": "2024-03-01T15:30:00+00:00",
                            "contents": [{"line_item_id": "li-1", "quantity": 2}],
                        }
                    ],
                }
            ]
        }
    }


class MarkCompleteRequest(SettlementFlagsSchema):
    order_refnum: str


class AddRefundRequest(SettlementFlagsSchema):
    order_refnum: str
    refund_amount: float = Field(gt=0)
    refund_id: str | None = None


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Gateway declined"
    supports_partial_capture: bool | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class PaymentStatusResponse(BaseModel):
    id: str
    state: str
    amount: float
    credit: float


class SettlementResultResponse(BaseModel):
    errors: list[str] = Field(default_factory=list)
    status: list[PaymentStatusResponse] = Field(default_factory=list)


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
    supports_partial_capture: bool
