from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from creo.models.enums import GateReason, InvalidReason, ItemStatus, LookupErrorCode, OrderLineStatus


class BatchCreate(BaseModel):
    user_id: str = Field(min_length=1)
    raw_text: str = ''


class BatchInputUpdate(BaseModel):
    raw_text: str


class ParsedReferenceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    raw: str
    line_number: int
    site: str | None
    external_id: str | None
    source_url: str | None
    is_valid: bool
    invalid_reason: InvalidReason | None
    detail: str | None


class ItemMetadataOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str | None
    thumbnail_url: str | None
    price: Decimal
    currency_unit: str | None
    available: bool


class ResolvedItemOut(BaseModel):
    position: int
    line_number: int
    site: str | None
    external_id: str | None
    status: ItemStatus
    is_success: bool = False
    metadata: ItemMetadataOut | None = None
    error: LookupErrorCode | None = None
    error_message: str | None = None
    resolved_at: datetime | None = None


class BatchStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    valid: int
    invalid: int
    site_breakdown: dict[str, int]
    pending: int
    in_flight: int
    success: int
    errors: int
    total_cost: Decimal


class BatchStateOut(BaseModel):
    session_id: str
    user_id: str
    raw_text: str
    generation: int | None
    is_settled: bool
    references: list[ParsedReferenceOut]
    items: list[ResolvedItemOut]
    stats: BatchStatsOut


class CostSummaryOut(BaseModel):
    total_cost: Decimal
    totals_by_currency: dict[str, Decimal]
    eligible_positions: list[int]
    balance: Decimal | None
    balance_currency_unit: str | None
    affordable: bool
    reason: GateReason
    shortfall: Decimal


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    site: str | None
    id: str | None
    status: OrderLineStatus
    message: str | None


class OrderConfirmationOut(BaseModel):
    order_id: str
    is_partial: bool
    per_item_status: list[OrderItemOut]
