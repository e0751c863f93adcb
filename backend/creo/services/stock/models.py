from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from creo.models.enums import InvalidReason, LookupErrorCode, OrderLineStatus


@dataclass(frozen=True)
class ParsedReference:
    raw: str
    line_number: int
    site: str | None = None
    external_id: str | None = None
    source_url: str | None = None
    is_valid: bool = False
    invalid_reason: InvalidReason | None = None
    detail: str | None = None


@dataclass(frozen=True)
class ItemMetadata:
    title: str | None
    thumbnail_url: str | None
    price: Decimal
    currency_unit: str | None = None
    available: bool = True


@dataclass(frozen=True)
class ResolvedItem:
    input: ParsedReference
    position: int
    is_success: bool
    resolved_at: datetime
    metadata: ItemMetadata | None = None
    error: LookupErrorCode | None = None
    error_message: str | None = None

    @property
    def price(self) -> Decimal:
        if self.is_success and self.metadata is not None:
            return self.metadata.price
        return Decimal('0')


@dataclass(frozen=True)
class AccountBalance:
    amount: Decimal
    currency_unit: str


@dataclass(frozen=True)
class OrderLine:
    site: str
    id: str
    price: Decimal


@dataclass(frozen=True)
class BulkOrderRequest:
    user_id: str
    items: list[OrderLine]

    def to_payload(self) -> dict[str, Any]:
        return {
            'userId': self.user_id,
            'items': [{'site': line.site, 'id': line.id, 'price': str(line.price)} for line in self.items],
        }


@dataclass(frozen=True)
class OrderItemResult:
    site: str | None
    id: str | None
    status: OrderLineStatus
    message: str | None = None


@dataclass
class OrderConfirmation:
    order_id: str
    per_item_status: list[OrderItemResult] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def rejected(self) -> list[OrderItemResult]:
        return [r for r in self.per_item_status if r.status in {OrderLineStatus.REJECTED, OrderLineStatus.FAILED}]

    @property
    def is_partial(self) -> bool:
        return bool(self.rejected) and len(self.rejected) < len(self.per_item_status)
