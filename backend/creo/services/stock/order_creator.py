from typing import Any

from creo.core.logging import get_logger
from creo.models.enums import LookupErrorCode, OrderLineStatus
from creo.services.stock.client import StockApiClient, StockApiError
from creo.services.stock.models import BulkOrderRequest, OrderConfirmation, OrderItemResult, OrderLine, ResolvedItem

logger = get_logger('stock.orders')

_STATUS_ALIASES = {
    'ok': OrderLineStatus.ACCEPTED,
    'success': OrderLineStatus.ACCEPTED,
    'accepted': OrderLineStatus.ACCEPTED,
    'created': OrderLineStatus.ACCEPTED,
    'ready': OrderLineStatus.ACCEPTED,
    'completed': OrderLineStatus.ACCEPTED,
    'pending': OrderLineStatus.PENDING,
    'queued': OrderLineStatus.PENDING,
    'processing': OrderLineStatus.PROCESSING,
    'rejected': OrderLineStatus.REJECTED,
    'insufficient_balance': OrderLineStatus.REJECTED,
    'failed': OrderLineStatus.FAILED,
    'error': OrderLineStatus.FAILED,
}


class EmptyOrderError(ValueError):
    pass


class OrderSubmissionError(Exception):
    def __init__(self, message: str, code: LookupErrorCode | None = None, status_code: int | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details


def build_order_request(user_id: str, items: list[ResolvedItem]) -> BulkOrderRequest:
    if not items:
        raise EmptyOrderError('No valid items to order')

    lines: list[OrderLine] = []
    for item in items:
        if not item.is_success or item.metadata is None:
            raise ValueError(f'Item on line {item.input.line_number} was not resolved and cannot be ordered')
        lines.append(OrderLine(site=item.input.site, id=item.input.external_id, price=item.metadata.price))
    return BulkOrderRequest(user_id=user_id, items=lines)


def parse_confirmation(payload: dict[str, Any]) -> OrderConfirmation:
    order_id = payload.get('orderId') or payload.get('order_id') or payload.get('task_id')
    if not order_id:
        message = payload.get('message') or payload.get('error') or 'Order service returned no order id'
        raise OrderSubmissionError(str(message), code=LookupErrorCode.MALFORMED_RESPONSE, details=payload)

    results = []
    for entry in payload.get('perItemStatus') or payload.get('per_item_status') or []:
        if not isinstance(entry, dict):
            continue
        raw_status = str(entry.get('status', '')).strip().lower()
        results.append(
            OrderItemResult(
                site=entry.get('site'),
                id=str(entry['id']) if entry.get('id') is not None else None,
                status=_STATUS_ALIASES.get(raw_status, OrderLineStatus.UNKNOWN),
                message=entry.get('message') or entry.get('error'),
            )
        )
    return OrderConfirmation(order_id=str(order_id), per_item_status=results, raw=payload)


class BulkOrderCreator:
    def __init__(self, client: StockApiClient) -> None:
        self.client = client

    def create_bulk_order(self, user_id: str, items: list[ResolvedItem]) -> OrderConfirmation:
        request = build_order_request(user_id, items)
        logger.info('Submitting bulk order for user %s with %s item(s)', user_id, len(request.items))

        try:
            payload = self.client.create_bulk_order(request)
        except StockApiError as exc:
            logger.warning('Bulk order submission failed for user %s: %s', user_id, exc.message)
            raise OrderSubmissionError(exc.message, code=exc.code, status_code=exc.status_code, details=exc.details) from exc

        confirmation = parse_confirmation(payload)
        if confirmation.rejected:
            logger.warning(
                'Order %s: %s of %s item(s) rejected',
                confirmation.order_id,
                len(confirmation.rejected),
                len(confirmation.per_item_status),
            )
        else:
            logger.info('Order %s accepted', confirmation.order_id)
        return confirmation
