from datetime import datetime, timezone
from decimal import Decimal

import pytest

from creo.models.enums import LookupErrorCode, OrderLineStatus
from creo.services.stock.client import StockApiError
from creo.services.stock.models import ItemMetadata, ParsedReference, ResolvedItem
from creo.services.stock.order_creator import (
    BulkOrderCreator,
    EmptyOrderError,
    OrderSubmissionError,
    build_order_request,
    parse_confirmation,
)


def _item(external_id: str, price: str, success: bool = True) -> ResolvedItem:
    return ResolvedItem(
        input=ParsedReference(
            raw=f'shutterstock:{external_id}',
            line_number=1,
            site='shutterstock',
            external_id=external_id,
            is_valid=True,
        ),
        position=0,
        is_success=success,
        resolved_at=datetime.now(timezone.utc),
        metadata=ItemMetadata(title=None, thumbnail_url=None, price=Decimal(price)) if success else None,
        error=None if success else LookupErrorCode.NOT_FOUND,
    )


class FakeOrderClient:
    def __init__(self, payload=None, error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.requests = []

    def create_bulk_order(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.payload


def test_build_order_request_copies_site_id_and_price():
    request = build_order_request('u1', [_item('1', '10'), _item('2', '2.5')])

    assert request.to_payload() == {
        'userId': 'u1',
        'items': [
            {'site': 'shutterstock', 'id': '1', 'price': '10'},
            {'site': 'shutterstock', 'id': '2', 'price': '2.5'},
        ],
    }


def test_build_order_request_refuses_empty_and_unresolved_items():
    with pytest.raises(EmptyOrderError):
        build_order_request('u1', [])
    with pytest.raises(ValueError):
        build_order_request('u1', [_item('1', '0', success=False)])


def test_parse_confirmation_maps_item_statuses():
    confirmation = parse_confirmation(
        {
            'orderId': 77,
            'perItemStatus': [
                {'site': 'shutterstock', 'id': 1, 'status': 'OK'},
                {'site': 'shutterstock', 'id': 2, 'status': 'insufficient_balance', 'message': 'no funds'},
                {'site': 'shutterstock', 'id': 3, 'status': 'weird'},
            ],
        }
    )

    assert confirmation.order_id == '77'
    assert [r.status for r in confirmation.per_item_status] == [
        OrderLineStatus.ACCEPTED,
        OrderLineStatus.REJECTED,
        OrderLineStatus.UNKNOWN,
    ]
    assert confirmation.per_item_status[1].message == 'no funds'
    assert confirmation.is_partial


def test_parse_confirmation_requires_order_id():
    with pytest.raises(OrderSubmissionError) as exc_info:
        parse_confirmation({'message': 'Balance too low'})
    assert exc_info.value.message == 'Balance too low'


def test_bulk_order_creator_submits_and_parses():
    client = FakeOrderClient(payload={'orderId': 'o-1', 'perItemStatus': [{'site': 'shutterstock', 'id': '1', 'status': 'accepted'}]})

    confirmation = BulkOrderCreator(client).create_bulk_order('u1', [_item('1', '10')])

    assert confirmation.order_id == 'o-1'
    assert not confirmation.is_partial
    assert len(client.requests) == 1


def test_bulk_order_creator_wraps_service_errors():
    client = FakeOrderClient(error=StockApiError('Balance too low', code=LookupErrorCode.PROVIDER_ERROR, status_code=402))

    with pytest.raises(OrderSubmissionError) as exc_info:
        BulkOrderCreator(client).create_bulk_order('u1', [_item('1', '10')])

    assert exc_info.value.status_code == 402
    assert exc_info.value.code == LookupErrorCode.PROVIDER_ERROR
    assert len(client.requests) == 1
