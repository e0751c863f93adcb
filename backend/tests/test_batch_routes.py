from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from creo.api.deps import get_catalog_source, get_sessions, get_stock_client
from creo.main import app
from creo.models.enums import LookupErrorCode
from creo.services.session_store import BatchSessionRegistry
from creo.services.stock.catalog import CatalogSource
from creo.services.stock.client import StockApiError
from creo.services.stock.models import AccountBalance, ItemMetadata

PROVIDERS = {
    'shutterstock': {'active': True, 'price': 10, 'currencyUnit': 'points'},
    'istock': {'active': True, 'price': 12, 'currencyUnit': 'points'},
    'freepik': {'active': False},
}
SCENARIO = 'shutterstock:123\ninvalidline\nistock:456'


class _FakeStockClient:
    def __init__(self):
        self.balance = Decimal('100')
        self.order_error: StockApiError | None = None
        self.orders = []

    def lookup(self, site, external_id, url=None, fallback_price=None, fallback_currency=None):
        if external_id == '456':
            raise StockApiError('Item not found', code=LookupErrorCode.NOT_FOUND, status_code=404)
        return ItemMetadata(title='Lake', thumbnail_url='https://img/1.jpg', price=Decimal('10'), currency_unit='points')

    def get_balance(self, user_id):
        return AccountBalance(amount=self.balance, currency_unit='points')

    def create_bulk_order(self, request):
        if self.order_error is not None:
            raise self.order_error
        self.orders.append(request)
        return {'orderId': 'order-1', 'perItemStatus': [{'site': line.site, 'id': line.id, 'status': 'ok'} for line in request.items]}


def _failing_fetch():
    raise RuntimeError('provider service down')


@pytest.fixture
def stock_client():
    return _FakeStockClient()


@pytest.fixture
def api(stock_client):
    sessions = BatchSessionRegistry()
    source = CatalogSource(lambda: PROVIDERS, ttl_seconds=3600)
    app.dependency_overrides[get_stock_client] = lambda: stock_client
    app.dependency_overrides[get_catalog_source] = lambda: source
    app.dependency_overrides[get_sessions] = lambda: sessions
    yield TestClient(app)
    app.dependency_overrides.clear()
    sessions.close_all()


def _create(api, raw_text=SCENARIO) -> str:
    response = api.post('/api/batches/', json={'user_id': 'u1', 'raw_text': raw_text})
    assert response.status_code == 201
    return response.json()['session_id']


def _settled(api, session_id) -> dict:
    body = api.get(f'/api/batches/{session_id}/', params={'wait': 5}).json()
    assert body['is_settled']
    return body


def test_list_providers(api):
    response = api.get('/api/providers/')

    assert response.status_code == 200
    providers = {p['name']: p for p in response.json()}
    assert set(providers) == {'freepik', 'istock', 'shutterstock'}
    assert providers['shutterstock']['active']
    assert not providers['freepik']['active']


def test_list_providers_without_catalog_returns_503(api):
    app.dependency_overrides[get_catalog_source] = lambda: CatalogSource(_failing_fetch)

    assert api.get('/api/providers/').status_code == 503


def test_batch_flow_from_input_to_order(api, stock_client):
    session_id = _create(api)
    body = _settled(api, session_id)

    assert [ref['is_valid'] for ref in body['references']] == [True, False, True]
    assert body['references'][1]['invalid_reason'] == 'unrecognized format'
    assert [item['status'] for item in body['items']] == ['settled', 'settled']
    assert body['items'][0]['is_success']
    assert body['items'][1]['error'] == 'not found'
    assert body['stats']['total'] == 3
    assert Decimal(body['stats']['total_cost']) == Decimal('10')

    quote = api.get(f'/api/batches/{session_id}/quote/').json()
    assert quote['affordable']
    assert quote['eligible_positions'] == [0]

    order = api.post(f'/api/batches/{session_id}/order/')
    assert order.status_code == 200
    assert order.json()['order_id'] == 'order-1'
    assert order.json()['per_item_status'][0]['status'] == 'accepted'
    assert len(stock_client.orders) == 1


def test_input_update_and_line_removal(api):
    session_id = _create(api, raw_text='')

    response = api.put(f'/api/batches/{session_id}/input/', json={'raw_text': 'shutterstock:1\nfreepik:2'})
    assert response.status_code == 200
    assert response.json()['references'][1]['invalid_reason'] == 'provider inactive'

    response = api.delete(f'/api/batches/{session_id}/lines/2/')
    assert response.status_code == 200
    assert response.json()['raw_text'] == 'shutterstock:1'

    assert api.delete(f'/api/batches/{session_id}/lines/7/').status_code == 404


def test_retry_item_status_codes(api):
    session_id = _create(api)
    _settled(api, session_id)

    assert api.post(f'/api/batches/{session_id}/items/9/retry/').status_code == 404
    assert api.post(f'/api/batches/{session_id}/items/0/retry/').status_code == 409
    assert api.post(f'/api/batches/{session_id}/items/1/retry/').status_code == 200


def test_order_refused_when_balance_is_short(api, stock_client):
    stock_client.balance = Decimal('5')
    session_id = _create(api)
    _settled(api, session_id)

    assert api.get(f'/api/batches/{session_id}/quote/').json()['reason'] == 'insufficient_balance'
    assert api.post(f'/api/batches/{session_id}/order/').status_code == 402
    assert stock_client.orders == []


def test_order_with_nothing_resolved_is_a_bad_request(api):
    session_id = _create(api, raw_text='invalidline')

    assert api.post(f'/api/batches/{session_id}/order/').status_code == 400


def test_order_submission_failure_returns_502(api, stock_client):
    stock_client.order_error = StockApiError('Service unavailable', status_code=503)
    session_id = _create(api)
    _settled(api, session_id)

    response = api.post(f'/api/batches/{session_id}/order/')

    assert response.status_code == 502
    assert response.json()['detail']['message'] == 'Service unavailable'
    assert response.json()['detail']['code'] == 'provider error'


def test_create_batch_without_catalog_returns_503(api):
    app.dependency_overrides[get_catalog_source] = lambda: CatalogSource(_failing_fetch)

    response = api.post('/api/batches/', json={'user_id': 'u1', 'raw_text': SCENARIO})
    assert response.status_code == 503


def test_closed_batch_is_gone(api):
    session_id = _create(api)

    assert api.delete(f'/api/batches/{session_id}/').status_code == 200
    assert api.get(f'/api/batches/{session_id}/').status_code == 404
    assert api.delete(f'/api/batches/{session_id}/').status_code == 404


def test_health(api):
    assert api.get('/health').json() == {'status': 'ok'}
