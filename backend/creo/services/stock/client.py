from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from creo.core.config import settings
from creo.core.logging import get_logger
from creo.models.enums import LookupErrorCode
from creo.services.stock.models import AccountBalance, BulkOrderRequest, ItemMetadata

logger = get_logger('stock.client')

_api_retry = retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(settings.api_retry_attempts),
    wait=wait_exponential(multiplier=settings.api_retry_backoff_seconds, min=1, max=15),
    reraise=True,
)

_STATUS_CODES = {
    401: LookupErrorCode.UNAUTHORIZED,
    403: LookupErrorCode.UNAUTHORIZED,
    404: LookupErrorCode.NOT_FOUND,
    408: LookupErrorCode.TIMEOUT,
    410: LookupErrorCode.NOT_FOUND,
    415: LookupErrorCode.UNSUPPORTED_FORMAT,
    422: LookupErrorCode.UNSUPPORTED_FORMAT,
    429: LookupErrorCode.RATE_LIMITED,
}


class StockApiError(Exception):
    def __init__(
        self,
        message: str,
        code: LookupErrorCode = LookupErrorCode.PROVIDER_ERROR,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details


def classify_http_error(exc: Exception) -> StockApiError:
    if isinstance(exc, StockApiError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return StockApiError('Request timed out', code=LookupErrorCode.TIMEOUT, status_code=408)
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        details = _safe_json(exc.response)
        message = _message_from(details) or f'{status_code} error from stock API'
        code = _STATUS_CODES.get(status_code, LookupErrorCode.PROVIDER_ERROR)
        return StockApiError(message, code=code, status_code=status_code, details=details)
    if isinstance(exc, httpx.TransportError):
        return StockApiError(f'Network connection failed: {exc}', code=LookupErrorCode.NETWORK_ERROR)
    if isinstance(exc, ValueError):
        return StockApiError(f'Invalid response payload: {exc}', code=LookupErrorCode.MALFORMED_RESPONSE)
    return StockApiError(str(exc) or exc.__class__.__name__)


class StockApiClient:
    """Thin wrapper over the content provider API used by the batch pipeline."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.stock_api_base_url).rstrip('/')
        self.api_key = api_key if api_key is not None else settings.stock_api_key
        self.timeout = timeout or settings.request_timeout_seconds
        self.transport = transport

    def get_providers(self) -> dict[str, dict[str, Any]]:
        try:
            payload = self._fetch_providers()
        except Exception as exc:
            raise classify_http_error(exc) from exc

        payload = _unwrap(payload)
        if isinstance(payload, dict) and isinstance(payload.get('sites'), dict):
            payload = payload['sites']
        if not isinstance(payload, dict):
            raise StockApiError('Provider catalog is not a mapping', code=LookupErrorCode.MALFORMED_RESPONSE)
        return {str(name): entry for name, entry in payload.items() if isinstance(entry, dict)}

    def lookup(
        self,
        site: str,
        external_id: str,
        url: str | None = None,
        fallback_price: Decimal | None = None,
        fallback_currency: str | None = None,
    ) -> ItemMetadata:
        params = {'url': url} if url else None
        try:
            payload = self._request('GET', f'/stockinfo/{site}/{external_id}', params=params)
        except Exception as exc:
            raise classify_http_error(exc) from exc

        data = _unwrap(payload)
        if not isinstance(data, dict):
            raise StockApiError('Stock info payload is not an object', code=LookupErrorCode.MALFORMED_RESPONSE, details=payload)

        raw_price = data.get('price', data.get('cost'))
        if raw_price is None:
            if fallback_price is None:
                raise StockApiError('Stock info has no price', code=LookupErrorCode.MALFORMED_RESPONSE, details=data)
            price = fallback_price
        else:
            price = _parse_price(raw_price)

        return ItemMetadata(
            title=data.get('title') or data.get('name'),
            thumbnail_url=data.get('thumbnailUrl') or data.get('thumbnail') or data.get('image'),
            price=price,
            currency_unit=data.get('currencyUnit') or fallback_currency,
            available=bool(data.get('available', True)),
        )

    def get_balance(self, user_id: str) -> AccountBalance:
        try:
            payload = self._fetch_balance(user_id)
        except Exception as exc:
            raise classify_http_error(exc) from exc

        data = _unwrap(payload)
        if not isinstance(data, dict):
            raise StockApiError('Balance payload is not an object', code=LookupErrorCode.MALFORMED_RESPONSE, details=payload)
        raw_amount = data.get('amount', data.get('balance'))
        if raw_amount is None:
            raise StockApiError('Balance payload has no amount', code=LookupErrorCode.MALFORMED_RESPONSE, details=data)

        return AccountBalance(
            amount=_parse_price(raw_amount),
            currency_unit=data.get('currencyUnit') or data.get('currency') or settings.default_currency_unit,
        )

    def create_bulk_order(self, request: BulkOrderRequest) -> dict[str, Any]:
        try:
            payload = self._request('POST', '/orders/bulk', json=request.to_payload())
        except Exception as exc:
            raise classify_http_error(exc) from exc

        if not isinstance(payload, dict):
            raise StockApiError('Order response is not an object', code=LookupErrorCode.MALFORMED_RESPONSE, details=payload)
        return payload

    @_api_retry
    def _fetch_providers(self) -> Any:
        return self._request('GET', '/providers')

    @_api_retry
    def _fetch_balance(self, user_id: str) -> Any:
        return self._request('GET', f'/accounts/{user_id}/balance')

    def _request(self, method: str, path: str, **kwargs) -> Any:
        with httpx.Client(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
            logger.debug('%s %s -> %s', method, path, response.status_code)
            return response.json()

    def _headers(self) -> dict[str, str]:
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        if self.api_key:
            headers['X-Api-Key'] = self.api_key
        return headers


def _unwrap(payload: Any) -> Any:
    if not isinstance(payload, dict) or 'success' not in payload:
        return payload

    if not payload.get('success'):
        message = _message_from(payload) or 'Stock API reported failure'
        code = LookupErrorCode.NOT_FOUND if 'not found' in message.lower() else LookupErrorCode.PROVIDER_ERROR
        raise StockApiError(message, code=code, details=payload)

    data = payload.get('data')
    if data is None:
        return {k: v for k, v in payload.items() if k not in {'success', 'message'}}
    return data


def _parse_price(value: Any) -> Decimal:
    try:
        price = Decimal(str(value))
    except InvalidOperation as exc:
        raise StockApiError(f'Invalid amount: {value!r}', code=LookupErrorCode.MALFORMED_RESPONSE) from exc
    if not price.is_finite() or price < 0:
        raise StockApiError(f'Invalid amount: {value!r}', code=LookupErrorCode.MALFORMED_RESPONSE)
    return price


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def _message_from(details: Any) -> str | None:
    if isinstance(details, dict):
        for key in ('message', 'error', 'detail'):
            value = details.get(key)
            if isinstance(value, str) and value:
                return value
    if isinstance(details, str) and details:
        return details
    return None
