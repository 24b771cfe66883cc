# api.py
import json
import logging

import requests

from models import Customer, Product, Sale

logger = logging.getLogger("pos_checkout.api")

GENERIC_ERROR = "Request failed"
NETWORK_ERROR = "Could not reach the server"


class CheckoutError(Exception):
    """Base class for every recoverable checkout failure."""


class ApiError(CheckoutError):
    """The backend rejected a request or answered with something unusable."""
    def __init__(self, message, status_code=None, detail=None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class NetworkError(ApiError):
    """The request never got an answer (connection refused, timeout, ...)."""


def _detail_message(response):
    """Server detail verbatim when the body carries one, else None."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    detail = body.get('detail') or body.get('message')
    if detail is None:
        return None
    if isinstance(detail, str):
        return detail
    return json.dumps(detail, ensure_ascii=False)


def _unwrap(body):
    # some endpoints answer {"data": {...}}, others the object itself
    if isinstance(body, dict) and isinstance(body.get('data'), dict):
        return body['data']
    return body


class ApiClient:
    """
    Thin client for the store backend.
    Every call either returns parsed domain objects or raises ApiError.
    """
    def __init__(self, base_url: str, token: str = None, timeout: float = 10, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Accept': 'application/json'})
        if token:
            self.session.headers['Authorization'] = f"Bearer {token}"

    def _request(self, method, path, fallback=GENERIC_ERROR, **kwargs):
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise NetworkError(NETWORK_ERROR) from e

        if not response.ok:
            detail = _detail_message(response)
            logger.error(f"{method} {path} -> {response.status_code}: {detail or response.reason}")
            raise ApiError(detail or fallback, status_code=response.status_code, detail=detail)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(fallback, status_code=response.status_code) from e

    # Products
    def search_products(self, query: str = None, page: int = None, page_size: int = None):
        """Fetch one page of the catalog. Returns (products, total)."""
        params = {}
        if query:
            params['search'] = query
        if page:
            params['page'] = page
        if page_size:
            params['pageSize'] = page_size
        body = self._request('GET', '/products/', params=params,
                             fallback="Failed to load products") or {}
        items = body.get('items', []) if isinstance(body, dict) else body
        total = body.get('total', len(items)) if isinstance(body, dict) else len(items)
        return [Product.from_api(row) for row in items], total

    # Customers
    def list_customers(self):
        body = self._request('GET', '/customers/', fallback="Failed to load customers") or []
        items = body.get('items', []) if isinstance(body, dict) else body
        return [Customer.from_api(row) for row in items]

    def create_customer(self, name: str, phone: str, address: str = None, tax_id: str = None):
        payload = {'name': name, 'phone': phone, 'address': address or ''}
        if tax_id:
            payload['tax_number'] = tax_id
        body = _unwrap(self._request('POST', '/customers/', json=payload, fallback="Failed to save customer"))
        if not isinstance(body, dict) or 'id' not in body:
            raise ApiError("Failed to save customer")
        return Customer.from_api(body)

    # Sales
    def create_sale(self, payload: dict, lines=None):
        body = self._request('POST', '/sales/', json=payload, fallback="Failed to create sale")
        if not isinstance(body, dict):
            raise ApiError("Failed to create sale")
        return Sale(_unwrap(body), lines=lines)

    def list_sales(self, start_date=None, end_date=None, payment_method=None,
                   customer_id=None, page=None, page_size=None):
        params = {
            'startDate': start_date,
            'endDate': end_date,
            'paymentMethod': payment_method.value if hasattr(payment_method, 'value') else payment_method,
            'customerId': customer_id,
            'page': page,
            'pageSize': page_size,
        }
        params = {k: v for k, v in params.items() if v is not None}
        body = self._request('GET', '/sales/', params=params, fallback="Failed to load sales") or {}
        items = body.get('items', []) if isinstance(body, dict) else body
        return [Sale(row) for row in items]

    def get_sale(self, sale_id):
        body = _unwrap(self._request('GET', f'/sales/{sale_id}', fallback="Sale not found"))
        if not isinstance(body, dict):
            raise ApiError("Sale not found")
        return Sale(body)

    def cancel_sale(self, sale_id, reason: str = None):
        self._request('POST', f'/sales/{sale_id}/cancel/', json={'reason': reason},
                      fallback="Failed to cancel sale")
