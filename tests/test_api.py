from decimal import Decimal

import pytest
import requests
import responses
from responses import matchers

from api import ApiError, NetworkError
from models import PaymentMethod
from conftest import BASE_URL


@responses.activate
def test_search_products_sends_query_and_parses_page(client):
    responses.add(
        responses.GET, f"{BASE_URL}/products/",
        match=[matchers.query_param_matcher({"search": "gömlek"})],
        json={"items": [
            {"id": "p1", "name": "Gömlek", "barcode": "8690001", "sale_price": 349.9,
             "purchase_price": 200, "stock_quantity": 3, "min_stock_level": 5},
        ], "total": 1, "page": 1, "pageSize": 20, "totalPages": 1},
    )
    products, total = client.search_products("gömlek")
    assert total == 1
    assert products[0].name == "Gömlek"
    assert products[0].sale_price == Decimal("349.9")
    assert responses.calls[0].request.headers["Authorization"] == "Bearer secret"


@responses.activate
def test_list_customers_accepts_plain_list(client):
    responses.add(responses.GET, f"{BASE_URL}/customers/",
                  json=[{"id": "c1", "name": "Ali", "phone": "555", "balance": 40}])
    customers = client.list_customers()
    assert [c.name for c in customers] == ["Ali"]
    assert customers[0].balance == Decimal("40")


@responses.activate
def test_list_customers_accepts_paginated_body(client):
    responses.add(responses.GET, f"{BASE_URL}/customers/",
                  json={"items": [{"id": "c1", "name": "Ali", "phone": "555"}], "total": 1})
    assert len(client.list_customers()) == 1


@responses.activate
def test_create_customer_unwraps_data(client):
    responses.add(
        responses.POST, f"{BASE_URL}/customers/",
        match=[matchers.json_params_matcher({"name": "Zeynep", "phone": "555", "address": ""})],
        json={"data": {"id": "c7", "name": "Zeynep", "phone": "555", "balance": 0}},
        status=201,
    )
    customer = client.create_customer("Zeynep", "555")
    assert customer.id == "c7"


@responses.activate
def test_create_sale_returns_server_sale(client):
    responses.add(responses.POST, f"{BASE_URL}/sales/", status=201, json={
        "id": "s1", "final_amount": 236, "payment_method": "credit",
        "customer_id": "c1", "paid_amount": 100, "remaining_amount": 136,
    })
    sale = client.create_sale({"items": []})
    assert sale.id == "s1"
    assert sale.payment_method is PaymentMethod.CREDIT
    assert sale.remaining_amount == Decimal("136")


@responses.activate
def test_server_detail_is_surfaced_verbatim(client):
    responses.add(responses.POST, f"{BASE_URL}/sales/", status=400,
                  json={"detail": "Yetersiz stok: T-Shirt"})
    with pytest.raises(ApiError) as exc:
        client.create_sale({"items": []})
    assert str(exc.value) == "Yetersiz stok: T-Shirt"
    assert exc.value.status_code == 400


@responses.activate
def test_structured_detail_is_json_encoded(client):
    detail = [{"loc": ["body", "items"], "msg": "field required"}]
    responses.add(responses.POST, f"{BASE_URL}/sales/", status=422, json={"detail": detail})
    with pytest.raises(ApiError) as exc:
        client.create_sale({})
    assert "field required" in str(exc.value)


@responses.activate
def test_generic_message_without_detail(client):
    responses.add(responses.POST, f"{BASE_URL}/sales/", status=500, body="Internal Server Error")
    with pytest.raises(ApiError) as exc:
        client.create_sale({})
    assert str(exc.value) == "Failed to create sale"
    assert exc.value.detail is None


@responses.activate
def test_transport_failure_becomes_network_error(client):
    responses.add(responses.GET, f"{BASE_URL}/customers/",
                  body=requests.ConnectionError("connection refused"))
    with pytest.raises(NetworkError):
        client.list_customers()


@responses.activate
def test_list_sales_filters(client):
    responses.add(
        responses.GET, f"{BASE_URL}/sales/",
        match=[matchers.query_param_matcher({"paymentMethod": "credit", "startDate": "2024-06-01"})],
        json={"items": [{"id": 1, "final_amount": 10, "payment_method": "kart"}]},
    )
    sales = client.list_sales(start_date="2024-06-01", payment_method=PaymentMethod.CREDIT)
    assert sales[0].payment_method is PaymentMethod.CARD


@responses.activate
def test_get_and_cancel_sale(client):
    responses.add(responses.GET, f"{BASE_URL}/sales/s1",
                  json={"id": "s1", "final_amount": 5, "payment_method": "cash"})
    responses.add(responses.POST, f"{BASE_URL}/sales/s1/cancel/",
                  match=[matchers.json_params_matcher({"reason": "iade"})], json={"ok": True})
    assert client.get_sale("s1").total == Decimal("5")
    client.cancel_sale("s1", reason="iade")
    assert len(responses.calls) == 2
