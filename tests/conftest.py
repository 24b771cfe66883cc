import pytest

from api import ApiClient
from checkout import CheckoutSession
from models import Customer, Product

BASE_URL = "http://pos.test/api"


def make_product(id="p1", name="T-Shirt", price="100.00", stock=10, min_stock=2,
                 purchase_price=None, barcode=None, created_at=None):
    row = {
        "id": id,
        "name": name,
        "barcode": barcode or f"869{id}",
        "sale_price": price,
        "stock_quantity": stock,
        "min_stock_level": min_stock,
    }
    if purchase_price is not None:
        row["purchase_price"] = purchase_price
    if created_at is not None:
        row["created_at"] = created_at
    return Product.from_api(row)


def make_customer(id="c1", name="Ayşe Yılmaz", phone="5551112233", balance=0):
    return Customer.from_api({"id": id, "name": name, "phone": phone, "balance": balance})


@pytest.fixture
def product():
    return make_product()


@pytest.fixture
def customer():
    return make_customer()


@pytest.fixture
def client():
    return ApiClient(BASE_URL, token="secret", timeout=5)


@pytest.fixture
def session(client):
    return CheckoutSession(client)
