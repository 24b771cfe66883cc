from datetime import datetime, timedelta, timezone
from decimal import Decimal

from models import Badge, Customer, PaymentMethod, Product, Sale, product_badges, stock_status
from conftest import make_product

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_product_accepts_snake_and_camel_case():
    snake = Product.from_api({"id": 1, "name": "Jean", "sale_price": 499.9, "stock_quantity": 4,
                     "min_stock_level": 2, "purchase_price": 300, "created_at": "2024-05-01T10:00:00Z"})
    camel = Product.from_api({"id": 1, "name": "Jean", "salePrice": "499.90", "stock": 4,
                     "minStock": 2, "purchasePrice": "300", "createdAt": "2024-05-01T10:00:00+00:00"})
    for p in (snake, camel):
        assert p.sale_price == Decimal("499.90")
        assert p.purchase_price == Decimal("300")
        assert p.stock == 4
        assert p.min_stock == 2
        assert p.created_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_customer_balance():
    c = Customer.from_api({"id": "c9", "name": "Mehmet", "phone": "555", "balance": "120.50"})
    assert c.balance == Decimal("120.50")
    assert c.has_debt
    assert not Customer.from_api({"id": "c1", "name": "X", "phone": "1"}).has_debt


def test_new_badge_within_thirty_days():
    p = make_product(created_at=(NOW - timedelta(days=30)).isoformat())
    assert Badge.NEW in product_badges(p, now=NOW)
    old = make_product(created_at=(NOW - timedelta(days=31)).isoformat())
    assert Badge.NEW not in product_badges(old, now=NOW)


def test_naive_created_at_is_treated_as_utc():
    p = make_product(created_at="2024-05-30T08:00:00")
    assert Badge.NEW in product_badges(p, now=NOW)


def test_discount_badge_when_markup_below_thirty_percent():
    assert Badge.DISCOUNT in product_badges(make_product(price="120", purchase_price="100"), now=NOW)
    assert Badge.DISCOUNT not in product_badges(make_product(price="130", purchase_price="100"), now=NOW)


def test_no_discount_badge_without_purchase_price():
    assert Badge.DISCOUNT not in product_badges(make_product(price="100"), now=NOW)
    assert Badge.DISCOUNT not in product_badges(make_product(price="100", purchase_price="0"), now=NOW)


def test_low_stock_badge():
    assert product_badges(make_product(stock=2, min_stock=2), now=NOW) == [Badge.LOW_STOCK]
    assert product_badges(make_product(stock=3, min_stock=2), now=NOW) == []


def test_out_of_stock_badge_only_at_zero():
    assert product_badges(make_product(stock=0, min_stock=2), now=NOW) == [Badge.OUT_OF_STOCK]


def test_badges_combine_in_stable_order():
    p = make_product(stock=1, min_stock=5, price="105", purchase_price="100",
                     created_at=(NOW - timedelta(days=1)).isoformat())
    assert product_badges(p, now=NOW) == [Badge.NEW, Badge.DISCOUNT, Badge.LOW_STOCK]
    assert [b.label for b in product_badges(p, now=NOW)] == ["YENİ", "İNDİRİM", "AZ STOK"]


def test_stock_status():
    assert stock_status(make_product(stock=0)) == "out"
    assert stock_status(make_product(stock=2, min_stock=2)) == "low"
    assert stock_status(make_product(stock=5, min_stock=None)) == "low"
    assert stock_status(make_product(stock=6, min_stock=None)) == "ok"


def test_sale_from_server_payload():
    sale = Sale({
        "id": "s1",
        "final_amount": 236.0,
        "payment_method": "veresiye",
        "customer_id": "c1",
        "paid_amount": 100,
        "remaining_amount": 136,
        "items": [{"product_id": "p1", "product_name": "T-Shirt", "quantity": 2, "unit_price": 100}],
    })
    assert sale.payment_method is PaymentMethod.CREDIT
    assert sale.total == Decimal("236.0")
    assert sale.remaining_amount == Decimal("136")
    assert sale.items[0].name == "T-Shirt"
    assert sale.subtotal == Decimal("200")


def test_sale_computes_missing_amounts():
    credit = Sale({"id": 1, "finalAmount": "236.00", "paymentMethod": "credit", "paidAmount": "100"})
    assert credit.remaining_amount == Decimal("136.00")
    cash = Sale({"id": 2, "finalAmount": "50", "paymentMethod": "cash"})
    assert cash.paid_amount == Decimal("50")
    assert cash.remaining_amount == Decimal("0")


def test_sale_as_row():
    row = Sale({"id": 3, "final_amount": "10.005", "payment_method": "card",
                "created_at": "2024-06-01T09:30:00"}).as_row()
    assert row["payment_method"] == "card"
    assert row["total"] == 10.01
    assert row["created_at"] == "2024-06-01T09:30:00"
