from decimal import Decimal

import pytest

from models import CartLine
from pricing import D, compute_totals, format_try, parse_amount, round_money, split_total
from conftest import make_product


def make_line(quantity, **kwargs):
    product = make_product(**kwargs)
    return CartLine(product, quantity, product.sale_price)


def test_two_units_at_one_hundred():
    lines = [make_line(2, price="100.00")]
    totals = compute_totals(lines)
    assert totals.subtotal == Decimal("200.00")
    assert totals.tax == Decimal("36.00")
    assert totals.total == Decimal("236.00")


def test_totals_are_not_rounded_until_display():
    lines = [make_line(1, id="a", price="0.05"),
             make_line(1, id="b", price="0.05")]
    totals = compute_totals(lines)
    # 0.10 * 0.18 = 0.018 stays exact
    assert totals.tax == Decimal("0.0180")
    assert round_money(totals.total) == Decimal("0.12")


def test_recompute_is_idempotent():
    lines = [make_line(3, id="a", price="19.99"),
             make_line(7, id="b", price="7.45")]
    first = compute_totals(lines)
    for _ in range(10):
        assert compute_totals(lines) == first


def test_empty_lines_give_zero():
    assert compute_totals([]) == (Decimal("0"), Decimal("0"), Decimal("0"))


def test_custom_tax_rate():
    totals = compute_totals([make_line(2, price="50")], tax_rate="0.08")
    assert totals.tax == Decimal("8.00")
    assert totals.total == Decimal("108.00")


def test_decimal_coercion_avoids_float_noise():
    assert D(0.1) == Decimal("0.1")
    assert D(None) == Decimal("0")


@pytest.mark.parametrize("amount, expected", [
    (Decimal("0"), "₺0,00"),
    (Decimal("236"), "₺236,00"),
    (Decimal("1234.5"), "₺1.234,50"),
    (Decimal("1234567.891"), "₺1.234.567,89"),
    (Decimal("-12.345"), "-₺12,35"),
])
def test_format_try(amount, expected):
    assert format_try(amount) == expected


def test_format_try_without_symbol():
    assert format_try(Decimal("1000"), symbol=False) == "1.000,00"


@pytest.mark.parametrize("text, expected", [
    ("100", Decimal("100")),
    ("100.50", Decimal("100.50")),
    ("100,50", Decimal("100.50")),
    ("1.234,56", Decimal("1234.56")),
    ("₺ 75", Decimal("75")),
    ("", Decimal("0")),
    (None, Decimal("0")),
    (12, Decimal("12")),
])
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["abc", "1,2,3", "NaN", "inf"])
def test_parse_amount_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_amount(text)


@pytest.mark.parametrize("total, subtotal, tax", [
    ("236.00", "200.00", "36.00"),
    ("200.00", "169.49", "30.51"),
    ("0", "0.00", "0.00"),
])
def test_split_total_adds_up(total, subtotal, tax):
    totals = split_total(total)
    assert totals.subtotal == Decimal(subtotal)
    assert totals.tax == Decimal(tax)
    assert totals.subtotal + totals.tax == Decimal(total)
