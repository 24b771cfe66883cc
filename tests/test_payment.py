from decimal import Decimal

import pytest

from models import PaymentMethod, PaymentResolver
from conftest import make_customer


@pytest.fixture
def resolver():
    return PaymentResolver()


def test_initial_state_is_cash_without_customer(resolver):
    sel = resolver.selection()
    assert sel.method is PaymentMethod.CASH
    assert sel.customer is None
    assert sel.customer_id is None
    assert sel.paid_amount == 0


def test_cash_and_card_need_no_customer(resolver):
    assert resolver.select(PaymentMethod.CARD) == PaymentResolver.SELECTED
    assert resolver.method is PaymentMethod.CARD
    assert resolver.select("cash") == PaymentResolver.SELECTED
    assert resolver.method is PaymentMethod.CASH


def test_credit_without_customer_is_blocked(resolver):
    outcome = resolver.select(PaymentMethod.CREDIT)
    assert outcome == PaymentResolver.NEEDS_CUSTOMER
    assert resolver.method is PaymentMethod.CASH
    assert resolver.credit_pending


def test_choosing_customer_completes_pending_credit(resolver):
    resolver.select(PaymentMethod.CREDIT)
    resolver.set_customer(make_customer())
    assert resolver.method is PaymentMethod.CREDIT
    assert not resolver.credit_pending


def test_customer_without_pending_request_keeps_method(resolver):
    resolver.select(PaymentMethod.CARD)
    resolver.set_customer(make_customer())
    assert resolver.method is PaymentMethod.CARD


def test_cancelled_prompt_does_not_switch_later(resolver):
    resolver.select(PaymentMethod.CREDIT)
    resolver.cancel_pending()
    resolver.set_customer(make_customer())
    assert resolver.method is PaymentMethod.CASH


def test_credit_with_customer_selected_directly(resolver):
    resolver.set_customer(make_customer())
    assert resolver.select(PaymentMethod.CREDIT) == PaymentResolver.SELECTED
    assert resolver.method is PaymentMethod.CREDIT


def test_paid_amount_and_remaining(resolver):
    resolver.set_customer(make_customer())
    resolver.select(PaymentMethod.CREDIT)
    resolver.set_paid_amount("100.00")
    assert resolver.remaining_amount(Decimal("236.00")) == Decimal("136.00")


def test_remaining_never_negative(resolver):
    resolver.set_customer(make_customer())
    resolver.select(PaymentMethod.CREDIT)
    resolver.set_paid_amount("500")
    assert resolver.remaining_amount(Decimal("236.00")) == Decimal("0")


def test_default_paid_amount_is_zero(resolver):
    resolver.set_customer(make_customer())
    resolver.select(PaymentMethod.CREDIT)
    assert resolver.remaining_amount(Decimal("236.00")) == Decimal("236.00")


def test_leaving_credit_discards_paid_amount(resolver):
    resolver.set_customer(make_customer())
    resolver.select(PaymentMethod.CREDIT)
    resolver.set_paid_amount("50")
    resolver.select(PaymentMethod.CASH)
    assert resolver.paid_amount == 0
    resolver.select(PaymentMethod.CREDIT)
    assert resolver.paid_amount == 0


def test_paid_amount_only_for_credit(resolver):
    with pytest.raises(ValueError):
        resolver.set_paid_amount("10")


def test_negative_paid_amount_rejected(resolver):
    resolver.set_customer(make_customer())
    resolver.select(PaymentMethod.CREDIT)
    with pytest.raises(ValueError):
        resolver.set_paid_amount("-5")


def test_cannot_drop_customer_while_on_credit(resolver):
    resolver.set_customer(make_customer())
    resolver.select(PaymentMethod.CREDIT)
    with pytest.raises(ValueError):
        resolver.set_customer(None)
    assert resolver.method is PaymentMethod.CREDIT


def test_remaining_is_zero_for_cash(resolver):
    assert resolver.remaining_amount(Decimal("236.00")) == 0


def test_reset(resolver):
    resolver.set_customer(make_customer())
    resolver.select(PaymentMethod.CREDIT)
    resolver.set_paid_amount("10")
    resolver.reset()
    assert resolver.selection() == (PaymentMethod.CASH, None, Decimal("0"))


@pytest.mark.parametrize("value, expected", [
    ("cash", PaymentMethod.CASH),
    ("CARD", PaymentMethod.CARD),
    ("credit", PaymentMethod.CREDIT),
    ("nakit", PaymentMethod.CASH),
    ("kart", PaymentMethod.CARD),
    ("veresiye", PaymentMethod.CREDIT),
    (PaymentMethod.CARD, PaymentMethod.CARD),
])
def test_payment_method_parse(value, expected):
    assert PaymentMethod.parse(value) is expected


def test_unknown_payment_method():
    with pytest.raises(ValueError):
        PaymentMethod.parse("bitcoin")


def test_labels_cover_every_method():
    assert [m.label for m in PaymentMethod] == ["Nakit", "Kart", "Veresiye"]
