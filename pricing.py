# pricing.py
from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

# VAT is fixed for every sale
TAX_RATE = Decimal("0.18")
CENT = Decimal("0.01")
CURRENCY_SYMBOL = "₺"

Totals = namedtuple("Totals", ["subtotal", "tax", "total"])


def D(x) -> Decimal:
    """Coerce a number or numeric string to Decimal without float noise."""
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def round_money(x) -> Decimal:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(lines, tax_rate=TAX_RATE) -> Totals:
    """
    Derive subtotal, tax and total from cart lines.
    Nothing is rounded here; rounding belongs to display and serialisation.
    """
    subtotal = sum((D(line.unit_price) * line.quantity for line in lines), Decimal("0"))
    tax = subtotal * D(tax_rate)
    return Totals(subtotal, tax, subtotal + tax)


def split_total(total, tax_rate=TAX_RATE) -> Totals:
    """
    Split a VAT-inclusive total back into net amount and tax for printing.
    The net part is rounded to cents and tax takes the rest, so the parts
    always add up to the total.
    """
    total = D(total)
    subtotal = round_money(total / (1 + D(tax_rate)))
    return Totals(subtotal, total - subtotal, total)


def format_try(amount, symbol=True) -> str:
    """Format an amount as Turkish Lira using tr-TR grouping, e.g. ₺1.234,56"""
    value = round_money(amount)
    sign = "-" if value < 0 else ""
    integer_part, decimal_part = f"{abs(value):.2f}".split(".")

    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)

    formatted = f"{'.'.join(groups)},{decimal_part}"
    if symbol:
        return f"{sign}{CURRENCY_SYMBOL}{formatted}"
    return f"{sign}{formatted}"


def parse_amount(text) -> Decimal:
    """
    Parse a user-entered amount. Accepts "100.50", "100,50" and "1.234,56".
    Empty input means zero. Raises ValueError for anything else.
    """
    if text is None:
        return Decimal("0")
    if isinstance(text, (int, float, Decimal)):
        return D(text)
    cleaned = str(text).strip().replace(CURRENCY_SYMBOL, "").replace(" ", "")
    if not cleaned:
        return Decimal("0")
    if "," in cleaned:
        # tr-TR input: dots group thousands, comma is the decimal mark
        cleaned = cleaned.replace(".", "").replace(",", ".")
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {text}")
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {text}")
    return value
