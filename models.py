# models.py
from collections import namedtuple
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pricing import D, TAX_RATE, compute_totals, parse_amount, round_money

NEW_PRODUCT_DAYS = 30
DISCOUNT_MARKUP_THRESHOLD = Decimal("0.30")
DEFAULT_MIN_STOCK = 5


def _pick(row, *keys, default=None):
    """Return the first present key; the backend mixes snake_case and camelCase."""
    for key in keys:
        if row.get(key) is not None:
            return row[key]
    return default


def _parse_datetime(value):
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Product:
    """Product snapshot as returned by the catalog API."""
    id: object
    name: str
    sale_price: Decimal
    stock: int = 0
    barcode: Optional[str] = None
    purchase_price: Optional[Decimal] = None
    min_stock: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, row):
        purchase = _pick(row, 'purchase_price', 'purchasePrice')
        min_stock = _pick(row, 'min_stock_level', 'minStock')
        return cls(
            id=row['id'],
            name=row.get('name', ''),
            sale_price=D(_pick(row, 'sale_price', 'salePrice', 'price', default=0)),
            stock=int(_pick(row, 'stock_quantity', 'stock', default=0)),
            barcode=row.get('barcode'),
            purchase_price=D(purchase) if purchase is not None else None,
            min_stock=int(min_stock) if min_stock is not None else None,
            created_at=_parse_datetime(_pick(row, 'created_at', 'createdAt')),
        )


@dataclass(frozen=True)
class Customer:
    """Read-only cached copy of a backend customer."""
    id: object
    name: str
    phone: str = ''
    balance: Decimal = Decimal("0")
    address: Optional[str] = None
    tax_id: Optional[str] = None

    @classmethod
    def from_api(cls, row):
        return cls(
            id=row['id'],
            name=row.get('name', ''),
            phone=row.get('phone', ''),
            balance=D(_pick(row, 'balance', 'total_debt', default=0)),
            address=row.get('address') or None,
            tax_id=_pick(row, 'tax_number', 'taxId', 'tc'),
        )

    @property
    def has_debt(self):
        return self.balance > 0


@dataclass(frozen=True)
class CartLine:
    """One line in the current cart. Lines are replaced, never mutated."""
    product: Product
    quantity: int
    unit_price: Decimal

    @property
    def product_id(self):
        return self.product.id

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def with_quantity(self, quantity):
        return replace(self, quantity=quantity)


CartSnapshot = namedtuple("CartSnapshot", ["lines", "subtotal", "tax", "total"])


def _check_quantity(value, name="Quantity"):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer.")


class Cart:
    """
    Holds current sale items.
    Every mutation recomputes subtotal/tax/total from scratch and returns
    the resulting CartSnapshot.
    """
    def __init__(self, tax_rate=TAX_RATE, enforce_stock=False):
        self.tax_rate = D(tax_rate)
        self.enforce_stock = enforce_stock
        self._lines = []
        self._recompute()

    def _recompute(self) -> CartSnapshot:
        self._totals = compute_totals(self._lines, self.tax_rate)
        return self.snapshot()

    def _index_of(self, product_id):
        for i, line in enumerate(self._lines):
            if line.product_id == product_id:
                return i
        return None

    def _check_stock(self, product, quantity):
        if self.enforce_stock and quantity > product.stock:
            raise ValueError("Not enough stock.")

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot(tuple(self._lines), *self._totals)

    @property
    def lines(self):
        return tuple(self._lines)

    @property
    def subtotal(self) -> Decimal:
        return self._totals.subtotal

    @property
    def tax(self) -> Decimal:
        return self._totals.tax

    @property
    def total(self) -> Decimal:
        return self._totals.total

    @property
    def is_empty(self):
        return not self._lines

    def __len__(self):
        return len(self._lines)

    def get_line(self, product_id):
        idx = self._index_of(product_id)
        return None if idx is None else self._lines[idx]

    def add_item(self, product: Product, quantity: int = 1) -> CartSnapshot:
        """Add quantity of a product, merging into an existing line for the same product."""
        _check_quantity(quantity)
        if quantity < 1:
            raise ValueError("Quantity must be greater than zero.")
        idx = self._index_of(product.id)
        if idx is None:
            self._check_stock(product, quantity)
            self._lines.append(CartLine(product, quantity, product.sale_price))
        else:
            line = self._lines[idx]
            self._check_stock(line.product, line.quantity + quantity)
            self._lines[idx] = line.with_quantity(line.quantity + quantity)
        return self._recompute()

    def update_quantity(self, product_id, delta: int) -> CartSnapshot:
        """Adjust a line by delta; dropping below 1 removes the line."""
        _check_quantity(delta, "Delta")
        idx = self._index_of(product_id)
        if idx is None:
            return self.snapshot()
        return self.set_quantity(product_id, self._lines[idx].quantity + delta)

    def set_quantity(self, product_id, quantity: int) -> CartSnapshot:
        _check_quantity(quantity)
        idx = self._index_of(product_id)
        if idx is None:
            return self.snapshot()
        if quantity < 1:
            del self._lines[idx]
        else:
            line = self._lines[idx]
            if quantity > line.quantity:
                self._check_stock(line.product, quantity)
            self._lines[idx] = line.with_quantity(quantity)
        return self._recompute()

    def remove_item(self, product_id) -> CartSnapshot:
        self._lines = [line for line in self._lines if line.product_id != product_id]
        return self._recompute()

    def clear(self) -> CartSnapshot:
        self._lines = []
        return self._recompute()


class PaymentMethod(Enum):
    CASH = "cash"
    CARD = "card"
    CREDIT = "credit"

    @property
    def label(self):
        return PAYMENT_LABELS[self]

    @classmethod
    def parse(cls, value):
        """Accept a member, a wire value or one of the legacy Turkish names."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in LEGACY_PAYMENT_NAMES:
            return LEGACY_PAYMENT_NAMES[key]
        return cls(key)


PAYMENT_LABELS = {
    PaymentMethod.CASH: "Nakit",
    PaymentMethod.CARD: "Kart",
    PaymentMethod.CREDIT: "Veresiye",
}

LEGACY_PAYMENT_NAMES = {
    "nakit": PaymentMethod.CASH,
    "kart": PaymentMethod.CARD,
    "veresiye": PaymentMethod.CREDIT,
}


class PaymentSelection(namedtuple("PaymentSelection", ["method", "customer", "paid_amount"])):
    __slots__ = ()

    @property
    def customer_id(self):
        return self.customer.id if self.customer is not None else None


class PaymentResolver:
    """
    Tracks the chosen payment method.
    Credit can only be entered with a customer selected; asking for it without
    one leaves the state unchanged and marks the request as pending until a
    customer is picked.
    """
    SELECTED = "selected"
    NEEDS_CUSTOMER = "needs_customer"

    def __init__(self):
        self.reset()

    def reset(self):
        self.method = PaymentMethod.CASH
        self.customer = None
        self.paid_amount = Decimal("0")
        self.credit_pending = False

    def select(self, method):
        method = PaymentMethod.parse(method)
        if method is PaymentMethod.CREDIT and self.customer is None:
            self.credit_pending = True
            return self.NEEDS_CUSTOMER
        if method is not PaymentMethod.CREDIT:
            self.paid_amount = Decimal("0")
        self.credit_pending = False
        self.method = method
        return self.SELECTED

    def set_customer(self, customer):
        if customer is None and self.method is PaymentMethod.CREDIT:
            raise ValueError("A customer is required for credit sales.")
        self.customer = customer
        if customer is not None and self.credit_pending:
            self.credit_pending = False
            self.method = PaymentMethod.CREDIT

    def cancel_pending(self):
        self.credit_pending = False

    def set_paid_amount(self, amount):
        if self.method is not PaymentMethod.CREDIT:
            raise ValueError("A paid amount can only be entered for credit sales.")
        value = parse_amount(amount)
        if value < 0:
            raise ValueError("Paid amount cannot be negative.")
        self.paid_amount = value

    def remaining_amount(self, total) -> Decimal:
        if self.method is not PaymentMethod.CREDIT:
            return Decimal("0")
        return max(D(total) - self.paid_amount, Decimal("0"))

    def selection(self) -> PaymentSelection:
        return PaymentSelection(self.method, self.customer, self.paid_amount)


class SaleItem:
    def __init__(self, product_id, name, quantity, unit_price):
        self.product_id = product_id
        self.name = name
        self.quantity = int(quantity)
        self.unit_price = D(unit_price)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_line(cls, line: CartLine):
        return cls(line.product_id, line.product.name, line.quantity, line.unit_price)

    @classmethod
    def from_api(cls, row):
        product = row.get('product') or {}
        return cls(
            _pick(row, 'product_id', 'productId', default=product.get('id')),
            _pick(row, 'product_name', 'productName', 'name', default=product.get('name', '')),
            _pick(row, 'quantity', default=0),
            _pick(row, 'unit_price', 'unitPrice', default=0),
        )


class Sale:
    """Persisted sale as confirmed by the backend. Server amounts are authoritative."""
    def __init__(self, row, lines=None):
        self.id = row.get('id')
        items = row.get('items')
        if items:
            self.items = [SaleItem.from_api(it) for it in items]
        else:
            self.items = [SaleItem.from_line(line) for line in (lines or ())]
        self.total = D(_pick(row, 'final_amount', 'finalAmount', 'total_amount', 'totalAmount', default=0))
        self.payment_method = PaymentMethod.parse(_pick(row, 'payment_method', 'paymentMethod', default='cash'))
        self.customer_id = _pick(row, 'customer_id', 'customerId')
        paid = _pick(row, 'paid_amount', 'paidAmount')
        if paid is None:
            paid = 0 if self.payment_method is PaymentMethod.CREDIT else self.total
        self.paid_amount = D(paid)
        remaining = _pick(row, 'remaining_amount', 'remainingAmount')
        if remaining is None:
            remaining = max(self.total - self.paid_amount, Decimal("0"))
        self.remaining_amount = D(remaining)
        self.status = row.get('status', 'completed')
        self.created_at = _parse_datetime(_pick(row, 'created_at', 'createdAt'))

    @property
    def subtotal(self) -> Decimal:
        return sum((it.line_total for it in self.items), Decimal("0"))

    def as_row(self):
        """Flat dict used for exports and summaries."""
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'payment_method': self.payment_method.value,
            'customer_id': self.customer_id,
            'items': sum(it.quantity for it in self.items),
            'total': float(round_money(self.total)),
            'paid_amount': float(round_money(self.paid_amount)),
            'remaining_amount': float(round_money(self.remaining_amount)),
            'status': self.status,
        }

    def __repr__(self):
        return f"Sale(id={self.id!r}, total={self.total}, method={self.payment_method.value})"


class Badge(Enum):
    NEW = "new"
    DISCOUNT = "discount"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"

    @property
    def label(self):
        return BADGE_LABELS[self]


BADGE_LABELS = {
    Badge.NEW: "YENİ",
    Badge.DISCOUNT: "İNDİRİM",
    Badge.LOW_STOCK: "AZ STOK",
    Badge.OUT_OF_STOCK: "STOKTA YOK",
}


def product_badges(product: Product, now=None):
    """Display badges for a product, always in NEW, DISCOUNT, LOW_STOCK, OUT_OF_STOCK order."""
    now = _as_utc(now or datetime.now(timezone.utc))
    badges = []

    if product.created_at is not None:
        if now - _as_utc(product.created_at) <= timedelta(days=NEW_PRODUCT_DAYS):
            badges.append(Badge.NEW)

    if product.purchase_price and product.sale_price:
        markup = (product.sale_price - product.purchase_price) / product.purchase_price
        if markup < DISCOUNT_MARKUP_THRESHOLD:
            badges.append(Badge.DISCOUNT)

    min_stock = product.min_stock or 0
    if 0 < product.stock <= min_stock:
        badges.append(Badge.LOW_STOCK)

    if product.stock == 0:
        badges.append(Badge.OUT_OF_STOCK)

    return badges


def stock_status(product: Product):
    """'out', 'low' or 'ok' as shown in the inventory list."""
    if product.stock <= 0:
        return "out"
    min_stock = product.min_stock if product.min_stock else DEFAULT_MIN_STOCK
    if product.stock <= min_stock:
        return "low"
    return "ok"
