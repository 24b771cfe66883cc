# checkout.py
import datetime
import logging
import os
import threading
from collections import namedtuple

from api import ApiClient, ApiError, CheckoutError
from models import Cart, PaymentMethod, PaymentResolver
from pricing import TAX_RATE, format_try, round_money
from utils import export_sales, summarize_sales

logger = logging.getLogger("pos_checkout.checkout")


class ValidationError(CheckoutError, ValueError):
    """Input rejected before anything is sent to the backend."""


class SubmissionInProgress(CheckoutError):
    """A sale is already being submitted."""


class CustomerSelector:
    """
    Keeps a cached list of customers and creates new ones inline.
    The cache is always replaced wholesale, never patched.
    """
    def __init__(self, client: ApiClient):
        self.client = client
        self.customers = []

    def refresh(self):
        self.customers = self.client.list_customers()
        logger.debug(f"Loaded {len(self.customers)} customers")
        return self.customers

    def search(self, query: str):
        q = (query or "").strip().lower()
        if not q:
            return list(self.customers)
        return [c for c in self.customers
                if q in c.name.lower() or q in (c.phone or "")]

    def get(self, customer_id):
        for c in self.customers:
            if c.id == customer_id:
                return c
        return None

    def create(self, name: str, phone: str, address: str = None, tax_id: str = None):
        """Create a customer; name and phone are mandatory."""
        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name or not phone:
            raise ValidationError("Customer name and phone are required")

        customer = self.client.create_customer(name, phone, address=address, tax_id=tax_id)
        logger.info(f"Created customer {customer.id} ({customer.name})")
        try:
            self.refresh()
        except ApiError as e:
            # the customer exists server-side; a stale list is recoverable
            logger.warning(f"Customer list refresh failed after create: {e}")
        return customer

    @staticmethod
    def balance_warning(customer, method: PaymentMethod):
        """Warning text for credit sales to a customer that already owes money."""
        if customer is None or method is not PaymentMethod.CREDIT:
            return None
        if customer.balance > 0:
            return f"{customer.name} has an outstanding balance of {format_try(customer.balance)}"
        return None


def build_sale_payload(snapshot, selection):
    """Request body for POST /sales/."""
    payload = {
        'items': [{
            'productId': line.product_id,
            'quantity': line.quantity,
            'unitPrice': float(round_money(line.unit_price)),
        } for line in snapshot.lines],
        'paymentMethod': selection.method.value,
        'customerId': selection.customer_id,
    }
    if selection.method is PaymentMethod.CREDIT:
        payload['paidAmount'] = float(round_money(selection.paid_amount))
    return payload


class SaleSubmitter:
    """
    Validates an assembled sale, posts it and reconciles local state.
    Only one submission may be in flight at a time.
    """
    def __init__(self, client: ApiClient):
        self.client = client
        self._in_flight = threading.Lock()

    @property
    def in_flight(self):
        return self._in_flight.locked()

    @staticmethod
    def validate(snapshot, selection):
        if not snapshot.lines:
            raise ValidationError("cart is empty")
        if selection.customer is None:
            raise ValidationError("a customer must be selected")
        if selection.method is PaymentMethod.CREDIT:
            if selection.paid_amount < 0:
                raise ValidationError("paid amount cannot be negative")
            if selection.paid_amount > round_money(snapshot.total):
                raise ValidationError("paid amount exceeds the sale total")

    def submit(self, cart: Cart, payment: PaymentResolver):
        """
        Post the sale. On success the cart is cleared, the payment resolver
        reset and the server's Sale returned. On any failure cart and payment
        are left untouched and the error is raised.
        """
        if not self._in_flight.acquire(blocking=False):
            raise SubmissionInProgress("a sale is already being submitted")
        try:
            snapshot = cart.snapshot()
            selection = payment.selection()
            self.validate(snapshot, selection)
            payload = build_sale_payload(snapshot, selection)
            logger.info(f"Submitting sale: {len(snapshot.lines)} lines, "
                        f"total {format_try(snapshot.total)}, {selection.method.value}")
            sale = self.client.create_sale(payload, lines=snapshot.lines)

            # the guard is held until local state matches the server
            logger.info(f"Sale {sale.id} completed, remaining {format_try(sale.remaining_amount)}")
            cart.clear()
            payment.reset()
        finally:
            self._in_flight.release()
        return sale


class SalesHistory:
    """
    Sales list behind the history view: filtered fetches, the per-payment
    summary, detail lookups, cancellation and export.
    """
    def __init__(self, client: ApiClient, export_dir: str = "exports"):
        self.client = client
        self.export_dir = export_dir
        self.sales = []
        self.filters = {}

    def load(self, start_date=None, end_date=None, payment_method=None):
        filters = {
            'start_date': _check_date(start_date, "Start date"),
            'end_date': _check_date(end_date, "End date"),
            'payment_method': None,
        }
        if filters['start_date'] and filters['end_date'] and filters['start_date'] > filters['end_date']:
            raise ValidationError("Start date must not be after end date")
        if payment_method:
            try:
                filters['payment_method'] = PaymentMethod.parse(payment_method)
            except ValueError:
                raise ValidationError(f"Unknown payment method: {payment_method}")

        self.sales = self.client.list_sales(**filters)
        self.filters = filters
        logger.debug(f"Loaded {len(self.sales)} sales")
        return self.sales

    def summary(self):
        return summarize_sales(self.sales)

    def get(self, sale_id):
        return self.client.get_sale(sale_id)

    def cancel(self, sale_id, reason=None):
        """Cancel a sale on the server and reload the list with the same filters."""
        reason = (reason or "").strip() or None
        self.client.cancel_sale(sale_id, reason=reason)
        logger.info(f"Cancelled sale {sale_id}")
        return self.load(**self.filters)

    def export(self, file_path=None, format='csv'):
        if not self.sales:
            raise ValidationError("There are no sales to export")
        if file_path is None:
            os.makedirs(self.export_dir, exist_ok=True)
            stamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
            ext = 'xlsx' if format == 'excel' else 'csv'
            file_path = os.path.join(self.export_dir, f"sales_{stamp}.{ext}")
        export_sales(self.sales, file_path, format)
        logger.info(f"Exported {len(self.sales)} sales to {file_path}")
        return file_path


def _check_date(value, name):
    value = (value or "").strip()
    if not value:
        return None
    try:
        datetime.date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{name} must be in YYYY-MM-DD format")
    return value


SessionSnapshot = namedtuple("SessionSnapshot", [
    "cart", "payment", "remaining_amount", "needs_customer", "balance_warning", "submitting",
])


class CheckoutSession:
    """
    State container for one checkout screen.
    Components receive the session explicitly; every action returns a
    fresh SessionSnapshot.
    """
    def __init__(self, client: ApiClient, tax_rate=TAX_RATE, enforce_stock=False, export_dir="exports"):
        self.client = client
        self.cart = Cart(tax_rate=tax_rate, enforce_stock=enforce_stock)
        self.payment = PaymentResolver()
        self.customers = CustomerSelector(client)
        self.submitter = SaleSubmitter(client)
        self.history = SalesHistory(client, export_dir=export_dir)
        self.products = []
        self.last_sale = None

    def snapshot(self) -> SessionSnapshot:
        cart = self.cart.snapshot()
        selection = self.payment.selection()
        return SessionSnapshot(
            cart=cart,
            payment=selection,
            remaining_amount=self.payment.remaining_amount(cart.total),
            needs_customer=self.payment.credit_pending,
            balance_warning=CustomerSelector.balance_warning(selection.customer, selection.method),
            submitting=self.submitter.in_flight,
        )

    def _ensure_idle(self):
        if self.submitter.in_flight:
            raise SubmissionInProgress("a sale is already being submitted")

    # Catalog
    def search_products(self, query: str = None):
        self.products, _ = self.client.search_products(query)
        return self.products

    def find_by_barcode(self, barcode: str):
        barcode = (barcode or "").strip()
        if not barcode:
            return None
        for p in self.products:
            if p.barcode == barcode:
                return p
        found, _ = self.client.search_products(barcode)
        for p in found:
            if p.barcode == barcode:
                return p
        return None

    # Cart actions
    def add_product(self, product, quantity: int = 1):
        self._ensure_idle()
        self.cart.add_item(product, quantity)
        return self.snapshot()

    def add_by_barcode(self, barcode: str, quantity: int = 1):
        self._ensure_idle()
        product = self.find_by_barcode(barcode)
        if product is None:
            raise ValidationError(f"No product found for barcode {barcode}")
        return self.add_product(product, quantity)

    def change_quantity(self, product_id, delta: int):
        self._ensure_idle()
        self.cart.update_quantity(product_id, delta)
        return self.snapshot()

    def set_quantity(self, product_id, quantity: int):
        self._ensure_idle()
        self.cart.set_quantity(product_id, quantity)
        return self.snapshot()

    def remove_product(self, product_id):
        self._ensure_idle()
        self.cart.remove_item(product_id)
        return self.snapshot()

    def clear_cart(self):
        self._ensure_idle()
        self.cart.clear()
        return self.snapshot()

    # Payment actions
    def choose_payment(self, method):
        """needs_customer on the returned snapshot means the customer selector must be shown."""
        self._ensure_idle()
        self.payment.select(method)
        return self.snapshot()

    def choose_customer(self, customer):
        self._ensure_idle()
        self.payment.set_customer(customer)
        return self.snapshot()

    def dismiss_customer_prompt(self):
        self.payment.cancel_pending()
        return self.snapshot()

    def create_customer(self, name, phone, address=None, tax_id=None):
        self._ensure_idle()
        customer = self.customers.create(name, phone, address=address, tax_id=tax_id)
        self.payment.set_customer(customer)
        return self.snapshot()

    def enter_paid_amount(self, amount):
        self._ensure_idle()
        try:
            self.payment.set_paid_amount(amount)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        return self.snapshot()

    def submit(self):
        sale = self.submitter.submit(self.cart, self.payment)
        self.last_sale = sale
        return sale
