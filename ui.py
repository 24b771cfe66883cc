# ui.py
import queue
import threading
import logging
import tkinter as tk
import ttkbootstrap as ttk
from tkinter import filedialog, messagebox, simpledialog

from api import CheckoutError
from checkout import CheckoutSession
from layout import get_layout
from models import PaymentMethod, product_badges
from pricing import format_try
from utils import write_receipt

logger = logging.getLogger("pos_checkout.ui")

BOOTSTRAP_THEMES = {
    "dark": "darkly",
    "light": "cosmo",
    "default": "cosmo"
}

PRODUCT_COLUMN_VALUES = {
    "Barcode": lambda p: p.barcode or "",
    "Product": lambda p: p.name,
    "Price": lambda p: format_try(p.sale_price),
    "Stock": lambda p: p.stock,
    "Badges": lambda p: ", ".join(b.label for b in product_badges(p)),
}

CART_COLUMN_VALUES = {
    "Product": lambda line: line.product.name,
    "Qty": lambda line: line.quantity,
    "Price": lambda line: format_try(line.unit_price),
    "Line Total": lambda line: format_try(line.line_total),
}


class CheckoutUI:
    """
    Checkout window. All business rules live in the CheckoutSession; this
    class only forwards user actions and renders the returned snapshots.
    """
    def __init__(self, session: CheckoutSession, config=None):
        self.session = session
        self.config = config or {}

        theme = BOOTSTRAP_THEMES.get(self.config.get("theme", "default"), "cosmo")
        self.root = ttk.Window(themename=theme)
        self.root.title("POS Checkout")

        self.layout = get_layout(self.config.get("layout", "auto"), width=self.root.winfo_screenwidth())
        self.root.geometry(self.layout.geometry)
        logger.info(f"Using {self.layout.name} layout")

        receipt_config = self.config.get("receipt", {})
        self.receipt_dir = receipt_config.get("receipt_dir", "receipts")

        self.search_var = tk.StringVar()
        self.barcode_var = tk.StringVar()
        self.qty_var = tk.IntVar(value=1)
        self.payment_var = tk.StringVar(value=PaymentMethod.CASH.value)
        self.paid_var = tk.StringVar()
        self.receipt_type_var = tk.StringVar(value=receipt_config.get("format", "txt"))
        self.subtotal_var = tk.StringVar(value=format_try(0))
        self.tax_var = tk.StringVar(value=format_try(0))
        self.total_var = tk.StringVar(value=format_try(0))
        self.remaining_var = tk.StringVar(value=format_try(0))
        self.customer_var = tk.StringVar(value="No customer selected")
        self.warning_var = tk.StringVar()
        self.status_var = tk.StringVar(value="Ready")

        self._results = queue.Queue()

        self._build_gui()
        self._load_initial_data()
        self._render(self.session.snapshot())

    # ----- layout -----

    def _build_gui(self):
        toolbar = ttk.Frame(self.root)
        toolbar.pack(side=tk.TOP, fill=tk.X, padx=10, pady=(10, 0))
        ttk.Button(toolbar, text="Sales History", command=self._show_sales_history,
                   bootstyle="secondary-outline").pack(side=tk.RIGHT)

        main_frame = ttk.Frame(self.root)
        main_frame.pack(expand=True, fill='both', padx=10, pady=10)

        status_bar = ttk.Label(self.root, textvariable=self.status_var, anchor=tk.W, bootstyle="secondary")
        status_bar.pack(side=tk.BOTTOM, fill=tk.X)

        if self.layout.side_by_side:
            products_frame = ttk.Frame(main_frame)
            products_frame.pack(side=tk.LEFT, fill=tk.BOTH, expand=True, padx=5)
            cart_frame = ttk.Frame(main_frame)
            cart_frame.pack(side=tk.RIGHT, fill=tk.BOTH, expand=True, padx=5)
            self.notebook = None
        else:
            self.notebook = ttk.Notebook(main_frame, bootstyle="primary")
            self.notebook.pack(expand=True, fill='both')
            products_frame = ttk.Frame(self.notebook)
            cart_frame = ttk.Frame(self.notebook)
            self.notebook.add(products_frame, text="Products")
            self.notebook.add(cart_frame, text="Cart")

        self._build_products_panel(products_frame)
        self._build_cart_panel(cart_frame)

    def _build_products_panel(self, parent):
        scan_frame = ttk.LabelFrame(parent, text="Scan Product", bootstyle="primary")
        scan_frame.pack(fill=tk.X, padx=5, pady=5)

        ttk.Label(scan_frame, text="Barcode:").grid(row=0, column=0, padx=5, pady=5, sticky=tk.W)
        barcode_entry = ttk.Entry(scan_frame, textvariable=self.barcode_var, width=18)
        barcode_entry.grid(row=0, column=1, padx=5, pady=5)
        barcode_entry.bind('<Return>', lambda e: self._add_by_barcode())
        ttk.Label(scan_frame, text="Qty:").grid(row=0, column=2, padx=5, pady=5, sticky=tk.W)
        ttk.Entry(scan_frame, textvariable=self.qty_var, width=5).grid(row=0, column=3, padx=5, pady=5)
        ttk.Button(scan_frame, text="Add", command=self._add_by_barcode,
                   bootstyle="success").grid(row=0, column=4, padx=5, pady=5)

        search_frame = ttk.Frame(parent)
        search_frame.pack(fill=tk.X, padx=5, pady=5)
        ttk.Label(search_frame, text="Search:").pack(side=tk.LEFT, padx=5)
        search_entry = ttk.Entry(search_frame, textvariable=self.search_var)
        search_entry.pack(side=tk.LEFT, fill=tk.X, expand=True, padx=5)
        search_entry.bind('<Return>', lambda e: self._search_products())
        ttk.Button(search_frame, text="Search", command=self._search_products,
                   bootstyle="info").pack(side=tk.LEFT, padx=5)

        list_frame = ttk.LabelFrame(parent, text="Products", bootstyle="primary")
        list_frame.pack(fill=tk.BOTH, expand=True, padx=5, pady=5)
        scroll = ttk.Scrollbar(list_frame)
        scroll.pack(side=tk.RIGHT, fill=tk.Y)
        cols = self.layout.product_columns
        self.products_tv = ttk.Treeview(list_frame, columns=cols, show='headings', yscrollcommand=scroll.set)
        for c in cols:
            self.products_tv.heading(c, text=c)
            self.products_tv.column(c, anchor=tk.W if c in ("Product", "Badges") else tk.CENTER)
        self.products_tv.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scroll.config(command=self.products_tv.yview)
        self.products_tv.bind("<Double-1>", lambda e: self._add_selected_product())

    def _build_cart_panel(self, parent):
        cart_frame = ttk.LabelFrame(parent, text="Shopping Cart", bootstyle="primary")
        cart_frame.pack(fill=tk.BOTH, expand=True, padx=5, pady=5)
        scroll = ttk.Scrollbar(cart_frame)
        scroll.pack(side=tk.RIGHT, fill=tk.Y)
        cols = self.layout.cart_columns
        self.cart_tv = ttk.Treeview(cart_frame, columns=cols, show='headings', height=8, yscrollcommand=scroll.set)
        for c in cols:
            self.cart_tv.heading(c, text=c)
            self.cart_tv.column(c, anchor=tk.W if c == "Product" else tk.E)
        self.cart_tv.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scroll.config(command=self.cart_tv.yview)

        btn_frame = ttk.Frame(parent)
        btn_frame.pack(fill=tk.X, padx=5, pady=5)
        ttk.Button(btn_frame, text="+", width=3, command=lambda: self._change_selected(1)).pack(side=tk.LEFT, padx=2)
        ttk.Button(btn_frame, text="-", width=3, command=lambda: self._change_selected(-1)).pack(side=tk.LEFT, padx=2)
        ttk.Button(btn_frame, text="Remove", command=self._remove_selected, bootstyle="danger").pack(side=tk.LEFT, padx=5)
        ttk.Button(btn_frame, text="Clear Cart", command=self._clear_cart, bootstyle="warning").pack(side=tk.LEFT, padx=5)

        checkout_frame = ttk.LabelFrame(parent, text="Checkout", bootstyle="primary")
        checkout_frame.pack(fill=tk.X, padx=5, pady=5)
        checkout_frame.columnconfigure(1, weight=1)

        rows = (("Subtotal:", self.subtotal_var), ("VAT (18%):", self.tax_var), ("TOTAL:", self.total_var))
        for i, (text, var) in enumerate(rows):
            ttk.Label(checkout_frame, text=text).grid(row=i, column=0, padx=5, pady=3, sticky=tk.W)
            ttk.Label(checkout_frame, textvariable=var, font=("Arial", 12, "bold" if i == 2 else "normal")).grid(
                row=i, column=1, padx=5, pady=3, sticky=tk.E)

        ttk.Separator(checkout_frame, orient=tk.HORIZONTAL).grid(row=3, column=0, columnspan=2, sticky=tk.EW, pady=5)

        ttk.Label(checkout_frame, textvariable=self.customer_var).grid(row=4, column=0, padx=5, pady=3, sticky=tk.W)
        ttk.Button(checkout_frame, text="Select Customer", command=self._show_customer_dialog,
                   bootstyle="info-outline").grid(row=4, column=1, padx=5, pady=3, sticky=tk.E)

        method_frame = ttk.Frame(checkout_frame)
        method_frame.grid(row=5, column=0, columnspan=2, pady=5)
        for method in PaymentMethod:
            ttk.Radiobutton(method_frame, text=method.label, value=method.value, variable=self.payment_var,
                            command=lambda m=method: self._choose_payment(m)).pack(side=tk.LEFT, padx=8)

        ttk.Label(checkout_frame, text="Paid now:").grid(row=6, column=0, padx=5, pady=3, sticky=tk.W)
        self.paid_entry = ttk.Entry(checkout_frame, textvariable=self.paid_var, width=12)
        self.paid_entry.grid(row=6, column=1, padx=5, pady=3, sticky=tk.E)
        self.paid_entry.bind('<FocusOut>', lambda e: self._enter_paid_amount())
        self.paid_entry.bind('<Return>', lambda e: self._enter_paid_amount())

        ttk.Label(checkout_frame, text="Remaining:").grid(row=7, column=0, padx=5, pady=3, sticky=tk.W)
        ttk.Label(checkout_frame, textvariable=self.remaining_var).grid(row=7, column=1, padx=5, pady=3, sticky=tk.E)
        ttk.Label(checkout_frame, textvariable=self.warning_var, bootstyle="danger").grid(
            row=8, column=0, columnspan=2, padx=5, sticky=tk.W)

        receipt_frame = ttk.Frame(checkout_frame)
        receipt_frame.grid(row=9, column=0, columnspan=2, pady=3)
        ttk.Radiobutton(receipt_frame, text="Text Receipt", variable=self.receipt_type_var, value="txt").pack(side=tk.LEFT, padx=5)
        ttk.Radiobutton(receipt_frame, text="PDF Receipt", variable=self.receipt_type_var, value="pdf").pack(side=tk.LEFT, padx=5)

        self.checkout_btn = ttk.Button(checkout_frame, text="COMPLETE SALE", command=self._checkout, bootstyle="success")
        self.checkout_btn.grid(row=10, column=0, columnspan=2, padx=5, pady=10, sticky=tk.EW)

    # ----- rendering -----

    def _render(self, snap):
        self.cart_tv.delete(*self.cart_tv.get_children())
        for line in snap.cart.lines:
            values = [CART_COLUMN_VALUES[c](line) for c in self.layout.cart_columns]
            self.cart_tv.insert("", "end", iid=str(line.product_id), values=values)

        self.subtotal_var.set(format_try(snap.cart.subtotal))
        self.tax_var.set(format_try(snap.cart.tax))
        self.total_var.set(format_try(snap.cart.total))

        payment = snap.payment
        self.payment_var.set(payment.method.value)
        if payment.customer is not None:
            c = payment.customer
            debt = f" - owes {format_try(c.balance)}" if c.has_debt else ""
            self.customer_var.set(f"{c.name} ({c.phone}){debt}")
        else:
            self.customer_var.set("No customer selected")

        is_credit = payment.method is PaymentMethod.CREDIT
        self.paid_entry.configure(state="normal" if is_credit else "disabled")
        if not is_credit:
            self.paid_var.set("")
        self.remaining_var.set(format_try(snap.remaining_amount))
        self.warning_var.set(snap.balance_warning or "")
        self.checkout_btn.configure(state="disabled" if snap.submitting else "normal")

    def _render_products(self, products):
        self.products_tv.delete(*self.products_tv.get_children())
        for p in products:
            values = [PRODUCT_COLUMN_VALUES[c](p) for c in self.layout.product_columns]
            self.products_tv.insert("", "end", iid=str(p.id), values=values)

    def _update_status(self, message):
        self.status_var.set(message)
        logger.debug(message)

    def _run(self, action, *args, **kwargs):
        """Run a session action and render its snapshot; errors are shown, never raised."""
        try:
            snap = action(*args, **kwargs)
        except (CheckoutError, ValueError) as e:
            messagebox.showerror("Error", str(e))
            logger.warning(f"{action.__name__} rejected: {e}")
            self._render(self.session.snapshot())
            return None
        self._render(snap)
        return snap

    # ----- catalog -----

    def _load_initial_data(self):
        try:
            self._render_products(self.session.search_products())
            self.session.customers.refresh()
            self._update_status(f"Loaded {len(self.session.products)} products")
        except CheckoutError as e:
            messagebox.showerror("Connection Error", str(e))
            self._update_status("Backend unavailable")

    def _search_products(self):
        try:
            self._render_products(self.session.search_products(self.search_var.get().strip()))
        except CheckoutError as e:
            messagebox.showerror("Search Error", str(e))

    def _product_added(self, snap, name):
        if snap is None:
            return
        self._update_status(f"Added {name} to cart")
        if self.layout.show_cart_on_add and self.notebook is not None:
            self.notebook.select(1)

    def _add_selected_product(self):
        selected = self.products_tv.selection()
        if not selected:
            return
        product = next((p for p in self.session.products if str(p.id) == selected[0]), None)
        if product is not None:
            self._product_added(self._run(self.session.add_product, product, 1), product.name)

    def _add_by_barcode(self):
        barcode = self.barcode_var.get().strip()
        if not barcode:
            messagebox.showwarning("Input Error", "Please enter a barcode")
            return
        try:
            qty = self.qty_var.get()
        except tk.TclError:
            messagebox.showwarning("Input Error", "Quantity must be a whole number")
            return
        snap = self._run(self.session.add_by_barcode, barcode, qty)
        if snap is not None:
            self.barcode_var.set("")
            self.qty_var.set(1)
        self._product_added(snap, barcode)

    # ----- cart -----

    def _selected_line(self):
        selected = self.cart_tv.selection()
        if not selected:
            messagebox.showinfo("Selection", "Please select a cart line")
            return None
        return next((line for line in self.session.cart.lines if str(line.product_id) == selected[0]), None)

    def _change_selected(self, delta):
        line = self._selected_line()
        if line is not None:
            self._run(self.session.change_quantity, line.product_id, delta)
            if self.cart_tv.exists(str(line.product_id)):
                self.cart_tv.selection_set(str(line.product_id))

    def _remove_selected(self):
        line = self._selected_line()
        if line is not None:
            self._run(self.session.remove_product, line.product_id)
            self._update_status(f"Removed {line.product.name}")

    def _clear_cart(self):
        if self.session.cart.is_empty:
            return
        if messagebox.askyesno("Clear Cart", "Are you sure you want to clear the cart?"):
            self._run(self.session.clear_cart)
            self._update_status("Cart cleared")

    # ----- payment & customer -----

    def _choose_payment(self, method):
        snap = self._run(self.session.choose_payment, method)
        if snap is not None and snap.needs_customer:
            self._update_status("Please select a customer for credit sales")
            self._show_customer_dialog()

    def _enter_paid_amount(self):
        if self.session.payment.method is not PaymentMethod.CREDIT:
            return True
        return self._run(self.session.enter_paid_amount, self.paid_var.get()) is not None

    def _show_customer_dialog(self):
        popup = ttk.Toplevel(self.root)
        popup.title("Select Customer")
        popup.geometry("520x560")

        search_var = tk.StringVar()
        ttk.Entry(popup, textvariable=search_var).pack(fill=tk.X, padx=10, pady=5)

        cols = ("Name", "Phone", "Balance")
        tv = ttk.Treeview(popup, columns=cols, show='headings', height=10)
        for c in cols:
            tv.heading(c, text=c)
        tv.pack(fill=tk.BOTH, expand=True, padx=10, pady=5)

        def fill(*args):
            tv.delete(*tv.get_children())
            for c in self.session.customers.search(search_var.get()):
                tv.insert("", "end", iid=str(c.id), values=(c.name, c.phone, format_try(c.balance)))

        search_var.trace_add("write", fill)
        fill()

        def select():
            selected = tv.selection()
            if not selected:
                return
            customer = next((c for c in self.session.customers.customers if str(c.id) == selected[0]), None)
            if self._run(self.session.choose_customer, customer) is not None:
                popup.destroy()

        ttk.Button(popup, text="Select", command=select, bootstyle="primary").pack(pady=5)
        tv.bind("<Double-1>", lambda e: select())

        form = ttk.LabelFrame(popup, text="New Customer", bootstyle="secondary")
        form.pack(fill=tk.X, padx=10, pady=5)
        fields = {}
        for i, label in enumerate(("Name *", "Phone *", "Address", "Tax ID")):
            ttk.Label(form, text=label).grid(row=i, column=0, padx=5, pady=3, sticky=tk.E)
            var = tk.StringVar()
            ttk.Entry(form, textvariable=var, width=30).grid(row=i, column=1, padx=5, pady=3, sticky=tk.W)
            fields[label] = var

        def save():
            snap = self._run(self.session.create_customer,
                             fields["Name *"].get(), fields["Phone *"].get(),
                             address=fields["Address"].get() or None,
                             tax_id=fields["Tax ID"].get() or None)
            if snap is not None:
                self._update_status("Customer saved")
                popup.destroy()

        ttk.Button(form, text="Save and Continue", command=save,
                   bootstyle="success").grid(row=4, column=0, columnspan=2, pady=5)

        def on_close():
            self._render(self.session.dismiss_customer_prompt())
            popup.destroy()

        popup.protocol("WM_DELETE_WINDOW", on_close)

    # ----- sales history -----

    def _show_sales_history(self):
        history = self.session.history
        popup = ttk.Toplevel(self.root)
        popup.title("Sales History")
        popup.geometry("900x600")

        filter_frame = ttk.LabelFrame(popup, text="Filters", bootstyle="primary")
        filter_frame.pack(fill=tk.X, padx=10, pady=10)
        start_var = tk.StringVar()
        end_var = tk.StringVar()
        method_var = tk.StringVar(value="All")
        ttk.Label(filter_frame, text="From (YYYY-MM-DD):").grid(row=0, column=0, padx=5, pady=5)
        ttk.Entry(filter_frame, textvariable=start_var, width=12).grid(row=0, column=1, padx=5, pady=5)
        ttk.Label(filter_frame, text="To:").grid(row=0, column=2, padx=5, pady=5)
        ttk.Entry(filter_frame, textvariable=end_var, width=12).grid(row=0, column=3, padx=5, pady=5)
        ttk.Label(filter_frame, text="Payment:").grid(row=0, column=4, padx=5, pady=5)
        methods = {"All": None, **{m.label: m for m in PaymentMethod}}
        method_combo = ttk.Combobox(filter_frame, textvariable=method_var, values=list(methods),
                                    state="readonly", width=10)
        method_combo.grid(row=0, column=5, padx=5, pady=5)

        cols = ("ID", "Date", "Items", "Total", "Paid", "Remaining", "Payment", "Status")
        list_frame = ttk.Frame(popup)
        list_frame.pack(fill=tk.BOTH, expand=True, padx=10, pady=5)
        scroll = ttk.Scrollbar(list_frame)
        scroll.pack(side=tk.RIGHT, fill=tk.Y)
        tv = ttk.Treeview(list_frame, columns=cols, show='headings', yscrollcommand=scroll.set)
        for c in cols:
            tv.heading(c, text=c)
            tv.column(c, width=100, anchor=tk.E if c in ("Total", "Paid", "Remaining") else tk.CENTER)
        tv.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        scroll.config(command=tv.yview)

        summary_var = tk.StringVar()
        ttk.Label(popup, textvariable=summary_var, font=("Arial", 10, "bold")).pack(fill=tk.X, padx=10, pady=5)

        def show(sales):
            tv.delete(*tv.get_children())
            for s in sales:
                date = s.created_at.strftime("%Y-%m-%d %H:%M") if s.created_at else ""
                tv.insert("", "end", iid=str(s.id), values=(
                    s.id, date, sum(it.quantity for it in s.items), format_try(s.total),
                    format_try(s.paid_amount), format_try(s.remaining_amount),
                    s.payment_method.label, s.status))
            summary = history.summary()
            summary_var.set(
                f"Nakit: {format_try(summary['cash'])}   Kart: {format_try(summary['card'])}   "
                f"Veresiye: {format_try(summary['credit'])} "
                f"(paid {format_try(summary['credit_paid'])}, owed {format_try(summary['credit_remaining'])})   "
                f"Total: {format_try(summary['total'])} in {summary['num_transactions']} sales")

        def load():
            try:
                show(history.load(start_var.get(), end_var.get(), methods[method_var.get()]))
            except CheckoutError as e:
                messagebox.showerror("Sales History", str(e), parent=popup)

        def export(fmt):
            ext = ".xlsx" if fmt == "excel" else ".csv"
            path = filedialog.asksaveasfilename(
                parent=popup,
                defaultextension=ext,
                initialdir=history.export_dir,
                filetypes=[("Excel Files", "*.xlsx")] if fmt == "excel" else [("CSV Files", "*.csv")],
            )
            if not path:
                return
            try:
                history.export(path, fmt)
                messagebox.showinfo("Export", f"Sales exported to {path}", parent=popup)
            except Exception as e:
                logger.error(f"Sales export failed: {e}")
                messagebox.showerror("Export Error", str(e), parent=popup)

        def details():
            selected = tv.selection()
            if not selected:
                messagebox.showinfo("Selection", "Please select a sale", parent=popup)
                return
            try:
                sale = history.get(selected[0])
            except CheckoutError as e:
                messagebox.showerror("Sales History", str(e), parent=popup)
                return
            self._show_sale_detail(popup, sale, show)

        btn_frame = ttk.Frame(popup)
        btn_frame.pack(fill=tk.X, padx=10, pady=10)
        ttk.Button(btn_frame, text="Load", command=load, bootstyle="primary").pack(side=tk.LEFT, padx=5)
        ttk.Button(btn_frame, text="Details", command=details, bootstyle="info").pack(side=tk.LEFT, padx=5)
        ttk.Button(btn_frame, text="Export Excel", command=lambda: export("excel"),
                   bootstyle="success-outline").pack(side=tk.RIGHT, padx=5)
        ttk.Button(btn_frame, text="Export CSV", command=lambda: export("csv"),
                   bootstyle="success-outline").pack(side=tk.RIGHT, padx=5)
        tv.bind("<Double-1>", lambda e: details())

        load()

    def _show_sale_detail(self, parent, sale, on_change):
        popup = ttk.Toplevel(parent)
        popup.title(f"Sale {sale.id}")
        popup.geometry("480x420")

        date = sale.created_at.strftime("%Y-%m-%d %H:%M:%S") if sale.created_at else "-"
        info = (f"Date: {date}\nPayment: {sale.payment_method.label}\nStatus: {sale.status}\n"
                f"Total: {format_try(sale.total)}")
        if sale.payment_method is PaymentMethod.CREDIT:
            info += f"\nPaid: {format_try(sale.paid_amount)}\nRemaining: {format_try(sale.remaining_amount)}"
        ttk.Label(popup, text=info, justify=tk.LEFT).pack(fill=tk.X, padx=10, pady=10)

        cols = ("Product", "Qty", "Price", "Line Total")
        tv = ttk.Treeview(popup, columns=cols, show='headings', height=8)
        for c in cols:
            tv.heading(c, text=c)
        for it in sale.items:
            tv.insert("", "end", values=(it.name, it.quantity, format_try(it.unit_price), format_try(it.line_total)))
        tv.pack(fill=tk.BOTH, expand=True, padx=10, pady=5)

        def cancel_sale():
            if not messagebox.askyesno("Cancel Sale", f"Cancel sale {sale.id}?", parent=popup):
                return
            reason = simpledialog.askstring("Cancel Sale", "Reason (optional):", parent=popup)
            try:
                on_change(self.session.history.cancel(sale.id, reason))
            except CheckoutError as e:
                messagebox.showerror("Cancel Sale", str(e), parent=popup)
                return
            self._update_status(f"Sale {sale.id} cancelled")
            popup.destroy()

        if sale.status != "cancelled":
            ttk.Button(popup, text="Cancel Sale", command=cancel_sale, bootstyle="danger").pack(pady=10)

    # ----- submission -----

    def _checkout(self):
        if not self._enter_paid_amount():
            return
        customer = self.session.payment.customer
        thread = threading.Thread(target=self._submit_worker, args=(customer,), daemon=True)
        thread.start()
        self.checkout_btn.configure(state="disabled")
        self._update_status("Submitting sale...")
        self.root.after(100, self._poll_submission)

    def _submit_worker(self, customer):
        try:
            self._results.put((self.session.submit(), customer, None))
        except CheckoutError as e:
            self._results.put((None, customer, e))
        except Exception as e:
            logger.error(f"Unexpected error during checkout: {e}", exc_info=True)
            self._results.put((None, customer, e))

    def _poll_submission(self):
        try:
            sale, customer, error = self._results.get_nowait()
        except queue.Empty:
            self.root.after(100, self._poll_submission)
            return

        self._render(self.session.snapshot())
        if error is not None:
            messagebox.showerror("Checkout Error", str(error))
            self._update_status("Sale failed")
            return

        try:
            path = write_receipt(sale, self.receipt_dir, self.receipt_type_var.get(), customer=customer)
            receipt_note = f"\n\nReceipt saved to {path}"
        except OSError as e:
            logger.error(f"Receipt could not be written: {e}")
            receipt_note = "\n\nReceipt could not be saved."

        message = "Sale completed successfully!"
        if sale.payment_method is PaymentMethod.CREDIT:
            message = f"Sale completed. Remaining debt: {format_try(sale.remaining_amount)}"
        messagebox.showinfo("Checkout Complete", message + receipt_note)
        self._update_status(f"Sale {sale.id} completed")
        self._search_products()

    def run(self):
        self.root.mainloop()
