# utils.py
import datetime
import os

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from models import PaymentMethod, Sale
from pricing import format_try, split_total

SALES_COLUMNS = ['id', 'created_at', 'payment_method', 'customer_id', 'items',
                 'total', 'paid_amount', 'remaining_amount', 'status']


def _sale_date(sale: Sale):
    ts = sale.created_at or datetime.datetime.now()
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def receipt_path(sale: Sale, receipt_dir: str, fmt: str = "txt"):
    """Build (and create the directory for) the file a receipt is written to."""
    os.makedirs(receipt_dir, exist_ok=True)
    stamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    name = f"receipt_{sale.id}_{stamp}" if sale.id is not None else f"receipt_{stamp}"
    return os.path.join(receipt_dir, f"{name}.{fmt}")


def generate_txt_receipt(sale: Sale, file_path: str, customer=None):
    """Write a simple text receipt."""
    # net and VAT are backed out of the server total
    totals = split_total(sale.total)
    with open(file_path, 'w', encoding='utf-8') as f:
        f.write(f"Date: {_sale_date(sale)}\n")
        if sale.id is not None:
            f.write(f"Sale: {sale.id}\n")
        if customer is not None:
            f.write(f"Customer: {customer.name} ({customer.phone})\n")
        f.write("-" * 40 + "\n")
        f.write("Item               QTY      Price      Total\n")
        for it in sale.items:
            price = format_try(it.unit_price, symbol=False)
            line = format_try(it.line_total, symbol=False)
            f.write(f"{it.name[:15]:15} {it.quantity:5} {price:>10} {line:>10}\n")
        f.write("-" * 40 + "\n")
        f.write(f"Subtotal:     {format_try(totals.subtotal):>14}\n")
        f.write(f"VAT (18%):    {format_try(totals.tax):>14}\n")
        f.write(f"Total:        {format_try(sale.total):>14}\n")
        f.write(f"Payment:      {sale.payment_method.label}\n")
        if sale.payment_method is PaymentMethod.CREDIT:
            f.write(f"Paid:         {format_try(sale.paid_amount):>14}\n")
            f.write(f"Remaining:    {format_try(sale.remaining_amount):>14}\n")
        f.write("-" * 40 + "\n")
        f.write("Thank you for your purchase!\n")
    return file_path


def generate_pdf_receipt(sale: Sale, file_path: str, customer=None):
    """Generate a PDF receipt using ReportLab."""
    # the built-in PDF fonts have no lira sign
    def tl(amount):
        return f"{format_try(amount, symbol=False)} TL"

    doc = SimpleDocTemplate(file_path, pagesize=A4)
    elements = []

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name='RightAlign',
        parent=styles['Normal'],
        alignment=2,
    ))

    elements.append(Paragraph("Receipt", styles['Heading1']))
    elements.append(Paragraph(f"Date: {_sale_date(sale)}", styles['Normal']))
    if sale.id is not None:
        elements.append(Paragraph(f"Sale: {sale.id}", styles['Normal']))
    if customer is not None:
        elements.append(Paragraph(f"Customer: {customer.name} ({customer.phone})", styles['Normal']))
    elements.append(Spacer(1, 0.2 * inch))

    # net and VAT are backed out of the server total
    totals = split_total(sale.total)
    data = [["Item", "Quantity", "Price", "Total"]]
    for it in sale.items:
        data.append([it.name, str(it.quantity), tl(it.unit_price), tl(it.line_total)])

    data.append(["" for _ in range(4)])
    data.append(["Subtotal:", "", "", tl(totals.subtotal)])
    data.append(["VAT (18%):", "", "", tl(totals.tax)])
    data.append(["Total:", "", "", tl(sale.total)])
    data.append(["Payment Method:", sale.payment_method.label, "", ""])
    if sale.payment_method is PaymentMethod.CREDIT:
        data.append(["Paid:", "", "", tl(sale.paid_amount)])
        data.append(["Remaining:", "", "", tl(sale.remaining_amount)])
    summary_rows = len(data) - len(sale.items) - 2

    table = Table(data, colWidths=[2.5*inch, 1*inch, 1.2*inch, 1.2*inch])
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (3, 0), colors.grey),
        ('TEXTCOLOR', (0, 0), (3, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (3, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (3, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (3, 0), 12),
        ('BOTTOMPADDING', (0, 0), (3, 0), 12),
        ('BACKGROUND', (0, 1), (3, -1), colors.white),
        ('GRID', (0, 0), (-1, len(sale.items)), 1, colors.black),
        ('ALIGN', (1, 1), (3, -1), 'RIGHT'),
        ('FONTNAME', (0, -summary_rows), (3, -1), 'Helvetica-Bold'),
    ]))

    elements.append(table)
    elements.append(Spacer(1, 0.5 * inch))
    elements.append(Paragraph("Thank you for your purchase!", styles['RightAlign']))

    doc.build(elements)
    return file_path


def write_receipt(sale: Sale, receipt_dir: str, fmt: str = "txt", customer=None):
    """Write a receipt in the configured format and return its path."""
    fmt = (fmt or "txt").lower()
    path = receipt_path(sale, receipt_dir, "pdf" if fmt == "pdf" else "txt")
    if fmt == "pdf":
        return generate_pdf_receipt(sale, path, customer=customer)
    return generate_txt_receipt(sale, path, customer=customer)


def sales_dataframe(sales):
    """Flatten a list of Sale objects into a DataFrame."""
    return pd.DataFrame([s.as_row() for s in sales], columns=SALES_COLUMNS)


def summarize_sales(sales):
    """
    Totals per payment method for a list of sales, as shown above the
    sales list: cash, card, credit, plus what was paid and what is still
    owed on credit sales. Cancelled sales are ignored.
    """
    df = sales_dataframe(sales)
    if not df.empty:
        df = df[df['status'] != 'cancelled']

    by_method = df.groupby('payment_method')['total'].sum() if not df.empty else pd.Series(dtype=float)
    credit = df[df['payment_method'] == PaymentMethod.CREDIT.value] if not df.empty else df

    summary = {method.value: round(float(by_method.get(method.value, 0.0)), 2)
               for method in PaymentMethod}
    summary.update({
        'credit_paid': round(float(credit['paid_amount'].sum()) if not credit.empty else 0.0, 2),
        'credit_remaining': round(float(credit['remaining_amount'].sum()) if not credit.empty else 0.0, 2),
        'total': round(float(df['total'].sum()) if not df.empty else 0.0, 2),
        'num_transactions': int(len(df)),
    })
    return summary


def export_sales(sales, file_path: str, format: str = 'csv'):
    """Export fetched sales to CSV or Excel."""
    df = sales_dataframe(sales)
    if format.lower() == 'excel':
        try:
            df.to_excel(file_path, index=False, sheet_name='Sales')
        except Exception as e:
            raise Exception(f"Failed to export to Excel: {str(e)}")
    else:
        df.to_csv(file_path, index=False)
    return file_path
