import io
import logging
import os
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from bizadmin.core.dates import format_date
from bizadmin.core.errors import BizAdminError
from bizadmin.core.invoices import DEFAULT_LINE_ITEM_COLUMNS, compute_totals, line_total

logger = logging.getLogger(__name__)


class PdfBuildError(BizAdminError):
    status_code = 500


def _money(value, currency: str) -> str:
    return f"{currency} {float(value or 0):,.2f}"


def _text(value) -> str:
    return escape("" if value is None else str(value))


def _logo(url):
    # only local files; remote logos are left to the browser view
    if url and os.path.isfile(url):
        return Image(url, width=120, height=48, kind="proportional")
    if url:
        logger.debug(f"Skipping non-local logo {url}")
    return None


def build_invoice_pdf(invoice: dict, template: dict) -> bytes:
    """Render one invoice with its template's header, custom fields, columns and footer."""
    currency = invoice.get("currency") or template.get("currency") or ""
    line_items = invoice.get("lineItems") or []
    totals = compute_totals(line_items)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    styles = getSampleStyleSheet()
    elements = []

    # 1. Header
    logo = _logo((template.get("header") or {}).get("logoUrl"))
    if logo is not None:
        elements.append(logo)
        elements.append(Spacer(1, 12))
    title = (template.get("header") or {}).get("title") or "INVOICE"
    elements.append(Paragraph(_text(title), styles["Title"]))
    elements.append(Spacer(1, 12))

    # 2. Invoice metadata
    customer = invoice.get("customer") or {}
    elements.append(Paragraph(f"<b>Invoice #:</b> {_text(invoice.get('invoiceNumber'))}", styles["Normal"]))
    elements.append(Paragraph(f"<b>Issue Date:</b> {_text(format_date(invoice.get('issueDate')))}", styles["Normal"]))
    elements.append(Paragraph(f"<b>Due Date:</b> {_text(format_date(invoice.get('dueDate')))}", styles["Normal"]))
    elements.append(Paragraph(f"<b>Bill To:</b> {_text(customer.get('name'))}", styles["Normal"]))
    if customer.get("email"):
        elements.append(Paragraph(_text(customer.get("email")), styles["Normal"]))
    elements.append(Spacer(1, 18))

    # 3. Custom fields
    values = invoice.get("fields") or {}
    custom = [f for f in (template.get("fields") or []) if values.get(f.get("key")) not in (None, "")]
    if custom:
        for f in custom:
            label = f.get("label") or f.get("key")
            elements.append(Paragraph(f"<b>{_text(label)}:</b> {_text(values.get(f.get('key')))}", styles["Normal"]))
        elements.append(Spacer(1, 18))

    # 4. Line items
    columns = template.get("lineItemColumns") or DEFAULT_LINE_ITEM_COLUMNS
    data = [[c.get("label") or c.get("key") for c in columns]]
    for item in line_items:
        row = []
        for c in columns:
            key = c.get("key")
            if key == "lineTotal":
                row.append(_money(line_total(item), currency))
            elif key == "unitPrice":
                row.append(_money(item.get(key), currency))
            else:
                row.append(Paragraph(_text(item.get(key)), styles["Normal"]))
        data.append(row)
    items_table = Table(data, repeatRows=1)
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.navy),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 18))

    # 5. Totals
    totals_table = Table(
        [
            ["Subtotal", _money(totals["subTotal"], currency)],
            ["Tax", _money(totals["taxTotal"], currency)],
            ["Total", _money(totals["grandTotal"], currency)],
        ],
        colWidths=[120, 140],
        hAlign="RIGHT",
    )
    totals_table.setStyle(TableStyle([
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
        ("LINEABOVE", (0, 2), (-1, 2), 0.5, colors.grey),
    ]))
    elements.append(totals_table)

    # 6. Footer
    notes = (template.get("footer") or {}).get("notes")
    if notes:
        elements.append(Spacer(1, 36))
        elements.append(Paragraph(_text(notes), ParagraphStyle(name="Footer", fontSize=8, textColor=colors.grey, alignment=1)))

    try:
        doc.build(elements)
    except Exception as e:
        logger.error(f"Invoice PDF build failed for {invoice.get('invoiceNumber')}: {e}")
        raise PdfBuildError("PDF generation failed during document build.")

    return buffer.getvalue()
