"""Invoice and delivery challan PDF rendering (A4, reportlab canvas).

Invoice layout, top to bottom: company header, bill number and dates, Bill To
block, item table, totals, payment status and notes, footer. Amounts use Indian
digit grouping; the base-14 fonts have no rupee glyph, so "Rs." is printed.
"""
from __future__ import annotations

import logging
from io import BytesIO
from typing import Any, Dict, List

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from ..config.settings import get_settings
from ..utils.money import format_inr
from .tax_calculator import state_name

LOGGER = logging.getLogger(__name__)

MARGIN = 40
FOOTER_Y = 40
ROW = 15
COLUMNS = (
    ("#", 0),
    ("Item", 25),
    ("HSN", 235),
    ("Qty", 295),
    ("Rate", 340),
    ("GST %", 410),
    ("Amount", 460),
)


def rupees(value: Any) -> str:
    return "Rs. " + format_inr(value, symbol=False)


def _date(value: Any) -> str:
    return str(value)[:10] if value else "-"


class _Page:
    """Canvas cursor that starts a new page when the body runs out of room."""

    def __init__(self, c: canvas.Canvas):
        self.c = c
        self.width, self.height = A4
        self.y = self.height - MARGIN

    def need(self, space: float) -> None:
        if self.y - space < FOOTER_Y + 30:
            self.c.showPage()
            self.y = self.height - MARGIN
            self.c.setFont("Helvetica", 9)

    def line(self) -> None:
        self.c.line(MARGIN, self.y, self.width - MARGIN, self.y)


def _header(page: _Page, invoice: Dict[str, Any]) -> None:
    settings = get_settings()
    c = page.c
    c.setFont("Helvetica-Bold", 16)
    c.drawCentredString(page.width / 2, page.y, settings.COMPANY_NAME)
    page.y -= 16
    c.setFont("Helvetica", 10)
    c.drawCentredString(page.width / 2, page.y, settings.COMPANY_TAGLINE)
    page.y -= 22
    c.setFont("Helvetica-Bold", 13)
    c.drawCentredString(page.width / 2, page.y, "TAX INVOICE")
    page.y -= 22

    c.setFont("Helvetica", 10)
    c.drawString(MARGIN, page.y, f"Bill No: {invoice['bill_number']}")
    c.drawString(page.width / 2, page.y, f"Bill Date: {_date(invoice['bill_date'])}")
    page.y -= ROW
    c.drawString(page.width / 2, page.y, f"Due Date: {_date(invoice.get('due_date'))}")
    page.y -= ROW + 5
    page.line()
    page.y -= ROW


def _bill_to(page: _Page, invoice: Dict[str, Any]) -> None:
    c = page.c
    c.setFont("Helvetica-Bold", 10)
    c.drawString(MARGIN, page.y, "Bill To:")
    page.y -= ROW
    c.setFont("Helvetica", 10)
    lines: List[str] = [invoice["customer_name"]]
    if invoice.get("customer_address"):
        lines.extend(str(invoice["customer_address"]).splitlines())
    if invoice.get("customer_phone"):
        lines.append(f"Phone: {invoice['customer_phone']}")
    if invoice.get("customer_email"):
        lines.append(f"Email: {invoice['customer_email']}")
    if invoice.get("customer_gstin"):
        lines.append(f"GSTIN: {invoice['customer_gstin']}")
    place = state_name(invoice.get("recipient_state"))
    if place:
        lines.append(f"Place of Supply: {place} ({invoice['recipient_state']})")
    for text in lines:
        c.drawString(MARGIN, page.y, text[:90])
        page.y -= ROW
    page.y -= 5


def _items(page: _Page, items: List[Dict[str, Any]]) -> None:
    c = page.c
    c.setFont("Helvetica-Bold", 10)
    for title, offset in COLUMNS:
        c.drawString(MARGIN + offset, page.y, title)
    page.y -= 5
    page.line()
    page.y -= ROW
    c.setFont("Helvetica", 9)
    for index, item in enumerate(items, start=1):
        page.need(ROW)
        values = (
            str(item.get("sl_no") or index),
            str(item.get("description") or "")[:38],
            str(item.get("hsn_code") or ""),
            f"{float(item.get('quantity') or 0):g}",
            format_inr(item.get("unit_rate"), symbol=False),
            f"{float(item.get('gst_percent') or 0):g}",
            format_inr(item.get("taxable_value"), symbol=False),
        )
        for (_, offset), value in zip(COLUMNS, values):
            c.drawString(MARGIN + offset, page.y, value)
        page.y -= ROW
    page.line()
    page.y -= ROW


def _totals(page: _Page, invoice: Dict[str, Any]) -> None:
    rows = [("Subtotal", invoice["taxable_value"])]
    if invoice.get("igst"):
        rows.append(("IGST", invoice["igst"]))
    else:
        rows.append(("CGST", invoice.get("cgst") or 0))
        rows.append(("SGST", invoice.get("sgst") or 0))
    rows.append(("GST Total", invoice.get("gst_total") or 0))
    if invoice.get("discount"):
        rows.append(("Discount", -float(invoice["discount"])))
    if invoice.get("shipping_charges"):
        rows.append(("Shipping", invoice["shipping_charges"]))

    c = page.c
    label_x = page.width - MARGIN - 200
    page.need(ROW * (len(rows) + 2))
    c.setFont("Helvetica", 10)
    for label, value in rows:
        c.drawString(label_x, page.y, label)
        c.drawRightString(page.width - MARGIN, page.y, rupees(value))
        page.y -= ROW
    c.setFont("Helvetica-Bold", 11)
    c.drawString(label_x, page.y, "Grand Total")
    c.drawRightString(page.width - MARGIN, page.y, rupees(invoice["grand_total"]))
    page.y -= ROW * 2


def _remarks(page: _Page, invoice: Dict[str, Any]) -> None:
    c = page.c
    page.need(ROW * 3)
    c.setFont("Helvetica", 10)
    c.drawString(MARGIN, page.y, f"Payment Status: {str(invoice.get('payment_status') or '').upper()}")
    page.y -= ROW
    if invoice.get("notes"):
        c.drawString(MARGIN, page.y, "Notes:")
        page.y -= ROW
        for text in str(invoice["notes"]).splitlines():
            page.need(ROW)
            c.drawString(MARGIN + 10, page.y, text[:95])
            page.y -= ROW


def _footer(c: canvas.Canvas) -> None:
    width, _ = A4
    c.setFont("Helvetica-Oblique", 8)
    c.drawCentredString(width / 2, FOOTER_Y,
                        f"Thank you for your business. {get_settings().COMPANY_NAME}")
    c.drawCentredString(width / 2, FOOTER_Y - 10, "This is a computer generated invoice.")


def generate_invoice_pdf(invoice: Dict[str, Any]) -> bytes:
    """Render a serialized invoice (see ``serialize_invoice``) to PDF bytes."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(f"Invoice {invoice['bill_number']}")
    page = _Page(c)
    _header(page, invoice)
    _bill_to(page, invoice)
    _items(page, invoice.get("items") or [])
    _totals(page, invoice)
    _remarks(page, invoice)
    _footer(c)
    c.showPage()
    c.save()
    LOGGER.debug("Rendered PDF for %s", invoice["bill_number"])
    return buffer.getvalue()


CHALLAN_COLUMNS = (
    ("Sl.No.", 0),
    ("PARTICULARS", 50),
    ("Qty.", 360),
    ("No. of Packs", 430),
)


def _labelled(c: canvas.Canvas, x: float, y: float, label: str, value: Any) -> None:
    c.setFont("Helvetica-Bold", 10)
    c.drawString(x, y, label)
    c.setFont("Helvetica", 10)
    c.drawString(x + c.stringWidth(label, "Helvetica-Bold", 10) + 4, y, str(value or "")[:60])


def _challan_terms(settings) -> List[str]:
    return [
        "E. & O.E.",
        "1. Interest at 24% will be charged from due date.",
        "2. Goods once sold will not be taken back.",
        "3. Our responsibility ceases once the goods are delivered.",
        f"4. All disputes subject to {settings.COMPANY_JURISDICTION} Jurisdiction.",
    ]


def generate_challan_pdf(challan: Dict[str, Any]) -> bytes:
    """Render a serialized delivery challan (see ``serialize_challan``) to PDF bytes."""
    settings = get_settings()
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(f"Delivery Challan {challan['challan_number']}")
    page = _Page(c)

    c.setFont("Helvetica-Bold", 13)
    c.drawCentredString(page.width / 2, page.y, "DELIVERY CHALLAN")
    page.y -= 22
    c.setFont("Helvetica-Bold", 16)
    c.drawCentredString(page.width / 2, page.y, settings.COMPANY_NAME)
    page.y -= 14
    c.setFont("Helvetica", 9)
    c.drawCentredString(page.width / 2, page.y, f"ADDRESS: {settings.COMPANY_ADDRESS}")
    page.y -= 18
    page.line()
    page.y -= ROW

    _labelled(c, MARGIN, page.y, "No.", challan["challan_number"])
    _labelled(c, page.width / 2, page.y, "Date:", _date(challan.get("challan_date")))
    page.y -= ROW
    _labelled(c, MARGIN, page.y, "M/s.", challan["customer_name"])
    page.y -= ROW
    _labelled(c, MARGIN, page.y, "Your P.O. No.:", challan.get("po_number"))
    _labelled(c, page.width / 2, page.y, "Date:", _date(challan.get("po_date")) if challan.get("po_date") else "")
    page.y -= ROW
    address = " ".join(str(challan.get("customer_address") or "").split())
    _labelled(c, MARGIN, page.y, "Material Despatched to:", address)
    page.y -= ROW
    _labelled(c, MARGIN, page.y, "Transport:", challan.get("transport"))
    page.y -= ROW
    _labelled(c, MARGIN, page.y, "Consigned to:", challan.get("consigned_to"))
    page.y -= ROW + 5

    c.setFont("Helvetica-Bold", 10)
    for title, offset in CHALLAN_COLUMNS:
        c.drawString(MARGIN + offset, page.y, title)
    page.y -= 5
    page.line()
    page.y -= ROW
    c.setFont("Helvetica", 9)
    for index, item in enumerate(challan.get("items") or [], start=1):
        page.need(ROW)
        values = (str(index), str(item.get("particulars") or "")[:55],
                  str(item.get("qty") or 0), str(item.get("no_of_packs") or 0))
        for (_, offset), value in zip(CHALLAN_COLUMNS, values):
            c.drawString(MARGIN + offset, page.y, value)
        page.y -= ROW
    page.line()
    page.y -= ROW
    _labelled(c, MARGIN, page.y, "Party's Sales Tax Regn. No.:", challan.get("party_sales_tax_no"))
    page.y -= ROW * 2

    terms = _challan_terms(settings)
    page.need(ROW * (len(terms) + 6))
    value = challan.get("value_of_consignment")
    _labelled(c, MARGIN, page.y, "Value of the Consignment:", rupees(value) if value is not None else "")
    page.y -= ROW
    c.setFont("Helvetica", 9)
    for text in terms:
        c.drawString(MARGIN, page.y, text)
        page.y -= 12
    page.y -= ROW * 2
    c.setFont("Helvetica-Bold", 10)
    c.drawString(MARGIN, page.y, "Receiver's Signature")
    c.drawRightString(page.width - MARGIN, page.y + ROW * 2, f"For {settings.COMPANY_NAME}")
    c.drawRightString(page.width - MARGIN, page.y, "AUTHORISED SIGNATORY")

    c.showPage()
    c.save()
    LOGGER.debug("Rendered PDF for %s", challan["challan_number"])
    return buffer.getvalue()


__all__ = ["generate_invoice_pdf", "generate_challan_pdf", "rupees"]
