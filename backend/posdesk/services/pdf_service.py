# Overview: Printable invoice rendering (PDF bytes for download).

"""
Invoice PDF

A4 layout: blue header band with the invoice number, Bill To block beside
the dates and status, then either an items table or the free-text
description, a totals box and a footer line. Built with reportlab platypus;
the header band and footer are drawn on the page canvas.

The base-14 Helvetica fonts have no rupee glyph, so amounts are printed with
an "Rs." prefix.
"""

from __future__ import annotations

import io
from datetime import date
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.flowables import HRFlowable

from ..formatting import format_money
from ..models import Invoice
from ..models.invoices import STATUS_PAID, STATUS_OVERDUE

CURRENCY_PREFIX = "Rs."
POS_DESCRIPTION_PREFIX = "POS Sale - "

BRAND_BLUE = colors.Color(24 / 255, 144 / 255, 255 / 255)
STATUS_COLORS = {
    STATUS_PAID: colors.Color(76 / 255, 175 / 255, 80 / 255),
    STATUS_OVERDUE: colors.Color(244 / 255, 67 / 255, 54 / 255),
}
PENDING_COLOR = colors.Color(33 / 255, 150 / 255, 243 / 255)
RULE_GREY = colors.Color(200 / 255, 200 / 255, 200 / 255)
FOOTER_GREY = colors.Color(100 / 255, 100 / 255, 100 / 255)

HEADER_HEIGHT = 45 * mm
MARGIN = 20 * mm


def money(cents: int | None) -> str:
    return format_money(cents, CURRENCY_PREFIX)


def _fmt_date(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    return str(value)


def _styles() -> dict:
    base = getSampleStyleSheet()
    return {
        "heading": ParagraphStyle(
            "InvoiceHeading",
            parent=base["Heading2"],
            fontName="Helvetica-Bold",
            fontSize=14,
            spaceAfter=6,
        ),
        "body": ParagraphStyle(
            "InvoiceBody",
            parent=base["Normal"],
            fontSize=11,
            leading=15,
        ),
        "bold": ParagraphStyle(
            "InvoiceBold",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=11,
            leading=15,
        ),
    }


def describe_for_print(description: str | None) -> tuple[str | None, str]:
    """
    Split a description into an optional heading and the text to print.

    POS descriptions read "POS Sale - A (2), B (1)" and are shown as a
    "Point of Sale Transaction" with an "Items: " prefix.
    """
    text = description or ""
    if text.startswith(POS_DESCRIPTION_PREFIX.strip()):
        return "Point of Sale Transaction", text.replace(POS_DESCRIPTION_PREFIX, "Items: ", 1)
    return None, text


def _draw_page_frame(invoice: Invoice):
    def draw(canvas, doc):
        width, height = A4
        canvas.saveState()

        canvas.setFillColor(BRAND_BLUE)
        canvas.rect(0, height - HEADER_HEIGHT, width, HEADER_HEIGHT, stroke=0, fill=1)
        canvas.setFillColor(colors.white)
        canvas.setFont("Helvetica-Bold", 24)
        canvas.drawCentredString(width / 2, height - 25 * mm, "INVOICE")
        canvas.setFont("Helvetica", 12)
        canvas.drawCentredString(width / 2, height - 35 * mm, f"Invoice #{invoice.id}")

        footer_y = 30 * mm
        canvas.setStrokeColor(RULE_GREY)
        canvas.setLineWidth(0.3)
        canvas.line(MARGIN, footer_y + 5 * mm, width - MARGIN, footer_y + 5 * mm)
        canvas.setFillColor(FOOTER_GREY)
        canvas.setFont("Helvetica-Oblique", 10)
        canvas.drawCentredString(width / 2, footer_y, "Thank you for your business!")

        canvas.restoreState()
    return draw


def _party_block(invoice: Invoice, styles: dict, as_of: date | None) -> Table:
    status = invoice.effective_status(as_of)
    status_color = STATUS_COLORS.get(status, PENDING_COLOR)

    bill_to = [Paragraph("Bill To:", styles["heading"]), Paragraph(escape(invoice.client or ""), styles["body"])]
    if invoice.email:
        bill_to.append(Paragraph(escape(invoice.email), styles["body"]))

    created = invoice.created_at.date() if invoice.created_at else None
    meta = Table(
        [
            ["Invoice Date:", _fmt_date(created)],
            ["Due Date:", _fmt_date(invoice.due_date)],
            ["Status:", status],
        ],
        colWidths=[30 * mm, 30 * mm],
    )
    meta.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTNAME", (1, 0), (1, -1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, -1), 11),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("TEXTCOLOR", (1, 2), (1, 2), status_color),
    ]))

    block = Table([[bill_to, meta]], colWidths=[100 * mm, 70 * mm])
    block.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ALIGN", (1, 0), (1, 0), "RIGHT"),
        ("LEFTPADDING", (0, 0), (0, 0), 0),
    ]))
    return block


def _items_table(invoice: Invoice) -> Table:
    data = [["Item", "Qty", "Price", "Total"]]
    for item in invoice.items:
        data.append([
            (item.name or "")[:40],
            str(item.quantity),
            money(item.unit_price_cents),
            money(item.line_total_cents),
        ])

    table = Table(data, colWidths=[80 * mm, 20 * mm, 35 * mm, 35 * mm])
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), colors.Color(245 / 255, 245 / 255, 245 / 255)),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 11),
        ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
        ("FONTSIZE", (0, 1), (-1, -1), 10),
        ("ALIGN", (1, 0), (2, -1), "CENTER"),
        ("ALIGN", (3, 0), (3, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
    ]
    # Zebra rows, starting with the first item
    for row in range(1, len(data), 2):
        style.append(("BACKGROUND", (0, row), (-1, row), colors.Color(250 / 255, 250 / 255, 250 / 255)))
    table.setStyle(TableStyle(style))
    return table


def _totals_box(invoice: Invoice) -> Table:
    table = Table(
        [
            ["Subtotal:", money(invoice.amount_cents)],
            ["Tax:", money(0)],
            ["Total:", money(invoice.amount_cents)],
        ],
        colWidths=[45 * mm, 45 * mm],
        hAlign="RIGHT",
    )
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, -1), colors.Color(248 / 255, 249 / 255, 250 / 255)),
        ("BOX", (0, 0), (-1, -1), 0.5, colors.Color(220 / 255, 220 / 255, 220 / 255)),
        ("LINEABOVE", (0, 2), (-1, 2), 0.3, RULE_GREY),
        ("FONTNAME", (0, 0), (-1, 1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, 1), 11),
        ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
        ("FONTSIZE", (0, 2), (-1, 2), 13),
        ("TEXTCOLOR", (0, 2), (-1, 2), BRAND_BLUE),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
    ]))
    return table


def render_invoice_pdf(invoice: Invoice, as_of: date | None = None) -> bytes:
    """Render one invoice to PDF bytes."""
    styles = _styles()
    buffer = io.BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=HEADER_HEIGHT + 12 * mm,
        bottomMargin=40 * mm,
        title=f"Invoice {invoice.id}",
    )

    story = [_party_block(invoice, styles, as_of), Spacer(1, 6 * mm)]
    story.append(HRFlowable(width="100%", thickness=0.5, color=RULE_GREY))
    story.append(Spacer(1, 6 * mm))

    if invoice.items:
        story.append(Paragraph("Items:", styles["heading"]))
        story.append(_items_table(invoice))
    else:
        story.append(Paragraph("Description:", styles["heading"]))
        heading, text = describe_for_print(invoice.description)
        if heading:
            story.append(Paragraph(heading, styles["bold"]))
        story.append(Paragraph(escape(text), styles["body"]))

    story.append(Spacer(1, 8 * mm))
    story.append(_totals_box(invoice))

    frame = _draw_page_frame(invoice)
    doc.build(story, onFirstPage=frame, onLaterPages=frame)

    pdf_bytes = buffer.getvalue()
    buffer.close()
    return pdf_bytes
