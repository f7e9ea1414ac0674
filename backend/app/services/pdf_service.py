"""
PDF Invoice Generation Service
Renders a GST tax invoice: header, patient block, line table and totals.
"""
from io import BytesIO
from datetime import datetime
from decimal import Decimal
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from app.core.config import settings
from app.models.invoice import Invoice

# Base-14 fonts have no rupee glyph
CURRENCY = "Rs."


def _money(value) -> str:
    return f"{CURRENCY} {Decimal(value or 0):,.2f}"


def _text(value) -> str:
    return escape(str(value)) if value not in (None, "") else "-"


def generate_invoice_pdf(invoice: Invoice, store_name: str = None) -> BytesIO:
    """
    Generate PDF for an invoice

    Args:
        invoice: Invoice with items loaded
        store_name: heading shown on the invoice (defaults to settings.STORE_NAME)

    Returns:
        BytesIO buffer positioned at the start of the PDF data
    """
    store_name = store_name or settings.STORE_NAME

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4,
        topMargin=0.5*inch, bottomMargin=0.5*inch,
        leftMargin=0.5*inch, rightMargin=0.5*inch,
        title=f"Invoice {invoice.invoice_no}",
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'InvoiceTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#1a56db'),
        alignment=TA_CENTER,
        spaceAfter=6
    )
    heading_style = ParagraphStyle(
        'InvoiceHeading',
        parent=styles['Heading2'],
        fontSize=12,
        textColor=colors.HexColor('#1f2937'),
        spaceAfter=4
    )
    normal_style = ParagraphStyle(
        'InvoiceNormal',
        parent=styles['Normal'],
        fontSize=9,
        textColor=colors.HexColor('#374151')
    )
    footer_style = ParagraphStyle(
        'InvoiceFooter',
        parent=styles['Normal'],
        fontSize=8,
        textColor=colors.grey,
        alignment=TA_CENTER
    )

    elements.append(Paragraph(escape(store_name), title_style))
    elements.append(Paragraph("TAX INVOICE", ParagraphStyle('Sub', parent=normal_style, alignment=TA_CENTER)))
    elements.append(Spacer(1, 0.2*inch))

    created = invoice.created_at.strftime('%d %b %Y, %I:%M %p') if invoice.created_at else "-"
    info_data = [[
        Paragraph(
            f"<b>Patient:</b> {_text(invoice.patient_name)}<br/>"
            f"<b>Address:</b> {_text(invoice.patient_address)}<br/>"
            f"<b>Phone:</b> {_text(invoice.customer_phone)}<br/>"
            f"<b>Doctor:</b> {_text(invoice.doctor_name)}",
            normal_style,
        ),
        Paragraph(
            f"<b>Invoice #:</b> {_text(invoice.invoice_no)}<br/>"
            f"<b>Date:</b> {created}<br/>"
            f"<b>Mode:</b> {_text(invoice.mode)}<br/>"
            f"<b>Status:</b> {_text(invoice.status)}<br/>"
            f"<b>Place of supply:</b> {_text(invoice.place_of_supply)}<br/>"
            f"<b>GSTIN:</b> {_text(invoice.gstin)}",
            normal_style,
        ),
    ]]
    info_table = Table(info_data, colWidths=[3.6*inch, 3.6*inch])
    info_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('BOX', (0, 0), (-1, -1), 0.5, colors.grey),
        ('TOPPADDING', (0, 0), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.2*inch))

    header = ["#", "Item", "Batch", "Qty", "Free", "MRP", "Rate", "Disc %", "GST %", "Amount"]
    items_data = [header]
    for index, item in enumerate(invoice.items, start=1):
        items_data.append([
            str(index),
            Paragraph(escape(item.product_name), normal_style),
            item.batch_ref or "-",
            str(item.qty),
            str(item.free_qty or 0),
            f"{Decimal(item.mrp or 0):.2f}",
            f"{Decimal(item.unit_rate):.2f}",
            f"{Decimal(item.discount_pct or 0):.2f}",
            f"{Decimal(item.gst_pct):.2f}",
            f"{Decimal(item.amount):.2f}",
        ])

    items_table = Table(
        items_data,
        colWidths=[0.3*inch, 2.2*inch, 0.8*inch, 0.45*inch, 0.45*inch,
                   0.65*inch, 0.65*inch, 0.55*inch, 0.5*inch, 0.75*inch],
        repeatRows=1,
    )
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f3f4f6')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.HexColor('#1f2937')),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('ALIGN', (3, 0), (-1, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#fafafa')]),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    totals = [("Subtotal", invoice.sub_total), ("Discount", invoice.discount_total)]
    if invoice.is_inter_state:
        totals.append(("IGST", invoice.igst))
    else:
        totals.extend([("CGST", invoice.cgst), ("SGST", invoice.sgst)])
    totals.extend([
        ("Total tax", invoice.tax_total),
        ("Round off", invoice.round_off),
        ("Net payable", invoice.net_payable),
        ("Paid", invoice.paid),
        ("Balance", invoice.balance),
    ])
    net_row = [label for label, _ in totals].index("Net payable")

    total_data = [
        ['', Paragraph(f"<b>{label}:</b>", normal_style), _money(amount)]
        for label, amount in totals
    ]
    total_table = Table(total_data, colWidths=[4.2*inch, 1.6*inch, 1.5*inch])
    total_table.setStyle(TableStyle([
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('LINEABOVE', (1, net_row), (-1, net_row), 1, colors.black),
        ('FONTNAME', (2, net_row), (2, net_row), 'Helvetica-Bold'),
        ('TOPPADDING', (0, 0), (-1, -1), 2),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
    ]))
    elements.append(total_table)

    if invoice.notes:
        elements.append(Spacer(1, 0.2*inch))
        elements.append(Paragraph("<b>Notes:</b>", heading_style))
        elements.append(Paragraph(escape(invoice.notes), normal_style))

    elements.append(Spacer(1, 0.5*inch))
    elements.append(Paragraph("Thank you! Get well soon.", footer_style))
    elements.append(Paragraph(f"Invoice generated on {datetime.now().strftime('%d %b %Y at %I:%M %p')}", footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
