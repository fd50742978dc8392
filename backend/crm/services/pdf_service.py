"""
PDF Invoice Generation Service
Renders an order invoice with the prices captured at sale time
"""
from io import BytesIO
from datetime import datetime
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.lib import colors
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER
from xml.sax.saxutils import escape

from crm.core.config import settings
from crm.services.order_service import OrderDetail


def format_money(cents: int, symbol: str = None) -> str:
    """Format minor units without going through float: 499900 -> "$4,999.00"."""
    symbol = settings.CURRENCY_SYMBOL if symbol is None else symbol
    sign = "-" if cents < 0 else ""
    whole, minor = divmod(abs(int(cents)), 100)
    return f"{sign}{symbol}{whole:,}.{minor:02d}"


def render_invoice_pdf(detail: OrderDetail, business_name: str = None) -> BytesIO:
    """
    Generate PDF for an order invoice

    Line prices and the total come from the order as stored; the live
    catalog is not consulted.

    Args:
        detail: Order with customer and items (OrderService.get_invoice)
        business_name: Seller name in the header (defaults to settings)

    Returns:
        BytesIO buffer containing PDF data
    """
    business_name = business_name or settings.BUSINESS_NAME

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=0.5*inch, bottomMargin=0.5*inch)

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'InvoiceTitle',
        parent=styles['Heading1'],
        fontSize=24,
        textColor=colors.HexColor('#1a56db'),
        alignment=TA_CENTER,
        spaceAfter=12
    )

    heading_style = ParagraphStyle(
        'InvoiceHeading',
        parent=styles['Heading2'],
        fontSize=14,
        textColor=colors.HexColor('#1f2937'),
        spaceAfter=6
    )

    normal_style = ParagraphStyle(
        'InvoiceNormal',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#374151')
    )

    elements.append(Paragraph("INVOICE", title_style))
    elements.append(Spacer(1, 0.3*inch))

    created = detail.created_at.strftime('%d %b %Y, %I:%M %p') if detail.created_at else ""
    info_table = Table(
        [[
            Paragraph(f"<b>{escape(business_name)}</b>", normal_style),
            Paragraph(f"<b>Order #:</b> {escape(detail.id)}<br/>"
                      f"<b>Date:</b> {created}<br/>"
                      f"<b>Payment:</b> {escape(detail.payment_status.upper())}", normal_style),
        ]],
        colWidths=[3.5*inch, 3*inch],
    )
    info_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('TOPPADDING', (0, 0), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.3*inch))

    # Bill To
    elements.append(Paragraph("<b>Bill To:</b>", heading_style))
    customer = detail.customer
    if customer is not None:
        customer_info = f"<b>{escape(customer.name)}</b>"
        if customer.email:
            customer_info += f"<br/>Email: {escape(customer.email)}"
        if customer.phone:
            customer_info += f"<br/>Phone: {escape(customer.phone)}"
    else:
        customer_info = f"Customer {escape(detail.customer_id)} (no longer on file)"
    elements.append(Paragraph(customer_info, normal_style))
    elements.append(Spacer(1, 0.3*inch))

    items_data = [
        [Paragraph("<b>Description</b>", normal_style),
         Paragraph("<b>Quantity</b>", normal_style),
         Paragraph("<b>Rate</b>", normal_style),
         Paragraph("<b>Amount</b>", normal_style)],
    ]
    for line in detail.items:
        items_data.append([
            Paragraph(escape(line.product_name), normal_style),
            Paragraph(str(line.quantity), normal_style),
            Paragraph(format_money(line.unit_price), normal_style),
            Paragraph(format_money(line.line_total), normal_style),
        ])

    items_table = Table(items_data, colWidths=[3*inch, 1*inch, 1.2*inch, 1.3*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f3f4f6')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.HexColor('#1f2937')),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 10),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('TOPPADDING', (0, 0), (-1, 0), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#fafafa')]),
        ('TOPPADDING', (0, 1), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 1), (-1, -1), 6),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    total_table = Table(
        [['', '', Paragraph("<b>TOTAL:</b>", heading_style),
          Paragraph(f"<b>{format_money(detail.total)}</b>", heading_style)]],
        colWidths=[3*inch, 1*inch, 1.2*inch, 1.3*inch],
    )
    total_table.setStyle(TableStyle([
        ('ALIGN', (2, 0), (-1, -1), 'RIGHT'),
        ('LINEABOVE', (2, 0), (-1, 0), 1, colors.black),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    elements.append(total_table)

    footer_style = ParagraphStyle(
        'Footer',
        parent=styles['Normal'],
        fontSize=8,
        textColor=colors.grey,
        alignment=TA_CENTER
    )
    elements.append(Spacer(1, 0.5*inch))
    elements.append(Paragraph("Thank you for your business!", footer_style))
    elements.append(Paragraph(f"Invoice generated on {datetime.now().strftime('%d %b %Y at %I:%M %p')}", footer_style))

    doc.build(elements)

    buffer.seek(0)
    return buffer
