"""Printable invoice for a committed sale."""

from io import BytesIO
from xml.sax.saxutils import escape
from typing import Dict, Any

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER

from storepos.models import Sale
from storepos.utils.formatters import money, quantity, date_time

PAYMENT_LABELS = {
    'CASH': 'Efectivo',
    'CARD': 'Tarjeta',
    'TRANSFER': 'Transferencia',
    'OTHER': 'Otro',
}


def generate_invoice_pdf(sale: Sale, business_info: Dict[str, Any]) -> BytesIO:
    """
    Render the invoice of ``sale`` (items, customer and invoice loaded).

    A sale without an invoice prints as a receipt numbered by sale id.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch,
        title=f'Venta {sale.id}'
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'InvoiceTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#2C3E50'),
        spaceAfter=12,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )
    header_style = ParagraphStyle(
        'InvoiceHeader',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#7F8C8D'),
        alignment=TA_CENTER,
        spaceAfter=6
    )

    # 1. Business header
    if business_info.get('name'):
        elements.append(Paragraph(f"<b>{escape(business_info['name'])}</b>", header_style))
    if business_info.get('address'):
        elements.append(Paragraph(escape(business_info['address']), header_style))

    contact_parts = []
    if business_info.get('phone'):
        contact_parts.append(f"Tel: {business_info['phone']}")
    if business_info.get('email'):
        contact_parts.append(f"Email: {business_info['email']}")
    if contact_parts:
        elements.append(Paragraph(escape(" | ".join(contact_parts)), header_style))

    invoice = sale.invoice
    elements.append(Paragraph("FACTURA DE VENTA" if invoice else "RECIBO DE VENTA", title_style))
    elements.append(Spacer(1, 0.2*inch))

    # 2. Sale metadata
    info_data = [
        ['N°:', invoice.number if invoice else str(sale.id)],
        ['Fecha:', date_time(invoice.date if invoice else sale.sale_date)],
        ['Método de Pago:', PAYMENT_LABELS.get(sale.payment_method.value, sale.payment_method.value)],
    ]
    if sale.customer:
        info_data.append(['Cliente:', sale.customer.name])
        if sale.customer.id_number:
            info_data.append(['Identificación:', sale.customer.id_number])
    if invoice and invoice.invoice_status:
        info_data.append(['Estado:', invoice.invoice_status.value])

    info_table = Table(info_data, colWidths=[2*inch, 3*inch])
    info_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.3*inch))

    # 3. Items
    table_data = [['Producto', 'Cantidad', 'Precio Unit.', 'Subtotal']]
    for item in sale.items:
        name = item.product.name if item.product else f'#{item.product_id}'
        table_data.append([name, quantity(item.quantity), money(item.unit_price), money(item.subtotal)])

    items_table = Table(table_data, colWidths=[3.4*inch, 0.9*inch, 1.2*inch, 1.2*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3498DB')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 10),
        ('ALIGN', (1, 1), (1, -1), 'CENTER'),
        ('ALIGN', (2, 1), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#ECF0F1')]),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # 4. Total
    total_table = Table([['TOTAL:', money(sale.total_amount)]], colWidths=[5.5*inch, 1.2*inch])
    total_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, 0), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 13),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#27AE60')),
        ('BOX', (0, 0), (-1, -1), 1.5, colors.HexColor('#27AE60')),
    ]))
    elements.append(total_table)

    if sale.status.value == 'CANCELLED':
        elements.append(Spacer(1, 0.3*inch))
        elements.append(Paragraph("<b>VENTA ANULADA</b>", header_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
