"""
PDF Service - Render customer invoices
"""

from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from erp_services.models.invoice_models import Invoice


def format_amount(value, currency: str) -> str:
    return f"{currency} {float(value or 0):,.2f}"


class InvoicePDFService:
    """Service for rendering invoices as PDF documents"""

    def __init__(self, company_name: str = "ERP Services"):
        self.company_name = company_name
        self.styles = getSampleStyleSheet()
        self.setup_custom_styles()

    def setup_custom_styles(self):
        """Header, title and body styles used on every invoice page"""
        for name, parent, extra in (
            ("ErpHeader", "Heading1", {"fontSize": 16, "textColor": colors.darkblue, "alignment": 1, "spaceAfter": 6}),
            ("ErpTitle", "Heading2", {"fontSize": 13, "alignment": 1, "spaceAfter": 12}),
            ("ErpBody", "Normal", {"fontSize": 9, "leading": 11}),
        ):
            self.styles.add(ParagraphStyle(name=name, parent=self.styles[parent], **extra))

    def render_invoice(self, invoice: Invoice) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=0.6 * inch,
            leftMargin=0.6 * inch,
            topMargin=0.6 * inch,
            bottomMargin=0.6 * inch,
            title=f"Invoice {invoice.invoice_number}",
        )

        story = [
            Paragraph(self.company_name, self.styles['ErpHeader']),
            Paragraph("INVOICE", self.styles['ErpTitle']),
        ]

        header = Table(
            [
                ["Invoice No.", invoice.invoice_number, "Invoice Date", invoice.invoice_date.isoformat()],
                ["Status", invoice.status, "Due Date", invoice.due_date.isoformat()],
                ["Payment Terms", invoice.payment_terms or "-", "Currency", invoice.currency],
            ],
            colWidths=[1.2 * inch, 2.2 * inch, 1.2 * inch, 2.2 * inch],
        )
        header.setStyle(TableStyle([
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('TEXTCOLOR', (0, 0), (0, -1), colors.darkblue),
            ('TEXTCOLOR', (2, 0), (2, -1), colors.darkblue),
        ]))
        story.append(header)
        story.append(Spacer(1, 12))

        customer_lines = [f"<b>Bill To:</b> {escape(invoice.customer_name)}"]
        for value in (invoice.customer_address, invoice.customer_phone, invoice.customer_email):
            if value:
                customer_lines.append(escape(value))
        story.append(Paragraph("<br/>".join(customer_lines), self.styles['ErpBody']))
        story.append(Spacer(1, 12))

        totals = Table(
            [
                ["Subtotal", format_amount(invoice.subtotal, invoice.currency)],
                ["Discount", format_amount(invoice.discount_amount, invoice.currency)],
                ["Tax", format_amount(invoice.tax_amount, invoice.currency)],
                ["Total", format_amount(invoice.total_amount, invoice.currency)],
            ],
            colWidths=[4.8 * inch, 2.0 * inch],
        )
        totals.setStyle(TableStyle([
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('LINEABOVE', (0, -1), (-1, -1), 1, colors.black),
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('BACKGROUND', (0, -1), (-1, -1), colors.lightgrey),
        ]))
        story.append(totals)

        if invoice.notes:
            story.append(Spacer(1, 12))
            story.append(Paragraph(f"<b>Notes:</b> {escape(invoice.notes)}", self.styles['ErpBody']))

        doc.build(story)
        return buffer.getvalue()
