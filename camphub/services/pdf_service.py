"""
PDF generation for venue rental contracts.
"""
import io
import logging
from datetime import date
from typing import Optional

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch

from ..models.venue import Venue, VenueContract

logger = logging.getLogger(__name__)


def _fmt_currency(value_cents: Optional[int]) -> str:
    return f"${(value_cents or 0) / 100:,.2f}"


def _fmt_date(value: Optional[date]) -> str:
    if not value:
        return "N/A"
    return f"{value.strftime('%B')} {value.day}, {value.year}"


class PDFService:
    """Builds the contract terms summary page and merges it with uploaded documents."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self.styles.add(ParagraphStyle(
            name='TermsTitle',
            parent=self.styles['Normal'],
            fontSize=18,
            textColor=colors.HexColor('#1a1a1a'),
            spaceAfter=14,
            fontName='Helvetica-Bold'
        ))
        self.styles.add(ParagraphStyle(
            name='VenueName',
            parent=self.styles['Normal'],
            fontSize=14,
            textColor=colors.HexColor('#333333'),
            spaceAfter=12,
            fontName='Helvetica-Bold'
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            parent=self.styles['Normal'],
            fontSize=11,
            spaceBefore=10,
            spaceAfter=4,
            fontName='Helvetica-Bold'
        ))
        self.styles.add(ParagraphStyle(
            name='Footer',
            parent=self.styles['Normal'],
            fontSize=8,
            textColor=colors.grey,
        ))

    def generate_terms_page(self, contract: VenueContract, venue: Venue) -> bytes:
        """Render the one-page CONTRACT TERMS SUMMARY."""
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=letter, topMargin=0.7 * inch, leftMargin=0.7 * inch)

        story = [
            Paragraph("CONTRACT TERMS SUMMARY", self.styles['TermsTitle']),
            Paragraph(f"Venue: {venue.name}", self.styles['VenueName']),
        ]

        rows = [
            ["Contract Period:", f"{_fmt_date(contract.contract_start_date)} - {_fmt_date(contract.contract_end_date)}"],
            ["Rental Rate:", _fmt_currency(contract.rental_rate_cents)],
        ]
        if contract.deposit_cents:
            rows.append(["Deposit:", _fmt_currency(contract.deposit_cents)])
        if contract.payment_due_date:
            rows.append(["Payment Due:", _fmt_date(contract.payment_due_date)])
        if contract.setup_time_minutes or contract.cleanup_time_minutes:
            rows.append(["Setup Time:", f"{contract.setup_time_minutes or 0} minutes"])
            rows.append(["Cleanup Time:", f"{contract.cleanup_time_minutes or 0} minutes"])
        status = contract.status.value if hasattr(contract.status, "value") else str(contract.status)
        rows.append(["Status:", status.upper()])

        table = Table(rows, colWidths=[1.6 * inch, 4.8 * inch])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('FONTNAME', (1, 0), (1, -1), 'Helvetica'),
            ('FONTSIZE', (0, 0), (-1, -1), 11),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        story.append(table)

        for heading, text in (
            ("Insurance Requirements", contract.insurance_requirements),
            ("Cancellation Policy", contract.cancellation_policy),
            ("Special Conditions", contract.special_conditions),
        ):
            if text:
                story.append(Paragraph(heading, self.styles['SectionHeader']))
                story.append(Paragraph(text.replace("\n", "<br/>"), self.styles['Normal']))

        story.append(Spacer(1, 0.4 * inch))
        story.append(Paragraph(
            "This summary is provided for convenience. The attached agreement governs.",
            self.styles['Footer'],
        ))

        doc.build(story)
        return buffer.getvalue()

    def generate_contract_pdf(
        self, contract: VenueContract, venue: Venue, document: Optional[bytes] = None
    ) -> bytes:
        """Terms page followed by the uploaded agreement. Returns the terms page alone if merging fails."""
        terms = self.generate_terms_page(contract, venue)
        if not document:
            return terms

        try:
            writer = PdfWriter()
            for source in (terms, document):
                for page in PdfReader(io.BytesIO(source)).pages:
                    writer.add_page(page)
            out = io.BytesIO()
            writer.write(out)
            return out.getvalue()
        except (PyPdfError, ValueError, OSError) as e:
            logger.warning(f"Merging contract {contract.id} document failed, serving terms only: {e}")
            return terms


pdf_service = PDFService()
