"""Render invoice and quote PDFs with fpdf2."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fpdf import FPDF
from opentelemetry import trace

from sms_invoice.models import BusinessProfile, Client, DocumentRecord, DocumentType

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("sms-invoice")


def _latin1(text: str) -> str:
    # Core PDF fonts only cover latin-1.
    return text.encode("latin-1", "replace").decode("latin-1")


def _money(cents: int) -> str:
    return f"${cents / 100:,.2f}"


class PdfRenderer:
    """Writes ``<document_number>.pdf`` into *output_dir* and returns its public URL."""

    def __init__(self, output_dir: str | Path, public_base_url: str):
        self.output_dir = Path(output_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def render(
        self,
        document: DocumentRecord,
        client: Client,
        business: Optional[BusinessProfile] = None,
    ) -> str:
        with tracer.start_as_current_span(
            "sms.render_pdf", attributes={"document.number": document.document_number}
        ):
            output_path = self.output_dir / f"{document.document_number}.pdf"
            pdf = self._build(document, client, business)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            pdf.output(str(output_path))
            logger.info("Rendered %s (%d bytes)", output_path, output_path.stat().st_size)
            return f"{self.public_base_url}/pdfs/{output_path.name}"

    def _build(self, document: DocumentRecord, client: Client, business: Optional[BusinessProfile]) -> FPDF:
        pdf = FPDF()
        pdf.set_auto_page_break(auto=True, margin=20)
        pdf.add_page()

        # Business header
        if business is not None:
            pdf.set_font("Helvetica", "B", 22)
            pdf.cell(0, 12, _latin1(business.business_name), new_x="LMARGIN", new_y="NEXT")
            pdf.set_font("Helvetica", "", 10)
            if business.address:
                pdf.cell(0, 5, _latin1(business.address), new_x="LMARGIN", new_y="NEXT")
            pdf.cell(0, 5, f"Phone: {business.phone_number}", new_x="LMARGIN", new_y="NEXT")
            pdf.ln(8)

        title = "INVOICE" if document.document_type == DocumentType.INVOICE else "QUOTE"
        pdf.set_font("Helvetica", "B", 16)
        pdf.cell(0, 10, title, new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("Helvetica", "", 11)
        pdf.cell(95, 6, f"{title.title()} #: {document.document_number}")
        pdf.cell(0, 6, f"Date: {document.created_at:%Y-%m-%d}", new_x="LMARGIN", new_y="NEXT")
        pdf.ln(6)

        # Bill To
        pdf.set_font("Helvetica", "B", 11)
        pdf.cell(0, 6, "Bill To:", new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("Helvetica", "", 11)
        for line in (client.name, client.address, client.phone, client.email):
            if line:
                pdf.cell(0, 6, _latin1(line), new_x="LMARGIN", new_y="NEXT")
        pdf.ln(8)

        # Table header
        pdf.set_fill_color(60, 60, 100)
        pdf.set_text_color(255, 255, 255)
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(80, 8, "Description", fill=True)
        pdf.cell(25, 8, "Qty", align="C", fill=True)
        pdf.cell(35, 8, "Unit Price", align="R", fill=True)
        pdf.cell(40, 8, "Amount", align="R", fill=True, new_x="LMARGIN", new_y="NEXT")

        pdf.set_text_color(0, 0, 0)
        pdf.set_font("Helvetica", "", 10)
        for item in document.line_items:
            pdf.cell(80, 7, _latin1(item.description))
            pdf.cell(25, 7, f"{item.quantity.normalize():f}", align="C")
            pdf.cell(35, 7, _money(item.unit_price), align="R")
            pdf.cell(40, 7, _money(item.total), align="R", new_x="LMARGIN", new_y="NEXT")

        pdf.ln(6)
        pdf.set_draw_color(100, 100, 100)
        pdf.line(10, pdf.get_y(), 200, pdf.get_y())
        pdf.ln(4)

        pdf.set_font("Helvetica", "B", 12)
        pdf.set_x(115)
        pdf.cell(45, 8, "TOTAL:")
        pdf.cell(40, 8, _money(document.total_amount_cents), align="R", new_x="LMARGIN", new_y="NEXT")

        pdf.ln(12)
        pdf.set_font("Helvetica", "I", 9)
        pdf.cell(0, 5, "Thank you for your business!", align="C", new_x="LMARGIN", new_y="NEXT")
        return pdf
