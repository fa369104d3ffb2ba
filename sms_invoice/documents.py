"""Document creation: numbering, persistence, PDF rendering and payment links."""

from __future__ import annotations

import logging
from typing import Optional

from opentelemetry import trace

from sms_invoice import audit, replies
from sms_invoice.models import (
    BusinessProfile,
    Client,
    DocumentRecord,
    DocumentType,
    ParsedLineItem,
)
from sms_invoice.payments import PaymentLinkProvider
from sms_invoice.pdf_renderer import PdfRenderer
from sms_invoice.stores import DocumentStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("sms-invoice")


class DocumentService:
    def __init__(
        self,
        store: DocumentStore,
        renderer: Optional[PdfRenderer],
        app_url: str,
        payment_links: Optional[PaymentLinkProvider] = None,
    ):
        self.store = store
        self.renderer = renderer
        self.app_url = app_url.rstrip("/")
        self.payment_links = payment_links

    def view_url(self, document: DocumentRecord) -> str:
        section = "invoices" if document.document_type == DocumentType.INVOICE else "quotes"
        return f"{self.app_url}/{section}/{document.id}"

    def confirmation(self, document: DocumentRecord) -> str:
        return replies.document_created(document, self.view_url(document))

    def create_document(
        self,
        business_id: str,
        document_type: DocumentType,
        client: Client,
        line_items: list[ParsedLineItem],
        total_amount_cents: int,
        business: Optional[BusinessProfile] = None,
    ) -> DocumentRecord:
        """Persist a numbered document, then attach its PDF and payment link.

        Render and payment-link failures are logged; the document still
        exists without them.
        """
        with tracer.start_as_current_span("sms.create_document") as span:
            document = self.store.save(
                DocumentRecord(
                    business_id=business_id,
                    client_id=client.id,
                    client_name=client.name,
                    document_type=document_type,
                    document_number=self.store.next_number(business_id, document_type),
                    line_items=line_items,
                    total_amount_cents=total_amount_cents,
                )
            )
            span.set_attribute("document.number", document.document_number)

            if self.renderer is not None:
                try:
                    pdf_url = self.renderer.render(document, client, business)
                except Exception:
                    logger.exception("PDF generation failed for %s", document.document_number)
                else:
                    document = self.store.update(document.id, pdf_url=pdf_url)

            # Only invoices are payable.
            if self.payment_links is not None and document.document_type == DocumentType.INVOICE:
                try:
                    payment_url = self.payment_links.payment_link(document, business)
                except Exception:
                    logger.exception("Payment link generation failed for %s", document.document_number)
                else:
                    if payment_url:
                        document = self.store.update(document.id, payment_url=payment_url)

            audit.log_document_created(
                business_id=business_id,
                document_id=document.id,
                document_number=document.document_number,
                document_type=document.document_type.value,
                total_amount_cents=total_amount_cents,
            )
            return document
