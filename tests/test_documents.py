"""Tests for document creation and PDF rendering."""

from dataclasses import replace
from decimal import Decimal

from sms_invoice.config import config
from sms_invoice.documents import DocumentService
from sms_invoice.models import Client, DocumentType, ParsedLineItem
from sms_invoice.payments import HostedCheckoutLinks, build_payment_links
from sms_invoice.pdf_renderer import PdfRenderer
from sms_invoice.stores import InMemoryDocumentStore

from conftest import APP_URL


def _items():
    return [
        ParsedLineItem.priced("Labor (2 hrs)", Decimal("2"), Decimal("120")),
        ParsedLineItem.priced("Boxes of nails", Decimal("3"), Decimal("50")),
    ]


class ExplodingRenderer:
    def render(self, document, client, business=None):
        raise OSError("disk full")


class TestDocumentService:
    def test_renders_pdf(self, tmp_path, business):
        store = InMemoryDocumentStore()
        service = DocumentService(store, PdfRenderer(tmp_path, APP_URL), APP_URL)
        client = Client(business_id=business.id, name="Jane Doe", address="42 Oak Ave")

        document = service.create_document(
            business.id, DocumentType.INVOICE, client, _items(), 39000, business=business
        )

        assert document.pdf_url == f"{APP_URL}/pdfs/INV-00001.pdf"
        pdf = tmp_path / "INV-00001.pdf"
        assert pdf.read_bytes().startswith(b"%PDF")
        assert store.get(document.id).pdf_url == document.pdf_url

    def test_non_latin1_text_is_rendered(self, tmp_path, business):
        service = DocumentService(InMemoryDocumentStore(), PdfRenderer(tmp_path, APP_URL), APP_URL)
        client = Client(business_id=business.id, name="Zoë Łukasz")
        document = service.create_document(business.id, DocumentType.QUOTE, client, _items(), 39000)
        assert (tmp_path / f"{document.document_number}.pdf").exists()

    def test_render_failure_keeps_document(self, business):
        store = InMemoryDocumentStore()
        service = DocumentService(store, ExplodingRenderer(), APP_URL)
        client = Client(business_id=business.id, name="Jane Doe")

        document = service.create_document(business.id, DocumentType.QUOTE, client, _items(), 39000)

        assert document.pdf_url is None
        assert store.get(document.id) is not None
        assert document.document_number == "QUO-00001"

    def test_view_url(self, business):
        service = DocumentService(InMemoryDocumentStore(), None, APP_URL + "/")
        client = Client(business_id=business.id, name="Jane Doe")
        document = service.create_document(business.id, DocumentType.QUOTE, client, _items(), 39000)
        assert service.view_url(document) == f"{APP_URL}/quotes/{document.id}"


class ExplodingLinks:
    def payment_link(self, document, business=None):
        raise ConnectionError("checkout unavailable")


class TestPaymentLinks:
    def _service(self, links):
        return DocumentService(InMemoryDocumentStore(), None, APP_URL, payment_links=links)

    def test_invoice_gets_link(self, business):
        service = self._service(HostedCheckoutLinks("https://pay.test/checkout/"))
        client = Client(business_id=business.id, name="Jane Doe")

        document = service.create_document(business.id, DocumentType.INVOICE, client, _items(), 39000, business=business)

        assert document.payment_url == (
            f"https://pay.test/checkout/{document.id}?invoice=INV-00001&amount=390.00&business={business.id}"
        )
        assert service.store.get(document.id).payment_url == document.payment_url
        reply = service.confirmation(document)
        assert f"Payment: {document.payment_url}" in reply
        assert reply.index("View:") < reply.index("Payment:")

    def test_quote_has_no_link(self, business):
        service = self._service(HostedCheckoutLinks("https://pay.test/checkout"))
        client = Client(business_id=business.id, name="Jane Doe")

        document = service.create_document(business.id, DocumentType.QUOTE, client, _items(), 39000)

        assert document.payment_url is None
        assert "Payment:" not in service.confirmation(document)

    def test_link_failure_keeps_invoice(self, business):
        service = self._service(ExplodingLinks())
        client = Client(business_id=business.id, name="Jane Doe")

        document = service.create_document(business.id, DocumentType.INVOICE, client, _items(), 39000)

        assert document.payment_url is None
        assert service.store.get(document.id) is not None
        assert "Payment:" not in service.confirmation(document)

    def test_build_from_config(self):
        assert build_payment_links(replace(config, payment_link_base_url="")) is None
        links = build_payment_links(replace(config, payment_link_base_url="https://pay.test"))
        assert isinstance(links, HostedCheckoutLinks)
        assert links.base_url == "https://pay.test"
