"""Message classifier — turns one SMS body into a document request.

Document type precedence is an ordered rule list: the first keyword that
appears wins, so a message mentioning both "invoice" and "quote" is an
invoice.
"""

from __future__ import annotations

import re

from opentelemetry import trace

from sms_invoice.errors import ParseRejected
from sms_invoice.extractors import (
    extract_address,
    extract_client_name,
    extract_email,
    extract_line_items,
    extract_phone,
)
from sms_invoice.models import DocumentType, ParsedDocumentRequest, build_request

tracer = trace.get_tracer("sms-invoice")

DOCUMENT_TYPE_RULES: list[tuple[DocumentType, re.Pattern[str]]] = [
    (DocumentType.INVOICE, re.compile(r"\binvoice\b", re.IGNORECASE)),
    (DocumentType.QUOTE, re.compile(r"\bquote\b", re.IGNORECASE)),
]


def detect_document_type(text: str) -> DocumentType | None:
    for document_type, pattern in DOCUMENT_TYPE_RULES:
        if pattern.search(text):
            return document_type
    return None


def classify(text: str) -> ParsedDocumentRequest:
    """Parse *text* into a request or raise :class:`ParseRejected`."""
    with tracer.start_as_current_span("sms.classify") as span:
        document_type = detect_document_type(text)
        if document_type is None:
            raise ParseRejected("no invoice or quote keyword")

        line_items = extract_line_items(text)
        if not line_items:
            raise ParseRejected("no line items")

        request = build_request(
            document_type,
            line_items,
            client_name=extract_client_name(text),
            client_phone=extract_phone(text),
            client_email=extract_email(text),
            client_address=extract_address(text),
        )
        span.set_attribute("document.type", document_type.value)
        span.set_attribute("document.line_item_count", len(line_items))
        return request
