"""LLM-backed classifier using the OpenAI Responses API.

Same contract as :func:`sms_invoice.classifier.classify`: text in, a
:class:`ParsedDocumentRequest` out, :class:`ParseRejected` otherwise. The
model reports labor, materials and parts amounts; each non-zero amount
becomes one line item so totals are always the line item sum.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Optional

from opentelemetry import trace
from pydantic import BaseModel, ValidationError

from sms_invoice.config import config
from sms_invoice.errors import ParseRejected
from sms_invoice.models import DocumentType, ParsedDocumentRequest, ParsedLineItem, build_request

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("sms-invoice")

RECORD_DOCUMENT_TOOL = {
    "type": "function",
    "name": "record_document",
    "description": (
        "Record the invoice or quote described in a tradesperson's text message. "
        "Amounts are in US dollars; use 0 for anything not mentioned."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "document_type": {"type": "string", "enum": ["invoice", "quote", "none"]},
            "client_name": {"type": ["string", "null"]},
            "client_phone": {"type": ["string", "null"]},
            "client_email": {"type": ["string", "null"]},
            "client_address": {"type": ["string", "null"]},
            "description": {"type": ["string", "null"]},
            "labor_amount": {"type": "number"},
            "materials_amount": {"type": "number"},
            "parts_amount": {"type": "number"},
        },
        "required": [
            "document_type",
            "client_name",
            "client_phone",
            "client_email",
            "client_address",
            "description",
            "labor_amount",
            "materials_amount",
            "parts_amount",
        ],
        "additionalProperties": False,
    },
}

INSTRUCTIONS = (
    "You turn text messages from tradespeople into invoice or quote records. "
    "Always call record_document exactly once. Use document_type 'none' when the "
    "message asks for neither an invoice nor a quote."
)


class ExtractedDocument(BaseModel):
    document_type: str
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    client_address: Optional[str] = None
    description: Optional[str] = None
    labor_amount: Decimal = Decimal(0)
    materials_amount: Decimal = Decimal(0)
    parts_amount: Decimal = Decimal(0)

    def line_items(self) -> list[ParsedLineItem]:
        items = []
        for label, amount in (
            ("Labor", self.labor_amount),
            ("Materials", self.materials_amount),
            ("Parts", self.parts_amount),
        ):
            if amount > 0:
                items.append(ParsedLineItem.priced(label, Decimal(1), amount))
        return items


class LlmClassifier:
    def __init__(self, client: Any = None, model: str | None = None):
        if client is None:
            from openai import OpenAI

            client = OpenAI(api_key=config.openai_api_key)
        self.client = client
        self.model = model or config.openai_model

    def _extract(self, text: str) -> ExtractedDocument:
        response = self.client.responses.create(
            model=self.model,
            instructions=INSTRUCTIONS,
            input=text,
            tools=[RECORD_DOCUMENT_TOOL],
            tool_choice={"type": "function", "name": "record_document"},
        )
        for output_item in response.output:
            if output_item.type == "function_call" and output_item.name == "record_document":
                try:
                    return ExtractedDocument.model_validate(json.loads(output_item.arguments))
                except (json.JSONDecodeError, ValidationError) as exc:
                    raise ParseRejected(f"unusable model output: {exc}") from exc
        raise ParseRejected("model did not call record_document")

    def classify(self, text: str) -> ParsedDocumentRequest:
        with tracer.start_as_current_span("sms.classify_llm", attributes={"llm.model": self.model}):
            extracted = self._extract(text)
            if extracted.document_type not in (DocumentType.INVOICE.value, DocumentType.QUOTE.value):
                raise ParseRejected("no invoice or quote requested")

            line_items = extracted.line_items()
            if not line_items:
                raise ParseRejected("no line items")

            logger.info("LLM extracted %d line item(s)", len(line_items))
            return build_request(
                DocumentType(extracted.document_type),
                line_items,
                client_name=extracted.client_name or None,
                client_phone=extracted.client_phone or None,
                client_email=extracted.client_email or None,
                client_address=extracted.client_address or None,
            )
