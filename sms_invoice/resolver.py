"""Client resolver — decides whether a request can become a document now."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from opentelemetry import trace

from sms_invoice.errors import MissingClientName
from sms_invoice.models import Client, DocumentType, ParsedDocumentRequest
from sms_invoice.stores import ClientStore

tracer = trace.get_tracer("sms-invoice")


@dataclass(frozen=True)
class ExistingClient:
    client: Client
    request: ParsedDocumentRequest


@dataclass(frozen=True)
class NeedsClientDetails:
    client_name: str
    request: ParsedDocumentRequest


Resolution = Union[ExistingClient, NeedsClientDetails]


def _merge_contact(stored: Client, request: ParsedDocumentRequest) -> Client:
    """Stored fields win; parsed values only fill gaps."""
    return stored.model_copy(
        update={
            "phone": stored.phone or request.client_phone,
            "email": stored.email or request.client_email,
            "address": stored.address or request.client_address,
        }
    )


def resolve_client(store: ClientStore, business_id: str, request: ParsedDocumentRequest) -> Resolution:
    """Look the named client up within *business_id* (case-insensitive).

    Raises :class:`MissingClientName` when the request names nobody; no
    conversation is opened in that case.
    """
    with tracer.start_as_current_span("sms.resolve_client") as span:
        if not request.client_name:
            raise MissingClientName(DocumentType(request.document_type).value)

        client = store.find_by_name(business_id, request.client_name)
        span.set_attribute("client.found", client is not None)
        if client is None:
            return NeedsClientDetails(client_name=request.client_name, request=request)
        return ExistingClient(client=_merge_contact(client, request), request=request)
