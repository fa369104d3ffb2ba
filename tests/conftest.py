"""Shared fixtures: in-memory stores wired into a service for one business."""

import pytest

from sms_invoice.classifier import classify
from sms_invoice.documents import DocumentService
from sms_invoice.models import BusinessProfile, Client, InboundMessage
from sms_invoice.service import SmsInvoiceService
from sms_invoice.stores import (
    InMemoryBusinessStore,
    InMemoryClientStore,
    InMemoryConversationStore,
    InMemoryDocumentStore,
)

BUSINESS_PHONE = "+15551234567"
APP_URL = "http://test.local"


@pytest.fixture
def business():
    return BusinessProfile(id="biz-1", business_name="ABC Plumbing", phone_number=BUSINESS_PHONE)


@pytest.fixture
def clients():
    return InMemoryClientStore()


@pytest.fixture
def conversations():
    return InMemoryConversationStore()


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def documents(document_store):
    return DocumentService(document_store, renderer=None, app_url=APP_URL)


@pytest.fixture
def service(business, clients, conversations, documents):
    return SmsInvoiceService(
        businesses=InMemoryBusinessStore([business]),
        clients=clients,
        conversations=conversations,
        documents=documents,
        classifier=classify,
        app_url=APP_URL,
    )


@pytest.fixture
def john_smith(clients, business):
    return clients.create(
        Client(business_id=business.id, name="John Smith", phone="555-000-1111", address="1 Elm St")
    )


@pytest.fixture
def send(service):
    """Deliver one SMS from the business owner and return the outcome."""

    def _send(body: str, from_phone: str = BUSINESS_PHONE):
        return service.handle_turn(InboundMessage(from_phone=from_phone, to_phone="+15550000000", body=body))

    return _send
