"""Persistence collaborators for the SMS invoice core.

The core only depends on the small protocols below. The in-memory
implementations back the default app, the demo and the tests; any store
that honours the same contracts (notably the phase compare-and-swap in
``ConversationStore.update``) can replace them.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional, Protocol

from sms_invoice.errors import ConversationAlreadyActive, ConversationRaceLost, DuplicateClient
from sms_invoice.models import (
    BusinessProfile,
    Client,
    ConversationPhase,
    ConversationState,
    DocumentRecord,
    DocumentType,
    SmsMessageRecord,
)

logger = logging.getLogger(__name__)

_NUMBER_PREFIX = {DocumentType.INVOICE: "INV", DocumentType.QUOTE: "QUO"}


class BusinessStore(Protocol):
    def get_by_phone(self, phone_number: str) -> Optional[BusinessProfile]: ...

    def add(self, profile: BusinessProfile) -> BusinessProfile: ...


class ClientStore(Protocol):
    def find_by_name(self, business_id: str, name: str) -> Optional[Client]: ...

    def create(self, client: Client) -> Client: ...


class ConversationStore(Protocol):
    def get_active(self, business_id: str, phone_number: str) -> Optional[ConversationState]: ...

    def create(self, conversation: ConversationState) -> ConversationState: ...

    def update(
        self, conversation_id: str, expected_phase: ConversationPhase, **changes
    ) -> ConversationState: ...

    def delete(self, conversation_id: str) -> None: ...


class DocumentStore(Protocol):
    def next_number(self, business_id: str, document_type: DocumentType) -> str: ...

    def save(self, document: DocumentRecord) -> DocumentRecord: ...

    def update(self, document_id: str, **changes) -> DocumentRecord: ...

    def get(self, document_id: str) -> Optional[DocumentRecord]: ...


class MessageStore(Protocol):
    def add(self, record: SmsMessageRecord) -> SmsMessageRecord: ...

    def update(self, record_id: str, **changes) -> SmsMessageRecord: ...

    def update_status_by_sid(self, twilio_message_sid: str, status: str) -> Optional[SmsMessageRecord]: ...

    def list_for_business(self, business_id: str) -> list[SmsMessageRecord]: ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------


class InMemoryBusinessStore:
    def __init__(self, profiles: list[BusinessProfile] | None = None):
        self._by_phone: dict[str, BusinessProfile] = {}
        for profile in profiles or []:
            self.add(profile)

    def add(self, profile: BusinessProfile) -> BusinessProfile:
        self._by_phone[profile.phone_number] = profile
        return profile

    def get_by_phone(self, phone_number: str) -> Optional[BusinessProfile]:
        return self._by_phone.get(phone_number)


class InMemoryClientStore:
    """Clients keyed by ``(business_id, lowercase name)``."""

    def __init__(self):
        self._lock = threading.Lock()
        self._clients: dict[tuple[str, str], Client] = {}

    @staticmethod
    def _key(business_id: str, name: str) -> tuple[str, str]:
        return business_id, name.strip().lower()

    def find_by_name(self, business_id: str, name: str) -> Optional[Client]:
        with self._lock:
            client = self._clients.get(self._key(business_id, name))
            return client.model_copy() if client else None

    def create(self, client: Client) -> Client:
        key = self._key(client.business_id, client.name)
        with self._lock:
            if key in self._clients:
                raise DuplicateClient(f"client {client.name!r} already exists in business {client.business_id}")
            self._clients[key] = client.model_copy()
        logger.info("Created client %s for business %s", client.id, client.business_id)
        return client

    def count(self, business_id: str) -> int:
        with self._lock:
            return sum(1 for biz, _ in self._clients if biz == business_id)


class InMemoryConversationStore:
    """Conversations with a compare-and-swap on phase transitions."""

    def __init__(self):
        self._lock = threading.Lock()
        self._conversations: dict[str, ConversationState] = {}

    def get_active(self, business_id: str, phone_number: str) -> Optional[ConversationState]:
        with self._lock:
            for conversation in self._conversations.values():
                if (
                    conversation.business_id == business_id
                    and conversation.phone_number == phone_number
                    and conversation.phase != ConversationPhase.COMPLETED
                ):
                    return conversation.model_copy()
        return None

    def get(self, conversation_id: str) -> Optional[ConversationState]:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            return conversation.model_copy() if conversation else None

    def create(self, conversation: ConversationState) -> ConversationState:
        with self._lock:
            for existing in self._conversations.values():
                if (
                    existing.business_id == conversation.business_id
                    and existing.phone_number == conversation.phone_number
                    and existing.phase != ConversationPhase.COMPLETED
                ):
                    raise ConversationAlreadyActive(
                        f"conversation {existing.id} is already active for this sender"
                    )
            self._conversations[conversation.id] = conversation.model_copy()
        return conversation

    def update(self, conversation_id: str, expected_phase: ConversationPhase, **changes) -> ConversationState:
        """Apply *changes* only if the stored phase still equals *expected_phase*."""
        with self._lock:
            current = self._conversations.get(conversation_id)
            if current is None or current.phase != expected_phase:
                raise ConversationRaceLost(
                    conversation_id,
                    expected_phase.value,
                    current.phase.value if current else None,
                )
            updated = current.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})
            self._conversations[conversation_id] = updated
            return updated.model_copy()

    def delete(self, conversation_id: str) -> None:
        with self._lock:
            self._conversations.pop(conversation_id, None)


class InMemoryDocumentStore:
    """Documents with sequential numbers per business and document type."""

    def __init__(self):
        self._lock = threading.Lock()
        self._documents: dict[str, DocumentRecord] = {}
        self._counters: dict[tuple[str, DocumentType], int] = defaultdict(int)

    def next_number(self, business_id: str, document_type: DocumentType) -> str:
        document_type = DocumentType(document_type)
        with self._lock:
            self._counters[(business_id, document_type)] += 1
            sequence = self._counters[(business_id, document_type)]
        return f"{_NUMBER_PREFIX[document_type]}-{sequence:05d}"

    def save(self, document: DocumentRecord) -> DocumentRecord:
        with self._lock:
            self._documents[document.id] = document
        return document

    def update(self, document_id: str, **changes) -> DocumentRecord:
        with self._lock:
            updated = self._documents[document_id].model_copy(update=changes)
            self._documents[document_id] = updated
            return updated

    def get(self, document_id: str) -> Optional[DocumentRecord]:
        with self._lock:
            return self._documents.get(document_id)

    def list_for_business(self, business_id: str) -> list[DocumentRecord]:
        with self._lock:
            return [doc for doc in self._documents.values() if doc.business_id == business_id]


class InMemoryMessageStore:
    """SMS log in arrival order."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[str, SmsMessageRecord] = {}

    def add(self, record: SmsMessageRecord) -> SmsMessageRecord:
        with self._lock:
            self._records[record.id] = record
        return record

    def update(self, record_id: str, **changes) -> SmsMessageRecord:
        with self._lock:
            updated = self._records[record_id].model_copy(update=changes)
            self._records[record_id] = updated
            return updated

    def update_status_by_sid(self, twilio_message_sid: str, status: str) -> Optional[SmsMessageRecord]:
        with self._lock:
            for record_id, record in self._records.items():
                if record.twilio_message_sid == twilio_message_sid:
                    updated = record.model_copy(update={"status": status})
                    self._records[record_id] = updated
                    return updated
        return None

    def list_for_business(self, business_id: str) -> list[SmsMessageRecord]:
        with self._lock:
            return [record for record in self._records.values() if record.business_id == business_id]
