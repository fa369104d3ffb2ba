"""Conversation state machine collecting a new client's phone and address.

Phases only move forward::

    awaiting_client_phone -> awaiting_client_address -> completed

A completed conversation is deleted as soon as its document exists. Every
transition is a compare-and-swap on the stored phase, so two deliveries
racing on the same conversation cannot both advance it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from opentelemetry import trace

from sms_invoice import replies
from sms_invoice.documents import DocumentService
from sms_invoice.errors import BlankReply, DuplicateClient
from sms_invoice.models import (
    BusinessProfile,
    Client,
    ConversationPhase,
    ConversationState,
    DocumentRecord,
    ParsedDocumentRequest,
    dump_pending_request,
    load_pending_request,
)
from sms_invoice.stores import ClientStore, ConversationStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("sms-invoice")

NEXT_PHASE: dict[ConversationPhase, ConversationPhase] = {
    ConversationPhase.AWAITING_CLIENT_PHONE: ConversationPhase.AWAITING_CLIENT_ADDRESS,
    ConversationPhase.AWAITING_CLIENT_ADDRESS: ConversationPhase.COMPLETED,
}


@dataclass(frozen=True)
class ConversationStep:
    phase: ConversationPhase
    reply: str
    document: Optional[DocumentRecord] = None


class ConversationFlow:
    def __init__(self, conversations: ConversationStore, clients: ClientStore, documents: DocumentService):
        self.conversations = conversations
        self.clients = clients
        self.documents = documents

    @staticmethod
    def prompt_for(conversation: ConversationState) -> str:
        name = conversation.client_name or "the client"
        if conversation.phase == ConversationPhase.AWAITING_CLIENT_PHONE:
            return replies.ask_client_phone(name)
        return replies.ask_client_address(name)

    def start(
        self, business_id: str, phone_number: str, client_name: str, request: ParsedDocumentRequest
    ) -> ConversationStep:
        conversation = self.conversations.create(
            ConversationState(
                business_id=business_id,
                phone_number=phone_number,
                pending_request=dump_pending_request(request),
                client_name=client_name,
            )
        )
        logger.info("Started conversation %s for new client", conversation.id)
        return ConversationStep(phase=conversation.phase, reply=self.prompt_for(conversation))

    def advance(
        self,
        conversation: ConversationState,
        body: str,
        business: Optional[BusinessProfile] = None,
    ) -> ConversationStep:
        """Apply one reply to *conversation* as read by the caller.

        Raises :class:`BlankReply` for empty input and
        :class:`ConversationRaceLost` when the stored phase moved on.
        """
        with tracer.start_as_current_span(
            "sms.conversation_advance", attributes={"conversation.phase": conversation.phase.value}
        ):
            reply = body.strip()
            if not reply:
                raise BlankReply(conversation.phase.value)

            if conversation.phase == ConversationPhase.AWAITING_CLIENT_PHONE:
                updated = self.conversations.update(
                    conversation.id,
                    expected_phase=conversation.phase,
                    client_phone=reply,
                    phase=NEXT_PHASE[conversation.phase],
                )
                return ConversationStep(phase=updated.phase, reply=self.prompt_for(updated))

            return self._complete(conversation, reply, business)

    def _complete(
        self, conversation: ConversationState, address: str, business: Optional[BusinessProfile]
    ) -> ConversationStep:
        request = load_pending_request(conversation.pending_request)
        # Only the turn that wins this swap creates the client.
        finished = self.conversations.update(
            conversation.id,
            expected_phase=conversation.phase,
            client_address=address,
            phase=NEXT_PHASE[conversation.phase],
        )

        # The completed record is deleted whether or not the handoff succeeds.
        try:
            client = self._create_client(finished)
            request = request.with_client(client.name, client.phone)
            document = self.documents.create_document(
                finished.business_id,
                request.document_type,
                client,
                request.line_items,
                request.total_amount_cents,
                business=business,
            )
        except Exception:
            logger.exception("Conversation %s failed after completing; its request is dropped", finished.id)
            raise
        finally:
            self.conversations.delete(finished.id)

        logger.info("Conversation %s completed with %s", finished.id, document.document_number)
        return ConversationStep(
            phase=finished.phase,
            reply=self.documents.confirmation(document),
            document=document,
        )

    def _create_client(self, conversation: ConversationState) -> Client:
        name = conversation.client_name or ""
        try:
            return self.clients.create(
                Client(
                    business_id=conversation.business_id,
                    name=name,
                    phone=conversation.client_phone,
                    address=conversation.client_address,
                )
            )
        except DuplicateClient:
            existing = self.clients.find_by_name(conversation.business_id, name)
            if existing is None:
                raise
            logger.info("Client %r appeared during the conversation, reusing it", name)
            return existing
