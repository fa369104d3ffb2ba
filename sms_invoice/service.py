"""Turn orchestration: one inbound SMS in, one reply out.

    inbound message -> business lookup -> active conversation? -> advance it
                                       -> otherwise classify -> resolve client
                                          -> document now, or open a conversation
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from opentelemetry import trace

from sms_invoice import audit, replies
from sms_invoice.conversation import ConversationFlow
from sms_invoice.documents import DocumentService
from sms_invoice.errors import (
    BlankReply,
    ConversationAlreadyActive,
    ConversationRaceLost,
    MissingClientName,
    ParseRejected,
    PendingRequestCorrupt,
)
from sms_invoice.models import (
    BusinessProfile,
    ConversationState,
    InboundMessage,
    MessageDirection,
    ParsedDocumentRequest,
    SmsMessageRecord,
    TurnKind,
    TurnOutcome,
)
from sms_invoice.resolver import ExistingClient, resolve_client
from sms_invoice.stores import (
    BusinessStore,
    ClientStore,
    ConversationStore,
    InMemoryMessageStore,
    MessageStore,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("sms-invoice")

Classifier = Callable[[str], ParsedDocumentRequest]

MAX_ATTEMPTS = 2


class SmsInvoiceService:
    def __init__(
        self,
        businesses: BusinessStore,
        clients: ClientStore,
        conversations: ConversationStore,
        documents: DocumentService,
        classifier: Classifier,
        app_url: str,
        messages: Optional[MessageStore] = None,
    ):
        self.businesses = businesses
        self.clients = clients
        self.conversations = conversations
        self.documents = documents
        self.classifier = classifier
        self.app_url = app_url
        self.messages = messages if messages is not None else InMemoryMessageStore()
        self.flow = ConversationFlow(conversations, clients, documents)

    def handle_turn(self, message: InboundMessage) -> TurnOutcome:
        """Process one delivery to completion and return the reply to send.

        Both the inbound message and the reply are written to the SMS log;
        the reply starts out ``queued`` and is updated once it is delivered.
        """
        with tracer.start_as_current_span(
            "sms.handle_turn", attributes={"sms.from": audit.mask_phone(message.from_phone)}
        ) as span:
            t0 = time.perf_counter()
            business = self.businesses.get_by_phone(message.from_phone)
            business_id = business.id if business else None
            self.messages.add(
                SmsMessageRecord(
                    business_id=business_id,
                    direction=MessageDirection.INBOUND,
                    from_number=message.from_phone,
                    to_number=message.to_phone,
                    body=message.body,
                    status="received",
                    twilio_message_sid=message.message_sid or None,
                )
            )

            if business is None:
                outcome = TurnOutcome(kind=TurnKind.ONBOARDING, reply=replies.onboarding(self.app_url))
            else:
                outcome = self._turn_with_retry(business, message)

            reply = self.messages.add(
                SmsMessageRecord(
                    business_id=business_id,
                    direction=MessageDirection.OUTBOUND,
                    from_number=message.to_phone,
                    to_number=message.from_phone,
                    body=outcome.reply,
                    status="queued",
                    related_document_id=outcome.document.id if outcome.document else None,
                )
            )
            outcome = outcome.model_copy(update={"reply_message_id": reply.id})

            span.set_attribute("turn.outcome", outcome.kind.value)
            audit.log_turn_completed(
                from_phone=message.from_phone,
                outcome=outcome.kind.value,
                business_id=business_id or "",
                conversation_phase=outcome.conversation_phase.value if outcome.conversation_phase else "",
                duration_ms=(time.perf_counter() - t0) * 1000.0,
            )
            return outcome

    def _turn_with_retry(self, business: BusinessProfile, message: InboundMessage) -> TurnOutcome:
        lost: Optional[ConversationRaceLost] = None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                return self._turn(business, message, lost)
            except (ConversationRaceLost, ConversationAlreadyActive) as exc:
                logger.warning(
                    "Turn for %s lost a race (attempt %d): %s", audit.mask_phone(message.from_phone), attempt, exc
                )
                lost = exc if isinstance(exc, ConversationRaceLost) else None
        return TurnOutcome(kind=TurnKind.RETRY_LATER, reply=replies.RETRY_LATER)

    def _turn(
        self, business: BusinessProfile, message: InboundMessage, lost: Optional[ConversationRaceLost] = None
    ) -> TurnOutcome:
        conversation = self.conversations.get_active(business.id, message.from_phone)
        if lost is not None and (conversation is None or conversation.id == lost.conversation_id):
            # A concurrent delivery already applied this phase; never replay
            # the reply against a later phase.
            return self._superseded(conversation)
        if conversation is not None:
            return self.reply_to_conversation(business, conversation, message.body)
        return self._new_request(business, message)

    def _superseded(self, conversation: Optional[ConversationState]) -> TurnOutcome:
        if conversation is None:
            return TurnOutcome(kind=TurnKind.DUPLICATE_REPLY, reply=replies.ALREADY_RECEIVED)
        return TurnOutcome(
            kind=TurnKind.DUPLICATE_REPLY,
            reply=self.flow.prompt_for(conversation),
            conversation_phase=conversation.phase,
        )

    def reply_to_conversation(
        self, business: BusinessProfile, conversation: ConversationState, body: str
    ) -> TurnOutcome:
        """Route *body* to the conversation as read; the classifier is not consulted."""
        try:
            step = self.flow.advance(conversation, body, business=business)
        except BlankReply:
            return TurnOutcome(
                kind=TurnKind.BLANK_REPLY,
                reply=self.flow.prompt_for(conversation),
                conversation_phase=conversation.phase,
            )
        except PendingRequestCorrupt:
            logger.exception("Dropping conversation %s with unreadable pending request", conversation.id)
            self.conversations.delete(conversation.id)
            return TurnOutcome(kind=TurnKind.REJECTED, reply=replies.PARSE_REJECTED)

        kind = TurnKind.DOCUMENT_CREATED if step.document else TurnKind.CONVERSATION_ADVANCED
        return TurnOutcome(kind=kind, reply=step.reply, document=step.document, conversation_phase=step.phase)

    def _new_request(self, business: BusinessProfile, message: InboundMessage) -> TurnOutcome:
        try:
            request = self.classifier(message.body)
        except ParseRejected as exc:
            logger.info("Rejected message from %s: %s", audit.mask_phone(message.from_phone), exc.reason)
            return TurnOutcome(kind=TurnKind.REJECTED, reply=replies.PARSE_REJECTED)

        try:
            resolution = resolve_client(self.clients, business.id, request)
        except MissingClientName as exc:
            return TurnOutcome(
                kind=TurnKind.NEEDS_CLIENT_NAME,
                reply=replies.missing_client_name(exc.document_type),
            )

        if isinstance(resolution, ExistingClient):
            client = resolution.client
            document = self.documents.create_document(
                business.id,
                request.document_type,
                client,
                request.line_items,
                request.total_amount_cents,
                business=business,
            )
            return TurnOutcome(
                kind=TurnKind.DOCUMENT_CREATED,
                reply=self.documents.confirmation(document),
                document=document,
            )

        step = self.flow.start(business.id, message.from_phone, resolution.client_name, resolution.request)
        return TurnOutcome(kind=TurnKind.CONVERSATION_STARTED, reply=step.reply, conversation_phase=step.phase)


def build_classifier(mode: str, llm_client: Optional[object] = None) -> Classifier:
    """Return the regex classifier, or the OpenAI-backed one for ``mode == "llm"``."""
    if mode == "llm":
        from sms_invoice.llm_classifier import LlmClassifier

        return LlmClassifier(client=llm_client).classify

    from sms_invoice.classifier import classify

    return classify
