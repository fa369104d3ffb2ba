"""Pydantic models for the SMS invoice service.

Money is always integer cents. Dollar amounts are parsed as ``Decimal`` and
rounded half-up into cents by :func:`to_cents`.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator

from sms_invoice.errors import PendingRequestCorrupt


def to_cents(amount: Decimal) -> int:
    """Round a (possibly fractional) cents amount half-up to an int."""
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def dollars_to_cents(dollars: Decimal) -> int:
    return to_cents(dollars * 100)


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentType(str, Enum):
    INVOICE = "invoice"
    QUOTE = "quote"


class ParsedLineItem(BaseModel):
    description: str
    quantity: Decimal
    unit_price: int  # cents
    total: int  # cents

    @model_validator(mode="after")
    def _check_amounts(self) -> "ParsedLineItem":
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")
        if self.unit_price < 0:
            raise ValueError(f"unit_price must not be negative, got {self.unit_price}")
        expected = to_cents(self.quantity * self.unit_price)
        if self.total != expected:
            raise ValueError(f"total {self.total} != quantity * unit_price ({expected})")
        return self

    @classmethod
    def priced(cls, description: str, quantity: Decimal, unit_price_dollars: Decimal) -> "ParsedLineItem":
        """Build an item from a dollar unit price; the total follows from the cents price."""
        unit_price = dollars_to_cents(unit_price_dollars)
        return cls(
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            total=to_cents(quantity * unit_price),
        )


class ParsedDocumentRequest(BaseModel):
    document_type: DocumentType
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    client_address: Optional[str] = None
    line_items: list[ParsedLineItem] = Field(default_factory=list)
    total_amount_cents: int = 0

    @model_validator(mode="after")
    def _check_total(self) -> "ParsedDocumentRequest":
        if not self.line_items:
            raise ValueError("a document request needs at least one line item")
        line_sum = sum(item.total for item in self.line_items)
        if self.total_amount_cents != line_sum:
            raise ValueError(
                f"total_amount_cents {self.total_amount_cents} != sum of line items {line_sum}"
            )
        return self

    def with_client(self, name: str, phone: Optional[str]) -> "ParsedDocumentRequest":
        return self.model_copy(update={"client_name": name, "client_phone": phone})


class InvoiceRequest(ParsedDocumentRequest):
    document_type: Literal["invoice"] = "invoice"


class QuoteRequest(ParsedDocumentRequest):
    document_type: Literal["quote"] = "quote"


PendingRequest = Annotated[Union[InvoiceRequest, QuoteRequest], Field(discriminator="document_type")]

_pending_adapter: TypeAdapter[ParsedDocumentRequest] = TypeAdapter(PendingRequest)


def build_request(document_type: DocumentType, line_items: list[ParsedLineItem], **client) -> ParsedDocumentRequest:
    """Assemble the tagged request variant for *document_type*; the total is the line item sum."""
    model = InvoiceRequest if document_type == DocumentType.INVOICE else QuoteRequest
    return model(
        line_items=line_items,
        total_amount_cents=sum(item.total for item in line_items),
        **client,
    )


def dump_pending_request(request: ParsedDocumentRequest) -> str:
    return request.model_dump_json()


def load_pending_request(raw: str) -> ParsedDocumentRequest:
    """Deserialize a stored pending request, rejecting anything off-schema."""
    try:
        return _pending_adapter.validate_json(raw)
    except ValidationError as exc:
        raise PendingRequestCorrupt(f"pending request failed validation: {exc}") from exc


class ConversationPhase(str, Enum):
    AWAITING_CLIENT_PHONE = "awaiting_client_phone"
    AWAITING_CLIENT_ADDRESS = "awaiting_client_address"
    COMPLETED = "completed"


class ConversationState(BaseModel):
    id: str = Field(default_factory=_new_id)
    business_id: str
    phone_number: str
    phase: ConversationPhase = ConversationPhase.AWAITING_CLIENT_PHONE
    pending_request: str  # serialized ParsedDocumentRequest
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Client(BaseModel):
    id: str = Field(default_factory=_new_id)
    business_id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class BusinessProfile(BaseModel):
    id: str = Field(default_factory=_new_id)
    business_name: str
    phone_number: str
    email: Optional[str] = None
    address: Optional[str] = None


class DocumentRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    business_id: str
    client_id: str
    client_name: str
    document_type: DocumentType
    document_number: str
    line_items: list[ParsedLineItem]
    total_amount_cents: int
    status: str = "sent"
    pdf_url: Optional[str] = None
    payment_url: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class InboundMessage(BaseModel):
    from_phone: str
    to_phone: str = ""
    body: str = ""
    message_sid: str = ""


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class SmsMessageRecord(BaseModel):
    """One logged SMS, either direction; ``status`` follows Twilio's vocabulary."""

    id: str = Field(default_factory=_new_id)
    business_id: Optional[str] = None
    direction: MessageDirection
    from_number: str
    to_number: str
    body: str
    status: str
    twilio_message_sid: Optional[str] = None
    related_document_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class TurnKind(str, Enum):
    ONBOARDING = "onboarding"
    REJECTED = "rejected"
    NEEDS_CLIENT_NAME = "needs_client_name"
    CONVERSATION_STARTED = "conversation_started"
    CONVERSATION_ADVANCED = "conversation_advanced"
    BLANK_REPLY = "blank_reply"
    DUPLICATE_REPLY = "duplicate_reply"
    DOCUMENT_CREATED = "document_created"
    RETRY_LATER = "retry_later"


class TurnOutcome(BaseModel):
    kind: TurnKind
    reply: str
    document: Optional[DocumentRecord] = None
    conversation_phase: Optional[ConversationPhase] = None
    reply_message_id: Optional[str] = None
