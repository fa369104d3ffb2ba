"""Exceptions raised by the parsing and conversation core.

Every error here is local to one turn: the service maps it to a reply and
moves on. None of them should take the process down.
"""

from __future__ import annotations


class SmsInvoiceError(Exception):
    """Base class for recoverable per-turn failures."""


class ParseRejected(SmsInvoiceError):
    """The message has no document keyword or no priced line items."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class MissingClientName(SmsInvoiceError):
    """A valid request that names no client."""

    def __init__(self, document_type: str):
        super().__init__(f"no client name in {document_type} request")
        self.document_type = document_type


class BlankReply(SmsInvoiceError):
    """Empty or whitespace-only reply while a conversation awaits input."""

    def __init__(self, phase: str):
        super().__init__(f"blank reply in phase {phase}")
        self.phase = phase


class ConversationRaceLost(SmsInvoiceError):
    """The stored conversation phase changed between read and write."""

    def __init__(self, conversation_id: str, expected_phase: str, actual_phase: str | None):
        super().__init__(
            f"conversation {conversation_id}: expected phase {expected_phase}, "
            f"found {actual_phase or 'nothing'}"
        )
        self.conversation_id = conversation_id
        self.expected_phase = expected_phase
        self.actual_phase = actual_phase


class ConversationAlreadyActive(SmsInvoiceError):
    """A second active conversation for the same business and phone."""


class DuplicateClient(SmsInvoiceError):
    """A client with the same name already exists in the business."""


class PendingRequestCorrupt(SmsInvoiceError):
    """Stored pending request data failed schema validation."""
