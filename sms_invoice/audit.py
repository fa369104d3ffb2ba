"""Structured audit logging for the SMS invoice service.

Rules:
- Never log message bodies or client contact details
- Phone numbers are masked to their last four digits
- Log metadata only
- Structured JSON format
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone


logger = logging.getLogger("sms_invoice.audit")


def mask_phone(phone: str) -> str:
    """``+15551234567`` -> ``***4567``."""
    digits = re.sub(r"\D", "", phone or "")
    return f"***{digits[-4:]}" if digits else ""


def _emit(event: str, **kwargs) -> None:
    """Emit a structured audit log entry."""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "sms-invoice",
        "event": event,
        **kwargs,
    }
    logger.info(json.dumps(entry, default=str))


def log_message_received(message_sid: str, from_phone: str, body_length: int) -> None:
    _emit(
        "message_received",
        message_sid=message_sid,
        from_phone=mask_phone(from_phone),
        body_length=body_length,
    )


def log_turn_completed(
    from_phone: str,
    outcome: str,
    business_id: str = "",
    conversation_phase: str = "",
    duration_ms: float = 0.0,
) -> None:
    _emit(
        "turn_completed",
        from_phone=mask_phone(from_phone),
        business_id=business_id,
        outcome=outcome,
        conversation_phase=conversation_phase,
        duration_ms=round(duration_ms, 2),
    )


def log_document_created(
    business_id: str,
    document_id: str,
    document_number: str,
    document_type: str,
    total_amount_cents: int,
) -> None:
    _emit(
        "document_created",
        business_id=business_id,
        document_id=document_id,
        document_number=document_number,
        document_type=document_type,
        total_amount_cents=total_amount_cents,
    )


def log_reply_sent(to_phone: str, success: bool, provider_sid: str = "") -> None:
    _emit(
        "reply_sent",
        to_phone=mask_phone(to_phone),
        success=success,
        provider_sid=provider_sid,
    )
