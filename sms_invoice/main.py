"""SMS Invoice — FastAPI application.

POST /twilio/sms                   — Inbound SMS webhook, one delivery per turn.
POST /twilio/sms-status            — Delivery status callback.
POST /businesses                   — Register a business profile (onboarding).
GET  /businesses/{id}/messages     — SMS log for a business.
GET  /documents/{id}               — Fetch a created document.
GET  /health                       — Liveness check.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Form, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from twilio.twiml.messaging_response import MessagingResponse

from sms_invoice import audit, replies
from sms_invoice.config import AppConfig, config
from sms_invoice.documents import DocumentService
from sms_invoice.models import (
    BusinessProfile,
    DocumentRecord,
    InboundMessage,
    SmsMessageRecord,
    TurnKind,
    TurnOutcome,
)
from sms_invoice.notifier import Notifier, build_notifier
from sms_invoice.payments import build_payment_links
from sms_invoice.pdf_renderer import PdfRenderer
from sms_invoice.service import SmsInvoiceService, build_classifier
from sms_invoice.stores import (
    BusinessStore,
    InMemoryBusinessStore,
    InMemoryClientStore,
    InMemoryConversationStore,
    InMemoryDocumentStore,
    InMemoryMessageStore,
)
from sms_invoice.telemetry import init_telemetry

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, config.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
)
logger = logging.getLogger("sms_invoice")


class BusinessCreate(BaseModel):
    business_name: str
    phone_number: str
    email: Optional[str] = None
    address: Optional[str] = None


def twiml(message: Optional[str] = None) -> Response:
    response = MessagingResponse()
    if message:
        response.message(message)
    return Response(content=str(response), media_type="text/xml")


def build_service(cfg: AppConfig, businesses: BusinessStore) -> SmsInvoiceService:
    documents = DocumentService(
        InMemoryDocumentStore(),
        PdfRenderer(cfg.pdf_output_dir, cfg.app_url),
        cfg.app_url,
        payment_links=build_payment_links(cfg),
    )
    return SmsInvoiceService(
        businesses=businesses,
        clients=InMemoryClientStore(),
        conversations=InMemoryConversationStore(),
        documents=documents,
        classifier=build_classifier(cfg.parser_mode),
        app_url=cfg.app_url,
        messages=InMemoryMessageStore(),
    )


def create_app(
    cfg: AppConfig = config,
    service: Optional[SmsInvoiceService] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    if service is None:
        service = build_service(cfg, InMemoryBusinessStore())
    businesses = service.businesses
    notifier = notifier or build_notifier(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_telemetry(cfg)
        logger.info(
            "SMS invoice service started — mock_mode=%s, parser_mode=%s, otel=%s",
            cfg.mock_mode,
            cfg.parser_mode,
            bool(cfg.otel_endpoint),
        )
        yield

    app = FastAPI(
        title="SMS Invoice",
        version="0.1.0",
        description="Invoices and quotes from text messages",
        lifespan=lifespan,
    )
    app.mount("/pdfs", StaticFiles(directory=cfg.pdf_output_dir, check_dir=False), name="pdfs")

    async def deliver_reply(to_phone: str, text: str, record_id: Optional[str]) -> None:
        delivery = await notifier.send_reply(to_phone, text)
        if record_id is not None:
            service.messages.update(
                record_id,
                status="sent" if delivery.success else "failed",
                twilio_message_sid=delivery.sid or None,
            )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.get("/health")
    async def health():
        return {"status": "ok", "mock_mode": cfg.mock_mode, "parser_mode": cfg.parser_mode}

    @app.post("/twilio/sms")
    async def inbound_sms(
        background_tasks: BackgroundTasks,
        From: str = Form(...),
        To: str = Form(""),
        Body: str = Form(""),
        MessageSid: str = Form(""),
    ):
        audit.log_message_received(message_sid=MessageSid, from_phone=From, body_length=len(Body))
        message = InboundMessage(from_phone=From, to_phone=To, body=Body, message_sid=MessageSid)
        try:
            outcome = service.handle_turn(message)
        except Exception:
            logger.exception("Turn failed for %s", audit.mask_phone(From))
            outcome = TurnOutcome(kind=TurnKind.RETRY_LATER, reply=replies.RETRY_LATER)

        background_tasks.add_task(deliver_reply, From, outcome.reply, outcome.reply_message_id)
        # Without Twilio credentials the reply rides back on the webhook response.
        return twiml(outcome.reply if cfg.mock_mode else None)

    @app.post("/twilio/sms-status")
    async def sms_status(MessageSid: str = Form(""), MessageStatus: str = Form("")):
        logger.info("SMS status update: %s - %s", MessageSid, MessageStatus)
        if MessageSid and MessageStatus:
            service.messages.update_status_by_sid(MessageSid, MessageStatus)
        return Response(status_code=200)

    @app.post("/businesses", response_model=BusinessProfile, status_code=201)
    async def register_business(body: BusinessCreate):
        if businesses.get_by_phone(body.phone_number) is not None:
            raise HTTPException(status_code=409, detail="Phone number already registered")
        profile = businesses.add(BusinessProfile(**body.model_dump()))
        logger.info("Registered business %s", profile.id)
        return profile

    @app.get("/businesses/{business_id}/messages", response_model=list[SmsMessageRecord])
    async def list_messages(business_id: str):
        return service.messages.list_for_business(business_id)

    @app.get("/documents/{document_id}", response_model=DocumentRecord)
    async def get_document(document_id: str):
        document = service.documents.store.get(document_id)
        if document is None:
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    # -----------------------------------------------------------------------
    # Error handler
    # -----------------------------------------------------------------------

    @app.exception_handler(Exception)
    async def _global_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error": str(exc)},
        )

    return app


app = create_app()
