"""Webhook and API tests through FastAPI's TestClient."""

from dataclasses import replace
from xml.etree import ElementTree

import pytest
from fastapi.testclient import TestClient

from sms_invoice.config import config
from sms_invoice.main import build_service, create_app, twiml
from sms_invoice.notifier import Delivery, LoggingNotifier
from sms_invoice.stores import InMemoryBusinessStore

from conftest import BUSINESS_PHONE


def _reply(resp):
    message = ElementTree.fromstring(resp.text).find("Message")
    return message.text if message is not None else None


@pytest.fixture
def notifier():
    return LoggingNotifier()


@pytest.fixture
def mock_cfg(tmp_path):
    return replace(
        config,
        twilio_account_sid="",
        twilio_auth_token="",
        parser_mode="regex",
        pdf_output_dir=str(tmp_path),
        app_url="http://test.local",
    )


@pytest.fixture
def api(mock_cfg, notifier):
    app = create_app(mock_cfg, service=build_service(mock_cfg, InMemoryBusinessStore()), notifier=notifier)
    return TestClient(app)


def _register(api):
    resp = api.post("/businesses", json={"business_name": "ABC Plumbing", "phone_number": BUSINESS_PHONE})
    assert resp.status_code == 201
    return resp.json()


def _sms(api, body, from_phone=BUSINESS_PHONE):
    return api.post("/twilio/sms", data={"From": from_phone, "To": "+15550000000", "Body": body, "MessageSid": "SM1"})


class TestHealth:
    def test_health(self, api):
        resp = api.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["mock_mode"] is True


class TestBusinesses:
    def test_register(self, api):
        profile = _register(api)
        assert profile["business_name"] == "ABC Plumbing"
        assert profile["id"]

    def test_duplicate_phone(self, api):
        _register(api)
        resp = api.post("/businesses", json={"business_name": "Other", "phone_number": BUSINESS_PHONE})
        assert resp.status_code == 409


class TestInboundSms:
    def test_unknown_sender_onboarding(self, api, notifier):
        resp = _sms(api, "Invoice for John Smith 2 hrs @ $120")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/xml")
        assert "/onboarding" in _reply(resp)
        assert notifier.sent[0][0] == BUSINESS_PHONE

    def test_full_dialogue_creates_pdf(self, api, notifier, tmp_path):
        _register(api)

        assert 'New client "John Smith"' in _reply(_sms(api, "Invoice for John Smith 2 hrs @ $120, 3 boxes of nails $50"))
        assert "John Smith's address" in _reply(_sms(api, "555-987-6543"))
        final = _reply(_sms(api, "123 Main St, Springfield"))

        assert final.startswith("✅ Invoice INV-00001 created for John Smith!")
        assert "Total: $390.00" in final
        assert "PDF: http://test.local/pdfs/INV-00001.pdf" in final
        assert (tmp_path / "INV-00001.pdf").exists()
        assert len(notifier.sent) == 3

    def test_document_endpoint(self, api):
        _register(api)
        _sms(api, "Quote for Jane Doe deck repair $300")
        _sms(api, "555-222-3333")
        final = _reply(_sms(api, "42 Oak Ave"))
        document_id = final.split("/quotes/")[1].split()[0]

        resp = api.get(f"/documents/{document_id}")
        assert resp.status_code == 200
        assert resp.json()["document_number"] == "QUO-00001"
        assert resp.json()["total_amount_cents"] == 30000

    def test_document_not_found(self, api):
        assert api.get("/documents/nope").status_code == 404

    def test_reply_is_escaped(self):
        resp = twiml('Quote for "A & B" <co>')
        assert b"&amp;" in resp.body
        assert ElementTree.fromstring(resp.body).find("Message").text == 'Quote for "A & B" <co>'

    def test_live_mode_sends_out_of_band(self, mock_cfg, notifier):
        live_cfg = replace(mock_cfg, twilio_account_sid="AC123", twilio_auth_token="secret")
        app = create_app(live_cfg, service=build_service(live_cfg, InMemoryBusinessStore()), notifier=notifier)
        resp = _sms(TestClient(app), "hello")

        assert resp.status_code == 200
        assert _reply(resp) is None
        assert len(notifier.sent) == 1


class SidNotifier(LoggingNotifier):
    async def send_reply(self, to_phone, text):
        await super().send_reply(to_phone, text)
        return Delivery(success=True, sid=f"SM-out-{len(self.sent)}")


class FailingNotifier(LoggingNotifier):
    async def send_reply(self, to_phone, text):
        return Delivery(success=False)


def _app(cfg, notifier):
    return TestClient(create_app(cfg, service=build_service(cfg, InMemoryBusinessStore()), notifier=notifier))


def _messages(api, business_id):
    resp = api.get(f"/businesses/{business_id}/messages")
    assert resp.status_code == 200
    return resp.json()


class TestMessageLog:
    def test_inbound_and_outbound_logged(self, mock_cfg):
        api = _app(mock_cfg, SidNotifier())
        business = _register(api)

        _sms(api, "Quote for Jane Doe deck repair $300")
        inbound, outbound = _messages(api, business["id"])

        assert inbound["direction"] == "inbound"
        assert inbound["status"] == "received"
        assert inbound["twilio_message_sid"] == "SM1"
        assert outbound["direction"] == "outbound"
        assert outbound["to_number"] == BUSINESS_PHONE
        assert outbound["status"] == "sent"
        assert outbound["twilio_message_sid"] == "SM-out-1"

    def test_reply_links_document(self, api):
        business = _register(api)
        _sms(api, "Quote for Jane Doe deck repair $300")
        _sms(api, "555-222-3333")
        _sms(api, "42 Oak Ave")

        outbound = [m for m in _messages(api, business["id"]) if m["direction"] == "outbound"]
        document_ids = [m["related_document_id"] for m in outbound]

        assert document_ids[:2] == [None, None]
        assert api.get(f"/documents/{document_ids[2]}").json()["document_number"] == "QUO-00001"

    def test_failed_delivery_marked(self, mock_cfg):
        api = _app(mock_cfg, FailingNotifier())
        business = _register(api)

        _sms(api, "hello")
        outbound = _messages(api, business["id"])[-1]

        assert outbound["status"] == "failed"
        assert outbound["twilio_message_sid"] is None


class TestStatusCallback:
    def test_status(self, api):
        resp = api.post("/twilio/sms-status", data={"MessageSid": "SM1", "MessageStatus": "delivered"})
        assert resp.status_code == 200

    def test_status_updates_logged_reply(self, mock_cfg):
        api = _app(mock_cfg, SidNotifier())
        business = _register(api)
        _sms(api, "hello")

        resp = api.post("/twilio/sms-status", data={"MessageSid": "SM-out-1", "MessageStatus": "delivered"})

        assert resp.status_code == 200
        assert _messages(api, business["id"])[-1]["status"] == "delivered"
