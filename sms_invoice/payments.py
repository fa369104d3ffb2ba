"""Payment links for invoice confirmations.

A provider turns a saved invoice into a URL the client can pay at. Failures
never block the invoice; :class:`DocumentService` logs them and sends the
confirmation without a link.
"""

from __future__ import annotations

from typing import Optional, Protocol
from urllib.parse import urlencode

from sms_invoice.config import AppConfig
from sms_invoice.models import BusinessProfile, DocumentRecord


class PaymentLinkProvider(Protocol):
    def payment_link(self, document: DocumentRecord, business: Optional[BusinessProfile]) -> Optional[str]: ...


class HostedCheckoutLinks:
    """Links into a hosted checkout page keyed by document id."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def payment_link(self, document: DocumentRecord, business: Optional[BusinessProfile] = None) -> Optional[str]:
        query = {
            "invoice": document.document_number,
            "amount": f"{document.total_amount_cents / 100:.2f}",
        }
        if business is not None:
            query["business"] = business.id
        return f"{self.base_url}/{document.id}?{urlencode(query)}"


def build_payment_links(cfg: AppConfig) -> Optional[PaymentLinkProvider]:
    if not cfg.payment_link_base_url:
        return None
    return HostedCheckoutLinks(cfg.payment_link_base_url)
