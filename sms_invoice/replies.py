"""Reply templates sent back to the tradesperson."""

from __future__ import annotations

from sms_invoice.models import DocumentRecord, DocumentType

PARSE_REJECTED = (
    "Sorry, I couldn't understand that message. Please try again with a format like:\n\n"
    '"Invoice for John Smith 2 hrs @ $120"\n\nor\n\n'
    '"Quote for Jane Doe - deck repair labor $300 materials $200"'
)

RETRY_LATER = "Sorry, an error occurred. Please try again later."

ALREADY_RECEIVED = "Thanks, that reply was already received."


def onboarding(app_url: str) -> str:
    return (
        "Welcome to SMS Invoice! 📱\n\n"
        "To get started, please complete your business profile:\n"
        f"{app_url.rstrip('/')}/onboarding\n\n"
        "Once set up, you can create invoices and quotes by texting this number."
    )


def missing_client_name(document_type: str) -> str:
    return (
        f"Please resend your {document_type} with the client name.\n\n"
        'Example: "Invoice for John Smith 2 hrs @ $120"'
    )


def ask_client_phone(client_name: str) -> str:
    return f'New client "{client_name}" detected!\n\nPlease provide their phone number:'


def ask_client_address(client_name: str) -> str:
    return f"Great! Now please provide {client_name}'s address:"


def format_cents(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def document_created(document: DocumentRecord, view_url: str) -> str:
    label = "Invoice" if document.document_type == DocumentType.INVOICE else "Quote"
    lines = [
        f"✅ {label} {document.document_number} created for {document.client_name}!",
        "",
        f"Total: {format_cents(document.total_amount_cents)}",
        "",
        f"View: {view_url}",
    ]
    if document.payment_url:
        lines += ["", f"Payment: {document.payment_url}"]
    if document.pdf_url:
        lines += ["", f"PDF: {document.pdf_url}"]
    return "\n".join(lines)
