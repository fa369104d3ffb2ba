"""SMS invoice service configuration — all values from environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class AppConfig:
    """Immutable configuration loaded once at startup."""

    # Twilio
    twilio_account_sid: str = field(default_factory=lambda: os.getenv("TWILIO_ACCOUNT_SID", ""))
    twilio_auth_token: str = field(default_factory=lambda: os.getenv("TWILIO_AUTH_TOKEN", ""))
    twilio_phone_number: str = field(default_factory=lambda: os.getenv("TWILIO_PHONE_NUMBER", ""))

    app_url: str = field(default_factory=lambda: os.getenv("APP_URL", "http://localhost:3000"))
    pdf_output_dir: str = field(default_factory=lambda: os.getenv("PDF_OUTPUT_DIR", "generated_pdfs"))

    # Parsing: "regex" (deterministic) or "llm" (OpenAI)
    parser_mode: str = field(default_factory=lambda: os.getenv("PARSER_MODE", "regex"))
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    openai_model: str = field(default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4o"))

    # Payments: hosted checkout base URL; blank disables payment links
    payment_link_base_url: str = field(default_factory=lambda: os.getenv("PAYMENT_LINK_BASE_URL", ""))

    # Observability
    otel_endpoint: str = field(default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", ""))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @property
    def mock_mode(self) -> bool:
        """True when no Twilio credentials are configured."""
        return not (self.twilio_account_sid and self.twilio_auth_token)


config = AppConfig()
