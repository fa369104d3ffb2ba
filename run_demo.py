#!/usr/bin/env python3
"""
run_demo.py — One-command demo entry point.

Usage:
  python run_demo.py                       # Regex parser, new client dialogue
  python run_demo.py --parser-mode llm     # OpenAI parser (requires OPENAI_API_KEY)
  python run_demo.py --message "Quote for Jane Doe 3 hrs @ $90"

This script:
1. Builds the webhook app in-process (mock mode, no Twilio)
2. Registers a demo business
3. Sends the request SMS, then the client's phone and address
4. Prints each reply
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import tempfile
from dataclasses import replace
from xml.etree import ElementTree

import httpx
from dotenv import load_dotenv

load_dotenv()

BUSINESS_PHONE = "+15551234567"
DEFAULT_MESSAGE = "Invoice for John Smith 2 hrs @ $120, 3 boxes of nails $50"
DEFAULT_REPLIES = ["555-987-6543", "123 Main St, Springfield"]

SEP = "--------------------------------------------------"


def _reply_text(twiml: str) -> str:
    message = ElementTree.fromstring(twiml).find("Message")
    return message.text if message is not None and message.text else "(no reply)"


async def run_dialogue(parser_mode: str, messages: list[str]) -> None:
    from sms_invoice.config import config
    from sms_invoice.main import create_app

    cfg = replace(
        config,
        twilio_account_sid="",
        twilio_auth_token="",
        parser_mode=parser_mode,
        pdf_output_dir=os.path.join(tempfile.gettempdir(), "sms_invoice_demo"),
    )
    app = create_app(cfg)
    transport = httpx.ASGITransport(app=app)

    async with httpx.AsyncClient(transport=transport, base_url="http://demo") as client:
        resp = await client.post(
            "/businesses",
            json={"business_name": "ABC Plumbing", "phone_number": BUSINESS_PHONE},
        )
        resp.raise_for_status()

        print()
        print(SEP)
        print("\U0001f4f1 SMS INVOICE DEMO")
        print(SEP)
        for body in messages:
            resp = await client.post(
                "/twilio/sms",
                data={"From": BUSINESS_PHONE, "To": "+15550000000", "Body": body},
            )
            resp.raise_for_status()
            print()
            print(f"> {body}")
            print(_reply_text(resp.text))
        print()
        print(f"PDFs written to {cfg.pdf_output_dir}")
        print(SEP)


def main() -> None:
    parser = argparse.ArgumentParser(description="SMS Invoice demo")
    parser.add_argument(
        "--parser-mode",
        choices=["regex", "llm"],
        default="regex",
        help="Message parser: 'regex' (default, deterministic) or 'llm' (OpenAI)",
    )
    parser.add_argument(
        "--message",
        default=DEFAULT_MESSAGE,
        help=f"Request SMS to send (default: {DEFAULT_MESSAGE!r})",
    )
    args = parser.parse_args()

    # Suppress noisy logs for clean demo output
    logging.basicConfig(level=logging.WARNING)

    if args.parser_mode == "llm" and not os.getenv("OPENAI_API_KEY"):
        print(
            "ERROR: OPENAI_API_KEY required for llm mode. Set it in .env or environment.",
            file=sys.stderr,
        )
        sys.exit(1)

    try:
        asyncio.run(run_dialogue(args.parser_mode, [args.message, *DEFAULT_REPLIES]))
    except KeyboardInterrupt:
        print("\nInterrupted.")


if __name__ == "__main__":
    main()
