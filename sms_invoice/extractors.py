"""Regex extractors for free-text SMS requests.

Handles messages such as:
- "Invoice 2 hrs @ $120, John Smith, client@example.com"
- "$120 2 hrs, quote John Smith, 3 boxes of nails $50"
- "Quote 4 hrs 120/hr John Smith (555)555-1234"
- "Invoice for John Smith - sink install labor 200 parts 50"

All functions are pure: text in, structured values out.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from sms_invoice.models import ParsedLineItem

_NUM = r"\d+(?:\.\d+)?"
_MONEY = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?"
_HOURS = r"(?:hours?|hrs?)\b"
_LABEL = r"(?:labou?r|materials?|parts?)"


def _amount(raw: str) -> Decimal:
    return Decimal(raw.replace(",", ""))


def _format_quantity(quantity: Decimal) -> str:
    return f"{quantity.normalize():f}"


# ---------------------------------------------------------------------------
# Line item rules, highest priority first
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItemRule:
    """One extraction pattern and how to turn its match into a line item.

    ``build`` returns ``None`` to skip a match; skipped text is not consumed.
    A ``fallback_only`` rule runs only when no rule with
    ``suppresses_fallback`` has produced an item.
    """

    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], Optional[ParsedLineItem]]
    fallback_only: bool = False
    suppresses_fallback: bool = True


def _labor(quantity_raw: str, rate_raw: str) -> Optional[ParsedLineItem]:
    quantity = Decimal(quantity_raw)
    if quantity <= 0:
        return None
    return ParsedLineItem.priced(f"Labor ({_format_quantity(quantity)} hrs)", quantity, _amount(rate_raw))


def _labeled(match: re.Match[str]) -> Optional[ParsedLineItem]:
    label = match.group("label").lower()
    if label.startswith("labo"):
        description = "Labor"
    elif label.startswith("material"):
        description = "Materials"
    else:
        description = "Parts"
    return ParsedLineItem.priced(description, Decimal(1), _amount(match.group("amount")))


def _generic(match: re.Match[str]) -> Optional[ParsedLineItem]:
    description = " ".join(match.group("description").split())
    if re.search(r"\b(?:hrs?|hours?)\b", description, re.IGNORECASE):
        return None
    quantity = Decimal(match.group("qty"))
    if quantity <= 0:
        return None
    return ParsedLineItem.priced(description[0].upper() + description[1:], quantity, _amount(match.group("price")))


def _service(match: re.Match[str]) -> Optional[ParsedLineItem]:
    return ParsedLineItem.priced("Service", Decimal(1), _amount(match.group("amount")))


LINE_ITEM_RULES: list[LineItemRule] = [
    # "2 hrs @ $120", "2 hours at 120", "2 hrs $120"
    LineItemRule(
        "hourly_at_rate",
        re.compile(rf"(?<![\d.])(?P<qty>{_NUM})\s*{_HOURS}\s*(?:(?:@|at\b)\s*\$?|\$)(?P<rate>{_MONEY})", re.IGNORECASE),
        lambda m: _labor(m.group("qty"), m.group("rate")),
    ),
    # "4 hrs 120/hr", "4 hours 120 per hour"
    LineItemRule(
        "hourly_per_hour",
        re.compile(
            rf"(?<![\d.])(?P<qty>{_NUM})\s*{_HOURS}\s*\$?(?P<rate>{_MONEY})\s*(?:/\s*|per\s*)(?:hours?|hrs?)\b",
            re.IGNORECASE,
        ),
        lambda m: _labor(m.group("qty"), m.group("rate")),
    ),
    # "$120 2 hrs"
    LineItemRule(
        "rate_then_hours",
        re.compile(rf"\$(?P<rate>{_MONEY})\s+(?P<qty>{_NUM})\s*{_HOURS}", re.IGNORECASE),
        lambda m: _labor(m.group("qty"), m.group("rate")),
    ),
    # "labor 100", "parts: $50", "materials - 200"; not "parts 2 faucets @ $25"
    LineItemRule(
        "labeled_amount",
        re.compile(
            rf"\b(?P<label>{_LABEL})\s*[:\-]?\s*\$?(?P<amount>{_MONEY})(?!\d|[.,]\d)"
            rf"(?![\d.]*\s*{_HOURS})"
            rf"(?!\s+(?!{_LABEL}\b)[a-zA-Z][a-zA-Z\s]*?\s+(?:(?:@|at)\s*)?\$)",
            re.IGNORECASE,
        ),
        _labeled,
        suppresses_fallback=False,
    ),
    # "3 boxes of nails $50", "2 faucets @ $25"
    LineItemRule(
        "quantity_description_price",
        re.compile(
            rf"(?<![\d.,\-$])(?P<qty>{_NUM})\s+(?P<description>[a-zA-Z][a-zA-Z\s]*?)\s+(?:(?:@|at)\s*)?\$(?P<price>{_MONEY})",
            re.IGNORECASE,
        ),
        _generic,
    ),
    # bare "$200" when nothing else matched
    LineItemRule(
        "standalone_dollars",
        re.compile(rf"\$(?P<amount>{_MONEY})"),
        _service,
        fallback_only=True,
    ),
]


def extract_line_items(text: str, rules: list[LineItemRule] = LINE_ITEM_RULES) -> list[ParsedLineItem]:
    """Extract priced line items in order of appearance.

    Rules run in priority order. Each accepted match is blanked out of the
    working text so lower-priority rules cannot count it again.
    """
    working = text
    found: list[tuple[int, ParsedLineItem, bool]] = []

    for rule in rules:
        if rule.fallback_only and any(counts for _, _, counts in found):
            continue
        for match in list(rule.pattern.finditer(working)):
            item = rule.build(match)
            if item is None:
                continue
            found.append((match.start(), item, rule.suppresses_fallback))
            start, end = match.span()
            working = working[:start] + " " * (end - start) + working[end:]

    found.sort(key=lambda entry: entry[0])
    return [item for _, item, _ in found]


# ---------------------------------------------------------------------------
# Contact details
# ---------------------------------------------------------------------------

_PHONE = re.compile(r"(?<!\d)(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\d)")
_EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_ADDRESS = re.compile(r"\b(?:address|addr|location):\s*([^,\n]+)", re.IGNORECASE)

_NAME_WORD = r"(?!(?:Invoice|Quote)\b)[A-Z][a-z]+(?:[-'][A-Z][a-z]+)?"
_NAME_PATTERNS = [
    # "for Jane Doe", "client: John Smith" (keyword case-insensitive, name is not)
    re.compile(rf"\b(?i:for|client|customer|to)\b:?\s+({_NAME_WORD}(?:\s+{_NAME_WORD})+)"),
    # "John Smith," / "John Smith (555..." / "John Smith - ..." / at the end
    re.compile(rf"\b({_NAME_WORD}\s+{_NAME_WORD})(?=\s*[,(\-:]|\s*$)"),
]


def extract_phone(text: str) -> Optional[str]:
    match = _PHONE.search(text)
    return match.group(0).strip() if match else None


def extract_email(text: str) -> Optional[str]:
    match = _EMAIL.search(text)
    return match.group(0) if match else None


def extract_address(text: str) -> Optional[str]:
    """Only an explicitly labeled address is recognized."""
    match = _ADDRESS.search(text)
    if not match:
        return None
    return match.group(1).strip() or None


def extract_client_name(text: str) -> Optional[str]:
    for pattern in _NAME_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return None
