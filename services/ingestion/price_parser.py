"""German-locale EUR price parsing.

Menus print prices as ``8,50``, ``8,50 €``, ``€ 8,50``, ``8.50`` or ``12 EUR``.
Each recognized form carries a base confidence; a visible currency marker
raises it, implausible magnitudes halve it.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Union
import re


COMMA_DECIMAL = re.compile(r"(?:€\s*)?(\d{1,6}),(\d{2})\s*(?:€|EUR)?", re.IGNORECASE)
DOT_DECIMAL = re.compile(r"(?:€\s*)?(\d{1,6})\.(\d{2})\s*(?:€|EUR)?", re.IGNORECASE)
WHOLE_WITH_CURRENCY = re.compile(r"(?:€\s*)?(\d{1,6})\s*(?:€|EUR)", re.IGNORECASE)

DECIMAL_CONFIDENCE = 0.95
WHOLE_NUMBER_CONFIDENCE = 0.7
CURRENCY_BONUS = 0.1
MAX_EUROS = 10000
MIN_CONFIDENCE = 0.5

REASONABLE_MIN = Decimal("0.5")
REASONABLE_MAX = Decimal("1000")

_PATTERNS = (COMMA_DECIMAL, DOT_DECIMAL, WHOLE_WITH_CURRENCY)


@dataclass(frozen=True)
class ParsedPrice:
    value: Decimal
    confidence: float
    raw_text: str


def has_currency_marker(text: str) -> bool:
    return "€" in text or "EUR" in text.upper()


def parse_price(text: str) -> Optional[ParsedPrice]:
    if not text or not isinstance(text, str):
        return None

    trimmed = text.strip()

    for pattern in _PATTERNS:
        match = pattern.search(trimmed)
        if not match:
            continue

        euros = int(match.group(1))
        if pattern is WHOLE_WITH_CURRENCY:
            cents = 0
            confidence = WHOLE_NUMBER_CONFIDENCE
        else:
            cents = int(match.group(2))
            confidence = DECIMAL_CONFIDENCE

        if euros < 0 or euros > MAX_EUROS or cents < 0 or cents > 99:
            confidence *= 0.5

        if has_currency_marker(trimmed):
            confidence = min(1.0, confidence + CURRENCY_BONUS)

        value = Decimal(euros) + Decimal(cents) / 100

        return ParsedPrice(value=value, confidence=confidence, raw_text=trimmed)

    return None


def extract_prices(text: str) -> List[ParsedPrice]:
    prices = []

    for line in re.split(r"[\r\n]+", text or ""):
        price = parse_price(line)
        if price and price.confidence >= MIN_CONFIDENCE:
            prices.append(price)

    return prices


def is_reasonable_menu_price(value: Union[Decimal, float, int]) -> bool:
    return REASONABLE_MIN <= Decimal(str(value)) <= REASONABLE_MAX


def format_price(value: Union[Decimal, float, int]) -> str:
    """Render a price the way German menus print it, e.g. ``1.234,50 €``."""
    amount = Decimal(str(value)).quantize(Decimal("0.01"))
    english = f"{amount:,.2f}"
    german = english.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{german} €"
