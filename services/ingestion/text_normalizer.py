from __future__ import annotations
from typing import List
import re
import unicodedata


_INVISIBLE_MARKS = re.compile("[\u00ad\u200b\u200c\u200d]")
_WHITESPACE = re.compile(r"\s+")
_LINE_BREAKS = re.compile(r"[\r\n]+")

_ENUMERATION_PREFIX = re.compile(r"^\d+[.)]\s*")
_BULLET_PREFIX = re.compile(r"^[•\-*]\s*")
_TRAILING_DECIMAL_PRICE = re.compile(r"\s*(?:€\s*)?\d{1,6}[,.]\d{2}\s*(?:€|EUR)?\s*$", re.IGNORECASE)
_TRAILING_WHOLE_PRICE = re.compile(r"\s*(?:€\s*)?\d{1,6}\s*(?:€|EUR)\s*$", re.IGNORECASE)
_EMBEDDED_PRICE = re.compile(r"\d{1,6}[,.]\d{2}(?!\d)")

# Closed list of German menu section labels, matched against the search form.
CATEGORY_HEADER_PATTERNS = [
    re.compile(pattern)
    for pattern in (
        r"vorspeisen?",
        r"hauptgerichte?",
        r"hauptspeisen?",
        r"beilagen?",
        r"salate?",
        r"suppen?",
        r"desserts?",
        r"nachspeisen?",
        r"nachtische?",
        r"getränke?",
        r"drinks?",
        r"pizza",
        r"pasta",
        r"fisch",
        r"fleisch",
        r"vegetarisch",
        r"vegan",
        r"alkoholfreie?\s+getränke",
        r"alkoholische?\s+getränke",
        r"warme?\s+getränke",
        r"kalte?\s+getränke",
    )
]

MIN_DESCRIPTION_LENGTH = 20


def normalize(text: str) -> str:
    if not text:
        return ""

    normalized = _INVISIBLE_MARKS.sub("", text)
    normalized = _WHITESPACE.sub(" ", normalized.strip())
    normalized = unicodedata.normalize("NFC", normalized)

    return normalized.strip()


def to_search_form(text: str) -> str:
    return normalize(text).lower()


def extract_dish_name(line: str) -> str:
    name = normalize(line)

    name = _ENUMERATION_PREFIX.sub("", name)
    name = _BULLET_PREFIX.sub("", name)
    name = _TRAILING_DECIMAL_PRICE.sub("", name)
    name = _TRAILING_WHOLE_PRICE.sub("", name)

    return name.strip()


def is_category_header(line: str) -> bool:
    search_form = to_search_form(line)
    return any(pattern.fullmatch(search_form) for pattern in CATEGORY_HEADER_PATTERNS)


def looks_like_description(line: str) -> bool:
    normalized = normalize(line)

    if len(normalized) <= MIN_DESCRIPTION_LENGTH:
        return False

    if _ENUMERATION_PREFIX.match(normalized):
        return False

    if _EMBEDDED_PRICE.search(normalized):
        return False

    return True


def split_into_lines(text: str) -> List[str]:
    lines = (normalize(line) for line in _LINE_BREAKS.split(text or ""))
    return [line for line in lines if line]
