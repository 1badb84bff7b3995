from __future__ import annotations
from typing import List, Optional, Sequence
from models.ingestion import ParsedMenuItem
from .price_parser import parse_price
from .text_normalizer import (
    split_into_lines,
    is_category_header,
    extract_dish_name,
    looks_like_description,
    to_search_form,
)


MIN_DISH_NAME_LENGTH = 3


class MenuParser:
    """Line scanner shared by the native-text and OCR paths.

    Walks the lines of every page in order, tracking the current category
    header and at most one pending description line. A line with an accepted
    price becomes a candidate item; the pending description only attaches to
    the item directly after it.
    """

    def __init__(self, confidence_floor: float = 0.5, confidence_factor: float = 1.0):
        if not 0 <= confidence_floor <= 1:
            raise ValueError("confidence_floor must be between 0 and 1")
        if not 0 <= confidence_factor <= 1:
            raise ValueError("confidence_factor must be between 0 and 1")

        self.confidence_floor = confidence_floor
        self.confidence_factor = confidence_factor

    def parse_text(self, text: str) -> List[ParsedMenuItem]:
        return self.parse_pages([text])

    def parse_pages(self, page_texts: Sequence[str]) -> List[ParsedMenuItem]:
        items: List[ParsedMenuItem] = []
        current_category: Optional[str] = None
        pending_description: Optional[str] = None

        for page_number, page_text in enumerate(page_texts, start=1):
            for line in split_into_lines(page_text):
                if is_category_header(line):
                    current_category = line
                    pending_description = None
                    continue

                price = parse_price(line)

                if price and price.confidence >= self.confidence_floor:
                    dish_name = extract_dish_name(line)

                    if len(dish_name) >= MIN_DISH_NAME_LENGTH:
                        items.append(ParsedMenuItem(
                            dish_name=dish_name,
                            dish_name_normalized=to_search_form(dish_name),
                            description=pending_description,
                            price=price.value,
                            price_confidence=price.confidence * self.confidence_factor,
                            category=current_category,
                            page_number=page_number,
                            raw_text=line
                        ))

                    pending_description = None
                elif looks_like_description(line):
                    pending_description = line
                else:
                    pending_description = None

        return items
