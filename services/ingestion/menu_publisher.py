from __future__ import annotations
from typing import Optional, Tuple
from uuid import UUID
from decimal import Decimal
from enum import Enum
from dataclasses import dataclass
from sqlmodel import Session, select
from models.restaurant import MenuItem, MenuItemType
from utils.logger import setup_logger
from utils.timing import utc_now
from .text_normalizer import to_search_form

logger = setup_logger(__name__)


DEFAULT_CATEGORY = "Sonstige"
DEFAULT_ITEM_TYPE = MenuItemType.MAIN_COURSE

DRINK_KEYWORDS: Tuple[str, ...] = ("getränk", "drink")
DESSERT_KEYWORDS: Tuple[str, ...] = ("dessert", "nachspeise", "nachtisch")


class MergeOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"


@dataclass(frozen=True)
class ResolvedItem:
    dish_name: str
    price: Decimal
    category: Optional[str] = None
    description: Optional[str] = None

    @property
    def category_or_default(self) -> str:
        return self.category or DEFAULT_CATEGORY


def infer_item_type(category: Optional[str]) -> MenuItemType:
    category_form = to_search_form(category or "")

    if any(keyword in category_form for keyword in DRINK_KEYWORDS):
        return MenuItemType.DRINK

    if any(keyword in category_form for keyword in DESSERT_KEYWORDS):
        return MenuItemType.DESSERT

    return DEFAULT_ITEM_TYPE


class MenuPublisher:
    """Upserts reviewed items into a restaurant's catalog.

    The merge key is (restaurant, search form of the dish name). Writes are
    flushed but never committed here so a whole approval can roll back as one
    unit. Two items with the same key inside one approval hit the same row and
    the later one wins.
    """

    def find_existing(self, session: Session, restaurant_id: UUID, dish_name: str) -> Optional[MenuItem]:
        key = to_search_form(dish_name)

        catalog = session.exec(
            select(MenuItem).where(MenuItem.restaurant_id == restaurant_id)
        ).all()

        for existing in catalog:
            if to_search_form(existing.dish_name) == key:
                return existing

        return None

    def merge_item(self, session: Session, restaurant_id: UUID, item: ResolvedItem) -> MergeOutcome:
        if not restaurant_id:
            raise ValueError("restaurant_id is required to publish menu items")

        if not item.dish_name or not item.dish_name.strip():
            raise ValueError("dish_name is required to publish menu items")

        existing = self.find_existing(session, restaurant_id, item.dish_name)

        if existing:
            existing.price = item.price
            if item.category:
                existing.category = item.category
            existing.updated_at = utc_now()
            session.add(existing)
            session.flush()

            logger.debug(
                "Updated catalog item",
                extra={"menu_item_id": str(existing.id), "dish_name": existing.dish_name}
            )
            return MergeOutcome.UPDATED

        menu_item = MenuItem(
            restaurant_id=restaurant_id,
            dish_name=item.dish_name,
            type=infer_item_type(item.category),
            category=item.category_or_default,
            price=item.price,
            gives_refund=False
        )
        session.add(menu_item)
        session.flush()

        logger.debug(
            "Inserted catalog item",
            extra={"menu_item_id": str(menu_item.id), "dish_name": menu_item.dish_name}
        )
        return MergeOutcome.INSERTED
