from __future__ import annotations
from typing import List, Optional
from uuid import uuid4, UUID
from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from utils.timing import utc_now


class MenuItemType(str, Enum):
    DRINK = "drink"
    MAIN_COURSE = "main_course"
    DESSERT = "dessert"


class Restaurant(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    location: Optional[str] = None
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))


class MenuItem(SQLModel, table=True):
    __tablename__ = "menu_item"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    restaurant_id: UUID = Field(index=True)
    dish_name: str
    type: MenuItemType = Field(default=MenuItemType.MAIN_COURSE)
    category: str = "Sonstige"
    price: Decimal = Field(max_digits=10, decimal_places=2)
    gives_refund: bool = False

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
