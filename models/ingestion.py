from __future__ import annotations
from typing import Optional, Dict, Any, List
from uuid import uuid4, UUID
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
import json
from pydantic import BaseModel, field_validator
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, JSON
from utils.timing import utc_now


class BatchStatus(str, Enum):
    UPLOADED = "UPLOADED"
    PARSING = "PARSING"
    PARSED = "PARSED"
    PARSE_FAILED = "PARSE_FAILED"
    CHANGES_PROPOSED = "CHANGES_PROPOSED"
    APPROVED = "APPROVED"
    PUBLISHING = "PUBLISHING"
    PUBLISHED = "PUBLISHED"
    REJECTED = "REJECTED"


# Returned to callers on re-upload; never stored on a batch.
DUPLICATE_STATUS = "DUPLICATE"


class ItemAction(str, Enum):
    PENDING = "PENDING"
    ACCEPT = "ACCEPT"
    EDIT = "EDIT"
    REJECT = "REJECT"


# Checked by the mapper on every UPDATE of a batch row.
_BATCH_VERSION = Column("version", Integer, nullable=False)


class MenuParseBatch(SQLModel, table=True):
    __tablename__ = "menu_parse_batch"
    __mapper_args__ = {"version_id_col": _BATCH_VERSION}

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    uploaded_by: str = Field(index=True)

    filename: str
    file_hash: str = Field(unique=True, index=True)
    file_size: int
    file_path: str

    status: BatchStatus = Field(default=BatchStatus.UPLOADED, index=True)
    is_text_native: Optional[bool] = None
    parse_log: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    error_message: Optional[str] = None

    restaurant_id: Optional[UUID] = Field(default=None, index=True)

    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    published_at: Optional[datetime] = None

    version: int = Field(default=1, sa_column=_BATCH_VERSION)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class MenuParseItem(SQLModel, table=True):
    __tablename__ = "menu_parse_item"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    batch_id: UUID = Field(foreign_key="menu_parse_batch.id", index=True)

    dish_name: str
    dish_name_normalized: str = Field(index=True)
    description: Optional[str] = None
    price_eur: Decimal = Field(max_digits=10, decimal_places=2)
    price_confidence: Optional[float] = None
    category: Optional[str] = None
    page_number: Optional[int] = None
    raw_text: str = ""

    action: ItemAction = Field(default=ItemAction.PENDING)
    edited_data: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ParsedMenuItem(SQLModel):
    """A candidate menu entry produced by either extraction path, before staging."""

    dish_name: str
    dish_name_normalized: str
    description: Optional[str] = None
    price: Optional[Decimal] = None
    price_confidence: Optional[float] = None
    category: Optional[str] = None
    page_number: Optional[int] = None
    raw_text: str = ""


class EditedItemData(BaseModel):
    """Reviewer overrides for one staged item. Unset fields fall back to the parsed values."""

    dish_name: Optional[str] = None
    price_eur: Optional[Decimal] = None
    category: Optional[str] = None
    description: Optional[str] = None
    options: Optional[str] = None

    @field_validator("dish_name")
    @classmethod
    def _dish_name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("dish_name must not be empty")
        return value

    @field_validator("price_eur", mode="before")
    @classmethod
    def _parse_price(cls, value: Any) -> Any:
        if value is None or isinstance(value, (Decimal, int, float)):
            return value
        if isinstance(value, str):
            cleaned = value.replace("€", "").strip().replace(",", ".")
            try:
                price = Decimal(cleaned)
            except InvalidOperation:
                raise ValueError("Invalid price")
            if not price.is_finite():
                raise ValueError("Invalid price")
            return price
        raise ValueError("Invalid price")

    @field_validator("options")
    @classmethod
    def _options_are_json(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        try:
            json.loads(value)
        except json.JSONDecodeError:
            raise ValueError("Options must be valid JSON")
        return value

    def to_snapshot(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ValidationResult(SQLModel):
    ok: bool
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class UploadResult(SQLModel):
    batch_id: UUID
    status: str
    message: str
    warnings: List[str] = Field(default_factory=list)


class PublishResult(SQLModel):
    inserted_count: int = 0
    updated_count: int = 0
