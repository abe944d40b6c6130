"""Pydantic schemas for catalog products.

Learn: Pydantic v2 models validate request/response data. ProductFields is
the validated projection of a write request (the service turns its errors
into a ValidationError naming the field). ProductRead is what storage
returns and what clients receive, over HTTP and over the realtime socket.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_serializer, field_validator

from vitrine.catalog.taxonomy import ALL, CATEGORIES, STORES


class ProductFields(BaseModel):
    """Validated scalar fields of a create/update request (images excluded)."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    category: str
    store: str
    link: str = Field(..., max_length=2048)

    @field_validator("name", "category", "store", "link", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("description", mode="before")
    @classmethod
    def empty_description(cls, v):
        return "" if v is None else v

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str) -> str:
        v = v.lower()
        if v not in CATEGORIES:
            raise ValueError(f"unknown category '{v}'")
        return v

    @field_validator("store")
    @classmethod
    def check_store(cls, v: str) -> str:
        v = v.lower()
        if v not in STORES:
            raise ValueError(f"unknown store '{v}'")
        return v

    @field_validator("link")
    @classmethod
    def check_link(cls, v: str) -> str:
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("link must be an absolute http(s) URL")
        return v


class ProductRead(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    price: Decimal
    images: list[str]
    category: str
    store: str
    link: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> float:
        return float(price)

    def snapshot(self) -> dict:
        """JSON-safe dict used as the realtime event payload."""
        return self.model_dump(mode="json")


class ProductFilter(BaseModel):
    """Normalized list query. `todas` (or nothing) disables a filter."""

    category: Optional[str] = None
    store: Optional[str] = None
    search: str = ""
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=12, ge=1, le=100)

    @field_validator("category", "store", mode="before")
    @classmethod
    def drop_wildcard(cls, v):
        if v is None:
            return None
        v = str(v).strip().lower()
        return None if v in ("", ALL) else v

    @field_validator("search", mode="before")
    @classmethod
    def normalize_search(cls, v):
        return (v or "").strip()

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class ProductPage(BaseModel):
    data: list[ProductRead]
    total: int
