"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Alembic migrations in db/migrations mirror what is declared here.

- UUID primary keys, generated app-side so the id is known before commit
- Proper PostgreSQL ARRAY column for the ordered image URL list
- Numeric(12, 2) for prices — never floats for money
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Index, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import ARRAY, UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class Product(Base):
    """A catalog entry shown on the storefront.

    Learn: `images` holds media host URLs in display order; the first one is
    the card thumbnail. `category` and `store` are validated against the
    fixed vocabularies in catalog/taxonomy.py before they get here.
    """

    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_category_store", "category", "store"),
        Index("ix_products_created_at", "created_at"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint("cardinality(images) > 0", name="ck_products_images_not_empty"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=new_uuid
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    images: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    store: Mapped[str] = mapped_column(String(50), nullable=False)
    link: Mapped[str] = mapped_column(String(2048), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, onupdate=utcnow
    )
