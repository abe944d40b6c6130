"""Product repository — the storage collaborator of the catalog service.

Learn: The service layer talks to storage through the small ProductStorage
interface below and only ever sees ProductRead schemas, never ORM rows.
That keeps the session lifecycle in here and lets tests swap in an
in-memory store.

Every SQLAlchemy failure is wrapped in StorageError, so callers have one
exception to handle and the catalog service can guarantee no event is
emitted for a write that did not commit.
"""

import uuid
from typing import Any, Optional, Protocol

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vitrine.db.models import Product
from vitrine.schemas.product import ProductFilter, ProductPage, ProductRead
from vitrine.services.errors import StorageError


class ProductStorage(Protocol):
    async def insert(self, fields: dict[str, Any]) -> ProductRead: ...

    async def get(self, product_id: uuid.UUID) -> Optional[ProductRead]: ...

    async def update(
        self, product_id: uuid.UUID, fields: dict[str, Any]
    ) -> Optional[ProductRead]: ...

    async def delete(self, product_id: uuid.UUID) -> Optional[ProductRead]: ...

    async def query(self, query: ProductFilter) -> ProductPage: ...


def build_filter(stmt: Select, query: ProductFilter) -> Select:
    """Apply category/store/search filters to a select over Product."""
    if query.category:
        stmt = stmt.where(Product.category == query.category)
    if query.store:
        stmt = stmt.where(Product.store == query.store)
    if query.search:
        pattern = f"%{query.search}%"
        stmt = stmt.where(
            or_(Product.name.ilike(pattern), Product.description.ilike(pattern))
        )
    return stmt


class ProductRepository:
    """ProductStorage on PostgreSQL via async SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, fields: dict[str, Any]) -> ProductRead:
        try:
            product = Product(**fields)
            self.db.add(product)
            await self.db.commit()
            await self.db.refresh(product)
            return ProductRead.model_validate(product)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Insert failed: {e}") from e

    async def get(self, product_id: uuid.UUID) -> Optional[ProductRead]:
        try:
            product = await self.db.get(Product, product_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Lookup failed: {e}") from e
        return ProductRead.model_validate(product) if product else None

    async def update(
        self, product_id: uuid.UUID, fields: dict[str, Any]
    ) -> Optional[ProductRead]:
        try:
            product = await self.db.get(Product, product_id)
            if product is None:
                return None
            for key, value in fields.items():
                setattr(product, key, value)
            await self.db.commit()
            await self.db.refresh(product)
            return ProductRead.model_validate(product)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Update failed: {e}") from e

    async def delete(self, product_id: uuid.UUID) -> Optional[ProductRead]:
        try:
            product = await self.db.get(Product, product_id)
            if product is None:
                return None
            removed = ProductRead.model_validate(product)
            await self.db.execute(delete(Product).where(Product.id == product_id))
            await self.db.commit()
            return removed
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Delete failed: {e}") from e

    async def query(self, query: ProductFilter) -> ProductPage:
        rows_stmt = (
            build_filter(select(Product), query)
            .order_by(Product.created_at.desc(), Product.id)
            .offset(query.offset)
            .limit(query.page_size)
        )
        count_stmt = build_filter(select(func.count()).select_from(Product), query)
        try:
            total = (await self.db.execute(count_stmt)).scalar_one()
            rows = (await self.db.execute(rows_stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Query failed: {e}") from e
        return ProductPage(
            data=[ProductRead.model_validate(p) for p in rows],
            total=total,
        )
