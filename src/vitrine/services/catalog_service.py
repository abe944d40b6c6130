"""Catalog service — validated product writes plus change notification.

Learn: This is the only place that mutates products. Every write follows
the same pipeline:

1. Validate the request (no external call happens before this passes)
2. Upload images to the media host (all succeed, or the write fails)
3. Persist through the storage collaborator
4. Publish one domain event: flush the query cache, then broadcast

Step 4 only runs after step 3 committed. A failure anywhere before it
leaves clients untouched; a failure inside the broadcast never reaches the
caller. Media cleanup (orphaned uploads, replaced or deleted images) is
best effort and only ever logged.
"""

import asyncio
import uuid
from typing import Any, Mapping, Optional, Sequence

import structlog
from pydantic import ValidationError as PydanticValidationError

from vitrine.db.repository import ProductStorage
from vitrine.events.domain import (
    DomainEvent,
    ProductCreated,
    ProductDeleted,
    ProductUpdated,
)
from vitrine.realtime.hub import BroadcastHub
from vitrine.schemas.product import ProductFields, ProductFilter, ProductPage, ProductRead
from vitrine.services.cache import QueryCache, filter_fingerprint
from vitrine.services.errors import NotFoundError, UploadError, ValidationError
from vitrine.services.media import ImageUpload, MediaHost

logger = structlog.get_logger()


def validate_fields(raw: Mapping[str, Any]) -> ProductFields:
    """Run schema validation, reporting the first offending field."""
    try:
        return ProductFields.model_validate(dict(raw))
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else "body"
        raise ValidationError(field, error["msg"]) from e


def validate_images(images: Sequence[ImageUpload], *, required: bool) -> None:
    if required and not images:
        raise ValidationError("images", "at least one image is required")
    for image in images:
        if not image.content:
            raise ValidationError("images", f"image '{image.filename}' is empty")


class CatalogService:
    """Mutation gateway for catalog products."""

    def __init__(
        self,
        storage: ProductStorage,
        media: MediaHost,
        hub: BroadcastHub,
        cache: Optional[QueryCache] = None,
    ):
        self.storage = storage
        self.media = media
        self.hub = hub
        self.cache = cache

    # ─── Reads ──────────────────────────────────────────

    async def get(self, product_id: uuid.UUID) -> ProductRead:
        product = await self.storage.get(product_id)
        if product is None:
            raise NotFoundError(product_id)
        return product

    async def list_products(self, query: ProductFilter) -> ProductPage:
        """List a page of products, served from the cache when fresh."""
        if self.cache is None:
            return await self.storage.query(query)

        key = filter_fingerprint(query)
        generation = self.cache.generation
        page = await self.cache.lookup(key)
        if page is not None:
            logger.debug("catalog.cache_hit", fingerprint=key)
            return page

        page = await self.storage.query(query)
        # A write that flushed the cache meanwhile makes this page suspect
        await self.cache.store(key, page, generation)
        return page

    # ─── Writes ─────────────────────────────────────────

    async def create(
        self, raw: Mapping[str, Any], images: Sequence[ImageUpload]
    ) -> ProductRead:
        """Validate, upload images, persist, then announce `created`."""
        fields = validate_fields(raw)
        validate_images(images, required=True)

        urls = await self._upload_all(images)
        try:
            product = await self.storage.insert({
                **fields.model_dump(),
                "images": urls,
            })
        except Exception:
            await self._discard_media(urls, reason="insert_failed")
            raise

        await self._publish(ProductCreated(product.id, product.snapshot()))
        logger.info("catalog.product_created", product_id=str(product.id))
        return product

    async def update(
        self,
        product_id: uuid.UUID,
        raw: Mapping[str, Any],
        images: Optional[Sequence[ImageUpload]] = None,
    ) -> ProductRead:
        """Replace a product's fields. No images = keep the current ones."""
        fields = validate_fields(raw)
        images = images or []
        validate_images(images, required=False)

        existing = await self.storage.get(product_id)
        if existing is None:
            raise NotFoundError(product_id)

        changes: dict[str, Any] = fields.model_dump()
        new_urls: list[str] = []
        if images:
            new_urls = await self._upload_all(images)
            changes["images"] = new_urls

        try:
            product = await self.storage.update(product_id, changes)
        except Exception:
            await self._discard_media(new_urls, reason="update_failed")
            raise
        if product is None:
            # Deleted between our read and the write
            await self._discard_media(new_urls, reason="update_missing")
            raise NotFoundError(product_id)

        await self._publish(ProductUpdated(product.id, product.snapshot()))
        logger.info(
            "catalog.product_updated",
            product_id=str(product.id),
            images_replaced=bool(new_urls),
        )

        if new_urls:
            replaced = [url for url in existing.images if url not in new_urls]
            await self._discard_media(replaced, reason="images_replaced")
        return product

    async def delete(self, product_id: uuid.UUID) -> ProductRead:
        """Delete a product, announce `deleted`, then clean up its media."""
        removed = await self.storage.delete(product_id)
        if removed is None:
            raise NotFoundError(product_id)

        await self._publish(ProductDeleted(removed.id))
        logger.info("catalog.product_deleted", product_id=str(removed.id))

        await self._discard_media(removed.images, reason="product_deleted")
        return removed

    # ─── Internals ──────────────────────────────────────

    async def _upload_all(self, images: Sequence[ImageUpload]) -> list[str]:
        """Upload concurrently; any failure fails the batch.

        The reported error is the one for the lowest-index image, whatever
        order the uploads finished in. Images that did upload are removed.
        """
        results = await asyncio.gather(
            *(self.media.upload(image) for image in images),
            return_exceptions=True,
        )
        urls = [r for r in results if isinstance(r, str)]
        for index, result in enumerate(results):
            if isinstance(result, BaseException):
                await self._discard_media(urls, reason="upload_failed")
                logger.warning(
                    "catalog.upload_failed",
                    index=index,
                    filename=images[index].filename,
                    error=str(result),
                )
                if isinstance(result, UploadError):
                    raise result
                raise UploadError(
                    f"Upload of {images[index].filename} failed: {result}"
                ) from result
        return urls

    async def _publish(self, event: DomainEvent) -> None:
        """Flush the cache and fan the event out.

        Shielded: once storage committed, a client hanging up on the HTTP
        request must not stop the event.
        """
        await asyncio.shield(self._emit(event))

    async def _emit(self, event: DomainEvent) -> None:
        if self.cache is not None:
            await self.cache.invalidate_all()
        try:
            await self.hub.broadcast(event)
        except Exception:
            logger.exception(
                "catalog.broadcast_failed",
                event_type=event.type,
                product_id=str(event.product_id),
            )

    async def _discard_media(self, urls: Sequence[str], *, reason: str) -> None:
        for url in urls:
            try:
                await self.media.delete(url)
            except Exception as e:
                logger.warning(
                    "media.delete_failed", url=url, reason=reason, error=str(e)
                )
