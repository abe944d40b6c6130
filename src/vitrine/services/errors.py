"""Catalog error taxonomy.

Learn: Services raise these; API routes translate them into HTTP status
codes. Nothing below the route layer knows about HTTP.

- ValidationError  → 400, never retried
- NotFoundError    → 404
- UploadError      → 500, media host refused an image
- StorageError     → 500, persistence failed (no event is ever emitted)
"""

import uuid


class CatalogError(Exception):
    """Base class for catalog failures."""

    kind = "catalog_error"


class ValidationError(CatalogError):
    kind = "validation_error"

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(CatalogError):
    kind = "not_found"

    def __init__(self, product_id: uuid.UUID):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class UploadError(CatalogError):
    kind = "upload_error"


class StorageError(CatalogError):
    kind = "storage_error"
