"""Product API routes.

Learn: Routes translate HTTP into CatalogService calls and service errors
into status codes. Writes come in as multipart forms because they carry
image files; every form field is optional at the HTTP layer so that the
service's validation (which names the offending field) is the single
source of 400s.

Error body: {"detail": {"error": <kind>, "message": ..., "field": ...}}
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from vitrine.api.deps import get_catalog_service
from vitrine.auth.dependencies import CurrentIdentity, get_current_user
from vitrine.schemas.product import ProductFilter, ProductPage, ProductRead
from vitrine.services.catalog_service import CatalogService
from vitrine.services.errors import (
    CatalogError,
    NotFoundError,
    ValidationError,
)
from vitrine.services.media import ImageUpload

router = APIRouter()


def _http_error(e: CatalogError) -> HTTPException:
    detail = {"error": e.kind, "message": str(e)}
    if isinstance(e, ValidationError):
        detail.update(field=e.field, message=e.message)
        return HTTPException(status_code=400, detail=detail)
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=detail)
    return HTTPException(status_code=500, detail=detail)


async def _read_images(files: list[UploadFile]) -> list[ImageUpload]:
    images = []
    for f in files:
        # Browsers send an empty part when the file input is left blank
        if not f.filename:
            continue
        images.append(ImageUpload(
            filename=f.filename,
            content=await f.read(),
            content_type=f.content_type or "application/octet-stream",
        ))
    return images


def _form_fields(
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    store: Optional[str] = Form(None),
    link: Optional[str] = Form(None),
) -> dict:
    return {
        "name": name,
        "description": description,
        "price": price,
        "category": category,
        "store": store,
        "link": link,
    }


# ─── Reads ──────────────────────────────────────────────

@router.get("/products", response_model=ProductPage)
async def list_products(
    category: Optional[str] = Query(None),
    store: Optional[str] = Query(None),
    search: str = Query(""),
    page: int = Query(1, ge=1),
    page_size: int = Query(12, ge=1, le=100, alias="pageSize"),
    svc: CatalogService = Depends(get_catalog_service),
):
    """List products. `todas` means no category/store filter."""
    query = ProductFilter(
        category=category,
        store=store,
        search=search,
        page=page,
        page_size=page_size,
    )
    try:
        return await svc.list_products(query)
    except CatalogError as e:
        raise _http_error(e)


@router.get("/products/{product_id}", response_model=ProductRead)
async def get_product(
    product_id: uuid.UUID,
    svc: CatalogService = Depends(get_catalog_service),
):
    try:
        return await svc.get(product_id)
    except CatalogError as e:
        raise _http_error(e)


# ─── Writes ─────────────────────────────────────────────

@router.post("/products", response_model=ProductRead, status_code=201)
async def create_product(
    fields: dict = Depends(_form_fields),
    images: list[UploadFile] = File(default=[]),
    svc: CatalogService = Depends(get_catalog_service),
    identity: CurrentIdentity = Depends(get_current_user),
):
    """Create a product. Requires at least one image file."""
    try:
        return await svc.create(fields, await _read_images(images))
    except CatalogError as e:
        raise _http_error(e)


@router.put("/products/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: uuid.UUID,
    fields: dict = Depends(_form_fields),
    images: list[UploadFile] = File(default=[]),
    svc: CatalogService = Depends(get_catalog_service),
    identity: CurrentIdentity = Depends(get_current_user),
):
    """Replace a product's fields. Without image files the current images stay."""
    try:
        return await svc.update(product_id, fields, await _read_images(images))
    except CatalogError as e:
        raise _http_error(e)


@router.delete("/products/{product_id}")
async def delete_product(
    product_id: uuid.UUID,
    svc: CatalogService = Depends(get_catalog_service),
    identity: CurrentIdentity = Depends(get_current_user),
):
    try:
        removed = await svc.delete(product_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"deleted": True, "id": str(removed.id)}
