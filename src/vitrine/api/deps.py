"""Shared FastAPI dependencies — wiring of the catalog's collaborators.

Learn: The hub, query cache, and media host are created once in
create_app() and live on app.state. Routes get them through these
dependencies instead of module globals, so each app instance (and each
test) has its own registry and cache. Tests override get_storage and
get_media_host to plug in fakes.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from vitrine.db.engine import get_db
from vitrine.db.repository import ProductRepository, ProductStorage
from vitrine.realtime.hub import BroadcastHub
from vitrine.services.cache import QueryCache
from vitrine.services.catalog_service import CatalogService
from vitrine.services.media import MediaHost


def get_hub(request: Request) -> BroadcastHub:
    return request.app.state.hub


def get_cache(request: Request) -> Optional[QueryCache]:
    return request.app.state.cache


def get_media_host(request: Request) -> MediaHost:
    return request.app.state.media


def get_storage(db: AsyncSession = Depends(get_db)) -> ProductStorage:
    return ProductRepository(db)


def get_catalog_service(
    storage: ProductStorage = Depends(get_storage),
    media: MediaHost = Depends(get_media_host),
    hub: BroadcastHub = Depends(get_hub),
    cache: Optional[QueryCache] = Depends(get_cache),
) -> CatalogService:
    return CatalogService(storage=storage, media=media, hub=hub, cache=cache)
