"""Test fixtures — in-memory collaborators and an app per test.

Learn: The catalog core only talks to storage and the media host through
small interfaces, so tests swap them for fakes:

1. Each test gets a fresh app from create_app() — its own hub and cache
2. get_storage / get_media_host are overridden with in-memory fakes
3. get_current_user is overridden so write routes work without real tokens

No Postgres, no Cloudinary, no network.
"""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from vitrine.api.deps import get_media_host, get_storage
from vitrine.auth.dependencies import CurrentIdentity, get_current_user
from vitrine.main import create_app
from vitrine.realtime.hub import BroadcastHub, ClientConnection
from vitrine.schemas.product import ProductFilter, ProductPage, ProductRead
from vitrine.services.cache import QueryCache
from vitrine.services.catalog_service import CatalogService
from vitrine.services.errors import StorageError, UploadError
from vitrine.services.media import ImageUpload


# ═══════════════════════════════════════════════════════════
# Fakes
# ═══════════════════════════════════════════════════════════


class FakeStorage:
    """ProductStorage kept in a dict. Set `fail` to simulate a DB outage.

    Set `query_gate` to an asyncio.Event to hold query() open after it has
    read its rows, the way a slow SELECT holds an older snapshot.
    """

    def __init__(self):
        self.rows: dict[uuid.UUID, ProductRead] = {}
        self.calls: list[str] = []
        self.fail = False
        self.query_count = 0
        self.query_gate: Optional[asyncio.Event] = None
        self.query_started = asyncio.Event()

    def _check(self, op: str):
        self.calls.append(op)
        if self.fail:
            raise StorageError(f"{op} failed: connection refused")

    async def insert(self, fields: dict[str, Any]) -> ProductRead:
        self._check("insert")
        now = datetime.now(timezone.utc)
        product = ProductRead(id=uuid.uuid4(), created_at=now, updated_at=now, **fields)
        self.rows[product.id] = product
        return product

    async def get(self, product_id: uuid.UUID) -> Optional[ProductRead]:
        self._check("get")
        return self.rows.get(product_id)

    async def update(self, product_id: uuid.UUID, fields: dict[str, Any]) -> Optional[ProductRead]:
        self._check("update")
        current = self.rows.get(product_id)
        if current is None:
            return None
        updated = current.model_copy(
            update={**fields, "updated_at": datetime.now(timezone.utc)}
        )
        self.rows[product_id] = updated
        return updated

    async def delete(self, product_id: uuid.UUID) -> Optional[ProductRead]:
        self._check("delete")
        return self.rows.pop(product_id, None)

    async def query(self, query: ProductFilter) -> ProductPage:
        self._check("query")
        self.query_count += 1
        rows = [
            p for p in self.rows.values()
            if (not query.category or p.category == query.category)
            and (not query.store or p.store == query.store)
            and (not query.search or query.search.lower() in p.name.lower())
        ]
        rows.sort(key=lambda p: p.created_at, reverse=True)
        page = ProductPage(
            data=rows[query.offset:query.offset + query.page_size],
            total=len(rows),
        )
        if self.query_gate is not None:
            self.query_started.set()
            await self.query_gate.wait()
        return page


class FakeMediaHost:
    """MediaHost that hands out predictable URLs.

    fail_on: filenames whose upload raises UploadError.
    fail_delete: make every delete raise.
    """

    def __init__(self):
        self.uploaded: list[str] = []
        self.deleted: list[str] = []
        self.fail_on: set[str] = set()
        self.fail_delete = False
        self.configured = True

    async def upload(self, image: ImageUpload) -> str:
        await asyncio.sleep(0)
        if image.filename in self.fail_on:
            raise UploadError(f"Upload of {image.filename} rejected: HTTP 400")
        url = f"https://res.cloudinary.com/demo/image/upload/v1/vitrine/{image.filename}"
        self.uploaded.append(url)
        return url

    async def delete(self, url: str) -> None:
        if self.fail_delete:
            raise UploadError(f"Delete of {url} failed")
        self.deleted.append(url)

    async def aclose(self) -> None:
        pass


class RecordingTransport:
    """Stands in for a WebSocket: records frames, can fail or stall."""

    def __init__(self, fail: bool = False, stall: bool = False):
        self.sent: list[str] = []
        self.fail = fail
        self.stall = stall

    async def send_text(self, data: str) -> None:
        if self.stall:
            await asyncio.sleep(3600)
        if self.fail:
            raise ConnectionResetError("socket closed")
        self.sent.append(data)

    def messages(self) -> list[dict]:
        return [json.loads(m) for m in self.sent]


def image(name: str = "front.jpg") -> ImageUpload:
    return ImageUpload(filename=name, content=b"\xff\xd8\xff fake jpeg", content_type="image/jpeg")


def product_fields(**overrides) -> dict:
    fields = {
        "name": "Fone Bluetooth XYZ",
        "description": "Cancelamento de ruído",
        "price": "199.90",
        "category": "eletronicos",
        "store": "amazon",
        "link": "https://www.amazon.com.br/dp/B0TEST123",
    }
    fields.update(overrides)
    return fields


# ═══════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════


@pytest.fixture()
def storage():
    return FakeStorage()


@pytest.fixture()
def media():
    return FakeMediaHost()


@pytest.fixture()
def hub():
    return BroadcastHub()


@pytest.fixture()
def cache():
    return QueryCache(ttl_seconds=300)


@pytest.fixture()
def service(storage, media, hub, cache):
    return CatalogService(storage=storage, media=media, hub=hub, cache=cache)


@pytest_asyncio.fixture()
async def connect(hub):
    """Register a recording connection with the hub; returns (connection, transport)."""
    async def _connect(transport: Optional[RecordingTransport] = None, **kwargs):
        transport = transport or RecordingTransport()
        conn = ClientConnection(transport, **kwargs)
        await hub.register(conn)
        return conn, transport

    yield _connect
    await hub.close_all()


@pytest.fixture()
def app(storage, media):
    """Fresh app with fake storage/media and auth bypassed."""
    application = create_app()

    def override_get_current_user():
        return CurrentIdentity(subject="test-admin", identity_type="user")

    application.dependency_overrides[get_storage] = lambda: storage
    application.dependency_overrides[get_media_host] = lambda: media
    application.dependency_overrides[get_current_user] = override_get_current_user
    return application


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.hub.close_all()


@pytest_asyncio.fixture()
async def unauthenticated_client(storage, media):
    """HTTP client WITHOUT the auth override — for testing real JWT/API-key flows."""
    application = create_app()
    application.dependency_overrides[get_storage] = lambda: storage
    application.dependency_overrides[get_media_host] = lambda: media

    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
