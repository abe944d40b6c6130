"""Cloudinary media host tests, against httpx.MockTransport."""

import hashlib
import re
from urllib.parse import parse_qs

import httpx
import pytest

from conftest import image
from vitrine.services.errors import UploadError
from vitrine.services.media import CloudinaryMediaHost, public_id_from_url, sign

SECURE_URL = "https://res.cloudinary.com/demo/image/upload/v1712/vitrine/front.jpg"


def make_host(handler, **kwargs) -> CloudinaryMediaHost:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    params = {"cloud_name": "demo", "api_key": "key123", "api_secret": "s3cret"}
    params.update(kwargs)
    return CloudinaryMediaHost(**params, client=client)


def test_sign_sorts_params_and_appends_secret():
    expected = hashlib.sha1(b"folder=vitrine&timestamp=1315060510abcd").hexdigest()
    assert sign({"timestamp": "1315060510", "folder": "vitrine"}, "abcd") == expected


@pytest.mark.parametrize("url, public_id", [
    (SECURE_URL, "vitrine/front"),
    ("https://res.cloudinary.com/demo/image/upload/vitrine/a/b.png", "vitrine/a/b"),
    ("https://example.com/front.jpg", None),
])
def test_public_id_from_url(url, public_id):
    assert public_id_from_url(url) == public_id


@pytest.mark.asyncio
async def test_upload_returns_secure_url():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"secure_url": SECURE_URL})

    host = make_host(handler)
    assert await host.upload(image()) == SECURE_URL

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1_1/demo/image/upload"
    body = request.content
    assert b'name="signature"' in body
    assert b'name="api_key"' in body
    assert b'filename="front.jpg"' in body
    await host.aclose()


def form_fields(body: bytes) -> dict[str, str]:
    """Plain (non-file) fields of a multipart body."""
    return {
        name.decode(): value.decode()
        for name, value in re.findall(
            rb'name="([^"]+)"\r\n\r\n([^\r]*)\r\n', body
        )
    }


@pytest.mark.asyncio
async def test_upload_signs_only_folder_and_timestamp():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"secure_url": SECURE_URL})

    host = make_host(handler, folder="vitrine")
    await host.upload(image())

    fields = form_fields(seen[0].content)
    assert set(fields) == {"folder", "timestamp", "api_key", "signature"}
    assert fields["folder"] == "vitrine"
    assert fields["api_key"] == "key123"
    assert fields["signature"] == sign(
        {"folder": "vitrine", "timestamp": fields["timestamp"]}, "s3cret"
    )
    # api_key is sent but never part of the signed string
    assert fields["signature"] != sign(
        {"folder": "vitrine", "timestamp": fields["timestamp"], "api_key": "key123"},
        "s3cret",
    )


@pytest.mark.asyncio
async def test_upload_rejected_maps_to_upload_error():
    host = make_host(lambda request: httpx.Response(400, json={"error": "bad"}))
    with pytest.raises(UploadError, match="HTTP 400"):
        await host.upload(image())


@pytest.mark.asyncio
async def test_upload_without_secure_url_is_an_error():
    host = make_host(lambda request: httpx.Response(200, json={}))
    with pytest.raises(UploadError):
        await host.upload(image())


@pytest.mark.asyncio
async def test_upload_network_error_maps_to_upload_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    host = make_host(handler)
    with pytest.raises(UploadError, match="front.jpg"):
        await host.upload(image())


@pytest.mark.asyncio
async def test_unconfigured_host_refuses_upload():
    calls = []
    host = make_host(lambda request: calls.append(request), api_secret="")
    assert not host.configured
    with pytest.raises(UploadError, match="not configured"):
        await host.upload(image())
    assert calls == []


@pytest.mark.asyncio
async def test_delete_destroys_by_public_id():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"result": "ok"})

    host = make_host(handler)
    await host.delete(SECURE_URL)

    request = seen[0]
    assert request.url.path == "/v1_1/demo/image/destroy"
    form = parse_qs(request.content.decode())
    assert form["public_id"] == ["vitrine/front"]
    assert form["api_key"] == ["key123"]
    assert form["signature"][0] == sign(
        {"public_id": "vitrine/front", "timestamp": form["timestamp"][0]}, "s3cret"
    )


@pytest.mark.asyncio
async def test_delete_foreign_url_is_an_error():
    host = make_host(lambda request: httpx.Response(200))
    with pytest.raises(UploadError):
        await host.delete("https://example.com/front.jpg")
