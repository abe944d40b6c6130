"""Media host — image upload/delete against Cloudinary's REST API.

Learn: The catalog never stores image bytes. Each uploaded file goes to the
media host, which answers with a public URL; only the URL is persisted.

Cloudinary's upload API is a signed multipart POST:
    signature = sha1("folder=...&timestamp=..." + api_secret)
Deletion ("destroy") is signed the same way and addressed by public_id,
which we recover from the stored URL.
"""

import hashlib
import re
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
import structlog

from vitrine.services.errors import UploadError

logger = structlog.get_logger()

API_BASE = "https://api.cloudinary.com/v1_1"

# .../image/upload/[v123/]folder/name.ext
_PUBLIC_ID_RE = re.compile(r"/upload/(?:v\d+/)?(?P<public_id>.+?)(?:\.[A-Za-z0-9]+)?$")


@dataclass(frozen=True)
class ImageUpload:
    """One image file from a multipart request."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


class MediaHost(Protocol):
    async def upload(self, image: ImageUpload) -> str:
        """Store the image, return its public URL. Raises UploadError."""
        ...

    async def delete(self, url: str) -> None:
        """Remove a previously uploaded image. Raises UploadError."""
        ...

    async def aclose(self) -> None: ...


def sign(params: dict[str, str], api_secret: str) -> str:
    """Cloudinary request signature over the sorted params."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1((to_sign + api_secret).encode()).hexdigest()


def public_id_from_url(url: str) -> Optional[str]:
    match = _PUBLIC_ID_RE.search(httpx.URL(url).path)
    return match.group("public_id") if match else None


class CloudinaryMediaHost:
    """MediaHost backed by Cloudinary."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        *,
        folder: str = "vitrine",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(time.time()))}
        return {
            **params,
            "api_key": self.api_key,
            "signature": sign(params, self.api_secret),
        }

    async def upload(self, image: ImageUpload) -> str:
        if not self.configured:
            raise UploadError("Media host is not configured")

        data = self._signed({"folder": self.folder})
        files = {"file": (image.filename, image.content, image.content_type)}
        try:
            resp = await self._client.post(
                f"{API_BASE}/{self.cloud_name}/image/upload",
                data=data,
                files=files,
            )
            resp.raise_for_status()
            url = resp.json()["secure_url"]
        except httpx.HTTPStatusError as e:
            raise UploadError(
                f"Upload of {image.filename} rejected: HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise UploadError(f"Upload of {image.filename} failed: {e}") from e

        logger.info("media.uploaded", filename=image.filename, url=url)
        return url

    async def delete(self, url: str) -> None:
        public_id = public_id_from_url(url)
        if public_id is None:
            raise UploadError(f"Not a media host URL: {url}")

        data = self._signed({"public_id": public_id})
        try:
            resp = await self._client.post(
                f"{API_BASE}/{self.cloud_name}/image/destroy",
                data=data,
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise UploadError(f"Delete of {public_id} failed: {e}") from e

        logger.info("media.deleted", public_id=public_id)

    async def aclose(self) -> None:
        await self._client.aclose()
