"""Cloudinary uploads over its REST API.

Learn: Cloudinary authenticates uploads with a signature instead of a
secret on the wire:

    signature = sha1("k1=v1&k2=v2..." (params sorted by key) + api_secret)

`file`, `api_key`, `resource_type` and `cloud_name` are never part of the
signed string. The same routine produces signatures for browsers that
upload directly (POST /uploads/signature). Read-only Admin API calls use
HTTP basic auth with key:secret instead.
"""

import base64
import hashlib
import time
from typing import Any

import httpx
import structlog

from peerconnect.config import settings
from peerconnect.errors import (
    BadRequestError,
    NotFoundError,
    PayloadTooLargeError,
    ServiceUnavailableError,
    UpstreamError,
)
from peerconnect.schemas.upload import (
    DeleteResponse,
    ImageTransformation,
    ResourceInfo,
    UploadResponse,
    UploadSignature,
)

logger = structlog.get_logger()

UNSIGNED_PARAMS = {"file", "api_key", "resource_type", "cloud_name"}

# ImageTransformation field → Cloudinary URL component prefix
TRANSFORM_PREFIXES = (
    ("width", "w"),
    ("height", "h"),
    ("crop", "c"),
    ("gravity", "g"),
    ("quality", "q"),
    ("format", "f"),
    ("radius", "r"),
    ("effect", "e"),
    ("overlay", "l"),
    ("underlay", "u"),
)


def sign_params(params: dict[str, Any], api_secret: str) -> str:
    """Cloudinary request signature (hex SHA-1)."""
    to_sign = "&".join(
        f"{key}={_param_value(value)}"
        for key, value in sorted(params.items())
        if key not in UNSIGNED_PARAMS and value not in (None, "", [])
    )
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


def _param_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class CloudinaryService:
    """Signed uploads, deletes and URL building for one Cloudinary account."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client

    # ─── Config ─────────────────────────────────────────

    def _require_config(self) -> None:
        if not settings.cloudinary_configured:
            raise ServiceUnavailableError("Missing required Cloudinary configuration")

    def _endpoint(self, resource_type: str, action: str) -> str:
        return (
            f"{settings.cloudinary_api_base}/v1_1/"
            f"{settings.cloudinary_cloud_name}/{resource_type}/{action}"
        )

    def _signed(self, params: dict[str, Any]) -> dict[str, Any]:
        params = {k: v for k, v in params.items() if v not in (None, "", [])}
        params["timestamp"] = int(time.time())
        params["signature"] = sign_params(params, settings.cloudinary_api_secret)
        params["api_key"] = settings.cloudinary_api_key
        return params

    # ─── Uploads ────────────────────────────────────────

    async def upload(
        self,
        content: bytes,
        filename: str,
        content_type: str | None = None,
        folder: str | None = None,
        resource_type: str = "auto",
        tags: list[str] | None = None,
    ) -> UploadResponse:
        self._require_config()
        if len(content) > settings.upload_max_bytes:
            raise PayloadTooLargeError("File too large")

        form = self._signed({
            "folder": folder or settings.cloudinary_folder,
            "tags": tags,
        })
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        data = await self._post(self._endpoint(resource_type, "upload"), form, files=files)
        logger.info("upload.stored", public_id=data.get("public_id"), bytes=data.get("bytes"))
        return UploadResponse.model_validate(data)

    async def upload_many(
        self,
        files: list[tuple[bytes, str, str | None]],
        folder: str | None = None,
    ) -> list[UploadResponse]:
        return [
            await self.upload(content, name, content_type, folder=folder)
            for content, name, content_type in files
        ]

    async def upload_base64(
        self, base64_string: str, folder: str | None = None
    ) -> UploadResponse:
        """Upload a data URI (or bare base64, assumed to be a PNG image)."""
        self._require_config()
        if base64_string.startswith("data:"):
            data_uri = base64_string
            payload = base64_string.split(",", 1)[-1]
        else:
            data_uri = f"data:image/png;base64,{base64_string}"
            payload = base64_string
        try:
            size = len(base64.b64decode(payload, validate=True))
        except ValueError:
            raise BadRequestError("Invalid base64 payload")
        if size > settings.upload_max_bytes:
            raise PayloadTooLargeError("File too large")

        form = self._signed({"folder": folder or settings.cloudinary_folder})
        form["file"] = data_uri
        data = await self._post(self._endpoint("auto", "upload"), form)
        return UploadResponse.model_validate(data)

    async def delete(self, public_id: str, resource_type: str = "image") -> DeleteResponse:
        self._require_config()
        form = self._signed({"public_id": public_id})
        data = await self._post(self._endpoint(resource_type, "destroy"), form)
        logger.info("upload.deleted", public_id=public_id, result=data.get("result"))
        return DeleteResponse.model_validate(data)

    async def info(self, public_id: str, resource_type: str = "image") -> ResourceInfo:
        self._require_config()
        url = (
            f"{settings.cloudinary_api_base}/v1_1/{settings.cloudinary_cloud_name}"
            f"/resources/{resource_type}/upload/{public_id}"
        )
        auth = (settings.cloudinary_api_key, settings.cloudinary_api_secret)
        async with self._session() as client:
            try:
                r = await client.get(url, auth=auth)
            except httpx.HTTPError as e:
                raise UpstreamError(f"Failed to fetch resource info: {e}")
        if r.status_code == 404:
            raise NotFoundError("Resource not found")
        if r.is_error:
            raise UpstreamError(f"Failed to fetch resource info: {_error_message(r)}")
        return ResourceInfo.model_validate(r.json())

    # ─── Signing and URLs ───────────────────────────────

    def generate_signature(self, params: dict[str, Any] | None = None) -> UploadSignature:
        """Signature for a browser-side direct upload."""
        self._require_config()
        timestamp = int(time.time())
        signed = {**(params or {}), "timestamp": timestamp}
        return UploadSignature(
            timestamp=timestamp,
            signature=sign_params(signed, settings.cloudinary_api_secret),
            api_key=settings.cloudinary_api_key,
            cloud_name=settings.cloudinary_cloud_name,
        )

    def transform_url(self, public_id: str, transformation: ImageTransformation) -> str:
        parts = []
        for field, prefix in TRANSFORM_PREFIXES:
            value = getattr(transformation, field)
            if value is not None:
                parts.append(f"{prefix}_{value}")
        segment = ",".join(parts)
        base = f"https://res.cloudinary.com/{settings.cloudinary_cloud_name}/image/upload"
        return f"{base}/{segment}/{public_id}" if segment else f"{base}/{public_id}"

    # ─── HTTP ───────────────────────────────────────────

    def _session(self) -> httpx.AsyncClient:
        if self._client is not None:
            return _Borrowed(self._client)
        return httpx.AsyncClient(timeout=60.0)

    async def _post(self, url: str, form: dict, files: dict | None = None) -> dict:
        form = {k: _param_value(v) for k, v in form.items()}
        async with self._session() as client:
            try:
                r = await client.post(url, data=form, files=files)
            except httpx.HTTPError as e:
                logger.error("upload.transport_failed", url=url, error=str(e))
                raise UpstreamError(f"Upload failed: {e}")
        if r.is_error:
            message = _error_message(r)
            logger.error("upload.rejected", status=r.status_code, error=message)
            raise UpstreamError(f"Upload failed: {message}")
        return r.json()


class _Borrowed:
    """Async context manager around an injected client that leaves it open."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def __aenter__(self) -> httpx.AsyncClient:
        return self.client

    async def __aexit__(self, *exc) -> None:
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.text or f"HTTP {response.status_code}"
