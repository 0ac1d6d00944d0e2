from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.settings import settings

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class UploadRejected(ValueError):
    pass


class UploadError(RuntimeError):
    pass


@dataclass(frozen=True)
class UploadPolicy:
    kind: str
    folder: str
    allowed_formats: tuple[str, ...]
    max_bytes: int
    allowed_mime_types: tuple[str, ...] = ()
    transformation: str | None = None
    resource_type: str = "image"

    def accepts_mime(self, content_type: str) -> bool:
        ct = (content_type or "").strip().lower()
        if not self.allowed_mime_types:
            return ct.startswith("image/")
        return ct in self.allowed_mime_types

    @property
    def mime_error(self) -> str:
        if not self.allowed_mime_types:
            return "Only image files are allowed!"
        return "Only images and PDF files are allowed!"


def build_policies(root: str) -> dict[str, UploadPolicy]:
    root = (root or "marketplace").strip("/")
    return {
        "products": UploadPolicy(
            kind="products",
            folder=f"{root}/products",
            allowed_formats=("jpg", "jpeg", "png", "webp"),
            max_bytes=5 * MB,
            transformation="w_800,h_800,c_limit,q_auto/f_auto",
        ),
        "avatars": UploadPolicy(
            kind="avatars",
            folder=f"{root}/avatars",
            allowed_formats=("jpg", "jpeg", "png"),
            max_bytes=2 * MB,
            transformation="w_200,h_200,c_fill,g_face,q_auto/f_auto",
        ),
        "categories": UploadPolicy(
            kind="categories",
            folder=f"{root}/categories",
            allowed_formats=("jpg", "jpeg", "png", "webp"),
            max_bytes=3 * MB,
            transformation="w_400,h_300,c_fill,q_auto/f_auto",
        ),
        "documents": UploadPolicy(
            kind="documents",
            folder=f"{root}/documents",
            allowed_formats=("jpg", "jpeg", "png", "pdf"),
            max_bytes=10 * MB,
            allowed_mime_types=("image/jpeg", "image/jpg", "image/png", "application/pdf"),
            resource_type="auto",
        ),
    }


POLICIES = build_policies(settings.upload_folder_root)


def get_policy(kind: str) -> UploadPolicy:
    policy = POLICIES.get((kind or "").strip().lower())
    if policy is None:
        raise UploadRejected("Unknown upload kind")
    return policy


def _extension(filename: str) -> str:
    name = (filename or "").strip().lower()
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1]


def validate_upload(policy: UploadPolicy, filename: str, content_type: str, size: int) -> None:
    if size <= 0:
        raise UploadRejected("The file is empty")
    if size > policy.max_bytes:
        raise UploadRejected("File too large. Please upload a smaller file.")
    if not policy.accepts_mime(content_type):
        raise UploadRejected(policy.mime_error)
    ext = _extension(filename)
    if ext not in policy.allowed_formats:
        allowed = ", ".join(policy.allowed_formats)
        raise UploadRejected(f"Unsupported file format. Allowed formats: {allowed}")


def sign_params(params: dict[str, Any], api_secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()


class CloudinaryClient:
    def __init__(
        self,
        *,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._cloud_name = (cloud_name or "").strip()
        self._api_key = (api_key or "").strip()
        self._api_secret = (api_secret or "").strip()
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_s), transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _endpoint(self, resource_type: str) -> str:
        return f"https://api.cloudinary.com/v1_1/{self._cloud_name}/{resource_type}/upload"

    async def upload(
        self,
        policy: UploadPolicy,
        *,
        filename: str,
        content: bytes,
        content_type: str,
    ) -> dict[str, Any]:
        if not (self._cloud_name and self._api_key and self._api_secret):
            raise UploadError("Cloudinary is not configured")

        params: dict[str, Any] = {
            "folder": policy.folder,
            "allowed_formats": ",".join(policy.allowed_formats),
            "timestamp": int(time.time()),
        }
        if policy.transformation:
            params["transformation"] = policy.transformation
        data = {**params, "api_key": self._api_key, "signature": sign_params(params, self._api_secret)}

        try:
            resp = await self._client.post(
                self._endpoint(policy.resource_type),
                data={k: str(v) for k, v in data.items()},
                files={"file": (filename, content, content_type)},
            )
        except httpx.HTTPError as e:
            raise UploadError(f"Upload request failed: {e}") from e

        if resp.status_code >= 400:
            detail = resp.text[:500]
            logger.info("uploads.cloudinary.error status=%s kind=%s", resp.status_code, policy.kind)
            raise UploadError(f"Upload error {resp.status_code}: {detail}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise UploadError(f"Upload service returned invalid JSON: {e}") from e

        return {
            "url": payload.get("secure_url") or payload.get("url"),
            "public_id": payload.get("public_id"),
            "format": payload.get("format"),
            "bytes": payload.get("bytes"),
        }


def get_cloudinary_client() -> CloudinaryClient:
    if not settings.cloudinary_configured:
        raise UploadError("Cloudinary is not configured")
    return CloudinaryClient(
        cloud_name=settings.cloudinary_cloud_name or "",
        api_key=settings.cloudinary_api_key or "",
        api_secret=settings.cloudinary_api_secret or "",
        timeout_s=settings.upload_timeout_s,
    )
