"""Cloudinary REST client implementing the file storage port."""
from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Mapping

import httpx

from ..domain.ports.file_storage import StorageKind, StoredFile
from ..errors import UpstreamError

logger = logging.getLogger("portfolio.storage")

API_BASE_URL = "https://api.cloudinary.com/v1_1"
ROOT_FOLDER = "portfolio"


def sign_params(params: Mapping[str, str], api_secret: str) -> str:
    """Cloudinary request signature: SHA-1 over sorted params plus secret."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode()).hexdigest()


class CloudinaryStorage:
    def __init__(
        self,
        *,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = f"{API_BASE_URL}/{cloud_name}"
        self._api_key = api_key
        self._api_secret = api_secret
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport)

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(time.time()))}
        return {
            **params,
            "api_key": self._api_key,
            "signature": sign_params(params, self._api_secret),
        }

    async def upload(
        self,
        content: bytes,
        folder: str,
        kind: StorageKind,
        *,
        filename: str | None = None,
    ) -> StoredFile:
        form = self._signed({"folder": f"{ROOT_FOLDER}/{folder}"})
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self._base_url}/{kind}/upload",
                    data=form,
                    files={"file": (filename or "upload", content)},
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            logger.error("Cloudinary upload to %s failed: %s", folder, exc)
            raise UpstreamError("File upload failed") from exc
        return StoredFile(url=payload["secure_url"], storage_id=payload["public_id"])

    async def delete(self, storage_id: str, kind: StorageKind) -> None:
        form = self._signed({"public_id": storage_id})
        async with self._client() as client:
            response = await client.post(f"{self._base_url}/{kind}/destroy", data=form)
            response.raise_for_status()
        logger.info("Deleted stored file %s", storage_id)
