"""
Cloudinary-backed image storage.

The Cloudinary SDK is synchronous, so calls run in a worker thread to keep
the event loop free. `store()` raises UpstreamFailure; `delete()` never
raises and reports success as a bool, because callers treat a failed
cleanup as non-fatal.
"""
import asyncio
import re

import cloudinary
import cloudinary.uploader
import structlog

from shared.config import settings
from shared.errors import UpstreamFailure

logger = structlog.get_logger(__name__)

# /v<version>/<folder>/<public_id>.<ext>
_PUBLIC_ID_RE = re.compile(r"/v\d+/([^/]+/[^.]+)")


def extract_public_id(url: str) -> str | None:
    if not url:
        return None
    match = _PUBLIC_ID_RE.search(url)
    return match.group(1) if match else None


class CloudinaryAssetStore:
    def __init__(
        self,
        cloud_name: str = settings.CLOUDINARY_CLOUD_NAME,
        api_key: str = settings.CLOUDINARY_API_KEY,
        api_secret: str = settings.CLOUDINARY_API_SECRET,
        folder: str = settings.CLOUDINARY_FOLDER,
    ):
        self.folder = folder
        self.configured = bool(cloud_name and api_key and api_secret)
        if self.configured:
            cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    async def store(self, data: bytes, filename: str | None = None) -> str:
        """Upload image bytes and return the public HTTPS URL."""
        if not self.configured:
            raise UpstreamFailure("store_asset", "not_configured", "Cloudinary credentials are not set")
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                data,
                folder=self.folder,
                resource_type="image",
                filename_override=filename,
            )
        except Exception as e:  # SDK raises its own errors as well as raw HTTP client errors
            raise UpstreamFailure("store_asset", type(e).__name__, str(e)) from e

        url = result.get("secure_url") or result.get("url")
        if not url:
            raise UpstreamFailure("store_asset", "no_url", f"Upload response had no URL: {result}")
        logger.info("asset_stored", public_id=result.get("public_id"))
        return url

    async def delete(self, url: str) -> bool:
        public_id = extract_public_id(url)
        if not public_id:
            logger.warning("asset_delete_skipped", reason="unparseable_url", url=url)
            return False
        if not self.configured:
            logger.warning("asset_delete_skipped", reason="not_configured", public_id=public_id)
            return False
        try:
            result = await asyncio.to_thread(cloudinary.uploader.destroy, public_id)
        except Exception as e:
            logger.warning("asset_delete_failed", public_id=public_id, error=str(e))
            return False

        if result.get("result") != "ok":
            logger.warning("asset_delete_failed", public_id=public_id, result=result.get("result"))
            return False
        logger.info("asset_deleted", public_id=public_id)
        return True


_asset_store: CloudinaryAssetStore | None = None


def get_asset_store() -> CloudinaryAssetStore:
    global _asset_store
    if _asset_store is None:
        _asset_store = CloudinaryAssetStore()
    return _asset_store
