"""
cloudinary_utils.py

Cloudinary integration for resource files in the LearnLink backend.
Uploads documents under a short unguessable key, builds public/signed delivery
URLs, fetches bytes through a fallback chain of URL variants, and destroys blobs.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

import cloudinary
import cloudinary.api
import cloudinary.uploader
import cloudinary.utils
import httpx
from starlette.concurrency import run_in_threadpool

from learnlink.exceptions import StorageError
from learnlink.settings import settings
from learnlink.utils import file_format, format_file_size, is_absolute_http_url

logger = logging.getLogger(__name__)

# Configure Cloudinary
cloudinary.config(
    cloud_name=settings.cloudinary_cloud_name,
    api_key=settings.cloudinary_api_key,
    api_secret=settings.cloudinary_api_secret,
    secure=True,
)

RESOURCE_TYPE = "raw"
DELIVERY_TYPES = ("upload", "authenticated")


@dataclass(frozen=True)
class StoredFile:
    key: str
    format: str
    size: str


class CloudinaryStorage:
    """Object storage collaborator backed by Cloudinary raw uploads."""

    def __init__(
        self,
        folder: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.folder = folder or settings.storage_folder
        self.timeout = timeout or settings.storage_timeout_seconds
        self.transport = transport

    async def upload(self, content: bytes, filename: str, folder: Optional[str] = None) -> StoredFile:
        """
        Upload file bytes to Cloudinary.

        Args:
            content: File content as bytes
            filename: Original filename, used for the format only
            folder: Target folder, defaults to ``storage_folder``

        Returns:
            StoredFile: storage key, upper-case format and human-readable size

        Raises:
            StorageError: if Cloudinary rejects the upload
        """
        fmt = file_format(filename)
        public_id = uuid.uuid4().hex[:12]
        if fmt:
            public_id = f"{public_id}.{fmt.lower()}"
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                content,
                public_id=public_id,
                folder=folder or self.folder,
                resource_type=RESOURCE_TYPE,
                use_filename=False,
                unique_filename=False,
                overwrite=False,
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error(f"Cloudinary upload failed for {filename}: {str(e)}")
            raise StorageError(f"File upload failed: {str(e)}") from e

        return StoredFile(
            key=result["public_id"],
            format=fmt,
            size=format_file_size(result.get("bytes", len(content))),
        )

    def build_url(self, key: str, delivery_type: str = "upload", signed: bool = False) -> str:
        if is_absolute_http_url(key):
            return key
        return cloudinary.utils.cloudinary_url(
            key,
            resource_type=RESOURCE_TYPE,
            type=delivery_type,
            sign_url=signed,
            secure=True,
        )[0]

    def candidate_urls(self, key: str) -> List[str]:
        """Delivery URLs to try in order, without duplicates."""
        if is_absolute_http_url(key):
            return [key]
        candidates = [
            self.build_url(key, "upload", signed=False),
            self.build_url(key, "upload", signed=True),
            self.build_url(key, "authenticated", signed=True),
        ]
        return list(dict.fromkeys(candidates))

    async def resolve_url(self, key: str, delivery_type: str) -> Optional[str]:
        """Look the key up through the Admin API and return its secure_url."""
        try:
            info = await run_in_threadpool(
                cloudinary.api.resource, key, resource_type=RESOURCE_TYPE, type=delivery_type
            )
        except Exception as e:
            logger.info(f"Admin API lookup failed for {key} ({delivery_type}): {str(e)}")
            return None
        return info.get("secure_url")

    async def fetch(self, key: str) -> bytes:
        """
        Fetch file bytes, trying each delivery URL and then the Admin API lookup.
        Stops at the first non-empty successful response.

        Raises:
            StorageError: if every variant fails
        """
        async with httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=True, transport=self.transport
        ) as client:
            for url in self.candidate_urls(key):
                content = await self._try_get(client, url)
                if content:
                    return content

            if not is_absolute_http_url(key):
                for delivery_type in DELIVERY_TYPES:
                    url = await self.resolve_url(key, delivery_type)
                    if not url:
                        continue
                    content = await self._try_get(client, url)
                    if content:
                        return content

        logger.error(f"All download variants failed for {key}")
        raise StorageError("The file could not be retrieved from storage.")

    async def _try_get(self, client: httpx.AsyncClient, url: str) -> Optional[bytes]:
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.info(f"Download attempt failed for {url}: {str(e)}")
            return None
        if response.status_code != 200 or not response.content:
            logger.info(f"Download attempt for {url} returned {response.status_code}")
            return None
        return response.content

    async def destroy(self, key: str) -> bool:
        """
        Delete a blob from Cloudinary.

        Returns:
            bool: True if deletion successful
        """
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.destroy, key, resource_type=RESOURCE_TYPE, invalidate=True
            )
            return result.get("result") == "ok"
        except Exception as e:
            raise StorageError(f"File deletion failed: {str(e)}") from e


storage = CloudinaryStorage()


def get_storage() -> CloudinaryStorage:
    """Dependency returning the shared storage client."""
    return storage
