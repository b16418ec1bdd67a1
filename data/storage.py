"""
Object Storage Module

This module uploads post images to the object storage REST API and builds
their public URLs. It implements the ObjectStore protocol.
"""

from typing import Optional

import requests

from config import settings
from utils.exceptions import StorageError, PermissionError
from utils.logger import get_logger

logger = get_logger(__name__)


class ObjectStorageClient:
    """Client for the image bucket of the object storage API."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 bucket: Optional[str] = None, timeout: Optional[int] = None):
        self.base_url = (base_url if base_url is not None else settings.STORAGE_URL).rstrip('/')
        self.api_key = api_key if api_key is not None else settings.STORAGE_API_KEY
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.timeout = timeout or settings.STORAGE_TIMEOUT

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        """
        Upload bytes to the bucket. Existing objects are never overwritten.

        Args:
            path: Object name inside the bucket.
            data: File contents.
            content_type: MIME type sent with the object.

        Returns:
            str: The stored object path.

        Raises:
            PermissionError: If the storage API rejects the credentials.
            StorageError: If the upload fails for any other reason.
        """
        if not self.base_url or not self.api_key:
            raise StorageError("Object storage is not configured")

        url = f"{self.base_url}/object/{self.bucket}/{path}"
        headers = {
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': content_type,
            'Cache-Control': f"max-age={settings.STORAGE_CACHE_CONTROL}",
            'x-upsert': 'false',
        }

        try:
            response = requests.post(url, data=data, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Image upload failed for {path}: {e}")
            raise StorageError(f"Image upload failed: {e}") from e

        if response.status_code in (401, 403):
            logger.error(f"Storage rejected upload of {path}: HTTP {response.status_code}")
            raise PermissionError("Storage rejected the upload credentials")
        if response.status_code >= 400:
            logger.error(f"Image upload failed for {path}: HTTP {response.status_code} {response.text[:200]}")
            raise StorageError(f"Image upload failed with HTTP {response.status_code}")

        logger.info(f"Uploaded image to {self.bucket}/{path}")
        return path

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{path}"


storage = ObjectStorageClient()
