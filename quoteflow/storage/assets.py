"""Fetching image assets referenced by URL (logos, signatures)."""

import base64
import logging

import requests

from .base import BlobStore

logger = logging.getLogger(__name__)


def fetch_asset(url: str, blob_store: BlobStore, timeout: int = 10) -> bytes:
    """Fetch the bytes behind an asset URL.

    ``http(s)`` URLs are downloaded, ``data:`` URLs are decoded inline, and
    anything else is treated as a blob store URL.

    Raises:
        requests.RequestException: HTTP download failed
        NotFoundError: Blob store has nothing at the URL
    """
    if url.startswith("data:"):
        _, _, payload = url.partition(",")
        return base64.b64decode(payload)

    if url.startswith(("http://", "https://")):
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        logger.debug(f"Fetched {len(response.content)} bytes from {url}")
        return response.content

    return blob_store.get(url)
