"""Signer identity lookups and the signature freshness oracle."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional

import requests

from ..errors import QuoteflowError
from ..storage.assets import fetch_asset
from ..storage.base import BlobStore, DocumentStore
from ..storage.instant import Instant, to_instant

logger = logging.getLogger(__name__)


class SignerIdentityProvider(ABC):
    """Read-only view of a signer's profile and signature asset."""

    @abstractmethod
    def get_signature_version(self, signer_id: str) -> Optional[Instant]:
        """When the signer's signature was last changed, or None if they have none."""
        pass

    @abstractmethod
    def get_signature_image(self, signer_id: str) -> Optional[bytes]:
        """Current signature image bytes, or None if they have none."""
        pass

    @abstractmethod
    def get_signer_profile(self, signer_id: str) -> Optional[Dict[str, Any]]:
        """Signer record (email, names, company_id), or None if unknown."""
        pass


class StoreSignerDirectory(SignerIdentityProvider):
    """Signer identity backed by the ``users`` collection.

    A user record carries ``signature: {"url": ..., "updated": ...}``. Older
    records may hold a bare URL string, which has no version.
    """

    def __init__(self, store: DocumentStore, blob_store: BlobStore, collection: str = "users"):
        self.store = store
        self.blob_store = blob_store
        self.collection = collection

    def _signature(self, signer_id: str) -> Dict[str, Any]:
        if not signer_id:
            return {}
        record = self.store.get(self.collection, signer_id) or {}
        signature = record.get("signature")
        if isinstance(signature, dict):
            return signature
        if isinstance(signature, str) and signature:
            return {"url": signature}
        return {}

    def get_signature_version(self, signer_id: str) -> Optional[Instant]:
        return to_instant(self._signature(signer_id).get("updated"))

    def get_signature_image(self, signer_id: str) -> Optional[bytes]:
        url = self._signature(signer_id).get("url")
        if not url:
            return None
        return fetch_asset(url, self.blob_store)

    def get_signer_profile(self, signer_id: str) -> Optional[Dict[str, Any]]:
        if not signer_id:
            return None
        return self.store.get(self.collection, signer_id)


class FreshnessOracle:
    """Answers "which signature version is current for this signer"."""

    def __init__(self, identity: SignerIdentityProvider):
        self.identity = identity

    def current_version(self, signer_id: str) -> Optional[Instant]:
        """Get the signer's current signature version.

        A lookup failure is reported as "no version", which makes the artifact
        cache regenerate rather than trust an unverifiable artifact.
        """
        if not signer_id:
            return None
        try:
            return self.identity.get_signature_version(signer_id)
        except (QuoteflowError, requests.RequestException) as e:
            logger.warning(f"Could not resolve signature version for {signer_id}: {e}")
            return None

    def versions_for(self, signer_ids: Iterable[str]) -> Dict[str, Optional[Instant]]:
        """One lookup per distinct signer."""
        versions: Dict[str, Optional[Instant]] = {}
        for signer_id in signer_ids:
            if signer_id not in versions:
                versions[signer_id] = self.current_version(signer_id)
        return versions
