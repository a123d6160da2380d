"""Assembly of render inputs for a quotation.

Branding, signature and line item details are fetched in parallel and joined
before rendering. Each fetch degrades on its own: a missing logo renders
without a logo, a missing signature renders unsigned, and unavailable product
details fall back to what the quotation already carries.
"""

import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..branding.company_profile import CompanyProfile, resolve_company_profile
from ..errors import QuoteflowError
from ..identity.signatures import SignerIdentityProvider
from ..storage.assets import fetch_asset
from ..storage.base import BlobStore, DocumentStore
from ..storage.instant import Instant
from ..storage.models import Document, LineItem
from .base import RenderInputs

logger = logging.getLogger(__name__)

_FETCH_ERRORS = (QuoteflowError, requests.RequestException, ValueError)

# Fields that affect the rendered PDF
_CONTENT_FIELDS = (
    "company_id",
    "created_by",
    "quotation_number",
    "items",
    "client_name",
    "client_company_name",
    "client_email",
    "start_date",
    "end_date",
    "valid_until",
    "total_amount",
)


def content_fingerprint(document: Document) -> str:
    """Calculate a hash of the render-relevant quotation content.

    Args:
        document: Quotation

    Returns:
        First 16 hex digits of the SHA256 of the sorted content
    """
    record = document.to_record()
    content = {name: record.get(name) for name in _CONTENT_FIELDS}
    serialized = json.dumps(content, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode()).hexdigest()[:16]


class RenderInputAssembler:
    """Builds RenderInputs for a quotation from its collaborators."""

    def __init__(
        self,
        store: DocumentStore,
        blob_store: BlobStore,
        identity: SignerIdentityProvider,
        products_collection: str = "products",
    ):
        self.store = store
        self.blob_store = blob_store
        self.identity = identity
        self.products_collection = products_collection

    def _signer(self, document: Document) -> Dict[str, Any]:
        try:
            return self.identity.get_signer_profile(document.signer_id) or {}
        except QuoteflowError as e:
            logger.warning(f"Signer profile unavailable for {document.signer_id}: {e}")
            return {}

    def fetch_branding(
        self, document: Document, signer: Dict[str, Any]
    ) -> Tuple[CompanyProfile, Optional[bytes]]:
        try:
            profile = resolve_company_profile(self.store, document, signer)
        except QuoteflowError as e:
            logger.warning(f"Company lookup failed for {document.id}, using default: {e}")
            return CompanyProfile.default(), None

        if not profile.logo_url:
            logger.info(f"No logo configured for company {profile.id}")
            return profile, None

        try:
            return profile, fetch_asset(profile.logo_url, self.blob_store)
        except _FETCH_ERRORS as e:
            logger.warning(f"Failed to fetch logo {profile.logo_url}, rendering without it: {e}")
            return profile, None

    def fetch_signature(self, document: Document) -> Optional[bytes]:
        try:
            image = self.identity.get_signature_image(document.signer_id)
        except _FETCH_ERRORS as e:
            logger.warning(f"Failed to fetch signature for {document.signer_id}: {e}")
            return None
        if image is None:
            logger.info(f"Signer {document.signer_id} has no signature on file")
        return image

    def fetch_line_items(self, document: Document) -> List[LineItem]:
        """Fill in product details the quotation does not carry itself."""
        items = []
        for item in document.line_items:
            if item.product_id and (item.site_code is None or item.type is None):
                try:
                    product = self.store.get(self.products_collection, item.product_id) or {}
                except QuoteflowError as e:
                    logger.warning(f"Product {item.product_id} unavailable: {e}")
                    product = {}
                item = LineItem(
                    product_id=item.product_id,
                    name=item.name or product.get("name", ""),
                    location=item.location or product.get("location", ""),
                    price=item.price,
                    duration_days=item.duration_days,
                    item_total_amount=item.item_total_amount,
                    site_code=item.site_code or product.get("site_code"),
                    type=item.type or product.get("type"),
                    description=item.description or product.get("description"),
                )
            items.append(item)
        return items

    def render_inputs_for(
        self,
        document: Document,
        signer_version: Optional[Instant],
        password: str,
    ) -> RenderInputs:
        """Assemble everything needed to render one quotation.

        Args:
            document: Quotation to render
            signer_version: Signature version the oracle reported for the signer
            password: Access password to embed

        Returns:
            RenderInputs. ``signer_version`` is cleared when no signature
            image could be fetched, so the next freshness check retries.
        """
        signer = self._signer(document)

        with ThreadPoolExecutor(max_workers=3, thread_name_prefix=f"inputs-{document.id}") as pool:
            branding_future = pool.submit(self.fetch_branding, document, signer)
            signature_future = pool.submit(self.fetch_signature, document)
            items_future = pool.submit(self.fetch_line_items, document)

            branding, logo = branding_future.result()
            signature = signature_future.result()
            line_items = items_future.result()

        return RenderInputs(
            document_id=document.id,
            line_items=line_items,
            branding=branding,
            logo_image=logo,
            signature_image=signature,
            signer_version=signer_version if signature is not None else None,
            content_hash=content_fingerprint(document),
            password=password,
            document=document.to_record(),
            signer={k: v for k, v in signer.items() if k in ("first_name", "last_name", "email", "position")},
        )
