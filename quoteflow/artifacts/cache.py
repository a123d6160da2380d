"""Generation cache for quotation PDF artifacts.

An artifact is reused as long as the signer's signature version and the
quotation content it was rendered from are unchanged. Otherwise it is
regenerated, at most once at a time per quotation.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import List, Optional

from ..errors import GenerationError, NotFoundError, QuoteflowError
from ..identity.signatures import FreshnessOracle
from ..rendering.base import PdfRenderer
from ..rendering.inputs import RenderInputAssembler, content_fingerprint
from ..storage.base import BlobStore, DocumentStore
from ..storage.instant import Instant, to_millis, to_wire, utcnow
from ..storage.models import Artifact, Document
from .single_flight import SingleFlight

logger = logging.getLogger(__name__)

QUOTATIONS = "quotations"

# Sentinel for "ask the oracle"
_UNSET = object()


def generate_access_password(length: int = 8) -> str:
    """Random numeric password with no leading zero (10000000-99999999 for 8 digits)."""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


def artifact_path(document_id: str, generated_at: Instant) -> str:
    return f"quotations/pdfs/quotation_{document_id}_{to_millis(generated_at)}.pdf"


@dataclass
class ArtifactResult:
    """What a caller gets back for a quotation PDF request."""

    document_id: str
    artifact: Optional[Artifact]
    regenerated: bool
    # Set only for group refreshes, where one failed sibling does not stop the rest
    error: Optional[GenerationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def url(self) -> str:
        return self.artifact.url if self.artifact else ""

    @property
    def password(self) -> str:
        return self.artifact.password if self.artifact else ""


def staleness_reason(
    artifact: Optional[Artifact],
    current_version: Optional[Instant],
    current_hash: str,
) -> Optional[str]:
    """Why an artifact cannot be reused, or None if it can.

    When neither the oracle nor the artifact knows a signature version, the
    artifact's freshness cannot be proven and it is treated as stale.
    """
    if artifact is None:
        return "no artifact"
    if current_version is None and artifact.signer_version is None:
        return "signature version unknown"
    if current_version != artifact.signer_version:
        return "signature changed"
    if artifact.content_hash is not None and artifact.content_hash != current_hash:
        return "content changed"
    return None


class ArtifactCache:
    """Decides between reusing and regenerating a quotation's PDF."""

    def __init__(
        self,
        store: DocumentStore,
        blob_store: BlobStore,
        oracle: FreshnessOracle,
        renderer: PdfRenderer,
        assembler: RenderInputAssembler,
        password_length: int = 8,
    ):
        self.store = store
        self.blob_store = blob_store
        self.oracle = oracle
        self.renderer = renderer
        self.assembler = assembler
        self.password_length = password_length
        self._flights: SingleFlight[ArtifactResult] = SingleFlight()

    def _load(self, document_id: str) -> Document:
        record = self.store.get(QUOTATIONS, document_id)
        if record is None:
            raise NotFoundError(f"Quotation {document_id} not found", identifier=document_id)
        return Document.from_record(record)

    def get_or_generate(self, document_id: str, force: bool = False) -> ArtifactResult:
        """Return a current PDF for a quotation, rendering it only if needed.

        Args:
            document_id: Quotation identifier
            force: Regenerate even if the cached artifact is fresh

        Returns:
            ArtifactResult with the artifact location and access password

        Raises:
            NotFoundError: Unknown quotation
            GenerationError: Rendering or persisting the PDF failed
        """
        result, shared = self._flights.do(
            document_id, lambda: self._check_and_generate(document_id, _UNSET, force)
        )
        if shared:
            logger.info(f"Shared in-flight artifact result for {document_id}")
        return result

    def invalidate_group(self, page_group: str, force: bool = False) -> List[ArtifactResult]:
        """Check every quotation of a page group and regenerate the stale ones.

        Signature versions are fetched once per distinct signer and shared by
        all siblings.

        Args:
            page_group: Page group identifier shared by sibling quotations
            force: Regenerate every sibling regardless of freshness

        Returns:
            One ArtifactResult per sibling, ordered by page number. A sibling
            that failed to generate carries its GenerationError in `error`
            and keeps whatever artifact it had before.
        """
        records = self.store.query(QUOTATIONS, {"page_id": page_group})
        if not records:
            raise NotFoundError(f"Page group {page_group} has no quotations", identifier=page_group)

        siblings = sorted(
            (Document.from_record(r) for r in records),
            key=lambda d: (d.page_number is None, d.page_number or 0, d.id),
        )
        versions = self.oracle.versions_for(d.signer_id for d in siblings)
        logger.info(
            f"Refreshing {len(siblings)} quotations in page group {page_group} "
            f"({len(versions)} distinct signers)"
        )

        results = []
        for sibling in siblings:
            version = versions.get(sibling.signer_id)
            try:
                result, _ = self._flights.do(
                    sibling.id,
                    lambda doc_id=sibling.id, v=version: self._check_and_generate(doc_id, v, force),
                )
            except GenerationError as e:
                logger.error(f"Page group {page_group}: {sibling.id} failed: {str(e)}")
                result = ArtifactResult(sibling.id, sibling.artifact, regenerated=False, error=e)
            results.append(result)

        failed = [r.document_id for r in results if not r.ok]
        if failed:
            logger.warning(
                f"Page group {page_group}: {len(failed)} of {len(results)} failed "
                f"({', '.join(failed)})"
            )
        return results

    def _check_and_generate(self, document_id: str, version, force: bool) -> ArtifactResult:
        # Re-read inside the flight so late arrivals see the last write
        document = self._load(document_id)
        if version is _UNSET:
            version = self.oracle.current_version(document.signer_id)
        current_hash = content_fingerprint(document)

        reason = "forced" if force else staleness_reason(document.artifact, version, current_hash)
        if reason is None:
            logger.info(f"Reusing cached artifact for {document_id}")
            return ArtifactResult(document_id, document.artifact, regenerated=False)

        logger.info(f"Regenerating artifact for {document_id}: {reason}")
        return ArtifactResult(document_id, self._generate(document, version), regenerated=True)

    def _generate(self, document: Document, version: Optional[Instant]) -> Artifact:
        password = generate_access_password(self.password_length)
        inputs = self.assembler.render_inputs_for(document, version, password)

        try:
            pdf_bytes = self.renderer.render(inputs)
        except GenerationError:
            raise
        except Exception as e:
            logger.error(f"Renderer failed for {document.id}: {str(e)}")
            raise GenerationError(
                f"Failed to render quotation {document.id}: {e}",
                document_id=document.id,
                original_error=e,
            )
        if not pdf_bytes:
            raise GenerationError(f"Renderer produced no bytes for {document.id}", document_id=document.id)

        generated_at = utcnow()
        path = artifact_path(document.id, generated_at)
        try:
            url = self.blob_store.put(pdf_bytes, path, content_type="application/pdf")
        except QuoteflowError as e:
            logger.error(f"Failed to persist PDF for {document.id}: {str(e)}")
            raise GenerationError(
                f"Failed to store PDF for {document.id}", document_id=document.id, original_error=e
            )

        artifact = Artifact(
            url=url,
            password=password,
            signer_version=inputs.signer_version,
            generated_at=generated_at,
            blob_path=path,
            content_hash=inputs.content_hash,
            file_size=len(pdf_bytes),
        )

        # Single write so readers never see a half-recorded artifact
        try:
            self.store.update_fields(
                QUOTATIONS,
                document.id,
                {"artifact": artifact.to_record(), "updated": to_wire(generated_at)},
            )
        except QuoteflowError as e:
            logger.error(f"Failed to record artifact for {document.id}: {str(e)}")
            raise GenerationError(
                f"Failed to record artifact for {document.id}", document_id=document.id, original_error=e
            )
        logger.info(f"Stored artifact for {document.id} at {url} ({len(pdf_bytes)} bytes)")
        return artifact
