"""
Quotation workflow facade.

Wires the artifact cache, compliance tracker, reservation gate and pagination
manager over one set of collaborators and exposes the operations the UI/API
layer calls.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Union

from .artifacts.cache import ArtifactCache, ArtifactResult
from .compliance.checklist import initial_compliance
from .compliance.tracker import ComplianceTracker, EvidenceFile
from .config import Settings, load_settings
from .identity.signatures import FreshnessOracle, SignerIdentityProvider, StoreSignerDirectory
from .pagination.cursor_manager import CursorPaginationManager, PageResult
from .rendering.base import PdfRenderer
from .rendering.inputs import RenderInputAssembler
from .reservations.gate import ComplianceIncomplete, JobOrderValidation, ReservationGate
from .storage.base import BlobStore, DocumentStore
from .storage.instant import to_wire, utcnow
from .storage.models import (
    ComplianceItem,
    ComplianceSnapshot,
    Document,
    DocumentStatus,
    FilterSignature,
    LineItem,
)

logger = logging.getLogger(__name__)


class QuotationWorkflow:
    """Entry point for quotation PDFs, compliance, bookings and list pages."""

    def __init__(
        self,
        store: DocumentStore,
        blob_store: BlobStore,
        renderer: PdfRenderer,
        identity: Optional[SignerIdentityProvider] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.store = store
        self.blob_store = blob_store
        self.renderer = renderer
        self.identity = identity or StoreSignerDirectory(store, blob_store)

        self.oracle = FreshnessOracle(self.identity)
        self.assembler = RenderInputAssembler(store, blob_store, self.identity)
        self.artifacts = ArtifactCache(
            store,
            blob_store,
            self.oracle,
            renderer,
            self.assembler,
            password_length=self.settings.password_length,
        )
        self.compliance = ComplianceTracker(
            store,
            blob_store,
            max_bytes=self.settings.evidence_max_bytes,
            allowed_content_types=self.settings.evidence_content_types,
            sent_from=self.settings.sent_from,
        )
        self.reservations = ReservationGate(store, self.artifacts)
        self.pages = self.new_pagination()

    def new_pagination(self, page_size: Optional[int] = None) -> CursorPaginationManager:
        """A separate cursor manager, e.g. one per open list view."""
        return CursorPaginationManager(self.store, page_size=page_size or self.settings.page_size)

    def create_quotation(
        self,
        company_id: str,
        signer_id: str,
        line_items: Sequence[LineItem],
        quotation_number: str = "",
        document_id: Optional[str] = None,
        status: DocumentStatus = DocumentStatus.DRAFT,
        page_group: Optional[str] = None,
        page_number: Optional[int] = None,
        **fields: Any,
    ) -> Document:
        """Create a quotation with its full compliance checklist pending."""
        now = utcnow()
        document = Document(
            id=document_id or str(uuid.uuid4()),
            company_id=company_id,
            signer_id=signer_id,
            status=status,
            created=now,
            updated=now,
            quotation_number=quotation_number,
            line_items=list(line_items),
            page_group=page_group,
            page_number=page_number,
            compliance=initial_compliance(),
            **fields,
        )
        self.store.put("quotations", document.id, document.to_record())
        logger.info(f"Created quotation {document.id} for company {company_id}")
        return document

    def get_or_generate_artifact(self, document_id: str, force: bool = False) -> ArtifactResult:
        return self.artifacts.get_or_generate(document_id, force=force)

    def invalidate_group(self, page_group: str, force: bool = False) -> List[ArtifactResult]:
        return self.artifacts.invalidate_group(page_group, force=force)

    def artifact_download_url(self, document_id: str) -> str:
        """A URL for handing the current PDF to a browser."""
        url = self.get_or_generate_artifact(document_id).url
        presign = getattr(self.blob_store, "generate_presigned_url", None)
        if presign is None:
            return url
        return presign(url, expiration=self.settings.presigned_url_expiration)

    def upload_compliance_evidence(
        self,
        document_id: str,
        item_key: str,
        file: EvidenceFile,
        uploaded_by: str = "",
        sent_by: Optional[str] = None,
    ) -> ComplianceItem:
        return self.compliance.upload_evidence(document_id, item_key, file, uploaded_by, sent_by)

    def set_compliance_decision(
        self, document_id: str, item_key: str, decision: str, reviewer: str = ""
    ) -> ComplianceItem:
        return self.compliance.set_decision(document_id, item_key, decision, reviewer)

    def get_compliance_snapshot(self, document_id: str) -> ComplianceSnapshot:
        return self.compliance.snapshot(document_id)

    def create_booking(
        self,
        document_id: str,
        project_name: str,
        acknowledge_incomplete: bool = False,
        created_by: str = "",
    ) -> Union[str, ComplianceIncomplete]:
        return self.reservations.create_booking(
            document_id, project_name, acknowledge_incomplete, created_by
        )

    def validate_for_job_order(self, document_id: str) -> JobOrderValidation:
        return self.reservations.validate_for_job_order(document_id)

    def fetch_quotation_page(self, signature: FilterSignature, page_number: int) -> PageResult:
        return self.pages.fetch_page(signature, page_number)

    def close(self) -> None:
        self.pages.close()


def register_signature(
    store: DocumentStore, signer_id: str, url: str, profile: Optional[Dict[str, Any]] = None
) -> None:
    """Record a new signature for a user, bumping its version.

    Capture and validation of the image happen upstream.
    """
    record = store.get("users", signer_id) or dict(profile or {})
    record["signature"] = {"url": url, "updated": to_wire(utcnow())}
    store.put("users", signer_id, record)
    logger.info(f"Updated signature for {signer_id}")


def build_workflow(settings: Optional[Settings] = None) -> QuotationWorkflow:
    """
    Create a workflow for the configured backend.

    ``memory`` keeps everything in process and renders placeholder PDFs;
    ``aws`` uses DynamoDB, S3 and the render Lambda.
    """
    settings = settings or load_settings()
    backend = settings.backend.lower()

    if backend == "memory":
        from .rendering.fake import FakePdfRenderer
        from .storage.memory import InMemoryBlobStore, InMemoryDocumentStore

        logger.info("Using in-memory backend")
        return QuotationWorkflow(
            InMemoryDocumentStore(), InMemoryBlobStore(), FakePdfRenderer(), settings=settings
        )

    if backend == "aws":
        from .rendering.lambda_renderer import LambdaPdfRenderer
        from .storage.dynamo_document_store import DynamoDocumentStore
        from .storage.s3_blob_store import S3BlobStore

        if not settings.document_bucket:
            raise ValueError("DOCUMENT_BUCKET is required for the aws backend")

        table_names = {name: settings.table_name(name) for name in settings.tables}
        store = DynamoDocumentStore(
            table_names, region=settings.region, poll_interval=settings.live_poll_interval
        )
        blob_store = S3BlobStore(settings.document_bucket, region=settings.region)
        renderer = LambdaPdfRenderer(
            settings.render_lambda_arn, timeout=settings.render_timeout, region=settings.region
        )
        return QuotationWorkflow(store, blob_store, renderer, settings=settings)

    raise ValueError(f"Unknown backend: {backend}. Supported backends: aws, memory")
