"""Reservation gate: turning a quotation into a booking.

A booking is created directly when the compliance checklist is complete. An
incomplete checklist returns ``ComplianceIncomplete`` so the caller can show
the missing items and call again with ``acknowledge_incomplete=True``.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Union

from ..artifacts.cache import ArtifactCache
from ..compliance.checklist import ENTRIES, checklist_items
from ..compliance.tracker import snapshot_of
from ..errors import NotFoundError, ValidationError
from ..storage.base import DocumentStore
from ..storage.instant import to_millis, to_wire, utcnow
from ..storage.models import Booking, ComplianceSnapshot, Document, DocumentStatus

logger = logging.getLogger(__name__)

QUOTATIONS = "quotations"
BOOKINGS = "bookings"

# Either document is enough to start a job order
JOB_ORDER_KEYS = ("signedContract", "signedQuotation")


@dataclass
class ComplianceIncomplete:
    """Returned instead of a booking id when acknowledgement is required."""

    document_id: str
    snapshot: ComplianceSnapshot

    @property
    def missing_items(self) -> List[str]:
        return self.snapshot.missing_items


@dataclass
class JobOrderValidation:
    valid: bool
    missing: List[str] = field(default_factory=list)


class ReservationGate:
    """Creates bookings from quotations, gated on compliance."""

    def __init__(self, store: DocumentStore, artifacts: ArtifactCache):
        self.store = store
        self.artifacts = artifacts

    def _load(self, document_id: str) -> Document:
        record = self.store.get(QUOTATIONS, document_id)
        if record is None:
            raise NotFoundError(f"Quotation {document_id} not found", identifier=document_id)
        return Document.from_record(record)

    def create_booking(
        self,
        document_id: str,
        project_name: str,
        acknowledge_incomplete: bool = False,
        created_by: str = "",
    ) -> Union[str, ComplianceIncomplete]:
        """Create a booking for a quotation.

        Callers must not repeat a successful call for the same intent; no
        idempotency key is kept.

        Args:
            document_id: Quotation identifier
            project_name: Name of the project the booking is for
            acknowledge_incomplete: Proceed even if compliance is incomplete
            created_by: User creating the booking

        Returns:
            The new booking id, or ComplianceIncomplete when the checklist is
            incomplete and not acknowledged

        Raises:
            ValidationError: Empty project name
            NotFoundError: Unknown quotation
            GenerationError: The quotation PDF could not be produced
        """
        project_name = (project_name or "").strip()
        if not project_name:
            raise ValidationError("Project name is required.")

        snapshot = snapshot_of(self._load(document_id).compliance)
        if not snapshot.is_complete and not acknowledge_incomplete:
            logger.info(
                f"Booking for {document_id} held: compliance "
                f"{snapshot.completed_count}/{snapshot.total_count}"
            )
            return ComplianceIncomplete(document_id, snapshot)

        artifact = self.artifacts.get_or_generate(document_id).artifact

        # Re-read after generation so the booking copies current compliance
        document = self._load(document_id)
        snapshot = snapshot_of(document.compliance)

        if not snapshot.is_complete:
            if not acknowledge_incomplete:
                # An item was declined while the PDF was being generated
                return ComplianceIncomplete(document_id, snapshot)
            logger.warning(
                f"Creating booking for {document_id} with incomplete compliance "
                f"({snapshot.completed_count}/{snapshot.total_count}), acknowledged by {created_by or 'unknown'}"
            )

        now = utcnow()
        booking = Booking(
            id=str(uuid.uuid4()),
            reservation_id=f"RV-{to_millis(now)}",
            source_document_id=document.id,
            company_id=document.company_id,
            project_name=project_name,
            compliance=snapshot,
            compliance_items={item.key: item.to_record() for item in checklist_items(document.compliance)},
            artifact_url=artifact.url,
            created=now,
            created_by=created_by,
            quotation_number=document.quotation_number,
            client_name=document.client_name,
            client_company_name=document.client_company_name,
            line_items=list(document.line_items),
            total_amount=document.total_amount,
            start_date=document.start_date,
            end_date=document.end_date,
        )

        self.store.put(BOOKINGS, booking.id, booking.to_record())
        try:
            self.store.update_fields(
                QUOTATIONS,
                document.id,
                {"status": DocumentStatus.RESERVED.value, "updated": to_wire(now)},
            )
        except Exception as e:
            logger.error(
                f"Booking {booking.id} created but quotation {document.id} was not marked reserved: {str(e)}"
            )
            raise

        logger.info(f"Booking {booking.id} ({booking.reservation_id}) created for {document.id}")
        return booking.id

    def validate_for_job_order(self, document_id: str) -> JobOrderValidation:
        """A job order needs a completed signed contract or signed quotation."""
        document = self._load(document_id)
        items = {item.key: item for item in checklist_items(document.compliance)}
        if any(items[key].is_completed for key in JOB_ORDER_KEYS):
            return JobOrderValidation(valid=True)
        return JobOrderValidation(valid=False, missing=[ENTRIES[key].name for key in JOB_ORDER_KEYS])
