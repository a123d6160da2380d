"""Compliance checklist mutations and progress snapshots.

Every mutation rewrites exactly one item entry of the quotation's compliance
map, so different items never interfere and two writes to the same item
resolve last-writer-wins.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..errors import NotFoundError, QuoteflowError, ValidationError
from ..storage.base import BlobStore, DocumentStore
from ..storage.instant import to_millis, to_wire, utcnow
from ..storage.models import (
    ComplianceItem,
    ComplianceKind,
    ComplianceSnapshot,
    ComplianceState,
    compliance_map,
)
from .checklist import ENTRIES, checklist_items, item_from_record

logger = logging.getLogger(__name__)

QUOTATIONS = "quotations"
BOOKINGS = "bookings"

MB = 1024 * 1024

_DECISIONS = {
    "accept": ComplianceState.COMPLETED,
    "completed": ComplianceState.COMPLETED,
    "decline": ComplianceState.DECLINED,
    "declined": ComplianceState.DECLINED,
}


@dataclass
class EvidenceFile:
    """An uploaded compliance document."""

    file_name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def snapshot_of(compliance: Dict[str, Dict[str, Any]]) -> ComplianceSnapshot:
    """Progress across both categories, missing items in checklist order."""
    items = checklist_items(compliance)
    return ComplianceSnapshot(
        completed_count=sum(1 for item in items if item.is_completed),
        total_count=len(items),
        missing_items=[item.name for item in items if not item.is_completed],
    )


class ComplianceTracker:
    """Owns checklist state transitions for quotations."""

    def __init__(
        self,
        store: DocumentStore,
        blob_store: BlobStore,
        max_bytes: int = 10 * MB,
        allowed_content_types: Sequence[str] = ("application/pdf",),
        sent_from: str = "",
    ):
        self.store = store
        self.blob_store = blob_store
        self.max_bytes = max_bytes
        self.allowed_content_types = tuple(allowed_content_types)
        self.sent_from = sent_from

    def _record(self, document_id: str) -> Dict[str, Any]:
        record = self.store.get(QUOTATIONS, document_id)
        if record is None:
            raise NotFoundError(f"Quotation {document_id} not found", identifier=document_id)
        return record

    def _compliance(self, document_id: str) -> Dict[str, Dict[str, Any]]:
        return compliance_map(self._record(document_id))

    def _entry(self, item_key: str):
        entry = ENTRIES.get(item_key)
        if entry is None:
            raise ValidationError(
                f"Unknown compliance item '{item_key}'. Expected one of: {', '.join(ENTRIES)}"
            )
        return entry

    def _item(self, document_id: str, item_key: str) -> ComplianceItem:
        entry = self._entry(item_key)
        return item_from_record(entry, self._compliance(document_id).get(item_key))

    def validate_file(self, file: EvidenceFile) -> None:
        """Reject evidence that is not an allowed type or is too large.

        Raises:
            ValidationError: If the file is rejected
        """
        if file.content_type not in self.allowed_content_types:
            raise ValidationError("Only PDF files are allowed")
        if file.size == 0:
            raise ValidationError("File is empty")
        if file.size > self.max_bytes:
            raise ValidationError(f"File size must be less than {self.max_bytes // MB}MB")

    def upload_evidence(
        self,
        document_id: str,
        item_key: str,
        file: EvidenceFile,
        uploaded_by: str = "",
        sent_by: Optional[str] = None,
    ) -> ComplianceItem:
        """Store an evidence file and mark its checklist item completed.

        Args:
            document_id: Quotation identifier
            item_key: Checklist item key
            file: Uploaded file
            uploaded_by: User identifier of the uploader
            sent_by: Display name of the uploader

        Returns:
            The updated item

        Raises:
            ValidationError: Unknown item, wrong type or too large; nothing is stored
            NotFoundError: Unknown quotation
        """
        item = self._item(document_id, item_key)
        self.validate_file(file)

        now = utcnow()
        path = f"quotations/{document_id}/compliance/{item_key}/{to_millis(now)}-{file.file_name}"
        file_ref = self.blob_store.put(file.data, path, content_type=file.content_type)

        item.state = ComplianceState.COMPLETED
        item.file_ref = file_ref
        item.file_name = file.file_name
        item.uploaded_at = now
        item.uploaded_by = uploaded_by or None
        item.sent_by = sent_by or uploaded_by or None
        item.sent_from = self.sent_from or None

        self._write_item(document_id, item)
        logger.info(f"{item.name} uploaded for {document_id} by {uploaded_by or 'unknown'}")
        return item

    def accept(self, document_id: str, item_key: str, reviewer: str = "") -> ComplianceItem:
        """Reviewer sign-off: mark an item completed.

        Upload items can only be accepted once a file is on record.
        """
        item = self._item(document_id, item_key)
        if item.kind is ComplianceKind.UPLOAD and not item.file_ref:
            raise ValidationError(f"{item.name} requires an uploaded file before it can be accepted")
        return self._decide(document_id, item, ComplianceState.COMPLETED, reviewer)

    def decline(self, document_id: str, item_key: str, reviewer: str = "") -> ComplianceItem:
        """Reviewer rejection: mark an item declined. The file, if any, is kept for audit."""
        item = self._item(document_id, item_key)
        return self._decide(document_id, item, ComplianceState.DECLINED, reviewer)

    def set_decision(
        self, document_id: str, item_key: str, decision: str, reviewer: str = ""
    ) -> ComplianceItem:
        state = _DECISIONS.get((decision or "").strip().lower())
        if state is ComplianceState.COMPLETED:
            return self.accept(document_id, item_key, reviewer)
        if state is ComplianceState.DECLINED:
            return self.decline(document_id, item_key, reviewer)
        raise ValidationError(f"Unknown compliance decision '{decision}'. Use accept or decline")

    def _decide(
        self, document_id: str, item: ComplianceItem, state: ComplianceState, reviewer: str
    ) -> ComplianceItem:
        item.state = state
        item.decided_by = reviewer or None
        item.decided_at = utcnow()
        self._write_item(document_id, item)
        logger.info(f"{item.name} marked {state.value} for {document_id}")
        return item

    def snapshot(self, document_id: str) -> ComplianceSnapshot:
        return snapshot_of(self._compliance(document_id))

    def checklist(self, document_id: str) -> List[ComplianceItem]:
        return checklist_items(self._compliance(document_id))

    def _write_item(self, document_id: str, item: ComplianceItem) -> None:
        record = self._record(document_id)
        if isinstance(record.get("compliance"), dict):
            fields = {f"compliance.{item.key}": item.to_record()}
        else:
            # Records without a compliance map get the whole map written once
            fields = {"compliance": {**compliance_map(record), item.key: item.to_record()}}
        fields["updated"] = to_wire(utcnow())
        self.store.update_fields(QUOTATIONS, document_id, fields)
        self._propagate_to_bookings(document_id, item)

    def _propagate_to_bookings(self, document_id: str, item: ComplianceItem) -> None:
        """Mirror the item onto bookings already created from this quotation."""
        try:
            bookings = self.store.query(BOOKINGS, {"source_document_id": document_id})
            for booking in bookings:
                self.store.update_fields(
                    BOOKINGS, booking["id"], {f"compliance.{item.key}": item.to_record()}
                )
            if bookings:
                logger.info(f"Updated {len(bookings)} booking(s) with {item.key} for {document_id}")
        except QuoteflowError as e:
            logger.error(f"Error updating bookings for {document_id}: {str(e)}")
