"""The fixed project compliance checklist carried by every quotation."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..storage.instant import to_instant
from ..storage.models import ComplianceCategory, ComplianceItem, ComplianceKind, ComplianceState


@dataclass(frozen=True)
class ChecklistEntry:
    key: str
    name: str
    category: ComplianceCategory
    kind: ComplianceKind
    note: Optional[str] = None


CHECKLIST: List[ChecklistEntry] = [
    ChecklistEntry("signedContract", "Signed Contract", ComplianceCategory.TO_RESERVE, ComplianceKind.UPLOAD),
    ChecklistEntry("irrevocablePo", "Irrevocable PO", ComplianceCategory.TO_RESERVE, ComplianceKind.UPLOAD),
    ChecklistEntry(
        "paymentAsDeposit",
        "Payment as Deposit",
        ComplianceCategory.TO_RESERVE,
        ComplianceKind.CONFIRMATION,
        note="For Treasury's confirmation",
    ),
    ChecklistEntry(
        "finalArtwork", "Final Artwork", ComplianceCategory.OTHER_REQUIREMENTS, ComplianceKind.UPLOAD
    ),
    ChecklistEntry(
        "signedQuotation", "Signed Quotation", ComplianceCategory.OTHER_REQUIREMENTS, ComplianceKind.UPLOAD
    ),
]

ENTRIES: Dict[str, ChecklistEntry] = {entry.key: entry for entry in CHECKLIST}


def _read_state(record: Dict[str, Any]) -> ComplianceState:
    """Interpret both current and legacy item records."""
    state = record.get("state")
    if state:
        try:
            return ComplianceState(state)
        except ValueError:
            pass

    status = (record.get("status") or "").lower()
    if status == "declined":
        return ComplianceState.DECLINED
    if status in ("completed", "uploaded") or record.get("completed") is True:
        return ComplianceState.COMPLETED
    if record.get("fileUrl"):
        return ComplianceState.COMPLETED
    return ComplianceState.PENDING


def item_from_record(entry: ChecklistEntry, record: Optional[Dict[str, Any]]) -> ComplianceItem:
    record = record or {}
    return ComplianceItem(
        key=entry.key,
        name=entry.name,
        category=entry.category,
        kind=entry.kind,
        state=_read_state(record),
        file_ref=record.get("file_ref") or record.get("fileUrl"),
        file_name=record.get("file_name") or record.get("fileName"),
        uploaded_at=to_instant(record.get("uploaded_at") or record.get("uploadedAt")),
        uploaded_by=record.get("uploaded_by") or record.get("uploadedBy"),
        sent_by=record.get("sent_by"),
        sent_from=record.get("sent_from"),
        decided_by=record.get("decided_by"),
        decided_at=to_instant(record.get("decided_at")),
        note=entry.note,
    )


def checklist_items(compliance: Dict[str, Dict[str, Any]]) -> List[ComplianceItem]:
    """All checklist items in fixed order, defaulting absent ones to pending."""
    return [item_from_record(entry, compliance.get(entry.key)) for entry in CHECKLIST]


def initial_compliance() -> Dict[str, Dict[str, Any]]:
    """Compliance map for a newly created quotation."""
    return {
        entry.key: item_from_record(entry, None).to_record() for entry in CHECKLIST
    }
