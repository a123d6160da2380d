"""Data models for quotations, artifacts, compliance and bookings."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .instant import Instant, to_instant, to_wire


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    RESERVED = "reserved"
    BOOKED = "booked"


class ComplianceCategory(str, Enum):
    TO_RESERVE = "toReserve"
    OTHER_REQUIREMENTS = "otherRequirements"


class ComplianceKind(str, Enum):
    UPLOAD = "upload"
    CONFIRMATION = "confirmation"


class ComplianceState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    DECLINED = "declined"


def compliance_map(record: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Per-item compliance entries; legacy projectCompliance entries are overlaid by current ones."""
    merged = dict(record.get("projectCompliance") or {})
    merged.update(record.get("compliance") or {})
    return merged


def _number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass
class LineItem:
    """A priced site or product on a quotation."""

    product_id: str
    name: str
    location: str = ""
    price: float = 0.0
    duration_days: int = 0
    item_total_amount: float = 0.0
    site_code: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "LineItem":
        return cls(
            product_id=str(record.get("product_id") or record.get("id") or ""),
            name=record.get("name", ""),
            location=record.get("location", ""),
            price=_number(record.get("price")),
            duration_days=int(_number(record.get("duration_days"))),
            item_total_amount=_number(record.get("item_total_amount")),
            site_code=record.get("site_code"),
            type=record.get("type"),
            description=record.get("description"),
        )

    def to_record(self) -> Dict[str, Any]:
        record = {
            "product_id": self.product_id,
            "name": self.name,
            "location": self.location,
            "price": self.price,
            "duration_days": self.duration_days,
            "item_total_amount": self.item_total_amount,
        }
        for key in ("site_code", "type", "description"):
            value = getattr(self, key)
            if value is not None:
                record[key] = value
        return record


@dataclass
class Artifact:
    """A generated quotation PDF and the inputs it was rendered against."""

    url: str
    password: str
    signer_version: Optional[Instant]
    generated_at: Instant
    blob_path: str = ""
    content_hash: Optional[str] = None
    file_size: int = 0

    @classmethod
    def from_document_record(cls, record: Dict[str, Any]) -> Optional["Artifact"]:
        """Read the artifact stored on a quotation record.

        Older records keep the URL, password and signature date as flat
        ``pdf``/``password``/``signature_date`` fields.
        """
        nested = record.get("artifact")
        if isinstance(nested, dict) and nested.get("url"):
            return cls(
                url=nested["url"],
                password=str(nested.get("password", "")),
                signer_version=to_instant(nested.get("signer_version")),
                generated_at=to_instant(nested.get("generated_at")) or to_instant(0),
                blob_path=nested.get("blob_path", ""),
                content_hash=nested.get("content_hash"),
                file_size=int(_number(nested.get("file_size"))),
            )

        legacy_url = (record.get("pdf") or "").strip()
        if legacy_url:
            return cls(
                url=legacy_url,
                password=str(record.get("password", "")),
                signer_version=to_instant(record.get("signature_date")),
                generated_at=to_instant(record.get("updated")) or to_instant(0),
            )
        return None

    def to_record(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "password": self.password,
            "signer_version": to_wire(self.signer_version),
            "generated_at": to_wire(self.generated_at),
            "blob_path": self.blob_path,
            "content_hash": self.content_hash,
            "file_size": self.file_size,
        }


@dataclass
class Document:
    """A quotation: a priced, dated proposal owned by one organization."""

    id: str
    company_id: str
    signer_id: str
    status: DocumentStatus
    created: Instant
    quotation_number: str = ""
    line_items: List[LineItem] = field(default_factory=list)
    updated: Optional[Instant] = None
    page_group: Optional[str] = None
    page_number: Optional[int] = None
    client_name: str = ""
    client_company_name: str = ""
    client_email: str = ""
    start_date: Optional[Instant] = None
    end_date: Optional[Instant] = None
    valid_until: Optional[Instant] = None
    total_amount: float = 0.0
    compliance: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    artifact: Optional[Artifact] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Document":
        raw_items = record.get("items") or []
        if isinstance(raw_items, dict):
            # Single-product quotations store one item map
            raw_items = [raw_items]

        try:
            status = DocumentStatus(str(record.get("status", "draft")).lower())
        except ValueError:
            status = DocumentStatus.DRAFT

        page_number = record.get("page_number")

        return cls(
            id=record["id"],
            company_id=record.get("company_id", ""),
            signer_id=record.get("created_by", ""),
            status=status,
            created=to_instant(record.get("created")) or to_instant(0),
            quotation_number=record.get("quotation_number", ""),
            line_items=[LineItem.from_record(item) for item in raw_items if isinstance(item, dict)],
            updated=to_instant(record.get("updated")),
            page_group=record.get("page_id") or None,
            page_number=int(page_number) if page_number is not None else None,
            client_name=record.get("client_name", ""),
            client_company_name=record.get("client_company_name", ""),
            client_email=record.get("client_email", ""),
            start_date=to_instant(record.get("start_date")),
            end_date=to_instant(record.get("end_date")),
            valid_until=to_instant(record.get("valid_until")),
            total_amount=_number(record.get("total_amount")),
            compliance=compliance_map(record),
            artifact=Artifact.from_document_record(record),
        )

    def to_record(self) -> Dict[str, Any]:
        record = {
            "id": self.id,
            "company_id": self.company_id,
            "created_by": self.signer_id,
            "status": self.status.value,
            "created": to_wire(self.created),
            "updated": to_wire(self.updated),
            "quotation_number": self.quotation_number,
            "items": [item.to_record() for item in self.line_items],
            "client_name": self.client_name,
            "client_company_name": self.client_company_name,
            "client_email": self.client_email,
            "start_date": to_wire(self.start_date),
            "end_date": to_wire(self.end_date),
            "valid_until": to_wire(self.valid_until),
            "total_amount": self.total_amount,
            "compliance": self.compliance,
        }
        if self.page_group:
            record["page_id"] = self.page_group
        if self.page_number is not None:
            record["page_number"] = self.page_number
        if self.artifact:
            record["artifact"] = self.artifact.to_record()
        return record


@dataclass
class ComplianceItem:
    """One checklist entry, interpreted from its stored record."""

    key: str
    name: str
    category: ComplianceCategory
    kind: ComplianceKind
    state: ComplianceState = ComplianceState.PENDING
    file_ref: Optional[str] = None
    file_name: Optional[str] = None
    uploaded_at: Optional[Instant] = None
    uploaded_by: Optional[str] = None
    sent_by: Optional[str] = None
    sent_from: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[Instant] = None
    note: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.state is ComplianceState.COMPLETED

    def to_record(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "file_ref": self.file_ref,
            "file_name": self.file_name,
            "uploaded_at": to_wire(self.uploaded_at),
            "uploaded_by": self.uploaded_by,
            "sent_by": self.sent_by,
            "sent_from": self.sent_from,
            "decided_by": self.decided_by,
            "decided_at": to_wire(self.decided_at),
        }


@dataclass
class ComplianceSnapshot:
    """Derived checklist progress, computed at read time."""

    completed_count: int
    total_count: int
    missing_items: List[str]

    @property
    def is_complete(self) -> bool:
        return self.completed_count == self.total_count

    def to_record(self) -> Dict[str, Any]:
        return {
            "completed": self.completed_count,
            "total": self.total_count,
            "missing": list(self.missing_items),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ComplianceSnapshot":
        return cls(
            completed_count=int(_number(record.get("completed"))),
            total_count=int(_number(record.get("total"))),
            missing_items=list(record.get("missing") or []),
        )


@dataclass
class Booking:
    """A reservation created from a quotation."""

    id: str
    reservation_id: str
    source_document_id: str
    company_id: str
    project_name: str
    compliance: ComplianceSnapshot
    compliance_items: Dict[str, Dict[str, Any]]
    artifact_url: str
    created: Instant
    status: str = "RESERVED"
    created_by: str = ""
    quotation_number: str = ""
    client_name: str = ""
    client_company_name: str = ""
    line_items: List[LineItem] = field(default_factory=list)
    total_amount: float = 0.0
    start_date: Optional[Instant] = None
    end_date: Optional[Instant] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reservation_id": self.reservation_id,
            "source_document_id": self.source_document_id,
            "company_id": self.company_id,
            "project_name": self.project_name,
            "compliance_snapshot": self.compliance.to_record(),
            "compliance": self.compliance_items,
            "artifact_url": self.artifact_url,
            "created": to_wire(self.created),
            "status": self.status,
            "created_by": self.created_by,
            "quotation_number": self.quotation_number,
            "client_name": self.client_name,
            "client_company_name": self.client_company_name,
            "items": [item.to_record() for item in self.line_items],
            "total_amount": self.total_amount,
            "start_date": to_wire(self.start_date),
            "end_date": to_wire(self.end_date),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Booking":
        return cls(
            id=record["id"],
            reservation_id=record.get("reservation_id", ""),
            source_document_id=record.get("source_document_id", ""),
            company_id=record.get("company_id", ""),
            project_name=record.get("project_name", ""),
            compliance=ComplianceSnapshot.from_record(record.get("compliance_snapshot") or {}),
            compliance_items=dict(record.get("compliance") or {}),
            artifact_url=record.get("artifact_url", ""),
            created=to_instant(record.get("created")) or to_instant(0),
            status=record.get("status", "RESERVED"),
            created_by=record.get("created_by", ""),
            quotation_number=record.get("quotation_number", ""),
            client_name=record.get("client_name", ""),
            client_company_name=record.get("client_company_name", ""),
            line_items=[LineItem.from_record(item) for item in record.get("items") or []],
            total_amount=_number(record.get("total_amount")),
            start_date=to_instant(record.get("start_date")),
            end_date=to_instant(record.get("end_date")),
        )


@dataclass(frozen=True)
class FilterSignature:
    """Everything that scopes a quotation list: organization, status and search."""

    company_id: str
    status: str = "all"
    search: str = ""

    def __post_init__(self):
        object.__setattr__(self, "status", (self.status or "all").strip().lower())
        object.__setattr__(self, "search", (self.search or "").strip())

    def store_predicates(self) -> Dict[str, Any]:
        """Equality predicates pushed down to the store query."""
        predicates = {"company_id": self.company_id}
        if self.status != "all":
            predicates["status"] = self.status
        return predicates

    def matches_search(self, document: Document) -> bool:
        """Client-side search applied after a page has been fetched."""
        if not self.search:
            return True
        needle = self.search.lower()
        haystack = [document.quotation_number, document.client_name, document.client_company_name]
        haystack.extend(item.name for item in document.line_items)
        return any(needle in (value or "").lower() for value in haystack)


@dataclass(frozen=True)
class PageCursor:
    """Last-seen ordering key of a page, valid only for one filter signature."""

    created: Instant
    document_id: str
    signature: FilterSignature
