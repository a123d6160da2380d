"""Storage module for quotations, bookings and rendered PDFs."""

from .base import BlobStore, DocumentStore, Subscription
from .memory import InMemoryBlobStore, InMemoryDocumentStore
from .models import (
    Artifact,
    Booking,
    ComplianceItem,
    ComplianceSnapshot,
    Document,
    DocumentStatus,
    FilterSignature,
    LineItem,
    PageCursor,
)

__all__ = [
    "DocumentStore",
    "BlobStore",
    "Subscription",
    "InMemoryDocumentStore",
    "InMemoryBlobStore",
    "Artifact",
    "Booking",
    "ComplianceItem",
    "ComplianceSnapshot",
    "Document",
    "DocumentStatus",
    "FilterSignature",
    "LineItem",
    "PageCursor",
]
