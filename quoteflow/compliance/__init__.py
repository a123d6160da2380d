"""Project compliance checklist."""

from .checklist import CHECKLIST, checklist_items, initial_compliance
from .tracker import ComplianceTracker, EvidenceFile, snapshot_of

__all__ = [
    "CHECKLIST",
    "checklist_items",
    "initial_compliance",
    "ComplianceTracker",
    "EvidenceFile",
    "snapshot_of",
]
