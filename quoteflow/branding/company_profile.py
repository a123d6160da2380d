"""Resolution of the organization profile printed on a quotation.

Companies are located by trying an ordered list of strategies; the first one
that yields a record wins. Each strategy is a plain function so it can be
tested, reordered or replaced on its own.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..storage.base import DocumentStore
from ..storage.models import Document

logger = logging.getLogger(__name__)

COMPANIES = "companies"
DEFAULT_COMPANY_NAME = "Company Name"

Strategy = Callable[[DocumentStore, Document, Dict[str, Any]], Optional[Dict[str, Any]]]


@dataclass
class CompanyProfile:
    """Branding block for the PDF header."""

    id: Optional[str]
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CompanyProfile":
        return cls(
            id=record.get("id"),
            name=record.get("name") or DEFAULT_COMPANY_NAME,
            address=record.get("address") or record.get("company_location"),
            phone=record.get("phone") or record.get("telephone") or record.get("contact_number"),
            email=record.get("email"),
            website=record.get("website") or record.get("company_website"),
            logo_url=record.get("logo") or record.get("photo_url"),
        )

    @classmethod
    def default(cls) -> "CompanyProfile":
        return cls(id=None, name=DEFAULT_COMPANY_NAME)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "website": self.website,
        }


def _first(store: DocumentStore, field_name: str, value: Any) -> Optional[Dict[str, Any]]:
    if not value:
        return None
    matches = store.query(COMPANIES, {field_name: value}, limit=1)
    return matches[0] if matches else None


def by_company_id(store: DocumentStore, document: Document, signer: Dict[str, Any]):
    company_id = document.company_id or signer.get("company_id")
    if not company_id:
        return None
    return store.get(COMPANIES, company_id)


def by_creator(store: DocumentStore, document: Document, signer: Dict[str, Any]):
    return _first(store, "created_by", document.signer_id)


def by_email(store: DocumentStore, document: Document, signer: Dict[str, Any]):
    return _first(store, "email", signer.get("email"))


def by_contact_person(store: DocumentStore, document: Document, signer: Dict[str, Any]):
    return _first(store, "contact_person", signer.get("email"))


DEFAULT_STRATEGIES: List[Strategy] = [by_company_id, by_creator, by_email, by_contact_person]


def resolve_company_profile(
    store: DocumentStore,
    document: Document,
    signer: Optional[Dict[str, Any]] = None,
    strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
) -> CompanyProfile:
    """Find the company profile for a quotation.

    Args:
        store: Document store holding the companies collection
        document: Quotation being rendered
        signer: Signer's user record, if known
        strategies: Lookups to try in order

    Returns:
        The first matching profile, or the default profile
    """
    signer = signer or {}
    for strategy in strategies:
        record = strategy(store, document, signer)
        if record:
            logger.info(f"Resolved company {record.get('id')} for {document.id} via {strategy.__name__}")
            return CompanyProfile.from_record(record)

    logger.warning(f"No company profile found for {document.id}, using default")
    return CompanyProfile.default()
