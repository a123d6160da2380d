#!/usr/bin/env python3
"""
Shared test configuration and fixtures for quoteflow.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from quoteflow.config import Settings
from quoteflow.rendering.fake import FakePdfRenderer
from quoteflow.service import QuotationWorkflow, register_signature
from quoteflow.storage.instant import to_wire
from quoteflow.storage.memory import InMemoryBlobStore, InMemoryDocumentStore
from quoteflow.storage.models import LineItem

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

# 1x1 transparent PNG
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"
    b"\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00"
    b"\x00\x00\x00IEND\xaeB`\x82"
)


@pytest.fixture(autouse=True)
def _no_network(monkeypatch, tmp_path):
    """Mock all network calls to prevent actual AWS calls during testing."""
    monkeypatch.setenv("NO_NETWORK", "1")
    monkeypatch.setenv("RENDER_LOG_DIR", str(tmp_path / "logs"))

    def mock_boto3_client(*args, **kwargs):
        return MagicMock()

    def mock_boto3_resource(*args, **kwargs):
        return MagicMock()

    monkeypatch.setattr("boto3.client", mock_boto3_client)
    monkeypatch.setattr("boto3.resource", mock_boto3_resource)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def renderer():
    return FakePdfRenderer()


@pytest.fixture
def workflow(store, blob_store, renderer):
    wf = QuotationWorkflow(store, blob_store, renderer, settings=Settings(backend="memory"))
    yield wf
    wf.close()


def add_signer(store, blob_store, signer_id="user-7", updated=BASE_TIME, company_id="comp-1"):
    """Store a user with a signature image and return the signature version."""
    url = blob_store.put(PNG_BYTES, f"signatures/{signer_id}.png", content_type="image/png")
    store.put(
        "users",
        signer_id,
        {
            "email": f"{signer_id}@example.com",
            "first_name": "Ana",
            "last_name": "Cruz",
            "company_id": company_id,
            "signature": {"url": url, "updated": to_wire(updated)},
        },
    )
    return updated


def bump_signature(store, blob_store, signer_id="user-7", updated=None):
    updated = updated or BASE_TIME + timedelta(days=1)
    url = blob_store.put(PNG_BYTES, f"signatures/{signer_id}-{updated.timestamp()}.png")
    register_signature(store, signer_id, url)
    # register_signature stamps "now"; pin it for deterministic assertions
    store.update_fields("users", signer_id, {"signature.updated": to_wire(updated)})
    return updated


def add_company(store, company_id="comp-1", logo=None):
    record = {"name": "Boohk Media", "address": "Makati", "phone": "555-0100"}
    if logo:
        record["logo"] = logo
    store.put("companies", company_id, record)


def sample_items():
    return [
        LineItem(product_id="prod-1", name="EDSA Billboard", location="EDSA", price=50000.0,
                 duration_days=30, item_total_amount=50000.0),
    ]


@pytest.fixture
def signed_quotation(workflow, store, blob_store):
    """A quotation from a signer with a signature on file."""
    add_signer(store, blob_store)
    add_company(store)
    return workflow.create_quotation(
        company_id="comp-1",
        signer_id="user-7",
        line_items=sample_items(),
        quotation_number="QT-1001",
        document_id="Q-1001",
        client_name="Jane Doe",
        client_company_name="Acme Corp",
    )
