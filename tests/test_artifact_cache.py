"""Tests for quotation PDF caching and regeneration."""

import threading
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from conftest import BASE_TIME, add_company, add_signer, bump_signature, sample_items
from quoteflow.artifacts.cache import generate_access_password, staleness_reason
from quoteflow.errors import GenerationError, NotFoundError, StoreError
from quoteflow.rendering.base import RendererError
from quoteflow.rendering.fake import FakePdfRenderer
from quoteflow.storage.models import Artifact, Document


def _artifact(signer_version=BASE_TIME, content_hash="abc"):
    return Artifact(
        url="memory://x.pdf",
        password="12345678",
        signer_version=signer_version,
        generated_at=BASE_TIME,
        content_hash=content_hash,
    )


class TestStalenessReason:
    """Reuse decisions for an existing artifact."""

    def test_missing_artifact(self):
        assert staleness_reason(None, BASE_TIME, "abc") == "no artifact"

    def test_matching_version_and_content_is_fresh(self):
        assert staleness_reason(_artifact(), BASE_TIME, "abc") is None

    def test_version_mismatch(self):
        later = BASE_TIME + timedelta(seconds=1)
        assert staleness_reason(_artifact(), later, "abc") == "signature changed"

    def test_version_appeared(self):
        assert staleness_reason(_artifact(signer_version=None), BASE_TIME, "abc") == "signature changed"

    def test_version_disappeared(self):
        assert staleness_reason(_artifact(), None, "abc") == "signature changed"

    def test_both_versions_absent_is_stale(self):
        reason = staleness_reason(_artifact(signer_version=None), None, "abc")
        assert reason == "signature version unknown"

    def test_content_changed(self):
        assert staleness_reason(_artifact(), BASE_TIME, "def") == "content changed"

    def test_legacy_artifact_without_hash_ignores_content(self):
        assert staleness_reason(_artifact(content_hash=None), BASE_TIME, "def") is None


class TestAccessPassword:
    def test_eight_digits_without_leading_zero(self):
        for _ in range(50):
            password = generate_access_password()
            assert len(password) == 8
            assert password.isdigit()
            assert password[0] != "0"

    def test_custom_length(self):
        assert len(generate_access_password(6)) == 6


class TestGetOrGenerate:
    """Caching behaviour of get_or_generate_artifact."""

    def test_resign_scenario(self, workflow, store, blob_store, renderer, signed_quotation):
        """Render once, regenerate after re-signing, then reuse the new artifact."""
        first = workflow.get_or_generate_artifact("Q-1001")
        assert first.regenerated is True
        assert first.artifact.signer_version == BASE_TIME
        assert renderer.call_count == 1

        new_version = bump_signature(store, blob_store)
        second = workflow.get_or_generate_artifact("Q-1001")
        assert second.regenerated is True
        assert second.artifact.signer_version == new_version
        assert renderer.call_count == 2

        third = workflow.get_or_generate_artifact("Q-1001")
        assert third.regenerated is False
        assert third.url == second.url
        assert third.password == second.password
        assert renderer.call_count == 2

    def test_repeat_call_reuses_artifact(self, workflow, renderer, signed_quotation):
        first = workflow.get_or_generate_artifact("Q-1001")
        second = workflow.get_or_generate_artifact("Q-1001")

        assert second.regenerated is False
        assert second.artifact == first.artifact
        assert renderer.call_count == 1

    def test_artifact_is_recorded_on_document(self, workflow, store, blob_store, signed_quotation):
        result = workflow.get_or_generate_artifact("Q-1001")

        document = Document.from_record(store.get("quotations", "Q-1001"))
        assert document.artifact == result.artifact
        assert blob_store.get(result.url).startswith(b"%PDF")
        assert result.artifact.file_size == len(blob_store.get(result.url))

    def test_content_change_regenerates(self, workflow, store, renderer, signed_quotation):
        workflow.get_or_generate_artifact("Q-1001")
        store.update_fields("quotations", "Q-1001", {"client_name": "John Roe"})

        result = workflow.get_or_generate_artifact("Q-1001")

        assert result.regenerated is True
        assert renderer.call_count == 2

    def test_status_and_compliance_changes_do_not_regenerate(
        self, workflow, store, renderer, signed_quotation
    ):
        workflow.get_or_generate_artifact("Q-1001")
        store.update_fields(
            "quotations",
            "Q-1001",
            {"status": "sent", "compliance.paymentAsDeposit": {"state": "completed"}},
        )

        result = workflow.get_or_generate_artifact("Q-1001")

        assert result.regenerated is False
        assert renderer.call_count == 1

    def test_force_regenerates_fresh_artifact(self, workflow, renderer, signed_quotation):
        workflow.get_or_generate_artifact("Q-1001")
        result = workflow.get_or_generate_artifact("Q-1001", force=True)

        assert result.regenerated is True
        assert renderer.call_count == 2

    def test_signer_without_signature_always_regenerates(self, workflow, store, renderer):
        store.put("users", "user-9", {"email": "nosig@example.com"})
        workflow.create_quotation("comp-1", "user-9", sample_items(), document_id="Q-2000")

        first = workflow.get_or_generate_artifact("Q-2000")
        second = workflow.get_or_generate_artifact("Q-2000")

        assert first.artifact.signer_version is None
        assert second.regenerated is True
        assert renderer.call_count == 2
        assert renderer.calls[-1].signature_image is None

    def test_oracle_failure_regenerates(self, workflow, renderer, signed_quotation):
        workflow.get_or_generate_artifact("Q-1001")

        with patch.object(
            workflow.identity, "get_signature_version", side_effect=StoreError("throttled")
        ):
            result = workflow.get_or_generate_artifact("Q-1001")

        assert result.regenerated is True
        assert renderer.call_count == 2

    def test_unknown_document(self, workflow):
        with pytest.raises(NotFoundError) as exc_info:
            workflow.get_or_generate_artifact("missing")
        assert exc_info.value.identifier == "missing"

    def test_render_failure_records_nothing(self, workflow, store, signed_quotation):
        workflow.renderer.fail_with = "template crashed"

        with pytest.raises(GenerationError) as exc_info:
            workflow.get_or_generate_artifact("Q-1001")

        assert isinstance(exc_info.value, RendererError)
        assert exc_info.value.document_id == "Q-1001"
        assert "artifact" not in store.get("quotations", "Q-1001")

        workflow.renderer.fail_with = None
        result = workflow.get_or_generate_artifact("Q-1001")
        assert result.regenerated is True

    def test_unexpected_renderer_exception_is_wrapped(self, workflow, store, signed_quotation):
        with patch.object(workflow.renderer, "render", side_effect=RuntimeError("boom")):
            with pytest.raises(GenerationError, match="boom"):
                workflow.get_or_generate_artifact("Q-1001")
        assert "artifact" not in store.get("quotations", "Q-1001")

    def test_record_failure_is_wrapped(self, workflow, store, signed_quotation):
        original = store.update_fields

        def failing_update(collection, item_id, fields):
            if "artifact" in fields:
                raise StoreError("conditional check failed")
            return original(collection, item_id, fields)

        with patch.object(store, "update_fields", side_effect=failing_update):
            with pytest.raises(GenerationError) as exc_info:
                workflow.get_or_generate_artifact("Q-1001")

        assert exc_info.value.document_id == "Q-1001"
        assert isinstance(exc_info.value.original_error, StoreError)
        assert "artifact" not in store.get("quotations", "Q-1001")

    def test_blob_failure_records_nothing(self, workflow, store, blob_store, signed_quotation):
        with patch.object(blob_store, "put", side_effect=StoreError("bucket unavailable")):
            with pytest.raises(GenerationError):
                workflow.get_or_generate_artifact("Q-1001")
        assert "artifact" not in store.get("quotations", "Q-1001")

    def test_missing_logo_renders_without_logo(self, workflow, store, renderer, signed_quotation):
        add_company(store, logo="memory://logos/missing.png")

        result = workflow.get_or_generate_artifact("Q-1001")

        assert result.regenerated is True
        inputs = renderer.calls[0]
        assert inputs.logo_image is None
        assert inputs.branding.name == "Boohk Media"
        assert inputs.signature_image is not None

    def test_missing_signature_image_renders_unsigned(self, workflow, store, renderer):
        store.put(
            "users",
            "user-8",
            {"signature": {"url": "memory://signatures/gone.png", "updated": BASE_TIME.isoformat()}},
        )
        workflow.create_quotation("comp-1", "user-8", sample_items(), document_id="Q-2001")

        first = workflow.get_or_generate_artifact("Q-2001")
        second = workflow.get_or_generate_artifact("Q-2001")

        assert renderer.calls[0].signature_image is None
        assert first.artifact.signer_version is None
        assert second.regenerated is True

    def test_legacy_flat_artifact_fields(self, workflow, store, renderer, signed_quotation):
        store.update_fields(
            "quotations",
            "Q-1001",
            {"pdf": "memory://old.pdf", "password": "11112222", "signature_date": BASE_TIME.isoformat()},
        )

        result = workflow.get_or_generate_artifact("Q-1001")

        assert result.regenerated is False
        assert result.url == "memory://old.pdf"
        assert renderer.call_count == 0


class _BlockingRenderer(FakePdfRenderer):
    """Holds every render until released."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def render(self, inputs):
        self.started.set()
        assert self.release.wait(timeout=5)
        return super().render(inputs)


class TestConcurrentRequests:
    """Single-flight generation per quotation."""

    def test_concurrent_requests_render_once(self, workflow, signed_quotation):
        blocking = _BlockingRenderer()
        workflow.artifacts.renderer = blocking

        results = []
        errors = []

        def request():
            try:
                results.append(workflow.get_or_generate_artifact("Q-1001"))
            except Exception as e:
                errors.append(e)

        leader = threading.Thread(target=request)
        leader.start()
        assert blocking.started.wait(timeout=5)
        assert workflow.artifacts._flights.in_flight("Q-1001")

        followers = [threading.Thread(target=request) for _ in range(4)]
        for t in followers:
            t.start()
        blocking.release.set()

        for t in [leader] + followers:
            t.join(timeout=5)

        assert errors == []
        assert len(results) == 5
        assert blocking.call_count == 1
        assert len({r.url for r in results}) == 1
        assert len({r.password for r in results}) == 1

    def test_failure_is_shared_then_retryable(self, workflow, signed_quotation):
        failing = MagicMock(side_effect=RendererError("lambda timeout", document_id="Q-1001"))
        workflow.artifacts.renderer = MagicMock(render=failing)

        with pytest.raises(GenerationError):
            workflow.get_or_generate_artifact("Q-1001")
        assert not workflow.artifacts._flights.in_flight("Q-1001")

        workflow.artifacts.renderer = FakePdfRenderer()
        assert workflow.get_or_generate_artifact("Q-1001").regenerated is True


class TestInvalidateGroup:
    """Refreshing every quotation that shares a page group."""

    @pytest.fixture
    def group(self, workflow, store, blob_store):
        add_signer(store, blob_store)
        add_company(store)
        for doc_id, page in (("Q-3002", 2), ("Q-3001", 1), ("Q-3003", 3)):
            workflow.create_quotation(
                "comp-1",
                "user-7",
                sample_items(),
                document_id=doc_id,
                page_group="grp-1",
                page_number=page,
            )
        return ["Q-3001", "Q-3002", "Q-3003"]

    def test_results_follow_page_order(self, workflow, group):
        results = workflow.invalidate_group("grp-1")

        assert [r.document_id for r in results] == group
        assert all(r.regenerated for r in results)

    def test_signature_version_fetched_once_per_signer(self, workflow, group):
        with patch.object(
            workflow.identity,
            "get_signature_version",
            wraps=workflow.identity.get_signature_version,
        ) as version_lookup:
            workflow.invalidate_group("grp-1")

        assert version_lookup.call_count == 1

    def test_fresh_group_is_reused(self, workflow, renderer, group):
        workflow.invalidate_group("grp-1")
        results = workflow.invalidate_group("grp-1")

        assert not any(r.regenerated for r in results)
        assert renderer.call_count == 3

    def test_signature_change_regenerates_all(self, workflow, store, blob_store, renderer, group):
        workflow.invalidate_group("grp-1")
        bump_signature(store, blob_store)

        results = workflow.invalidate_group("grp-1")

        assert all(r.regenerated for r in results)
        assert renderer.call_count == 6

    def test_unknown_group(self, workflow):
        with pytest.raises(NotFoundError):
            workflow.invalidate_group("grp-missing")

    def test_failed_sibling_does_not_stop_the_rest(self, workflow, store, group):
        original = workflow.renderer.render

        def render(inputs):
            if inputs.document_id == "Q-3001":
                raise RendererError("template crashed", document_id=inputs.document_id)
            return original(inputs)

        with patch.object(workflow.renderer, "render", side_effect=render):
            results = workflow.invalidate_group("grp-1")

        assert [r.document_id for r in results] == group
        assert [r.ok for r in results] == [False, True, True]
        assert isinstance(results[0].error, RendererError)
        assert results[0].artifact is None
        assert all(r.regenerated for r in results[1:])
        assert "artifact" not in store.get("quotations", "Q-3001")
        assert store.get("quotations", "Q-3003")["artifact"]["url"] == results[2].url

    def test_failed_sibling_keeps_previous_artifact(self, workflow, store, blob_store, group):
        first = workflow.invalidate_group("grp-1")
        bump_signature(store, blob_store)
        workflow.renderer.fail_with = "lambda down"

        results = workflow.invalidate_group("grp-1")

        assert not any(r.ok for r in results)
        assert [r.url for r in results] == [r.url for r in first]
