"""Tests for the render Lambda client."""

import base64
import io
import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from quoteflow.branding.company_profile import CompanyProfile
from quoteflow.rendering.base import RenderInputs, RendererError
from quoteflow.rendering.lambda_renderer import LambdaPdfRenderer
from quoteflow.storage.models import LineItem

ARN = "arn:aws:lambda:us-east-2:123456789012:function:generate-document"


def _inputs(logo=b"logo", signature=b"sig"):
    return RenderInputs(
        document_id="Q-1001",
        line_items=[LineItem(product_id="p1", name="EDSA Billboard", price=100.0)],
        branding=CompanyProfile(id="comp-1", name="Boohk Media", address="Makati"),
        logo_image=logo,
        signature_image=signature,
        signer_version=None,
        content_hash="abc",
        password="12345678",
        document={"id": "Q-1001", "quotation_number": "QT-1001"},
        signer={"email": "ana@example.com"},
    )


def _response(payload, function_error=None):
    response = {"StatusCode": 200, "Payload": io.BytesIO(json.dumps(payload).encode())}
    if function_error:
        response["FunctionError"] = function_error
    return response


@pytest.fixture
def lambda_client():
    return MagicMock()


@pytest.fixture
def renderer(lambda_client):
    return LambdaPdfRenderer(ARN, lambda_client=lambda_client)


class TestLambdaPdfRenderer:
    def test_requires_arn(self):
        with pytest.raises(ValueError):
            LambdaPdfRenderer("", lambda_client=MagicMock())

    def test_payload(self, renderer):
        payload = renderer.build_payload(_inputs())

        assert payload["template"] == "quotation"
        assert payload["password"] == "12345678"
        assert payload["data"]["companyData"]["name"] == "Boohk Media"
        assert payload["data"]["items"][0]["name"] == "EDSA Billboard"
        assert payload["logoDataUrl"] == "data:image/png;base64," + base64.b64encode(b"logo").decode()
        assert payload["userSignatureDataUrl"].startswith("data:image/png;base64,")

    def test_payload_without_images(self, renderer):
        payload = renderer.build_payload(_inputs(logo=None, signature=None))

        assert payload["logoDataUrl"] is None
        assert payload["userSignatureDataUrl"] is None

    def test_direct_success_response(self, renderer, lambda_client):
        lambda_client.invoke.return_value = _response(
            {"success": True, "pdf": base64.b64encode(b"%PDF-1.7").decode()}
        )

        assert renderer.render(_inputs()) == b"%PDF-1.7"
        kwargs = lambda_client.invoke.call_args.kwargs
        assert kwargs["FunctionName"] == ARN
        assert kwargs["InvocationType"] == "RequestResponse"

    def test_http_style_response(self, renderer, lambda_client):
        body = json.dumps({"success": True, "pdf": base64.b64encode(b"%PDF").decode()})
        lambda_client.invoke.return_value = _response({"statusCode": 200, "body": body})

        assert renderer.render(_inputs()) == b"%PDF"

    def test_http_error_status(self, renderer, lambda_client):
        lambda_client.invoke.return_value = _response({"statusCode": 500, "body": "boom"})

        with pytest.raises(RendererError, match="status 500"):
            renderer.render(_inputs())

    def test_validation_errors(self, renderer, lambda_client):
        lambda_client.invoke.return_value = _response({"success": False, "errors": ["items missing"]})

        with pytest.raises(RendererError, match="Validation errors"):
            renderer.render(_inputs())

    def test_function_error(self, renderer, lambda_client):
        lambda_client.invoke.return_value = _response({"errorMessage": "crash"}, "Unhandled")

        with pytest.raises(RendererError) as exc_info:
            renderer.render(_inputs())
        assert exc_info.value.document_id == "Q-1001"

    def test_invalid_json(self, renderer, lambda_client):
        lambda_client.invoke.return_value = {"StatusCode": 200, "Payload": io.BytesIO(b"not json")}

        with pytest.raises(RendererError, match="Invalid JSON"):
            renderer.render(_inputs())

    def test_missing_pdf(self, renderer, lambda_client):
        lambda_client.invoke.return_value = _response({"success": True})

        with pytest.raises(RendererError, match="no PDF content"):
            renderer.render(_inputs())

    def test_invoke_failure(self, renderer, lambda_client):
        lambda_client.invoke.side_effect = ClientError(
            {"Error": {"Code": "TooManyRequestsException", "Message": "throttled"}}, "Invoke"
        )

        with pytest.raises(RendererError) as exc_info:
            renderer.render(_inputs())
        assert isinstance(exc_info.value.original_error, ClientError)
