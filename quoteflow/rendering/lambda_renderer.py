"""
Quotation PDF rendering through the document generation Lambda.

The Lambda owns layout, watermarking and password protection; this module
only builds its payload and interprets its response.
"""

import base64
import json
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .base import PdfRenderer, RenderInputs, RendererError, log_render_call

logger = logging.getLogger(__name__)


def _data_url(image: Optional[bytes], mime_type: str = "image/png") -> Optional[str]:
    if not image:
        return None
    return f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"


class LambdaPdfRenderer(PdfRenderer):
    """Renders quotation PDFs by invoking the document generation Lambda."""

    TEMPLATE = "quotation"

    def __init__(
        self,
        function_arn: str,
        timeout: int = 30,
        lambda_client=None,
        region: Optional[str] = None,
    ):
        """
        Initialize the renderer.

        Args:
            function_arn: ARN of the document generation Lambda
            timeout: Read timeout for the synchronous invocation in seconds
            lambda_client: Optional Lambda client (for testing)
            region: AWS region for the default client
        """
        if not function_arn:
            raise ValueError("A render Lambda ARN is required")
        self.function_arn = function_arn
        self.timeout = timeout
        self.lambda_client = lambda_client or boto3.client(
            "lambda", region_name=region, config=Config(read_timeout=timeout)
        )

    def build_payload(self, inputs: RenderInputs) -> Dict[str, Any]:
        return {
            "template": self.TEMPLATE,
            "docType": "quotation",
            "filename": f"quotation_{inputs.document_id}.pdf",
            "data": {
                "quotation": inputs.document,
                "items": [item.to_record() for item in inputs.line_items],
                "companyData": inputs.branding.to_payload(),
                "userData": inputs.signer,
            },
            "logoDataUrl": _data_url(inputs.logo_image),
            "userSignatureDataUrl": _data_url(inputs.signature_image),
            "password": inputs.password,
        }

    @log_render_call
    def render(self, inputs: RenderInputs) -> bytes:
        payload = self.build_payload(inputs)
        logger.info(
            f"Rendering quotation PDF for {inputs.document_id} "
            f"(logo={inputs.logo_image is not None}, signature={inputs.signature_image is not None})"
        )

        try:
            response = self.lambda_client.invoke(
                FunctionName=self.function_arn,
                InvocationType="RequestResponse",
                Payload=json.dumps(payload, default=str),
            )
        except (ClientError, BotoCoreError) as e:
            raise RendererError(
                f"Render Lambda invocation failed: {e}",
                document_id=inputs.document_id,
                original_error=e,
            )

        raw_response = response["Payload"].read()
        logger.info(
            f"Lambda response status: {response.get('StatusCode')}, response size: {len(raw_response)} bytes"
        )

        if response.get("FunctionError"):
            raise RendererError(
                f"Render Lambda raised: {raw_response[:500]!r}", document_id=inputs.document_id
            )

        try:
            response_payload = json.loads(raw_response)
        except json.JSONDecodeError as e:
            logger.error(f"Raw response (first 500 chars): {raw_response[:500]}")
            raise RendererError(
                f"Invalid JSON response from render Lambda: {str(e)}",
                document_id=inputs.document_id,
                original_error=e,
            )

        body = response_payload
        # HTTP-style response wraps the result in a JSON string body
        if "statusCode" in response_payload:
            if response_payload.get("statusCode") != 200:
                raise RendererError(
                    f"Render Lambda returned status {response_payload.get('statusCode')}: "
                    f"{response_payload.get('body')}",
                    document_id=inputs.document_id,
                )
            try:
                body = json.loads(response_payload.get("body") or "{}")
            except json.JSONDecodeError as e:
                raise RendererError(
                    f"Invalid body JSON in render Lambda response: {str(e)}",
                    document_id=inputs.document_id,
                    original_error=e,
                )

        if not body.get("success"):
            error_msg = body.get("error", body.get("errorMessage", "Unknown error generating PDF"))
            if "errors" in body:
                error_msg = f"Validation errors: {body['errors']}"
            raise RendererError(error_msg, document_id=inputs.document_id)

        pdf_base64 = body.get("pdf")
        if not pdf_base64:
            raise RendererError("Render Lambda returned no PDF content", document_id=inputs.document_id)

        pdf_bytes = base64.b64decode(pdf_base64)
        logger.info(f"Successfully rendered PDF ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    def get_renderer_info(self) -> Dict[str, Any]:
        return {"name": "lambda", "template": self.TEMPLATE, "function": self.function_arn}
