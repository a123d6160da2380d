#!/usr/bin/env python3
"""
Fake PDF Renderer

Implements the PdfRenderer interface with deterministic placeholder PDFs.
Used for offline mode and tests without requiring the render Lambda.
"""

import threading
from typing import Any, Dict, List, Optional

from .base import PdfRenderer, RenderInputs, RendererError, log_render_call


class FakePdfRenderer(PdfRenderer):
    """Fake renderer that returns a small text-only PDF describing its inputs."""

    def __init__(self, fail_with: Optional[str] = None):
        """
        Initialize fake renderer.

        Args:
            fail_with: If set, every render raises RendererError with this message
        """
        self.fail_with = fail_with
        self.calls: List[RenderInputs] = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    @log_render_call
    def render(self, inputs: RenderInputs) -> bytes:
        with self._lock:
            self.calls.append(inputs)
        if self.fail_with:
            raise RendererError(self.fail_with, document_id=inputs.document_id)

        lines = [
            f"Quotation {inputs.document.get('quotation_number') or inputs.document_id}",
            f"Company: {inputs.branding.name}",
            f"Items: {len(inputs.line_items)}",
            f"Logo: {'yes' if inputs.logo_image else 'no'}",
            f"Signature: {'yes' if inputs.signature_image else 'no'}",
            f"Content: {inputs.content_hash}",
        ]
        body = "\n".join(lines)
        return f"%PDF-1.4\n% fake quotation render\n{body}\n%%EOF\n".encode("utf-8")

    def get_renderer_info(self) -> Dict[str, Any]:
        return {"name": "fake", "display_name": "Fake Renderer (Testing)"}
