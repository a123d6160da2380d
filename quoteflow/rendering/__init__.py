"""Quotation PDF rendering."""

from .base import PdfRenderer, RendererError, RenderInputs, log_render_call
from .fake import FakePdfRenderer
from .inputs import RenderInputAssembler, content_fingerprint
from .lambda_renderer import LambdaPdfRenderer

__all__ = [
    "PdfRenderer",
    "RendererError",
    "RenderInputs",
    "log_render_call",
    "FakePdfRenderer",
    "LambdaPdfRenderer",
    "RenderInputAssembler",
    "content_fingerprint",
]
