"""Quotation artifact, compliance and reservation workflow core."""

from .errors import GenerationError, NotFoundError, QuoteflowError, StoreError, ValidationError
from .service import QuotationWorkflow, build_workflow

__all__ = [
    "QuotationWorkflow",
    "build_workflow",
    "QuoteflowError",
    "ValidationError",
    "NotFoundError",
    "GenerationError",
    "StoreError",
]
