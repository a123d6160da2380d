"""Exception taxonomy for the quotation workflow core."""

from typing import Optional


class QuoteflowError(Exception):
    """Base exception for quotation workflow errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)


class ValidationError(QuoteflowError):
    """Raised when caller input is rejected before any state is mutated."""

    pass


class NotFoundError(QuoteflowError):
    """Raised when a document, booking or blob does not exist."""

    def __init__(
        self,
        message: str,
        identifier: str = "",
        original_error: Optional[Exception] = None,
    ):
        self.identifier = identifier
        super().__init__(message, original_error)


class GenerationError(QuoteflowError):
    """Raised when a PDF artifact could not be rendered or persisted.

    Nothing is recorded on the document when this is raised, so the caller
    may retry the same request.
    """

    def __init__(
        self,
        message: str,
        document_id: str = "",
        original_error: Optional[Exception] = None,
    ):
        self.document_id = document_id
        super().__init__(message, original_error)


class StoreError(QuoteflowError):
    """Raised when a backing store call fails for a reason other than a missing item."""

    pass
