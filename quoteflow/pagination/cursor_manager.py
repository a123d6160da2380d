"""Cursor pagination over the live quotation list.

One cursor is kept per page number for the current filter signature. Changing
any part of the signature drops every cursor and releases the live
subscription. Because the list is live, the same page fetched twice may
overlap or skip items that were written in between; no snapshot isolation
is attempted across page turns.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..errors import ValidationError
from ..storage.base import DocumentStore, StartAfter, Subscription
from ..storage.models import Document, FilterSignature, PageCursor

logger = logging.getLogger(__name__)

QUOTATIONS = "quotations"


@dataclass
class PageResult:
    """One page of the quotation list.

    ``items`` has the search post-filter applied, so it can be shorter than
    the page size even when ``has_next_page`` is True.
    """

    page_number: int
    items: List[Document] = field(default_factory=list)
    has_next_page: bool = False
    fetched_count: int = 0


class _Exhausted(Exception):
    """The requested page lies beyond the end of the list."""


class CursorPaginationManager:
    """Forward page cursors for one filtered, live quotation list."""

    def __init__(self, store: DocumentStore, page_size: int = 10, collection: str = QUOTATIONS):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.store = store
        self.page_size = page_size
        self.collection = collection
        self._lock = threading.RLock()
        self._signature: Optional[FilterSignature] = None
        self._cursors: Dict[int, PageCursor] = {}
        self._subscription: Optional[Subscription] = None

    @property
    def signature(self) -> Optional[FilterSignature]:
        return self._signature

    def cursor(self, page_number: int) -> Optional[PageCursor]:
        with self._lock:
            return self._cursors.get(page_number)

    def fetch_page(self, signature: FilterSignature, page_number: int) -> PageResult:
        """Fetch one page for a filter signature.

        Args:
            signature: Organization scope, status filter and search term
            page_number: 1-based page number

        Returns:
            PageResult for the page
        """
        if page_number < 1:
            raise ValidationError(f"Page number must be 1 or greater, got {page_number}")

        with self._lock:
            self._apply_signature(signature)
            try:
                start_after = self._start_after(page_number)
            except _Exhausted:
                return PageResult(page_number=page_number)
            records = self._query(start_after)
            return self._page_from_records(signature, page_number, records)

    def watch_page(
        self,
        signature: FilterSignature,
        page_number: int,
        on_update: Callable[[PageResult], None],
    ) -> Subscription:
        """Keep one page live, replacing any page currently being watched.

        ``on_update`` receives the page immediately and again on every change
        the store reports. The returned subscription is released automatically
        when the signature changes or ``close`` is called.
        """
        if page_number < 1:
            raise ValidationError(f"Page number must be 1 or greater, got {page_number}")

        with self._lock:
            self._apply_signature(signature)
            self._release_subscription()
            try:
                start_after = self._start_after(page_number)
            except _Exhausted:
                on_update(PageResult(page_number=page_number))
                return Subscription(lambda: None, description=f"page {page_number} (empty)")

            def _deliver(records: List[Dict[str, Any]]) -> None:
                with self._lock:
                    if self._signature != signature:
                        return
                    result = self._page_from_records(signature, page_number, records)
                on_update(result)

            self._subscription = self.store.listen(
                self.collection,
                signature.store_predicates(),
                _deliver,
                limit=self.page_size + 1,
                start_after=start_after,
            )
            return self._subscription

    def reset(self) -> None:
        """Forget all cursors and stop watching."""
        with self._lock:
            self._cursors.clear()
            self._release_subscription()

    def close(self) -> None:
        with self._lock:
            self._release_subscription()

    def __enter__(self) -> "CursorPaginationManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _apply_signature(self, signature: FilterSignature) -> None:
        if signature == self._signature:
            return
        if self._signature is not None:
            logger.info(f"Filter changed, dropping {len(self._cursors)} cursors")
        self._cursors.clear()
        self._release_subscription()
        self._signature = signature

    def _release_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def _query(self, start_after: Optional[StartAfter]) -> List[Dict[str, Any]]:
        return self.store.query(
            self.collection,
            self._signature.store_predicates(),
            limit=self.page_size + 1,
            start_after=start_after,
        )

    def _page_from_records(
        self, signature: FilterSignature, page_number: int, records: List[Dict[str, Any]]
    ) -> PageResult:
        has_next = len(records) > self.page_size
        documents = [Document.from_record(r) for r in records[: self.page_size]]
        if documents:
            last = documents[-1]
            self._cursors[page_number] = PageCursor(last.created, last.id, signature)

        return PageResult(
            page_number=page_number,
            items=[d for d in documents if signature.matches_search(d)],
            has_next_page=has_next,
            fetched_count=len(documents),
        )

    def _start_after(self, page_number: int) -> Optional[StartAfter]:
        if page_number == 1:
            return None
        cursor = self._cursors.get(page_number - 1)
        if cursor is None:
            logger.warning(f"No cursor for page {page_number - 1}, re-walking from page 1")
            cursor = self._rewalk(page_number - 1)
        return cursor.created, cursor.document_id

    def _rewalk(self, target_page: int) -> PageCursor:
        """Rebuild cursors up to ``target_page``.

        Raises:
            _Exhausted: The list ends before ``target_page``
        """
        start_after: Optional[StartAfter] = None
        for page in range(1, target_page + 1):
            cursor = self._cursors.get(page)
            if cursor is None:
                result = self._page_from_records(self._signature, page, self._query(start_after))
                if result.fetched_count == 0 or (page < target_page and not result.has_next_page):
                    raise _Exhausted()
                cursor = self._cursors[page]
            start_after = (cursor.created, cursor.document_id)
        return self._cursors[target_page]
