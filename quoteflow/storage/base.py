"""Contracts for the document store and blob store collaborators."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

from .instant import Instant

logger = logging.getLogger(__name__)

# (created, id) of the last item already seen, exclusive
StartAfter = Tuple[Instant, str]
Listener = Callable[[List[Dict[str, Any]]], None]


class Subscription:
    """A live query registration that must be released exactly once.

    Usable as a context manager; ``close`` is idempotent.
    """

    def __init__(self, unsubscribe: Callable[[], None], description: str = ""):
        self._unsubscribe = unsubscribe
        self._lock = threading.Lock()
        self._closed = False
        self.description = description

    @property
    def active(self) -> bool:
        return not self._closed

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._unsubscribe()
        logger.debug(f"Released subscription {self.description}")

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class DocumentStore(ABC):
    """Point reads/writes by identifier plus ordered, filtered live queries.

    Records are plain dicts keyed by ``id``. Ordering for queries is always
    ``created`` descending with ``id`` descending as the tie-break.
    """

    @abstractmethod
    def get(self, collection: str, item_id: str) -> Optional[Dict[str, Any]]:
        """Return the record, or None if it does not exist."""
        pass

    @abstractmethod
    def put(self, collection: str, item_id: str, item: Dict[str, Any]) -> None:
        """Create or replace a record."""
        pass

    @abstractmethod
    def update_fields(self, collection: str, item_id: str, fields: Dict[str, Any]) -> None:
        """Set fields on an existing record.

        Keys may be one-level dotted paths (``"compliance.signedContract"``)
        to replace a single entry of a map attribute. All fields of one call
        are applied atomically.

        Raises:
            NotFoundError: If the record does not exist
        """
        pass

    @abstractmethod
    def query(
        self,
        collection: str,
        where: Dict[str, Any],
        limit: Optional[int] = None,
        start_after: Optional[StartAfter] = None,
    ) -> List[Dict[str, Any]]:
        """Records matching all equality predicates, newest first."""
        pass

    @abstractmethod
    def listen(
        self,
        collection: str,
        where: Dict[str, Any],
        callback: Listener,
        limit: Optional[int] = None,
        start_after: Optional[StartAfter] = None,
    ) -> Subscription:
        """Deliver the current result of ``query`` now and again whenever it may have changed."""
        pass


class BlobStore(ABC):
    """Byte storage addressed by a caller-chosen path."""

    @abstractmethod
    def put(self, data: bytes, path: str, content_type: str = "application/octet-stream") -> str:
        """Store bytes and return a URL that ``get`` accepts."""
        pass

    @abstractmethod
    def get(self, url: str) -> bytes:
        """Fetch bytes previously stored.

        Raises:
            NotFoundError: If nothing is stored at the URL
        """
        pass
