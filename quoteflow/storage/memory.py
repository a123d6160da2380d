"""In-process document and blob stores.

Used for offline mode (``NO_NETWORK=1``) and throughout the test suite. The
document store pushes fresh query results to listeners after every write,
which is how the live quotation list behaves against the hosted store.
"""

import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from ..errors import NotFoundError
from .base import BlobStore, DocumentStore, Listener, StartAfter, Subscription
from .instant import to_instant

logger = logging.getLogger(__name__)


def _sort_key(record: Dict[str, Any]) -> Tuple[Any, str]:
    created = to_instant(record.get("created")) or to_instant(0)
    return created, str(record.get("id", ""))


def _matches(record: Dict[str, Any], where: Dict[str, Any]) -> bool:
    return all(record.get(key) == value for key, value in where.items())


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe dict-backed document store with live listeners."""

    def __init__(self):
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: Dict[str, Dict[int, Tuple[Dict[str, Any], Listener, Optional[int], Any]]] = {}
        self._next_listener_id = 0

    def get(self, collection: str, item_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._collections.get(collection, {}).get(item_id)
            return copy.deepcopy(record) if record is not None else None

    def put(self, collection: str, item_id: str, item: Dict[str, Any]) -> None:
        record = copy.deepcopy(item)
        record["id"] = item_id
        with self._lock:
            self._collections.setdefault(collection, {})[item_id] = record
        self._notify(collection)

    def update_fields(self, collection: str, item_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            record = self._collections.get(collection, {}).get(item_id)
            if record is None:
                raise NotFoundError(f"{collection}/{item_id} not found", identifier=item_id)
            for path, value in fields.items():
                if "." in path:
                    parent, child = path.split(".", 1)
                    container = record.get(parent)
                    if not isinstance(container, dict):
                        container = {}
                        record[parent] = container
                    container[child] = copy.deepcopy(value)
                else:
                    record[path] = copy.deepcopy(value)
        self._notify(collection)

    def query(
        self,
        collection: str,
        where: Dict[str, Any],
        limit: Optional[int] = None,
        start_after: Optional[StartAfter] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            records = [
                r for r in self._collections.get(collection, {}).values() if _matches(r, where)
            ]
            records.sort(key=_sort_key, reverse=True)
            if start_after is not None:
                records = [r for r in records if _sort_key(r) < start_after]
            if limit is not None:
                records = records[:limit]
            return copy.deepcopy(records)

    def listen(
        self,
        collection: str,
        where: Dict[str, Any],
        callback: Listener,
        limit: Optional[int] = None,
        start_after: Optional[StartAfter] = None,
    ) -> Subscription:
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._listeners.setdefault(collection, {})[listener_id] = (
                dict(where),
                callback,
                limit,
                start_after,
            )

        def _unsubscribe():
            with self._lock:
                self._listeners.get(collection, {}).pop(listener_id, None)

        subscription = Subscription(_unsubscribe, description=f"{collection}#{listener_id}")
        callback(self.query(collection, where, limit=limit, start_after=start_after))
        return subscription

    def listener_count(self, collection: str) -> int:
        with self._lock:
            return len(self._listeners.get(collection, {}))

    def _notify(self, collection: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(collection, {}).values())
        # Callbacks run outside the lock so they may read the store
        for where, callback, limit, start_after in listeners:
            callback(self.query(collection, where, limit=limit, start_after=start_after))


class InMemoryBlobStore(BlobStore):
    """Dict-backed blob store returning ``memory://`` URLs."""

    SCHEME = "memory://"

    def __init__(self):
        self._lock = threading.Lock()
        self._blobs: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}

    def put(self, data: bytes, path: str, content_type: str = "application/octet-stream") -> str:
        with self._lock:
            self._blobs[path] = bytes(data)
            self.content_types[path] = content_type
        logger.info(f"Stored {len(data)} bytes at {self.SCHEME}{path}")
        return f"{self.SCHEME}{path}"

    def get(self, url: str) -> bytes:
        path = url[len(self.SCHEME):] if url.startswith(self.SCHEME) else url
        with self._lock:
            if path not in self._blobs:
                raise NotFoundError(f"Blob not found: {url}", identifier=url)
            return self._blobs[path]

    def paths(self) -> List[str]:
        with self._lock:
            return sorted(self._blobs)
