# classlog/repositories/memory_backend.py
import copy
import logging
import uuid
from typing import Callable, Iterable, Optional

from classlog.errors import NotFoundError
from classlog.repositories.base import (
    DocumentBackend,
    Snapshot,
    SnapshotListener,
    Unsubscribe,
    check_collection,
)
from classlog.utils.dates import utc_now_iso

logger = logging.getLogger(__name__)


class MemoryBackend(DocumentBackend):
    """
    In-process document store.

    With deliver_immediately=False, change notifications queue up until
    flush() is called, which is how a lagging live feed looks to readers.
    """

    def __init__(self, clock: Optional[Callable[[], str]] = None, deliver_immediately: bool = True):
        self._clock = clock or utc_now_iso
        self.deliver_immediately = deliver_immediately
        self._docs: dict[tuple[str, str], dict[str, dict]] = {}
        self._listeners: dict[tuple[str, str], list[SnapshotListener]] = {}
        self._pending: list[tuple[str, str]] = []

    # -----------------------------
    # Reads / subscriptions
    # -----------------------------
    def _collection(self, scope: str, collection: str) -> dict[str, dict]:
        check_collection(collection)
        return self._docs.setdefault((scope, collection), {})

    def load(self, scope: str, collection: str) -> Snapshot:
        return [copy.deepcopy(d) for d in self._collection(scope, collection).values()]

    def subscribe(self, scope: str, collection: str, listener: SnapshotListener) -> Unsubscribe:
        key = (scope, collection)
        self._collection(scope, collection)
        self._listeners.setdefault(key, []).append(listener)
        listener(self.load(scope, collection))

        def _unsubscribe() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)

        return _unsubscribe

    def _changed(self, scope: str, collection: str) -> None:
        key = (scope, collection)
        if self.deliver_immediately:
            self._deliver(key)
        elif key not in self._pending:
            self._pending.append(key)

    def _deliver(self, key: tuple[str, str]) -> None:
        for listener in list(self._listeners.get(key, [])):
            listener(self.load(*key))

    def flush(self) -> None:
        """Deliver every queued snapshot."""
        pending, self._pending = self._pending, []
        for key in pending:
            self._deliver(key)

    # -----------------------------
    # Writes
    # -----------------------------
    def _commit(self, scope: str, collection: str, staged: dict[str, dict]) -> None:
        # single swap so a commit is all-or-nothing
        self._docs[(scope, collection)] = staged

    def create(self, scope: str, collection: str, data: dict) -> str:
        staged = dict(self._collection(scope, collection))
        doc_id = uuid.uuid4().hex
        doc = {k: v for k, v in data.items() if v is not None}
        doc["id"] = doc_id
        doc["created_at_utc"] = self._clock()
        staged[doc_id] = doc
        self._commit(scope, collection, staged)
        self._changed(scope, collection)
        return doc_id

    def update(self, scope: str, collection: str, doc_id: str, fields: dict) -> None:
        docs = self._collection(scope, collection)
        if doc_id not in docs:
            raise NotFoundError(f"{collection}/{doc_id} does not exist")

        merged = dict(docs[doc_id])
        for k, v in fields.items():
            if v is None:
                merged.pop(k, None)
            else:
                merged[k] = v
        merged["id"] = doc_id
        merged["updated_at_utc"] = self._clock()

        staged = dict(docs)
        staged[doc_id] = merged
        self._commit(scope, collection, staged)
        self._changed(scope, collection)

    def delete(self, scope: str, collection: str, doc_id: str) -> None:
        docs = self._collection(scope, collection)
        if doc_id not in docs:
            raise NotFoundError(f"{collection}/{doc_id} does not exist")
        staged = dict(docs)
        del staged[doc_id]
        self._commit(scope, collection, staged)
        self._changed(scope, collection)

    def batch_delete(self, scope: str, collection: str, doc_ids: Iterable[str]) -> None:
        ids = set(doc_ids)
        docs = self._collection(scope, collection)
        staged = {k: v for k, v in docs.items() if k not in ids}
        if len(staged) == len(docs):
            return
        self._commit(scope, collection, staged)
        logger.debug("memory batch_delete scope=%s collection=%s n=%d", scope, collection, len(docs) - len(staged))
        self._changed(scope, collection)
