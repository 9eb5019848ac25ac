# classlog/repositories/base.py
from typing import Callable, Iterable

# Full-collection snapshot: list of documents, each a dict with an "id" key
Snapshot = list[dict]
SnapshotListener = Callable[[Snapshot], None]
Unsubscribe = Callable[[], None]

COLLECTIONS = ("students", "sessions")


class DocumentBackend:
    """
    Per-identity document collections with live snapshots.

    `scope` is the signed-in identity; every collection lives under it.
    Backends stamp created_at_utc / updated_at_utc themselves and raise
    classlog.errors types (NotFoundError, StoreError, BatchError).
    """

    def load(self, scope: str, collection: str) -> Snapshot:
        raise NotImplementedError

    def create(self, scope: str, collection: str, data: dict) -> str:
        raise NotImplementedError

    def update(self, scope: str, collection: str, doc_id: str, fields: dict) -> None:
        raise NotImplementedError

    def delete(self, scope: str, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def batch_delete(self, scope: str, collection: str, doc_ids: Iterable[str]) -> None:
        """Delete all of doc_ids in one atomic commit. Unknown ids are ignored."""
        raise NotImplementedError

    def subscribe(self, scope: str, collection: str, listener: SnapshotListener) -> Unsubscribe:
        """Deliver the current snapshot now and again after every change."""
        raise NotImplementedError


def check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection!r}")
