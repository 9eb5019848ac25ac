# classlog/repositories/sheets_backend.py
import contextlib
import logging
import uuid
from typing import Callable, Iterable, Optional

from google.auth.exceptions import TransportError
from gspread.exceptions import APIError, WorksheetNotFound
from requests.exceptions import RequestException

from classlog.config import COLLECTION_HEADERS, COLLECTION_TABS
from classlog.errors import BatchError, NotFoundError, StoreError
from classlog.repositories.base import (
    DocumentBackend,
    Snapshot,
    SnapshotListener,
    Unsubscribe,
    check_collection,
)
from classlog.utils.dates import utc_now_iso

logger = logging.getLogger(__name__)

# API rejections plus network / token refresh failures
SHEETS_ERRORS = (APIError, RequestException, TransportError)


# -----------------------------
# Sheet helpers
# -----------------------------
def tab_title(scope: str, collection: str) -> str:
    # one tab per identity + collection, e.g. "Sessions_<uid>"
    return f"{COLLECTION_TABS[collection]}_{scope}"


def ensure_headers(ws, headers):
    values = ws.get_all_values()
    if not values:
        ws.update(range_name="A1", values=[headers])
        return
    if values[0] != headers:
        ws.update(range_name="A1", values=[headers])


def _cell(v):
    return "" if v is None else v


@contextlib.contextmanager
def sheets_errors(op: str):
    """Translate gspread / transport failures into StoreError."""
    try:
        yield
    except SHEETS_ERRORS as e:
        logger.warning("sheets %s failed: %s", op, e)
        raise StoreError(f"Google Sheets rejected {op}: {e}") from e


class SheetsBackend(DocumentBackend):
    """
    Google Sheets as the document store: one worksheet per collection per
    identity, id in column A, header row 1.

    Sheets has no push channel, so snapshots are delivered after each write
    made through this backend and whenever refresh() is called. A failed
    re-read after a committed write is logged, not raised; the next
    refresh() catches up.
    """

    def __init__(self, spreadsheet, clock: Optional[Callable[[], str]] = None):
        self._sh = spreadsheet
        self._clock = clock or utc_now_iso
        self._ws_cache: dict[str, object] = {}
        self._listeners: dict[tuple[str, str], list[SnapshotListener]] = {}

    def get_or_create_worksheet(self, tab_name: str, headers: list[str]):
        """
        Cached per backend to avoid repeated fetch_sheet_metadata calls.
        """
        if tab_name in self._ws_cache:
            return self._ws_cache[tab_name]

        try:
            ws = self._sh.worksheet(tab_name)  # this triggers metadata read (expensive)
        except WorksheetNotFound:
            ws = self._sh.add_worksheet(title=tab_name, rows=1000, cols=len(headers))
            logger.info("sheets created worksheet %s", tab_name)

        ensure_headers(ws, headers)
        self._ws_cache[tab_name] = ws
        return ws

    def _worksheet(self, scope: str, collection: str):
        check_collection(collection)
        return self.get_or_create_worksheet(tab_title(scope, collection), COLLECTION_HEADERS[collection])

    def _records(self, ws) -> list[dict]:
        # keep every cell as text; ids and dates must not be numericised
        return ws.get_all_records(numericise_ignore=["all"])

    # -----------------------------
    # Reads / subscriptions
    # -----------------------------
    def load(self, scope: str, collection: str) -> Snapshot:
        with sheets_errors("load"):
            ws = self._worksheet(scope, collection)
            return [r for r in self._records(ws) if str(r.get("id", "")).strip()]

    def subscribe(self, scope: str, collection: str, listener: SnapshotListener) -> Unsubscribe:
        key = (scope, collection)
        snapshot = self.load(scope, collection)
        self._listeners.setdefault(key, []).append(listener)
        listener(snapshot)

        def _unsubscribe() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)

        return _unsubscribe

    def listener_count(self) -> int:
        return sum(len(v) for v in self._listeners.values())

    def _publish(self, scope: str, collection: str) -> None:
        listeners = list(self._listeners.get((scope, collection), []))
        if not listeners:
            return
        snapshot = self.load(scope, collection)
        for listener in listeners:
            listener(snapshot)

    def _publish_after_write(self, scope: str, collection: str) -> None:
        # the write is committed at this point; never report it as failed
        try:
            self._publish(scope, collection)
        except StoreError as e:
            logger.warning("sheets re-read of %s after write failed, waiting for refresh: %s", collection, e)

    def refresh(self) -> None:
        """Re-read every subscribed worksheet and deliver fresh snapshots."""
        for scope, collection in [k for k, v in self._listeners.items() if v]:
            self._publish(scope, collection)

    # -----------------------------
    # Writes
    # -----------------------------
    def create(self, scope: str, collection: str, data: dict) -> str:
        with sheets_errors("create"):
            ws = self._worksheet(scope, collection)
            headers = COLLECTION_HEADERS[collection]

            doc = dict(data)
            doc["id"] = uuid.uuid4().hex
            doc["created_at_utc"] = self._clock()
            row = [_cell(doc.get(h)) for h in headers]
            ws.append_row(row, value_input_option="RAW")

        self._publish_after_write(scope, collection)
        return doc["id"]

    def update(self, scope: str, collection: str, doc_id: str, fields: dict) -> None:
        with sheets_errors("update"):
            ws = self._worksheet(scope, collection)
            headers = COLLECTION_HEADERS[collection]

            records = self._records(ws)
            ids = [str(r.get("id", "")) for r in records]
            if doc_id not in ids:
                raise NotFoundError(f"{collection}/{doc_id} does not exist")
            i = ids.index(doc_id)

            merged = dict(records[i])
            merged.update(fields)
            merged["id"] = doc_id
            merged["updated_at_utc"] = self._clock()
            row = [_cell(merged.get(h)) for h in headers]
            ws.update(range_name=f"A{i + 2}", values=[row], value_input_option="RAW")

        self._publish_after_write(scope, collection)

    def delete(self, scope: str, collection: str, doc_id: str) -> None:
        with sheets_errors("delete"):
            ws = self._worksheet(scope, collection)
            col = ws.col_values(1)  # includes header
            if doc_id not in col[1:]:
                raise NotFoundError(f"{collection}/{doc_id} does not exist")
            ws.delete_rows(col.index(doc_id, 1) + 1)

        self._publish_after_write(scope, collection)

    def batch_delete(self, scope: str, collection: str, doc_ids: Iterable[str]) -> None:
        ids = set(doc_ids)
        with sheets_errors("batch_delete"):
            ws = self._worksheet(scope, collection)
            col = ws.col_values(1)

        # bottom-up so earlier deletes don't shift later row indices
        rows = sorted((n for n, v in enumerate(col[1:], start=2) if v in ids), reverse=True)
        if not rows:
            return

        requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": ws.id,
                        "dimension": "ROWS",
                        "startIndex": r - 1,
                        "endIndex": r,
                    }
                }
            }
            for r in rows
        ]
        # spreadsheets.batchUpdate applies all requests or none
        try:
            self._sh.batch_update({"requests": requests})
        except SHEETS_ERRORS as e:
            logger.warning("sheets batch delete of %d rows failed: %s", len(rows), e)
            raise BatchError(f"Batch delete of {len(ids)} {collection} failed: {e}", sorted(ids)) from e

        self._publish_after_write(scope, collection)
