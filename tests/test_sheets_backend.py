from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from google.auth.exceptions import TransportError
from gspread.exceptions import APIError
from requests.exceptions import ConnectionError as RequestsConnectionError

from classlog.config import SESSIONS_HEADERS, STUDENTS_HEADERS
from classlog.coordinator import MutationCoordinator
from classlog.errors import BatchError, NotFoundError, StoreError
from classlog.repositories.sheets_backend import SheetsBackend, tab_title
from classlog.store import EntityStore

from tests.fakes import FakeSpreadsheet, make_clock


def _api_error() -> APIError:
    response = MagicMock()
    response.status_code = 503
    response.json.return_value = {"error": {"code": 503, "message": "backend unavailable", "status": "UNAVAILABLE"}}
    return APIError(response)


@pytest.fixture()
def sheets(spreadsheet: FakeSpreadsheet) -> SheetsBackend:
    return SheetsBackend(spreadsheet, clock=make_clock())


def test_worksheets_are_per_identity_with_headers(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    sheets.create("u1", "students", {"name": "Amy", "note": None})
    sheets.load("u2", "sessions")

    assert tab_title("u1", "students") == "Students_u1"
    assert spreadsheet.worksheets["Students_u1"].rows[0] == STUDENTS_HEADERS
    assert spreadsheet.worksheets["Sessions_u2"].rows == [SESSIONS_HEADERS]
    assert sheets.load("u2", "students") == []


def test_create_then_load_keeps_text_cells(sheets: SheetsBackend) -> None:
    doc_id = sheets.create(
        "u1", "sessions", {"student_id": "s1", "folder": "2", "date": "2024-03-05", "duration": 1.5, "package_no": 1}
    )
    (rec,) = sheets.load("u1", "sessions")
    assert rec["id"] == doc_id
    assert rec["date"] == "2024-03-05"
    assert rec["note"] == ""
    assert rec["created_at_utc"] == "2024-03-01T00:00:00+00:00"


def test_update_merges_row(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    doc_id = sheets.create("u1", "sessions", {"student_id": "s1", "folder": "1", "date": "2024-03-05", "duration": 1})
    sheets.update("u1", "sessions", doc_id, {"note": "moved", "duration": 2.0})

    (rec,) = sheets.load("u1", "sessions")
    assert rec["note"] == "moved"
    assert rec["duration"] == "2.0"
    assert rec["date"] == "2024-03-05"
    assert rec["updated_at_utc"]
    assert "update A2" in spreadsheet.worksheets["Sessions_u1"].calls

    with pytest.raises(NotFoundError):
        sheets.update("u1", "sessions", "missing", {"note": "x"})


def test_delete_row(sheets: SheetsBackend) -> None:
    a = sheets.create("u1", "students", {"name": "Amy"})
    b = sheets.create("u1", "students", {"name": "Bob"})
    sheets.delete("u1", "students", a)
    assert [r["id"] for r in sheets.load("u1", "students")] == [b]
    with pytest.raises(NotFoundError):
        sheets.delete("u1", "students", a)


def test_batch_delete_is_one_request_bottom_up(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    ids = [sheets.create("u1", "students", {"name": f"n{i}"}) for i in range(5)]
    sheets.batch_delete("u1", "students", [ids[1], ids[3], "unknown"])

    (body,) = spreadsheet.batch_requests
    starts = [r["deleteDimension"]["range"]["startIndex"] for r in body["requests"]]
    assert starts == [4, 2]
    assert [r["name"] for r in sheets.load("u1", "students")] == ["n0", "n2", "n4"]


def test_batch_delete_failure_changes_nothing(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    ids = [sheets.create("u1", "students", {"name": f"n{i}"}) for i in range(3)]
    spreadsheet.fail_batch = _api_error()

    with pytest.raises(BatchError):
        sheets.batch_delete("u1", "students", ids)
    assert len(sheets.load("u1", "students")) == 3


def test_api_errors_become_store_errors(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    sheets.load("u1", "students")
    ws = spreadsheet.worksheets["Students_u1"]
    ws.append_row = MagicMock(side_effect=_api_error())

    with pytest.raises(StoreError) as exc:
        sheets.create("u1", "students", {"name": "Amy"})
    assert isinstance(exc.value.__cause__, APIError)


def test_store_over_sheets_end_to_end(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    store = EntityStore(sheets)
    store.open("u1")
    coordinator = MutationCoordinator(store)

    amy = store.add_student("Amy")
    for day in range(1, 12):
        coordinator.log_session("3", amy, f"2024-03-{day:02d}", 1.0)

    assert [s.package_no for s in store.sessions] == [1] * 10 + [2]
    assert all(isinstance(s.duration, float) for s in store.sessions)

    coordinator.delete_student(amy)
    assert store.students == ()
    assert store.sessions == ()


def test_refresh_picks_up_outside_edits(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    store = EntityStore(sheets)
    store.open("u1")
    ws = spreadsheet.worksheets["Students_u1"]
    ws.rows.append(["abc", "Typed in the sheet", "", ""])

    assert store.students == ()
    sheets.refresh()
    assert [s.name for s in store.students] == ["Typed in the sheet"]


def test_network_loss_becomes_store_error(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    sheets.load("u1", "students")
    ws = spreadsheet.worksheets["Students_u1"]
    ws.append_row = MagicMock(side_effect=RequestsConnectionError("net down"))

    with pytest.raises(StoreError) as exc:
        sheets.create("u1", "students", {"name": "Amy"})
    assert isinstance(exc.value.__cause__, RequestsConnectionError)


def test_token_refresh_failure_during_batch_is_batch_error(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    ids = [sheets.create("u1", "students", {"name": f"n{i}"}) for i in range(2)]
    spreadsheet.fail_batch = TransportError("token refresh failed")

    with pytest.raises(BatchError):
        sheets.batch_delete("u1", "students", ids)
    assert len(sheets.load("u1", "students")) == 2


def test_committed_batch_delete_survives_failed_reread(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    store = EntityStore(sheets)
    store.open("u1")
    amy = store.add_student("Amy")
    ids = [store.add_session("1", amy, "2024-03-05", 1.0) for _ in range(3)]

    ws = spreadsheet.worksheets["Sessions_u1"]
    ws.get_all_records = MagicMock(side_effect=_api_error())
    store.delete_sessions(ids)

    assert ws.col_values(1) == ["id"]
    # local view is stale until the next successful read
    assert len(store.sessions) == 3
    del ws.get_all_records
    sheets.refresh()
    assert store.sessions == ()


def test_committed_create_survives_failed_reread(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    store = EntityStore(sheets)
    store.open("u1")
    ws = spreadsheet.worksheets["Students_u1"]
    ws.get_all_records = MagicMock(side_effect=RequestsConnectionError("net down"))

    student_id = store.add_student("Amy")

    assert ws.col_values(1) == ["id", student_id]
    del ws.get_all_records
    sheets.refresh()
    assert [s.id for s in store.students] == [student_id]


def test_zero_package_cell_still_numbers_from_one(sheets: SheetsBackend, spreadsheet: FakeSpreadsheet) -> None:
    store = EntityStore(sheets)
    store.open("u1")
    coordinator = MutationCoordinator(store)
    amy = store.add_student("Amy")
    ws = spreadsheet.worksheets["Sessions_u1"]
    ws.rows.append(["old1", amy, "2", "2024-02-01", "1", "", "0", "", ""])
    sheets.refresh()

    coordinator.log_session("2", amy, "2024-03-01", 1.0)
    assert [s.package_no for s in store.sessions] == [None, 1]


def test_closing_the_store_releases_backend_listeners(sheets: SheetsBackend) -> None:
    for _ in range(5):
        store = EntityStore(sheets)
        store.open("default")
        store.close()
    assert sheets.listener_count() == 0

    store = EntityStore(sheets)
    store.open("default")
    store.open("other")
    assert sheets.listener_count() == 2
