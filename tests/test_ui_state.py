from __future__ import annotations

import pytest

from classlog.repositories.sheets_backend import SheetsBackend
from classlog.ui import state

from tests.fakes import FakeSpreadsheet


def test_each_browser_session_gets_its_own_backend(monkeypatch: pytest.MonkeyPatch, spreadsheet: FakeSpreadsheet) -> None:
    made: list[SheetsBackend] = []

    def factory() -> SheetsBackend:
        made.append(SheetsBackend(spreadsheet))
        return made[-1]

    monkeypatch.setattr(state.st, "session_state", {})
    first = state.get_ledger(factory)
    assert state.get_ledger(factory) is first

    monkeypatch.setattr(state.st, "session_state", {})
    second = state.get_ledger(factory)

    assert len(made) == 2
    assert first.backend is not second.backend

    first.identity.sign_in("default")
    second.identity.sign_in("default")
    assert first.backend.listener_count() == 2
    assert second.backend.listener_count() == 2

    first.identity.sign_out()
    assert first.backend.listener_count() == 0
    assert second.store.identity == "default"
