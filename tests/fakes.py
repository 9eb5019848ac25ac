from __future__ import annotations

import itertools

from gspread.exceptions import WorksheetNotFound


def make_clock(start_minute: int = 0):
    """Strictly increasing UTC timestamps, one minute apart."""
    counter = itertools.count(start_minute)

    def _clock() -> str:
        n = next(counter)
        return f"2024-03-01T{n // 60:02d}:{n % 60:02d}:00+00:00"

    return _clock


# -----------------------------
# Minimal gspread stand-ins
# -----------------------------
class FakeWorksheet:
    def __init__(self, title: str, sheet_id: int):
        self.title = title
        self.id = sheet_id
        self.rows: list[list] = []
        self.calls: list[str] = []

    def get_all_values(self):
        return [[str(c) for c in r] for r in self.rows]

    def get_all_records(self, numericise_ignore=None):
        if not self.rows:
            return []
        headers = self.rows[0]
        return [
            {h: (str(r[i]) if i < len(r) else "") for i, h in enumerate(headers)}
            for r in self.rows[1:]
        ]

    def update(self, range_name=None, values=None, **kwargs):
        self.calls.append(f"update {range_name}")
        start = int(range_name[1:]) - 1
        for offset, row in enumerate(values):
            idx = start + offset
            while len(self.rows) <= idx:
                self.rows.append([])
            self.rows[idx] = list(row)

    def append_row(self, row, value_input_option=None):
        self.calls.append("append_row")
        self.rows.append(list(row))

    def col_values(self, col: int):
        return [str(r[col - 1]) if len(r) >= col else "" for r in self.rows]

    def delete_rows(self, index: int):
        self.calls.append(f"delete_rows {index}")
        del self.rows[index - 1]


class FakeSpreadsheet:
    def __init__(self):
        self.id = "sheet-1"
        self.worksheets: dict[str, FakeWorksheet] = {}
        self.batch_requests: list[dict] = []
        self.fail_batch: Exception | None = None

    def worksheet(self, title: str):
        if title not in self.worksheets:
            raise WorksheetNotFound(title)
        return self.worksheets[title]

    def add_worksheet(self, title: str, rows: int, cols: int):
        ws = FakeWorksheet(title, sheet_id=len(self.worksheets) + 100)
        self.worksheets[title] = ws
        return ws

    def batch_update(self, body: dict):
        if self.fail_batch is not None:
            raise self.fail_batch
        self.batch_requests.append(body)
        by_sheet: dict[int, FakeWorksheet] = {ws.id: ws for ws in self.worksheets.values()}
        for req in body["requests"]:
            rng = req["deleteDimension"]["range"]
            del by_sheet[rng["sheetId"]].rows[rng["startIndex"]]

