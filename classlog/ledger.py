# classlog/ledger.py
"""
Read-only views over the sessions collection.

Every function takes the raw snapshot and returns new lists / frames;
nothing here mutates its input or keeps state between calls.
"""
from typing import Iterable, Optional

import pandas as pd

from classlog.config import FOLDER_LABELS, UNKNOWN_STUDENT
from classlog.models.session import ClassSession
from classlog.models.student import Student
from classlog.utils.dates import is_month_key, month_key, parse_iso_date, parse_utc, weekday_label

ALL_STUDENTS = "ALL"

LEDGER_COLUMNS = [
    "id",
    "date",
    "weekday",
    "student",
    "folder",
    "duration",
    "package_no",
    "note",
]


# -----------------------------
# Filters
# -----------------------------
def filter_by_folder(sessions: Iterable[ClassSession], folder: str) -> list[ClassSession]:
    # legacy records without a folder only show up under "1"
    return [s for s in sessions if s.effective_folder == folder]


def filter_by_student(sessions: Iterable[ClassSession], student_id: str) -> list[ClassSession]:
    if student_id == ALL_STUDENTS:
        return list(sessions)
    return [s for s in sessions if s.student_id == student_id]


def filter_by_month(sessions: Iterable[ClassSession], yyyy_mm: str) -> list[ClassSession]:
    return [s for s in sessions if month_key(s.date) == yyyy_mm]


def available_months(sessions: Iterable[ClassSession]) -> list[str]:
    """Distinct YYYY-MM values present, most recent first."""
    months = {month_key(s.date) for s in sessions if parse_iso_date(s.date) is not None}
    return sorted(months, reverse=True)


def default_month(sessions: Iterable[ClassSession]) -> Optional[str]:
    months = available_months(sessions)
    return months[0] if months else None


# -----------------------------
# Aggregates
# -----------------------------
def total_hours(sessions: Iterable[ClassSession]) -> float:
    return float(sum(s.duration for s in sessions))


def monthly_totals_by_student(sessions: Iterable[ClassSession], yyyy_mm: str) -> dict[str, float]:
    """student_id -> hours for the month, largest first (ties by student_id)."""
    if not is_month_key(yyyy_mm):
        return {}
    month = filter_by_month(sessions, yyyy_mm)
    if not month:
        return {}

    df = pd.DataFrame(
        {"student_id": [s.student_id for s in month], "duration": [s.duration for s in month]}
    )
    totals = (
        df.groupby("student_id", sort=True)["duration"]
        .sum()
        .sort_values(ascending=False, kind="mergesort")
    )
    return {str(sid): float(h) for sid, h in totals.items()}


# -----------------------------
# Orderings
# -----------------------------
def sort_by_date(sessions: Iterable[ClassSession], descending: bool = True) -> list[ClassSession]:
    # YYYY-MM-DD sorts correctly as text
    return sorted(sessions, key=lambda s: s.date, reverse=descending)


def sort_by_insertion_time(sessions: Iterable[ClassSession], descending: bool = True) -> list[ClassSession]:
    def _key(s: ClassSession):
        ts = parse_utc(s.created_at_utc)
        return (ts is not None, ts.timestamp() if ts is not None else 0.0)

    return sorted(sessions, key=_key, reverse=descending)


# -----------------------------
# Display helpers
# -----------------------------
def student_name(students: Iterable[Student], student_id: str) -> str:
    for stu in students:
        if stu.id == student_id:
            return stu.name
    return UNKNOWN_STUDENT


def ledger_frame(sessions: Iterable[ClassSession], students: Iterable[Student]) -> pd.DataFrame:
    """
    Display table for the history page. Orphaned sessions (student already
    deleted) get UNKNOWN_STUDENT instead of failing.
    """
    names = {stu.id: stu.name for stu in students}
    rows = [
        {
            "id": s.id,
            "date": s.date,
            "weekday": weekday_label(s.date),
            "student": names.get(s.student_id, UNKNOWN_STUDENT),
            "folder": FOLDER_LABELS.get(s.effective_folder, s.effective_folder),
            "duration": s.duration,
            "package_no": s.package_no,
            "note": s.note or "",
        }
        for s in sessions
    ]
    if not rows:
        return pd.DataFrame(columns=LEDGER_COLUMNS)
    df = pd.DataFrame(rows, columns=LEDGER_COLUMNS)
    df["package_no"] = df["package_no"].astype("Int64")
    return df
