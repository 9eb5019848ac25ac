from dataclasses import dataclass
from typing import Optional

from classlog.config import DEFAULT_FOLDER
from classlog.models.student import _opt_str


def _whole_number(v) -> Optional[int]:
    if isinstance(v, bool) or v is None:
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v) if v.is_integer() else None
    s = str(v).strip()
    if not s:
        return None
    try:
        f = float(s)
    except ValueError:
        return None
    return int(f) if f.is_integer() else None


def _to_package_no(v) -> Optional[int]:
    # Sheets cells come back as strings; "", junk and anything below 1 mean no package
    n = _whole_number(v)
    return n if n is not None and n >= 1 else None


def _to_duration(v) -> float:
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return float(v)
    try:
        return float(str(v).strip().replace(",", ""))
    except (TypeError, ValueError):
        return 0.0


# -----------------------------
# Data model
# -----------------------------
@dataclass(frozen=True)
class ClassSession:
    id: str
    student_id: str
    folder: Optional[str]        # None for legacy untagged records
    date: str                    # YYYY-MM-DD
    duration: float              # hours
    note: Optional[str] = None
    package_no: Optional[int] = None
    created_at_utc: str = ""
    updated_at_utc: str = ""

    @property
    def effective_folder(self) -> str:
        return self.folder or DEFAULT_FOLDER

    @property
    def effective_package_no(self) -> int:
        return self.package_no if self.package_no is not None and self.package_no >= 1 else 1

    @staticmethod
    def new_record(
        *,
        folder: str,
        student_id: str,
        date: str,
        duration: float,
        note: Optional[str] = None,
        package_no: Optional[int] = None,
    ) -> dict:
        record = {
            "student_id": student_id,
            "folder": folder,
            "date": date,
            "duration": float(duration),
            "note": _opt_str(note),
        }
        if package_no is not None:
            record["package_no"] = package_no
        return record

    @staticmethod
    def from_record(record: dict) -> "ClassSession":
        folder = record.get("folder")
        folder = str(folder).strip() if folder not in (None, "") else None
        return ClassSession(
            id=str(record.get("id", "")),
            student_id=str(record.get("student_id", "") or ""),
            folder=folder or None,
            date=str(record.get("date", "") or "").strip(),
            duration=_to_duration(record.get("duration")),
            note=_opt_str(record.get("note")),
            package_no=_to_package_no(record.get("package_no")),
            created_at_utc=str(record.get("created_at_utc", "") or ""),
            updated_at_utc=str(record.get("updated_at_utc", "") or ""),
        )

