from dataclasses import dataclass
from typing import Optional


def _opt_str(v) -> Optional[str]:
    if v is None:
        return None
    s = str(v)
    return s if s.strip() else None


# -----------------------------
# Data model
# -----------------------------
@dataclass(frozen=True)
class Student:
    id: str
    name: str
    note: Optional[str] = None
    created_at_utc: str = ""

    @staticmethod
    def new_record(*, name: str, note: Optional[str] = None) -> dict:
        """Document payload for a new student; the store adds id and created_at_utc."""
        return {"name": name.strip(), "note": _opt_str(note)}

    @staticmethod
    def from_record(record: dict) -> "Student":
        return Student(
            id=str(record.get("id", "")),
            name=str(record.get("name", "") or ""),
            note=_opt_str(record.get("note")),
            created_at_utc=str(record.get("created_at_utc", "") or ""),
        )
