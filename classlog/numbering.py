# classlog/numbering.py
from typing import Iterable, Optional

from classlog.config import PACKAGE_FOLDERS, PACKAGE_SIZE
from classlog.models.session import ClassSession


def is_package_folder(folder) -> bool:
    return folder in PACKAGE_FOLDERS


def _related(sessions: Iterable[ClassSession], folder: str, student_id: str) -> list:
    return [
        s for s in sessions
        if s.effective_folder == folder and s.student_id == student_id
    ]


def package_progress(
    sessions: Iterable[ClassSession], folder: str, student_id: str
) -> Optional[tuple[int, int]]:
    """
    (current package number, sessions already in it) for a student's
    package-tracked folder; (1, 0) when nothing is logged yet, None for
    plain folders. Legacy sessions without package_no count as package 1.
    """
    if not is_package_folder(folder):
        return None

    related = _related(sessions, folder, student_id)
    if not related:
        return 1, 0

    max_pkg = max(s.effective_package_no for s in related)
    count_in_max = sum(1 for s in related if s.effective_package_no == max_pkg)
    return max_pkg, count_in_max


def next_package_number(
    sessions: Iterable[ClassSession], folder: str, student_id: str
) -> Optional[int]:
    """
    Package number the next session for (student_id, folder) belongs to.

    Packages hold PACKAGE_SIZE sessions; once the highest package is full
    the next session opens a new one. Existing records are never renumbered.
    Must be evaluated against the sessions snapshot at insertion time.
    """
    progress = package_progress(sessions, folder, student_id)
    if progress is None:
        return None

    max_pkg, count_in_max = progress
    if count_in_max >= PACKAGE_SIZE:
        return max_pkg + 1
    return max_pkg
