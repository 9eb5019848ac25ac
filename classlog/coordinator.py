# classlog/coordinator.py
import logging
from typing import Iterable, Optional

from classlog.numbering import is_package_folder, next_package_number
from classlog.store import EntityStore

logger = logging.getLogger(__name__)


class MutationCoordinator:
    """
    Write path for the UI: numbering + store calls in the right order.

    Known gap: the package number is computed from the local sessions
    snapshot. Two log_session calls for the same student and folder that
    both run before the first one's snapshot arrives get the same number,
    so a package can end up with 11 sessions. Numbering would have to go
    through a single counter on the store side to close this.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    def preview_package_number(self, folder: str, student_id: str) -> Optional[int]:
        return next_package_number(self.store.sessions, folder, student_id)

    def log_session(
        self,
        folder: str,
        student_id: str,
        date,
        duration: float,
        note: Optional[str] = None,
    ) -> str:
        # evaluated right before the write, never cached
        package_no = next_package_number(self.store.sessions, folder, student_id)
        return self.store.add_session(folder, student_id, date, duration, note=note, package_no=package_no)

    def edit_session(self, session_id: str, updates: dict) -> None:
        """Plain update. package_no is left as-is even when folder or student changes."""
        if "folder" in updates or "student_id" in updates:
            current = next((s for s in self.store.sessions if s.id == session_id), None)
            if current is not None and is_package_folder(current.effective_folder):
                logger.warning(
                    "session %s moved folder/student; package_no=%s kept as-is", session_id, current.package_no
                )
        self.store.update_session(session_id, updates)

    def bulk_delete_sessions(self, session_ids: Iterable[str]) -> None:
        ids = list(session_ids)
        if not ids:
            return
        self.store.delete_sessions(ids)

    def delete_student(self, student_id: str) -> None:
        """
        Student first, then their sessions. These are two separate commits;
        if the second fails the sessions stay behind as orphans until
        sweep_orphans() runs.
        """
        session_ids = [s.id for s in self.store.student_sessions(student_id)]
        self.store.delete_student(student_id)
        self.store.delete_sessions(session_ids)
        logger.info("deleted student %s with %d sessions", student_id, len(session_ids))

    def sweep_orphans(self) -> int:
        """Delete sessions whose student is gone. Safe to run repeatedly."""
        known = {s.id for s in self.store.students}
        orphan_ids = [s.id for s in self.store.sessions if s.student_id not in known]
        if orphan_ids:
            self.store.delete_sessions(orphan_ids)
            logger.info("swept %d orphaned sessions", len(orphan_ids))
        return len(orphan_ids)
