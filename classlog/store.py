# classlog/store.py
import logging
from typing import Callable, Iterable, Optional

from classlog.config import FOLDERS
from classlog.errors import BatchError, StoreError, ValidationError
from classlog.identity import IdentityProvider
from classlog.models.session import ClassSession
from classlog.models.student import Student
from classlog.repositories.base import DocumentBackend, Snapshot, Unsubscribe
from classlog.utils.dates import parse_iso_date

logger = logging.getLogger(__name__)

SESSION_FIELDS = {"folder", "student_id", "date", "duration", "note", "package_no"}

StoreListener = Callable[[str], None]


# -----------------------------
# Input checks (run before any backend call)
# -----------------------------
def _check_folder(folder) -> str:
    if folder not in FOLDERS:
        raise ValidationError(f"Unknown folder {folder!r}; expected one of {FOLDERS}")
    return folder


def _check_date(value) -> str:
    d = parse_iso_date(value)
    if d is None:
        raise ValidationError(f"Invalid date {value!r}; expected YYYY-MM-DD")
    return d.isoformat()


def _check_duration(value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Duration must be a number of hours, got {value!r}")
    if not value > 0:
        raise ValidationError("Duration must be > 0 hours.")
    return float(value)


def _package_no_or_none(value) -> Optional[int]:
    # only whole numbers are written; anything else is left off the record
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        return None
    if value < 1:
        raise ValidationError(f"Package number must be >= 1, got {value}")
    return value


class _LiveFeed:
    """Subscriptions for one identity. Closed feeds are never reopened."""

    def __init__(self, identity: str):
        self.identity = identity
        self.closed = False
        self._unsubscribes: list[Unsubscribe] = []

    def add(self, unsubscribe: Unsubscribe) -> None:
        self._unsubscribes.append(unsubscribe)

    def close(self) -> None:
        self.closed = True
        unsubscribes, self._unsubscribes = self._unsubscribes, []
        for unsubscribe in unsubscribes:
            unsubscribe()


class EntityStore:
    """
    Local copy of the signed-in identity's students and sessions, kept
    current by the backend's snapshot feed.

    Mutations go straight to the backend; local collections only change
    when a snapshot arrives, so a rejected write leaves them untouched.
    """

    def __init__(self, backend: DocumentBackend):
        self._backend = backend
        self._feed: Optional[_LiveFeed] = None
        self._students: tuple[Student, ...] = ()
        self._sessions: tuple[ClassSession, ...] = ()
        self._listeners: list[StoreListener] = []

    # -----------------------------
    # Lifecycle
    # -----------------------------
    @property
    def identity(self) -> Optional[str]:
        return self._feed.identity if self._feed else None

    def open(self, identity: str) -> None:
        self.close()
        feed = _LiveFeed(identity)
        self._feed = feed
        logger.info("store opening feed")
        try:
            for collection in ("students", "sessions"):
                feed.add(
                    self._backend.subscribe(
                        identity,
                        collection,
                        lambda snapshot, c=collection: self._on_snapshot(feed, c, snapshot),
                    )
                )
        except StoreError:
            logger.warning("store failed to open feed")
            self.close()
            raise

    def close(self) -> None:
        feed, self._feed = self._feed, None
        if feed is None:
            return
        feed.close()
        self._students = ()
        self._sessions = ()
        logger.info("store closed feed")
        self._notify("students")
        self._notify("sessions")

    def bind(self, identity_provider: IdentityProvider) -> Callable[[], None]:
        """Follow sign-in / sign-out, re-scoping on every change."""

        def _follow(uid: Optional[str]) -> None:
            if uid:
                self.open(uid)
            else:
                self.close()

        unbind = identity_provider.on_change(_follow)
        if identity_provider.current != self.identity:
            _follow(identity_provider.current)
        return unbind

    def _on_snapshot(self, feed: _LiveFeed, collection: str, snapshot: Snapshot) -> None:
        if feed.closed or feed is not self._feed:
            logger.debug("store dropped %s snapshot from closed feed", collection)
            return
        if collection == "students":
            self._students = tuple(Student.from_record(r) for r in snapshot)
        else:
            self._sessions = tuple(ClassSession.from_record(r) for r in snapshot)
        logger.debug("store %s snapshot n=%d", collection, len(snapshot))
        self._notify(collection)

    # -----------------------------
    # Reads
    # -----------------------------
    @property
    def students(self) -> tuple[Student, ...]:
        return self._students

    @property
    def sessions(self) -> tuple[ClassSession, ...]:
        return self._sessions

    def get_student(self, student_id: str) -> Optional[Student]:
        for s in self._students:
            if s.id == student_id:
                return s
        return None

    def student_sessions(self, student_id: str) -> list[ClassSession]:
        return [s for s in self._sessions if s.student_id == student_id]

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, collection: str) -> None:
        for listener in list(self._listeners):
            listener(collection)

    def _scope(self) -> str:
        if self._feed is None:
            raise StoreError("Not signed in; the store is closed.")
        return self._feed.identity

    def _check_student(self, student_id) -> str:
        if not isinstance(student_id, str) or self.get_student(student_id) is None:
            raise ValidationError(f"Unknown student {student_id!r}")
        return student_id

    # -----------------------------
    # Students
    # -----------------------------
    def add_student(self, name: str, note: Optional[str] = None) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Student name is required.")
        scope = self._scope()
        student_id = self._backend.create(scope, "students", Student.new_record(name=name, note=note))
        logger.info("store added student id=%s", student_id)
        return student_id

    def delete_student(self, student_id: str) -> None:
        """Removes the student only; dependent sessions are the caller's job."""
        scope = self._scope()
        self._backend.delete(scope, "students", student_id)
        logger.info("store deleted student id=%s", student_id)

    # -----------------------------
    # Sessions
    # -----------------------------
    def add_session(
        self,
        folder: str,
        student_id: str,
        date,
        duration: float,
        note: Optional[str] = None,
        package_no: Optional[int] = None,
    ) -> str:
        record = ClassSession.new_record(
            folder=_check_folder(folder),
            student_id=self._check_student(student_id),
            date=_check_date(date),
            duration=_check_duration(duration),
            note=note,
            package_no=_package_no_or_none(package_no),
        )
        scope = self._scope()
        session_id = self._backend.create(scope, "sessions", record)
        logger.info(
            "store added session id=%s folder=%s package_no=%s", session_id, folder, record.get("package_no")
        )
        return session_id

    def update_session(self, session_id: str, fields: dict) -> None:
        unknown = set(fields) - SESSION_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {sorted(unknown)}")

        clean = {}
        for key, value in fields.items():
            if key == "folder":
                clean[key] = _check_folder(value)
            elif key == "student_id":
                clean[key] = self._check_student(value)
            elif key == "date":
                clean[key] = _check_date(value)
            elif key == "duration":
                clean[key] = _check_duration(value)
            elif key == "package_no":
                # non-numeric values are left out of the merge, never cleared
                package_no = _package_no_or_none(value)
                if package_no is not None:
                    clean[key] = package_no
            else:
                clean[key] = value if value else None
        if not clean:
            raise ValidationError("Nothing to update.")

        scope = self._scope()
        self._backend.update(scope, "sessions", session_id, clean)
        logger.info("store updated session id=%s fields=%s", session_id, sorted(clean))

    def delete_session(self, session_id: str) -> None:
        scope = self._scope()
        self._backend.delete(scope, "sessions", session_id)
        logger.info("store deleted session id=%s", session_id)

    def delete_sessions(self, session_ids: Iterable[str]) -> None:
        """All-or-nothing; raises BatchError if the commit fails."""
        ids = list(dict.fromkeys(session_ids))
        if not ids:
            return
        scope = self._scope()
        try:
            self._backend.batch_delete(scope, "sessions", ids)
        except BatchError:
            raise
        except StoreError as e:
            raise BatchError(f"Batch delete of {len(ids)} sessions failed: {e}", ids) from e
        logger.info("store batch deleted sessions n=%d", len(ids))
