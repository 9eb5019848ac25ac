import logging
import os

import streamlit as st

from classlog.config import FOLDER_LABELS, FOLDERS
from classlog.errors import LedgerError, StoreError, ValidationError
from classlog.ledger import (
    ALL_STUDENTS,
    available_months,
    filter_by_folder,
    filter_by_month,
    filter_by_student,
    ledger_frame,
    monthly_totals_by_student,
    sort_by_date,
    sort_by_insertion_time,
    student_name,
    total_hours,
)
from classlog.numbering import is_package_folder, package_progress
from classlog.services.gsheets_client import new_sheets_backend
from classlog.ui.state import (
    KEY_DATE,
    KEY_DURATION,
    KEY_FOLDER,
    KEY_NOTE,
    KEY_STUDENT,
    apply_reset_if_marked,
    get_ledger,
    init_state_if_missing,
    mark_reset,
)
from classlog.utils.dates import weekday_label

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

ledger = get_ledger(new_sheets_backend)
store = ledger.store
coordinator = ledger.coordinator


# -----------------------------
# Login
# -----------------------------
def require_password():
    if ledger.identity.current:
        return

    with st.form("login"):
        pw = st.text_input("Password", type="password")
        ok = st.form_submit_button("Login")

    if not ok:
        st.stop()

    if pw == st.secrets["APP_PASSWORD"]:
        try:
            ledger.identity.sign_in(st.secrets.get("APP_USER_ID", "default"))
        except StoreError as e:
            st.error(f"Could not load your data: {e}")
            st.stop()
        st.rerun()
    else:
        logger.warning("login rejected")
        st.error("Incorrect password")
        st.stop()


require_password()

c1, c2 = st.columns([6, 1])
with c2:
    if st.button("Sign out", key="sign_out_btn"):
        ledger.identity.sign_out()
        st.rerun()
with c1:
    if st.button("Refresh", key="refresh_btn"):
        try:
            ledger.backend.refresh()
        except StoreError as e:
            st.error(str(e))

tab_log, tab_history, tab_students = st.tabs(["Log Class", "History", "Students"])


def _student_label(student_id):
    return student_name(store.students, student_id) if student_id else "Select a student..."


with tab_log:
    init_state_if_missing()
    apply_reset_if_marked()

    folder = st.selectbox("Record type", FOLDERS, format_func=FOLDER_LABELS.get, key=KEY_FOLDER)
    student_id = st.selectbox(
        "Student",
        [None] + [s.id for s in store.students],
        format_func=_student_label,
        key=KEY_STUDENT,
    )

    if student_id and is_package_folder(folder):
        pkg, count = package_progress(store.sessions, folder, student_id)
        next_pkg = coordinator.preview_package_number(folder, student_id)
        st.caption(
            f"Will be recorded to Package {next_pkg} "
            f"(Package {pkg} has {count} sessions; a new package starts every 10)"
        )

    class_date = st.date_input("Class date", key=KEY_DATE)
    st.caption(weekday_label(class_date.isoformat()) if class_date else "")
    duration = st.number_input("Duration (hours)", min_value=0.0, step=0.5, key=KEY_DURATION)
    note = st.text_input("Note (optional)", placeholder="e.g. Rumba Basics", key=KEY_NOTE)

    if st.button("Log class", type="primary", disabled=not student_id, key="log_class_btn"):
        try:
            coordinator.log_session(folder, student_id, class_date, float(duration), note=note or None)
        except ValidationError as e:
            st.error(str(e))
        except LedgerError as e:
            st.error(f"Could not save: {e}")
        else:
            st.success("Class logged successfully!")
            mark_reset()
            st.rerun()


with tab_history:
    f1, f2, f3, f4 = st.columns(4)
    with f1:
        h_folder = st.selectbox("Record type", FOLDERS, format_func=FOLDER_LABELS.get, key="h_folder")
    with f2:
        h_student = st.selectbox(
            "Student",
            [ALL_STUDENTS] + [s.id for s in store.students],
            format_func=lambda sid: "All students" if sid == ALL_STUDENTS else _student_label(sid),
            key="h_student",
        )

    rows = filter_by_student(filter_by_folder(store.sessions, h_folder), h_student)
    months = available_months(rows)
    with f3:
        h_month = st.selectbox("Month", months, index=0 if months else None, key="h_month")
    with f4:
        h_order = st.selectbox("Order by", ["Class date", "Entry time"], key="h_order")

    if h_month:
        rows = filter_by_month(rows, h_month)
    rows = sort_by_date(rows) if h_order == "Class date" else sort_by_insertion_time(rows)

    st.metric("Total hours", round(total_hours(rows), 2))

    if not rows:
        st.info("No classes recorded yet.")
    else:
        df = ledger_frame(rows, store.students)
        df.insert(0, "select", False)
        edited = st.data_editor(
            df,
            use_container_width=True,
            hide_index=True,
            disabled=[c for c in df.columns if c != "select"],
            column_config={"id": None},
            key="history_editor",
        )
        selected = edited.loc[edited["select"], "id"].tolist()
        if st.button(f"Delete selected ({len(selected)})", disabled=not selected, key="bulk_delete_btn"):
            try:
                coordinator.bulk_delete_sessions(selected)
            except LedgerError as e:
                st.error(f"Nothing was deleted: {e}")
            else:
                st.rerun()

    if h_month:
        st.subheader(f"Hours by student, {h_month}")
        totals = monthly_totals_by_student(filter_by_folder(store.sessions, h_folder), h_month)
        for sid, hours in totals.items():
            st.write(f"{student_name(store.students, sid)}: {hours:g} h")


with tab_students:
    st.header(f"My Students ({len(store.students)})")

    with st.form("add_student", clear_on_submit=True):
        new_name = st.text_input("Student name")
        new_note = st.text_input("Note (e.g. Level 1)")
        if st.form_submit_button("Add student"):
            try:
                store.add_student(new_name, new_note or None)
            except LedgerError as e:
                st.error(str(e))
            else:
                st.rerun()

    for s in store.students:
        col1, col2 = st.columns([5, 1])
        with col1:
            st.markdown(f"**{s.name}**" + (f"  \n{s.note}" if s.note else ""))
        with col2:
            if st.button("Delete", key=f"del_student_{s.id}"):
                try:
                    coordinator.delete_student(s.id)
                except LedgerError as e:
                    st.error(f"Delete incomplete: {e}")
                else:
                    st.rerun()

    known_ids = {s.id for s in store.students}
    orphans = [x for x in store.sessions if x.student_id not in known_ids]
    if orphans:
        st.warning(f"{len(orphans)} sessions belong to deleted students.")
        if st.button("Clean up", key="sweep_orphans_btn"):
            try:
                coordinator.sweep_orphans()
            except LedgerError as e:
                st.error(str(e))
            else:
                st.rerun()
