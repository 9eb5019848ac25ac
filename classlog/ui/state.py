# classlog/ui/state.py
from datetime import date

import streamlit as st

from classlog.config import DEFAULT_FOLDER
from classlog.coordinator import MutationCoordinator
from classlog.identity import IdentityProvider
from classlog.store import EntityStore
from classlog.utils.dates import today_local

# Centralize keys to avoid typos across files
KEY_LEDGER = "_ledger"
KEY_DO_RESET = "_do_reset"

KEY_FOLDER = "log_folder"
KEY_STUDENT = "log_student_id"
KEY_DATE = "log_date"
KEY_DURATION = "log_duration"
KEY_NOTE = "log_note"


class Ledger:
    """Per-browser-session wiring of identity, store and coordinator."""

    def __init__(self, backend):
        self.backend = backend
        self.identity = IdentityProvider()
        self.store = EntityStore(backend)
        self.coordinator = MutationCoordinator(self.store)
        self._unbind = self.store.bind(self.identity)


def get_ledger(backend_factory) -> Ledger:
    if KEY_LEDGER not in st.session_state:
        st.session_state[KEY_LEDGER] = Ledger(backend_factory())
    return st.session_state[KEY_LEDGER]


def init_state_if_missing() -> None:
    """Call at the top of the page before rendering widgets."""
    st.session_state.setdefault(KEY_FOLDER, DEFAULT_FOLDER)
    st.session_state.setdefault(KEY_STUDENT, None)
    st.session_state.setdefault(KEY_DATE, date.fromisoformat(today_local()))
    st.session_state.setdefault(KEY_DURATION, 1.0)
    st.session_state.setdefault(KEY_NOTE, "")


def mark_reset() -> None:
    st.session_state[KEY_DO_RESET] = True


def apply_reset_if_marked() -> None:
    """
    'Reset on next run' pattern: call at the very top of the page BEFORE
    creating widgets. Folder and date are kept for the next entry.
    """
    if st.session_state.get(KEY_DO_RESET):
        st.session_state[KEY_STUDENT] = None
        st.session_state[KEY_DURATION] = 1.0
        st.session_state[KEY_NOTE] = ""
        st.session_state[KEY_DO_RESET] = False
