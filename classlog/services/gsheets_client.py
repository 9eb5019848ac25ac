import streamlit as st
import json
import gspread
from google.oauth2.service_account import Credentials

from classlog.repositories.sheets_backend import SheetsBackend

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


# -----------------------------
# Google Sheets client (safe to cache)
# -----------------------------
@st.cache_resource
def get_gsheets_client():
    creds_dict = st.secrets["GOOGLE_SHEETS_CREDENTIALS"]
    if isinstance(creds_dict, str):
        creds_dict = json.loads(creds_dict)

    credentials = Credentials.from_service_account_info(dict(creds_dict), scopes=SCOPES)
    return gspread.authorize(credentials)


@st.cache_resource
def get_spreadsheet():
    client = get_gsheets_client()
    sheet_id = st.secrets["GOOGLE_SHEET_ID"]
    return client.open_by_key(sheet_id)


def new_sheets_backend() -> SheetsBackend:
    # not cached: each browser session keeps its own backend (listeners and
    # worksheet cache) in st.session_state; only the spreadsheet is shared
    return SheetsBackend(get_spreadsheet())
