# classlog/config.py

STUDENTS_TAB = "Students"
STUDENTS_HEADERS = [
    "id",
    "name",
    "note",
    "created_at_utc",
]

SESSIONS_TAB = "Sessions"
SESSIONS_HEADERS = [
    "id",
    "student_id",
    "folder",                 # "1" / "2" / "3"
    "date",                   # YYYY-MM-DD
    "duration",               # float hours
    "note",
    "package_no",             # int, folders 2/3 only
    "created_at_utc",
    "updated_at_utc",
]

COLLECTION_HEADERS = {
    "students": STUDENTS_HEADERS,
    "sessions": SESSIONS_HEADERS,
}
COLLECTION_TABS = {
    "students": STUDENTS_TAB,
    "sessions": SESSIONS_TAB,
}

# Folder "1" is a plain log; "2" and "3" are split into packages
FOLDERS = ["1", "2", "3"]
DEFAULT_FOLDER = "1"
PACKAGE_FOLDERS = {"2", "3"}
PACKAGE_SIZE = 10

FOLDER_LABELS = {
    "1": "Teaching log",
    "2": "Study log",
    "3": "Package log",
}

UNKNOWN_STUDENT = "Unknown Student"

# Default "today" for the log form; avoids the UTC evening rollover
LOCAL_TIMEZONE = "America/Los_Angeles"
