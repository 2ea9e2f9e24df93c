"""File layout and key names used by the storage layer."""

DEFAULT_DATA_DIR: str = "data"
COURSES_DIR_NAME: str = "courses"
COURSE_METADATA_FILE: str = "course.json"
HISTORY_FILE_NAME: str = "history.json"

HISTORY_STORAGE_KEY: str = "mcq_user_history"

WEEK_ID_PREFIX: str = "week"
IDENTIFIER_PATTERN: str = r"[A-Za-z0-9_-]+"
