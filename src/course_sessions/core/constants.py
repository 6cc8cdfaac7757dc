"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 500

AUTO_ABSENT_NOTE = "Auto-marked absent - teacher did not take attendance"
SESSION_TITLE_FORMAT = "Session {number} - {course_name}"
