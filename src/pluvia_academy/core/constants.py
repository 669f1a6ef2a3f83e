"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

SUSPENSION_THRESHOLD = 3
AUTO_JOIN_WINDOW_MINUTES = 120
DEFAULT_MEETING_DURATION_MINUTES = 60
DEFAULT_PUNISHMENT_LOG_LIMIT = 10
DEFAULT_LOCK_WAIT_TIMEOUT_SECONDS = 10
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10

AUTO_TRIGGER_NOTE = "Auto-triggered by attendance system"
RECALCULATION_NOTE = "Recalculated from attendance history"
AUTO_JOIN_NOTE = "Marked present on joining live class"
MANUAL_RESET_NOTE = "Manual reset by lecturer/admin"

ABSENCE_RESTRICTION_REASON = "absent_from_meeting"
