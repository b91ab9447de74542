"""
Constants used across the GameKeeper session and friend system.
"""

import os

# One duration drives both auto-approval of PENDING results and auto-void of
# result-less sessions.
RESOLUTION_WINDOW_HOURS = float(os.getenv("RESOLUTION_WINDOW_HOURS", "24"))

# Session codes: 2 uppercase letters followed by 6 digits (e.g. "AB123456")
SESSION_CODE_LETTERS = 2
SESSION_CODE_DIGITS = 6
SESSION_CODE_LENGTH = SESSION_CODE_LETTERS + SESSION_CODE_DIGITS
SESSION_CODE_MAX_ATTEMPTS = int(os.getenv("SESSION_CODE_MAX_ATTEMPTS", "10"))

# Sentinel winner value for a tied game
DRAW = "DRAW"

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 8
MIN_SEARCH_QUERY_LENGTH = 2

PROFILE_RECENT_SESSIONS = 10
