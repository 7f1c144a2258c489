"""Centralized constants for the Cadence engine.

All magic numbers and policy thresholds live here so every layer
imports from a single source of truth.
"""

# ---------- Grades ----------
MIN_GRADE = 0
MAX_GRADE = 5
LAPSE_THRESHOLD = 3  # grade < 3 is a lapse
MASTERY_THRESHOLD = 4  # last_grade >= 4 counts as mastered
STREAK_THRESHOLD = 4  # grade >= 4 extends a session streak

# ---------- SM-2 ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
EASE_BONUS = 0.15
EASE_PENALTY = 0.2
EASE_PRECISION = 4  # decimal places kept after each update
FIRST_INTERVAL = 1  # days
SECOND_INTERVAL = 6  # days
LAPSE_INTERVAL = 1  # days
DEFAULT_MAX_INTERVAL = 36500  # ~100 years

# ---------- Aggregation ----------
DEFAULT_HISTORY_DAYS = 30
DEFAULT_RECENT_DAYS = 5

# ---------- Storage ----------
DEFAULT_STORE_TIMEOUT = 5.0  # seconds
