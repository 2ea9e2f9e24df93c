"""Tunable policy constants for the practice scheduler.

These are product heuristics, not derived values.
"""

# A question stays flagged until correct answers reach this multiple of incorrect ones.
MASTERY_RATIO: int = 2

# Each flagged question is repeated a uniformly drawn number of times in this range.
MIN_PRACTICE_REPEATS: int = 1
MAX_PRACTICE_REPEATS: int = 2

# Mastery mode never re-inserts a missed question closer than this many entries ahead.
MIN_REQUEUE_GAP: int = 2

# Cross-course mastery sessions sample at most this many questions.
MAX_MASTERY_QUESTIONS: int = 25
