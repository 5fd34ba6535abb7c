"""Centralized constants for the cadence scheduling engine.

All bounds and defaults live here so the scheduler, the memory model and
the property tests import from a single source of truth.
"""

# ---------- Ease ----------
EASE_SEED = 2.5
EASE_MIN = 1.3
EASE_MAX = 5.0
EASE_LAPSE_PENALTY = 0.2
EASE_HARD_PENALTY = 0.15
EASE_EASY_BONUS = 0.15

# ---------- Difficulty (1-10 scale) ----------
DIFFICULTY_MIN = 1.0
DIFFICULTY_MAX = 10.0
DIFFICULTY_DEFAULT = 5.0
DIFFICULTY_LAPSE_STEP = 1.0
# Success nudges, indexed by rating value (2=Hard, 3=Good, 4=Easy)
DIFFICULTY_SUCCESS_STEPS = {2: 0.05, 3: 0.1, 4: 0.2}

# ---------- Stability (days) ----------
STABILITY_MIN = 0.1
STABILITY_MAX = 36500.0
# Initial stability by first rating (1=Again .. 4=Easy)
INITIAL_STABILITY = {1: 0.4872, 2: 1.4003, 3: 3.7145, 4: 13.8206}
# Initial difficulty: D0(G) = INITIAL_DIFFICULTY_BASE - (G - 3) * INITIAL_DIFFICULTY_STEP
INITIAL_DIFFICULTY_BASE = 5.1625
INITIAL_DIFFICULTY_STEP = 1.2298

# ---------- Forgetting curve ----------
DECAY = -0.5
FACTOR = 19 / 81
DEFAULT_DESIRED_RETENTION = 0.9

# ---------- Stability growth / decay weights ----------
SUCCESS_GROWTH_WEIGHT = 1.6076  # exp(w8)
SUCCESS_STABILITY_POWER = 0.1192
SUCCESS_RETRIEVABILITY_WEIGHT = 1.0178
HARD_PENALTY = 0.2961
EASY_BONUS = 2.6
LAPSE_WEIGHT = 1.9395
LAPSE_DIFFICULTY_POWER = 0.11
LAPSE_STABILITY_POWER = 0.29605
LAPSE_RETRIEVABILITY_WEIGHT = 2.2698
LAPSE_STABILITY_CAP = 0.5
SHORT_TERM_WEIGHT = 0.5425
SHORT_TERM_OFFSET = 0.0912

# ---------- Intervals ----------
MIN_REVIEW_INTERVAL = 1
DEFAULT_MAXIMUM_INTERVAL = 36500
EASY_INTERVAL_BONUS = 1.3
MATURE_INTERVAL_DAYS = 21
MINUTES_PER_DAY = 24 * 60
SECONDS_PER_DAY = 86400.0

# ---------- Learning ladders (minutes) ----------
DEFAULT_LEARNING_STEPS = (1, 10)
DEFAULT_RELEARNING_STEPS = (10,)

# ---------- Fuzz ----------
FUZZ_RANGE = 0.05
DEFAULT_FUZZ_SEED = 0

# ---------- Persistence ----------
DEFAULT_MAX_WRITE_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 0.5  # seconds
MAX_RETRY_DELAY = 5.0  # seconds
BREAKER_FAILURE_THRESHOLD = 5
BREAKER_RESET_SECONDS = 30.0
REQUEST_TIMEOUT = 30.0
DEFAULT_REMOTE_TABLE = "flashcards"

# ---------- Topic performance ----------
STRONG_RETENTION = 0.8
MODERATE_RETENTION = 0.6
