"""Centralized constants for the smartcards application.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Weight floor ----------
# No card drops out of the draw by weight alone.
WEIGHT_FLOOR = 0.1

# ---------- Recency ----------
RECENCY_UNSEEN = 2.5
RECENCY_MIN = 0.5
RECENCY_MAX = 4.0
RECENCY_PER_MINUTE = 0.5  # saturates at RECENCY_MAX after 7 minutes
RECENCY_OFFSET = 0.5

# ---------- Novelty ----------
NOVELTY_BOOST = 1.5

# ---------- Accuracy boost ----------
LOW_ACCURACY_THRESHOLD = 0.5
LOW_ACCURACY_BOOST = 2.0
MID_ACCURACY_THRESHOLD = 0.75
MID_ACCURACY_BOOST = 1.3

# ---------- Streak momentum ----------
STREAK_MIN_RUN = 2
LOSING_STREAK_STEP = 0.5
WINNING_STREAK_STEP = 0.3

# ---------- Cards ----------
DEFAULT_TOPIC = "General"

# ---------- Content generation ----------
DEFAULT_GENERATOR_MODEL = "gpt-4o-mini"
DEFAULT_GENERATOR_URL = "https://api.openai.com/v1"
GENERATE_TEMPERATURE = 0.7
GENERATE_MAX_TOKENS = 1500
EXPLAIN_TEMPERATURE = 0.5
EXPLAIN_MAX_TOKENS = 500
ASK_TEMPERATURE = 0.5
ASK_MAX_TOKENS = 600

# ---------- HTTP ----------
REQUEST_TIMEOUT = 30.0
