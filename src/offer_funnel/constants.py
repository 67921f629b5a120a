"""Funnel constants shared across the SDK.

Several constants can be overridden via environment variables so that
deployments can adjust behaviour without code changes.
"""

import os

# Where disqualified visitors go when the step has no disqualifyRedirectUrl.
# Overridable via DEFAULT_DISQUALIFY_URL env var.
DEFAULT_DISQUALIFY_URL = os.getenv("DEFAULT_DISQUALIFY_URL", "/not-qualified")

# Number of digits a phone answer must contain after stripping formatting.
# Overridable via PHONE_DIGITS env var.
PHONE_DIGITS = int(os.getenv("PHONE_DIGITS", "10"))

# Sessions idle longer than this are eligible for the abandon reaper.
# Overridable via SESSION_IDLE_MINUTES env var.
SESSION_IDLE_MINUTES = int(os.getenv("SESSION_IDLE_MINUTES", "30"))

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

# Quality score weights (sum to 1.0).
QUALITY_COMPLETION_WEIGHT = 0.6
QUALITY_TIME_CAP = 0.2
QUALITY_TEXT_WEIGHT = 0.2
# Average seconds per answer that earns the full time component.
QUALITY_TIME_SECONDS = 30

# Routing overrides that end the funnel instead of jumping to a step,
# highest precedence first.
TERMINAL_TARGETS: tuple[str, ...] = ("submit", "end")
