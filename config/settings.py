"""CallPulse runtime settings — environment-driven defaults (overridable via .env)."""

import os
from dotenv import load_dotenv

load_dotenv()

# Trailing analysis window and question follow-up rules
WINDOW_MS = int(os.getenv("CALLPULSE_WINDOW_MS", "120000"))
FOLLOW_UP_DEADLINE_MS = int(os.getenv("CALLPULSE_FOLLOW_UP_DEADLINE_MS", "25000"))
FOLLOW_UP_LOOKAHEAD = int(os.getenv("CALLPULSE_FOLLOW_UP_LOOKAHEAD", "6"))

# Upper bound on chunks accepted per invocation (HTTP + batch)
MAX_CHUNKS = int(os.getenv("CALLPULSE_MAX_CHUNKS", "180"))

# Caller tuning knobs (0-100)
DEFAULT_SENSITIVITY = int(os.getenv("CALLPULSE_DEFAULT_SENSITIVITY", "50"))
DEFAULT_AGGRESSIVENESS = int(os.getenv("CALLPULSE_DEFAULT_AGGRESSIVENESS", "40"))

LOG_LEVEL = os.getenv("CALLPULSE_LOG_LEVEL", "INFO")

# Newest chunks actually fed to the engine after merging
ANALYSIS_CHUNK_BUDGET = int(os.getenv("CALLPULSE_ANALYSIS_CHUNK_BUDGET", "120"))
