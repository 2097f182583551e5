"""Default configuration settings for context-tiers."""

from __future__ import annotations

# --- Token Budget ---
DEFAULT_MAX_CONTEXT_TOKENS = 8192  # Used when neither settings nor the model registry know better
DEFAULT_TOKENIZER_MODEL = "gpt-4"
GEMINI_CHARS_PER_TOKEN = 3.8
GEMINI_MIXED_CHARS_PER_TOKEN = 2.8
GEMINI_ARABIC_CHARS_PER_TOKEN = 2.51
FALLBACK_CHARS_PER_TOKEN = 4  # Estimate used when a tokenizer fails

# --- Zones ---
RECENT_ZONE_TOKENS = 35_000
MID_TERM_ZONE_TOKENS = 40_000
MID_TERM_RETENTION = 0.40
ARCHIVE_RETENTION = 0.20

# --- Chunking / Dispatch ---
MAX_CHUNK_CHARS = 12_000
MAX_CHUNK_ENTRIES = 50
MAX_CONCURRENT_CHUNKS = 3
MIN_VIABLE_CHARS = 10
MIN_OUTPUT_FRACTION = 0.1

# --- Backends ---
DEFAULT_BACKEND_TIMEOUT = 60.0
DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_OPENROUTER_MODEL = "google/gemini-flash-1.5"
DEFAULT_KOBOLDCPP_URL = "http://localhost:5001"
DEFAULT_LLM_BASE_URL = "http://localhost:11434/v1"

# --- Retry ---
RETRY_MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0
RETRY_MULTIPLIER = 2.0
RETRY_MAX_DELAY = 30.0

# --- Telemetry ---
TELEMETRY_MAX_ENTRIES = 100
TELEMETRY_RETENTION_DAYS = 7
TELEMETRY_CLEANUP_INTERVAL = 3600.0
TELEMETRY_PREVIEW_CHARS = 500

# --- Insights thresholds ---
INSIGHT_MIN_SUCCESS_RATE = 80.0
INSIGHT_MAX_FALLBACK_RATE = 20.0
INSIGHT_SLOW_DURATION = 15.0  # seconds
INSIGHT_FAST_DURATION = 3.0  # seconds
INSIGHT_MIN_COMPRESSION = 25.0  # percent of input kept
INSIGHT_MAX_COMPRESSION = 60.0
