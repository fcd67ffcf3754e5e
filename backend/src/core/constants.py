"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_REASON_LENGTH = 500

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # React dev server (Vite) - localhost
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Slot grid rules
MIN_WINDOW_MINUTES = 30
MIN_SLOT_MINUTES = 10
MIN_TOTAL_SLOTS = 1
MAX_TOTAL_SLOTS = 50
DEFAULT_TOTAL_SLOTS = 6

# Stored schedule dates are pinned to this hour (UTC) of their calendar day.
# Records written at midnight UTC by older releases are still matched by day range.
CANONICAL_SCHEDULE_HOUR_UTC = 12

# Default doctor break window
DEFAULT_BREAK_START = "12:00"
DEFAULT_BREAK_END = "13:00"

# Pagination
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
