"""
Constants and configuration values for the grading assistant.

Defines thresholds, defaults, and system-wide constants.
"""

from typing import Final

# Model call parameters
MAX_TOKENS: Final[int] = 2048
TEMPERATURE: Final[float] = 0.3  # Lower temperature for consistent grading

# API Timeouts (seconds)
API_CONNECT_TIMEOUT: Final[float] = 10.0
API_READ_TIMEOUT: Final[float] = 120.0

# Retry Configuration
MAX_RETRIES: Final[int] = 3
RETRY_BASE_DELAY: Final[float] = 2.0  # seconds; delay = base * 2^(attempt-1)
RETRY_MAX_DELAY: Final[float] = 30.0

# Grading Defaults
DEFAULT_INSTRUCTION_MARKS: Final[int] = 10
DEFAULT_QUESTION_TEXT: Final[str] = "Grading a student answer"

# Fallback grading heuristic
FALLBACK_CHARS_FOR_FULL_MARKS: Final[int] = 300
FALLBACK_SUBSTANTIAL_ANSWER_CHARS: Final[int] = 200
FALLBACK_MIN_RATIO: Final[float] = 0.4
FALLBACK_MAX_RATIO: Final[float] = 0.8

# Mark extraction
HEADER_SCAN_LINES: Final[int] = 15
TABLE_HEADER_SCAN_LINES: Final[int] = 40
MIN_QUESTION_MARKS: Final[int] = 1
MAX_QUESTION_MARKS: Final[int] = 20
MAX_QUESTION_NUMBER: Final[int] = 60
# A paper whose questions all fall in 1-5 is read as the short-answer first page
FIRST_PAGE_LAST_QUESTION: Final[int] = 5
FIRST_PAGE_MARKS: Final[int] = 2

# Conversation
MIN_CLASS_LEVEL: Final[int] = 6
MAX_CLASS_LEVEL: Final[int] = 12
TYPED_QUESTION_MIN_CHARS: Final[int] = 60

# Uploads
MAX_UPLOAD_SIZE: Final[int] = 10 * 1024 * 1024  # 10MB

# Storage
DATA_DIR: Final[str] = "data"
UPLOADS_DIR: Final[str] = "uploads"
