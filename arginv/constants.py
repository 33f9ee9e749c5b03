"""
Constants for the ARG inventory collector.

This module defines all magic strings and numbers used across the codebase
to prevent typos, ensure consistency, and make maintenance easier.
"""

# =============================================================================
# Paging
# =============================================================================

DEFAULT_PAGE_SIZE = 5000

# Resource Graph never returns more than this many rows in one response
GRAPH_MAX_RESPONSE_ROWS = 1000

# =============================================================================
# Concurrency
# =============================================================================

DEFAULT_PARALLEL_QUERIES = 1
MAX_PARALLEL_QUERIES = 8

# =============================================================================
# Retry
# =============================================================================

DEFAULT_RETRY_ATTEMPTS = 3
THROTTLE_RETRY_ATTEMPTS = 5
THROTTLE_STATUS_CODE = 429

# =============================================================================
# Export
# =============================================================================

EXPORT_NONE = "none"
EXPORT_CSV = "csv"
EXPORT_JSON = "json"

EXPORT_FORMATS = (EXPORT_NONE, EXPORT_CSV, EXPORT_JSON)

# Artifact timestamp: YYYYMMDD-HHMMSS
EXPORT_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

# Nesting deeper than this is written as a JSON string
JSON_MAX_DEPTH = 8

DEFAULT_OUTPUT_DIR = "."

# =============================================================================
# Outcome Status
# =============================================================================

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

# =============================================================================
# Providers / Subscription States
# =============================================================================

PROVIDER_AZURE = "azure"

SUBSCRIPTION_STATE_ENABLED = "Enabled"

# =============================================================================
# Environment
# =============================================================================

ENV_PREFIX = "ARGINV_"

DEFAULT_LOG_LEVEL = "INFO"

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CANCELLED = 130
