"""Centralized constants for the message service.

Defaults only; every value here can be overridden through Settings.
"""

# =============================================================================
# CACHE KEYS
# =============================================================================

DEFAULT_CACHE_KEY = "latest_message"

# Used by the health check round-trip, never by message traffic
HEALTH_CHECK_KEY = "_health_check"

# =============================================================================
# ROW STORE
# =============================================================================

DEFAULT_MESSAGES_TABLE = "messages"

# Returned when the row store holds no messages
DEFAULT_EMPTY_MESSAGE = "No messages yet"

# =============================================================================
# HTTP LISTING
# =============================================================================

DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 100
