"""
Application-level constants for hardcoded protocol behavior.

These values define the WebSocket wire conventions and safety limits and
should never be changed via environment variables. For tunable values
(queue sizes, timeouts, secrets) see adminws/settings.py.
"""

# ============================================================================
# WebSocket Protocol Constants
# ============================================================================

# WebSocket close codes (RFC 6455)
WS_NORMAL_CLOSURE_CODE = 1000
WS_GOING_AWAY_CODE = 1001
WS_POLICY_VIOLATION_CODE = 1008
WS_INTERNAL_ERROR_CODE = 1011

# Timeout (seconds) when closing WebSocket connections gracefully
WS_CLOSE_TIMEOUT_SECONDS = 5

# Subprotocol carrying the bearer token during the upgrade handshake
WS_AUTH_SUBPROTOCOL = "Bearer"

# Application level keep-alive frames
WS_KEEPALIVE_PING = "ping"
WS_KEEPALIVE_PONG = "pong"


# ============================================================================
# Broadcast envelopes
# ============================================================================

# Response code carried by server pushed events
BROADCAST_RESPONSE_CODE = 2000

BALANCE_UPDATE_TOPIC = "update_member_balance"
BALANCE_UPDATE_MESSAGE = "Member balance updated"


# ============================================================================
# Logging
# ============================================================================

# Maximum size (bytes) of one JSON log line shipped to Loki
LOKI_MAX_LOG_SIZE_BYTES = 250_000
