"""
Prometheus metrics for WebSocket connection monitoring.

Tracks connection admission, live connections, inbound frames, outbound
writes and the per-connection outcome of every dispatch.
"""

from adminws.utils.metrics._helpers import (
    _get_or_create_counter,
    _get_or_create_gauge,
)

ws_connections_active = _get_or_create_gauge(
    "ws_connections_active", "Number of active WebSocket connections"
)

ws_connections_total = _get_or_create_counter(
    "ws_connections_total",
    "Total WebSocket connections",
    ["status"],  # accepted, rejected_auth
)

ws_messages_received_total = _get_or_create_counter(
    "ws_messages_received_total", "Total WebSocket messages received"
)

ws_messages_sent_total = _get_or_create_counter(
    "ws_messages_sent_total", "Total WebSocket messages sent"
)

ws_dispatch_total = _get_or_create_counter(
    "ws_dispatch_total",
    "Outcome of enqueueing a dispatched payload on one connection",
    ["result"],  # accepted, closed, dropped
)


__all__ = [
    "ws_connections_active",
    "ws_connections_total",
    "ws_messages_received_total",
    "ws_messages_sent_total",
    "ws_dispatch_total",
]
