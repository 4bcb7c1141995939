"""
Prometheus metrics definitions.

All metrics are re-exported here so call sites can import them from one
place:

    from adminws.utils.metrics import ws_connections_active
"""

from adminws.utils.metrics.websocket import (
    ws_connections_active,
    ws_connections_total,
    ws_dispatch_total,
    ws_messages_received_total,
    ws_messages_sent_total,
)

__all__ = [
    "ws_connections_active",
    "ws_connections_total",
    "ws_messages_received_total",
    "ws_messages_sent_total",
    "ws_dispatch_total",
]
